"""Compile an :class:`AnalysisRequest` into a provider-specific HTTP request."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from .base import AnalysisRequest, Dialect, RequestSpec, SamplingOptions
from .providers import ProviderProfile

logger = logging.getLogger(__name__)

TEXT_RESPONSE_FORMAT = "text"

BodyBuilder = Callable[[ProviderProfile, AnalysisRequest], dict[str, Any]]


def build_request(
    profile: ProviderProfile,
    request: AnalysisRequest,
    api_key: str,
    *,
    extra_headers: Mapping[str, str] | None = None,
    base_url: str | None = None,
) -> RequestSpec:
    """Return the URL, headers and JSON body for ``request``."""
    url = profile.endpoint_url(base_url)
    headers = merge_headers(profile, profile.headers(api_key), extra_headers)
    body = _BODY_BUILDERS[profile.dialect](profile, request)
    if request.extra_fields:
        body.update(request.extra_fields)
    logger.debug("Built %s request for %s model '%s'", profile.dialect.value, profile.id, request.model)
    return RequestSpec(url=url, headers=headers, body=body)


def merge_headers(
    profile: ProviderProfile,
    headers: Mapping[str, str],
    extra_headers: Mapping[str, str] | None,
) -> dict[str, str]:
    """Add ``extra_headers`` without touching authentication headers."""
    merged = dict(headers)
    if not extra_headers:
        return merged
    protected = profile.protected_headers
    for name, value in extra_headers.items():
        if not value:
            continue
        if name.lower() in protected:
            logger.debug("Ignoring custom header '%s'; it would replace authentication.", name)
            continue
        merged[name] = value
    return merged


def _sampling_fields(sampling: SamplingOptions) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    if sampling.temperature is not None:
        fields["temperature"] = sampling.temperature
    if sampling.max_tokens is not None:
        fields["max_tokens"] = sampling.max_tokens
    if sampling.top_p is not None:
        fields["top_p"] = sampling.top_p
    return fields


def build_chat_body(profile: ProviderProfile, request: AnalysisRequest) -> dict[str, Any]:
    """OpenAI-compatible ``/chat/completions`` body. Text block comes first."""
    body: dict[str, Any] = {"model": request.model}
    body.update(_sampling_fields(request.sampling))

    if (
        profile.supports_json_mode
        and request.response_format
        and request.response_format != TEXT_RESPONSE_FORMAT
    ):
        body["response_format"] = {"type": request.response_format}

    image_url: dict[str, Any] = {"url": request.image.data_uri()}
    if profile.supports_detail_param and request.sampling.detail:
        image_url["detail"] = request.sampling.detail

    messages: list[dict[str, Any]] = []
    if request.system_prompt:
        messages.append({"role": "system", "content": request.system_prompt})
    messages.append(
        {
            "role": "user",
            "content": [
                {"type": "text", "text": request.prompt},
                {"type": "image_url", "image_url": image_url},
            ],
        }
    )
    body["messages"] = messages
    return body


def build_message_body(profile: ProviderProfile, request: AnalysisRequest) -> dict[str, Any]:
    """Anthropic-compatible ``/messages`` body. Image block comes first."""
    body: dict[str, Any] = {"model": request.model}
    body.update(_sampling_fields(request.sampling))
    if request.system_prompt:
        body["system"] = request.system_prompt

    image = request.image
    if image.is_url:
        source: dict[str, Any] = {"type": "url", "url": image.data}
    else:
        source = {"type": "base64", "media_type": image.mime_type, "data": image.data}

    body["messages"] = [
        {
            "role": "user",
            "content": [
                {"type": "image", "source": source},
                {"type": "text", "text": request.prompt},
            ],
        }
    ]
    return body


_BODY_BUILDERS: dict[Dialect, BodyBuilder] = {
    Dialect.CHAT: build_chat_body,
    Dialect.MESSAGE: build_message_body,
}
