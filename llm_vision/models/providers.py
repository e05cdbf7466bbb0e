"""Static provider profiles and the registry used to look them up."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any

from ..errors import ConfigurationError
from .base import Dialect

logger = logging.getLogger(__name__)

HeaderBuilder = Callable[[str], dict[str, str]]
ModelFilter = Callable[[Mapping[str, Any]], bool]

DEFAULT_PROVIDER_ID = "openai"
CUSTOM_PROVIDER_ID = "custom"
ANTHROPIC_VERSION = "2023-06-01"

_VISION_KEYWORDS = {
    "vision",
    "multimodal",
    "vl",
    "llava",
    "pixtral",
    "gpt-4o",
    "gpt-4.1",
    "claude-3",
    "gemini",
    "image",
}


class ModelSort(str, Enum):
    """Ordering applied to a provider's model list."""

    CREATED = "created"
    ALPHABETICAL = "alphabetical"


def bearer_headers(api_key: str) -> dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


def anthropic_headers(api_key: str) -> dict[str, str]:
    return {
        "x-api-key": api_key,
        "anthropic-version": ANTHROPIC_VERSION,
        "Content-Type": "application/json",
    }


def accepts_images(model: Mapping[str, Any]) -> bool:
    """Return True when a model listing entry looks vision-capable.

    OpenRouter publishes ``architecture.input_modalities``; other entries fall
    back to a keyword match on the identifier.
    """
    architecture = model.get("architecture")
    if isinstance(architecture, Mapping):
        modalities = architecture.get("input_modalities")
        if isinstance(modalities, (list, tuple)):
            return any(str(item).lower() == "image" for item in modalities)
        modality = architecture.get("modality")
        if isinstance(modality, str):
            inputs = modality.split("->", 1)[0]
            return "image" in inputs.lower()
    identifier = str(model.get("id", "")).lower()
    return any(keyword in identifier for keyword in _VISION_KEYWORDS)


@dataclass(frozen=True, slots=True)
class ProviderProfile:
    """Endpoint, authentication and dialect of one provider.

    ``catalog_id`` is the provider key in the models.dev catalog; profiles
    without one list models from their own ``models_path`` endpoint.
    """

    id: str
    display_name: str
    base_url: str
    api_path: str
    dialect: Dialect
    supports_detail_param: bool
    supports_json_mode: bool
    auth_header_builder: HeaderBuilder
    api_key_header: str = "Authorization"
    documentation_url: str | None = None
    models_path: str | None = None
    model_filter: ModelFilter | None = None
    model_sort: ModelSort = ModelSort.CREATED
    catalog_id: str | None = None

    @property
    def supports_model_listing(self) -> bool:
        return self.models_path is not None or self.catalog_id is not None

    @property
    def protected_headers(self) -> frozenset[str]:
        """Lower-cased header names that carry authentication."""
        return frozenset({"authorization", "x-api-key", self.api_key_header.lower()})

    def headers(self, api_key: str) -> dict[str, str]:
        return dict(self.auth_header_builder(api_key))

    def endpoint_url(self, base_url: str | None = None) -> str:
        return _join_url(base_url or self.base_url, self.api_path)

    def models_url(self, base_url: str | None = None) -> str | None:
        if self.models_path is None:
            return None
        return _join_url(base_url or self.base_url, self.models_path)


def _join_url(base_url: str, path: str) -> str:
    return base_url.rstrip("/") + path


def _chat_profile(
    identifier: str,
    display_name: str,
    base_url: str,
    *,
    documentation_url: str | None = None,
    auth_header_builder: HeaderBuilder = bearer_headers,
    **overrides: Any,
) -> ProviderProfile:
    values: dict[str, Any] = {
        "id": identifier,
        "display_name": display_name,
        "base_url": base_url,
        "api_path": "/chat/completions",
        "dialect": Dialect.CHAT,
        "supports_detail_param": True,
        "supports_json_mode": True,
        "auth_header_builder": auth_header_builder,
        "documentation_url": documentation_url,
        "models_path": "/models",
    }
    values.update(overrides)
    return ProviderProfile(**values)


def default_profiles() -> tuple[ProviderProfile, ...]:
    """Return the built-in provider table."""
    return (
        _chat_profile(
            "openai",
            "OpenAI",
            "https://api.openai.com/v1",
            documentation_url="https://platform.openai.com/docs",
            catalog_id="openai",
        ),
        _chat_profile(
            "openrouter",
            "OpenRouter",
            "https://openrouter.ai/api/v1",
            documentation_url="https://openrouter.ai/docs",
            catalog_id="openrouter",
            model_filter=accepts_images,
            model_sort=ModelSort.ALPHABETICAL,
        ),
        _chat_profile(
            "groq",
            "Groq",
            "https://api.groq.com/openai/v1",
            documentation_url="https://console.groq.com/docs",
            catalog_id="groq",
        ),
        _chat_profile(
            "grok",
            "Grok (X.AI)",
            "https://api.x.ai/v1",
            documentation_url="https://docs.x.ai",
            catalog_id="xai",
        ),
        _chat_profile(
            "gemini",
            "Google Gemini",
            "https://generativelanguage.googleapis.com/v1beta/openai/",
            documentation_url="https://ai.google.dev/gemini-api/docs/openai",
            catalog_id="google",
        ),
        ProviderProfile(
            id="anthropic",
            display_name="Anthropic",
            base_url="https://api.anthropic.com/v1",
            api_path="/messages",
            dialect=Dialect.MESSAGE,
            supports_detail_param=False,
            supports_json_mode=False,
            auth_header_builder=anthropic_headers,
            api_key_header="x-api-key",
            documentation_url="https://docs.anthropic.com",
            catalog_id="anthropic",
        ),
        _chat_profile(
            CUSTOM_PROVIDER_ID,
            "Custom Provider (OpenAI Compatible)",
            "",
        ),
    )


class ProviderRegistry:
    """Immutable lookup table of provider profiles."""

    def __init__(self, profiles: Iterable[ProviderProfile]) -> None:
        table: dict[str, ProviderProfile] = {}
        for profile in profiles:
            if profile.id in table:
                raise ValueError(f"Duplicate provider profile '{profile.id}'.")
            table[profile.id] = profile
        if DEFAULT_PROVIDER_ID not in table:
            raise ValueError(f"Registry requires a '{DEFAULT_PROVIDER_ID}' profile.")
        self._profiles: Mapping[str, ProviderProfile] = MappingProxyType(table)

    @classmethod
    def default(cls) -> ProviderRegistry:
        return cls(default_profiles())

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._profiles

    def ids(self) -> list[str]:
        return list(self._profiles)

    def resolve(self, provider_id: str | None, custom_base_url: str | None = None) -> ProviderProfile:
        """Return the profile for ``provider_id``.

        Empty or unknown identifiers fall back to the OpenAI profile. The
        ``custom`` identifier requires ``custom_base_url`` and yields a
        chat-style profile pointed at it.
        """
        normalized = (provider_id or "").strip().lower()
        if normalized == CUSTOM_PROVIDER_ID:
            base = (custom_base_url or "").strip()
            if not base:
                raise ConfigurationError(
                    "The custom provider requires a base URL, e.g. http://localhost:11434/v1."
                )
            template = self._profiles.get(CUSTOM_PROVIDER_ID) or self._profiles[DEFAULT_PROVIDER_ID]
            return dataclasses.replace(template, id=CUSTOM_PROVIDER_ID, base_url=base)

        profile = self._profiles.get(normalized)
        if profile is None:
            if normalized:
                logger.info(
                    "Unknown provider '%s'; using the %s profile.", normalized, DEFAULT_PROVIDER_ID
                )
            profile = self._profiles[DEFAULT_PROVIDER_ID]
        return profile

    def options(self) -> list[dict[str, str | None]]:
        """Return ``id``/``name``/``description`` rows for display."""
        return [
            {
                "id": profile.id,
                "name": profile.display_name,
                "description": profile.documentation_url or "Configure a custom endpoint",
            }
            for profile in self._profiles.values()
        ]


DEFAULT_REGISTRY = ProviderRegistry.default()
