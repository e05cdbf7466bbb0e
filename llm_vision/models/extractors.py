"""Extract analysis text and usage from provider responses."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from .base import AnalysisResult, Dialect, TokenUsage
from .providers import ProviderProfile

Extractor = Callable[[Mapping[str, Any]], AnalysisResult]


def extract_result(profile: ProviderProfile, raw: Any) -> AnalysisResult:
    """Normalise ``raw`` into an :class:`AnalysisResult`.

    Missing or oddly shaped fields degrade to an empty text and ``None``
    values instead of raising.
    """
    payload = raw if isinstance(raw, Mapping) else {}
    return _EXTRACTORS[profile.dialect](payload)


def _first(value: Any) -> Mapping[str, Any]:
    if isinstance(value, (list, tuple)) and value and isinstance(value[0], Mapping):
        return value[0]
    return {}


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _coalesce(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def extract_chat(payload: Mapping[str, Any]) -> AnalysisResult:
    choice = _first(payload.get("choices"))
    message = _mapping(choice.get("message"))

    usage: TokenUsage | None = None
    raw_usage = payload.get("usage")
    if isinstance(raw_usage, Mapping):
        usage = TokenUsage(
            input_tokens=_coalesce(raw_usage.get("prompt_tokens"), raw_usage.get("input_tokens")),
            output_tokens=_coalesce(
                raw_usage.get("completion_tokens"), raw_usage.get("output_tokens")
            ),
        )

    return AnalysisResult(
        text=_text(message.get("content")),
        usage=usage,
        finish_reason=_optional_str(choice.get("finish_reason")),
        model=_optional_str(payload.get("model")),
    )


def extract_message(payload: Mapping[str, Any]) -> AnalysisResult:
    block = _first(payload.get("content"))

    usage: TokenUsage | None = None
    raw_usage = payload.get("usage")
    if isinstance(raw_usage, Mapping):
        usage = TokenUsage(
            input_tokens=raw_usage.get("input_tokens"),
            output_tokens=raw_usage.get("output_tokens"),
        )

    return AnalysisResult(
        text=_text(block.get("text")),
        usage=usage,
        finish_reason=_optional_str(payload.get("stop_reason")),
        model=_optional_str(payload.get("model")),
    )


_EXTRACTORS: dict[Dialect, Extractor] = {
    Dialect.CHAT: extract_chat,
    Dialect.MESSAGE: extract_message,
}
