"""Data model shared by the request builder, extractor and orchestrator."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

URL_MIME_SENTINEL = "url"


class SourceKind(str, Enum):
    """Where an image payload came from."""

    BINARY = "binary"
    BASE64 = "base64"
    URL = "url"


class Dialect(str, Enum):
    """Wire-format families spoken by the providers."""

    CHAT = "chat"
    MESSAGE = "message"


@dataclass(frozen=True, slots=True)
class ImageDescriptor:
    """Validated image ready to be embedded in a provider request."""

    data: str
    mime_type: str
    size_bytes: int
    source_kind: SourceKind
    warnings: tuple[str, ...] = ()

    @property
    def is_url(self) -> bool:
        return self.source_kind is SourceKind.URL

    def data_uri(self) -> str:
        """Return the image as a URL usable in an ``image_url`` block."""
        if self.is_url:
            return self.data
        return f"data:{self.mime_type};base64,{self.data}"


@dataclass(frozen=True, slots=True)
class SamplingOptions:
    """Optional sampling parameters forwarded to the provider."""

    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    detail: str | None = None


@dataclass(frozen=True, slots=True)
class AnalysisRequest:
    """Provider-agnostic description of one image analysis call."""

    model: str
    prompt: str
    image: ImageDescriptor
    sampling: SamplingOptions = field(default_factory=SamplingOptions)
    system_prompt: str | None = None
    response_format: str | None = None
    extra_fields: Mapping[str, Any] | None = None


@dataclass(slots=True)
class RequestSpec:
    """Wire-ready HTTP request."""

    url: str
    headers: dict[str, str]
    body: dict[str, Any]


@dataclass(frozen=True, slots=True)
class TokenUsage:
    input_tokens: int | None = None
    output_tokens: int | None = None

    def as_dict(self) -> dict[str, int | None]:
        return {"input_tokens": self.input_tokens, "output_tokens": self.output_tokens}


@dataclass(frozen=True, slots=True)
class AnalysisResult:
    """Normalised provider answer."""

    text: str
    usage: TokenUsage | None = None
    finish_reason: str | None = None
    model: str | None = None

    def metadata(self) -> dict[str, object]:
        """Return the usage block merged into output records on request."""
        return {
            "model": self.model,
            "usage": self.usage.as_dict() if self.usage is not None else None,
            "finish_reason": self.finish_reason,
        }


@dataclass(slots=True)
class BinaryAttachment:
    """Binary file attached to a work item."""

    data: bytes
    mime_type: str | None = None
    file_name: str | None = None


@dataclass(slots=True)
class WorkItem:
    """Opaque input record: a JSON field bag plus named binary attachments."""

    json: dict[str, Any] = field(default_factory=dict)
    binary: dict[str, BinaryAttachment] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ModelOption:
    """A model entry suitable for display in a picker."""

    id: str
    name: str
    description: str = ""
