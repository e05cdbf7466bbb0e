"""Analysis settings models and persistence helpers."""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .io.http import DEFAULT_TIMEOUT
from .models.base import SamplingOptions, SourceKind

DEFAULT_PROMPT = "Analyze this image and describe what you see"

DEFAULT_SYSTEM_PROMPT = (
    "You are an AI assistant specialized in image understanding and visual analysis.\n\n"
    "Rules:\n"
    "- Use only information clearly visible in the image\n"
    "- Never guess or assume information that cannot be visually confirmed\n"
    "- If unable to answer fully, explain what's missing\n"
    "- Be concise, factual, and neutral by default\n\n"
    "Adapt your response to the user's request:\n"
    "- Text extraction: reproduce exactly as seen\n"
    "- Description: summarize visible elements\n"
    "- Unanswerable questions: state this explicitly"
)


class ImageDetail(str, Enum):
    """Resolution hint understood by chat-style providers."""

    AUTO = "auto"
    LOW = "low"
    HIGH = "high"


class ResponseFormat(str, Enum):
    TEXT = "text"
    JSON_OBJECT = "json_object"


class SamplingSettings(BaseModel):
    """Sampling parameters forwarded to the provider."""

    temperature: float | None = Field(
        default=0.2,
        ge=0.0,
        le=2.0,
        description="Randomness level; 0.2 suits factual analysis.",
    )
    max_tokens: int | None = Field(
        default=1024,
        ge=1,
        description="Maximum length of the response in tokens.",
    )
    top_p: float | None = Field(
        default=0.9,
        ge=0.0,
        le=1.0,
        description="Nucleus sampling cut-off.",
    )
    image_detail: ImageDetail | None = Field(
        default=ImageDetail.AUTO,
        description="Image resolution detail level. Ignored by providers without support.",
    )

    def to_options(self) -> SamplingOptions:
        return SamplingOptions(
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            top_p=self.top_p,
            detail=self.image_detail.value if self.image_detail is not None else None,
        )


class AppConfig(BaseModel):
    """Validates and stores the settings of an analysis run."""

    image_source: SourceKind = Field(
        default=SourceKind.BINARY,
        description="Where the image comes from: binary attachment, base64 text or URL.",
    )
    binary_property_name: str = Field(
        default="data",
        description="Name of the work item attachment holding the image.",
    )
    filename: str | None = Field(
        default=None,
        description="Optional filename used for MIME detection; overrides attachment metadata.",
    )
    image_url: str | None = Field(
        default=None,
        description="HTTP(S) URL of the image when the source is 'url'.",
    )
    base64_data: str | None = Field(
        default=None,
        description="Base64 image data (no data: URI prefix) when the source is 'base64'.",
    )
    base64_mime_type: str | None = Field(
        default=None,
        description="Declared MIME type of base64 data; magic bytes take precedence.",
    )
    prompt: str = Field(
        default=DEFAULT_PROMPT,
        description="Question or instruction for analysing the image.",
    )
    model: str = Field(
        default="",
        description="Vision-capable model identifier for the selected provider.",
    )
    manual_model_id: str | None = Field(
        default=None,
        description="Model identifier that overrides 'model' when set.",
    )
    sampling: SamplingSettings = Field(default_factory=SamplingSettings)
    system_prompt: str | None = Field(
        default=DEFAULT_SYSTEM_PROMPT,
        description="System instructions sent with every request.",
    )
    response_format: ResponseFormat = Field(
        default=ResponseFormat.TEXT,
        description="Requested response format. Not every provider supports JSON mode.",
    )
    custom_headers: dict[str, str] = Field(
        default_factory=dict,
        description="Additional HTTP headers; authentication headers cannot be replaced.",
    )
    additional_parameters: dict[str, Any] | str | None = Field(
        default=None,
        description="Extra body fields as a mapping or JSON text, merged into the request body.",
    )
    include_metadata: bool = Field(
        default=False,
        description="Add model, usage and finish reason to each output record.",
    )
    output_property_name: str = Field(
        default="analysis",
        description="Field of the output record receiving the analysis text.",
    )
    continue_on_fail: bool = Field(
        default=False,
        description="Record per-item errors in the output instead of aborting the batch.",
    )
    request_timeout: float = Field(
        default=DEFAULT_TIMEOUT,
        ge=1.0,
        le=600.0,
        description="Timeout (seconds) for each provider call.",
    )

    @field_validator("output_property_name", "binary_property_name")
    @classmethod
    def _require_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("Property names must not be empty.")
        return stripped

    @field_validator("custom_headers", mode="before")
    @classmethod
    def _coerce_header_list(cls, value: Any) -> Any:
        # Accept [{"name": ..., "value": ...}] rows as well as a mapping.
        if isinstance(value, list):
            return {
                str(row["name"]): str(row.get("value", ""))
                for row in value
                if isinstance(row, dict) and row.get("name")
            }
        return value

    @model_validator(mode="after")
    def _normalise_model_ids(self) -> AppConfig:
        self.model = self.model.strip()
        if self.manual_model_id is not None:
            self.manual_model_id = self.manual_model_id.strip() or None
        return self

    @property
    def effective_model(self) -> str:
        """The manual model id when set, otherwise ``model``."""
        return self.manual_model_id or self.model

    def as_dict(self) -> dict[str, Any]:
        """Serialize the configuration to primitive Python types."""
        return self.model_dump(mode="json")

    @classmethod
    def load(cls, path: Path) -> AppConfig:
        """Load configuration from a YAML or JSON file."""
        data = read_config_file(path)
        try:
            return cls.model_validate(data)
        except ValidationError as exc:  # pragma: no cover - pass through details
            raise ValueError(f"Invalid configuration file at {path}: {exc}") from exc

    def save(self, path: Path) -> None:
        """Persist configuration to a YAML or JSON file."""
        write_config_file(path, self.as_dict())


def read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(path)

    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in {".yaml", ".yml"}:
        return yaml.safe_load(text) or {}
    return json.loads(text)


def write_config_file(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix.lower() in {".yaml", ".yml"}:
        yaml_text = yaml.safe_dump(
            data,
            allow_unicode=False,
            sort_keys=False,
        )
        path.write_text(yaml_text, encoding="utf-8")
    else:
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
