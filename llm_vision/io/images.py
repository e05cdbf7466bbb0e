"""Turn binary, base64 or URL input into a validated image descriptor."""

from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from urllib.parse import urlsplit

from ..errors import (
    EmptyPayload,
    InvalidEncoding,
    InvalidUrl,
    Oversized,
    UnsafeUrl,
    UnsupportedFormat,
)
from ..models.base import URL_MIME_SENTINEL, BinaryAttachment, ImageDescriptor, SourceKind
from ..utils.text import format_megabytes

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 20 * 1024 * 1024

_BASE64_PATTERN = re.compile(r"^[A-Za-z0-9+/]*={0,2}$")
_UNSAFE_URL_MARKERS = ("<script", "javascript:")
_ALLOWED_URL_SCHEMES = {"http", "https"}


@dataclass(frozen=True, slots=True)
class ImageFormat:
    mime_type: str
    extensions: tuple[str, ...]
    signature: bytes


SUPPORTED_FORMATS: tuple[ImageFormat, ...] = (
    ImageFormat("image/jpeg", ("jpg", "jpeg"), b"\xff\xd8\xff"),
    ImageFormat("image/png", ("png",), b"\x89PNG"),
    ImageFormat("image/webp", ("webp",), b"RIFF"),
    ImageFormat("image/gif", ("gif",), b"GIF"),
)


def supported_mime_types() -> list[str]:
    return [fmt.mime_type for fmt in SUPPORTED_FORMATS]


def is_supported_mime(mime_type: str | None) -> bool:
    return mime_type in supported_mime_types()


def detect_mime_from_extension(filename: str | None) -> str | None:
    """Map a filename's extension onto a supported MIME type."""
    if not filename or "." not in filename:
        return None
    extension = filename.rsplit(".", 1)[1].strip().lower()
    for fmt in SUPPORTED_FORMATS:
        if extension in fmt.extensions:
            return fmt.mime_type
    return None


def detect_mime_from_bytes(data: bytes) -> str | None:
    """Identify the image format from its leading signature bytes."""
    for fmt in SUPPORTED_FORMATS:
        if data.startswith(fmt.signature):
            return fmt.mime_type
    return None


def build_descriptor(
    source_kind: SourceKind | str,
    payload: object,
    *,
    filename: str | None = None,
    declared_mime: str | None = None,
) -> ImageDescriptor:
    """Validate ``payload`` and return an immutable :class:`ImageDescriptor`.

    ``payload`` is a base64 string for binary and base64 sources and a URL
    string for URL sources. Raises a :class:`~llm_vision.errors.ValidationError`
    subtype describing the first problem found.
    """
    kind = SourceKind(source_kind)
    if kind is SourceKind.URL:
        return _build_url_descriptor(payload)
    return _build_encoded_descriptor(kind, payload, filename, declared_mime)


def descriptor_from_attachment(
    attachment: BinaryAttachment,
    *,
    filename: str | None = None,
) -> ImageDescriptor:
    """Build a binary descriptor from a work item attachment."""
    if not attachment.data:
        raise EmptyPayload(
            "Binary attachment is empty. The image file appears to be empty or corrupted.",
            field="binary",
            detected=0,
        )
    encoded = base64.b64encode(bytes(attachment.data)).decode("ascii")
    return build_descriptor(
        SourceKind.BINARY,
        encoded,
        filename=filename or attachment.file_name,
        declared_mime=attachment.mime_type,
    )


# ----- Binary and base64 sources --------------------------------------------


def _build_encoded_descriptor(
    kind: SourceKind,
    payload: object,
    filename: str | None,
    declared_mime: str | None,
) -> ImageDescriptor:
    field = kind.value
    if payload is None or not isinstance(payload, str) or not payload:
        raise EmptyPayload(
            f"{field} image data is missing; expected a non-empty base64 string, "
            f"got {type(payload).__name__}.",
            field=field,
            detected=type(payload).__name__,
            expected="str",
        )

    decoded = _decode_base64(payload, field)
    if not decoded:
        raise EmptyPayload(
            f"{field} image data decoded to 0 bytes. The image appears to be empty.",
            field=field,
            detected=0,
        )
    if len(decoded) > MAX_IMAGE_BYTES:
        raise Oversized(
            f"Image size exceeds maximum of {format_megabytes(MAX_IMAGE_BYTES, precision=0)}MB "
            f"(got {format_megabytes(len(decoded))}MB). "
            "Try compressing the image or using a smaller resolution.",
            field=field,
            detected=len(decoded),
            expected=MAX_IMAGE_BYTES,
        )

    mime_type, warnings = _resolve_mime(decoded, filename, declared_mime)
    if not is_supported_mime(mime_type):
        supported = ", ".join(supported_mime_types())
        detected = mime_type or "unknown"
        raise UnsupportedFormat(
            f"Unsupported image format for {field} input: {detected}. "
            f"Supported formats: {supported}. "
            "If the format is mislabeled, provide a filename with the correct extension.",
            field=field,
            detected=mime_type,
            expected=supported_mime_types(),
        )

    return ImageDescriptor(
        data=payload,
        mime_type=mime_type,
        size_bytes=len(decoded),
        source_kind=kind,
        warnings=tuple(warnings),
    )


def _decode_base64(payload: str, field: str) -> bytes:
    if not _BASE64_PATTERN.match(payload):
        raise InvalidEncoding(
            f"{field} image data is not valid base64. Provide plain base64 "
            "without a data: URI prefix or line breaks.",
            field=field,
            expected="base64",
        )
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidEncoding(
            f"{field} image data could not be decoded as base64: {exc}",
            field=field,
            expected="base64",
        ) from exc


def _resolve_mime(
    decoded: bytes,
    filename: str | None,
    declared_mime: str | None,
) -> tuple[str | None, list[str]]:
    warnings: list[str] = []
    from_extension = detect_mime_from_extension(filename)
    if from_extension:
        label, label_source = from_extension, f"filename '{filename}'"
    else:
        label, label_source = declared_mime, "declared MIME type"

    sniffed = detect_mime_from_bytes(decoded)
    if sniffed is None:
        return label, warnings
    if label and label != sniffed:
        message = (
            f"MIME type mismatch: {label_source} says {label} but magic bytes "
            f"indicate {sniffed}. Using {sniffed}."
        )
        logger.warning(message)
        warnings.append(message)
    return sniffed, warnings


# ----- URL sources ------------------------------------------------------------


def _build_url_descriptor(payload: object) -> ImageDescriptor:
    if not isinstance(payload, str) or not payload.strip():
        raise InvalidUrl(
            "Image URL is empty; expected an http:// or https:// URL.",
            field="image_url",
            detected=payload if isinstance(payload, str) else type(payload).__name__,
            expected="http(s) URL",
        )

    url = payload.strip()
    try:
        parts = urlsplit(url)
    except ValueError as exc:
        raise InvalidUrl(
            f'Invalid image URL: "{url}". Make sure it is a valid HTTP(S) URL. Error: {exc}',
            field="image_url",
            detected=url,
            expected="http(s) URL",
        ) from exc
    if not parts.scheme:
        raise InvalidUrl(
            f'Invalid image URL: "{url}". The URL has no scheme; expected http:// or https://.',
            field="image_url",
            detected=url,
            expected="http(s) URL",
        )

    lowered = url.lower()
    if any(marker in lowered for marker in _UNSAFE_URL_MARKERS):
        raise UnsafeUrl(
            "Potentially unsafe image URL detected (contains script or javascript).",
            field="image_url",
            detected=url,
        )

    if parts.scheme.lower() not in _ALLOWED_URL_SCHEMES or not parts.netloc:
        raise InvalidUrl(
            f"Image URL must start with http:// or https:// and name a host "
            f'(got scheme "{parts.scheme}").',
            field="image_url",
            detected=parts.scheme,
            expected=sorted(_ALLOWED_URL_SCHEMES),
        )

    return ImageDescriptor(
        data=url,
        mime_type=URL_MIME_SENTINEL,
        size_bytes=len(url),
        source_kind=SourceKind.URL,
    )
