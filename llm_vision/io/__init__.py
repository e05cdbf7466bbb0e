"""Image ingestion and HTTP transport."""

from .http import DEFAULT_TIMEOUT, HttpTransport
from .images import (
    MAX_IMAGE_BYTES,
    build_descriptor,
    descriptor_from_attachment,
    detect_mime_from_bytes,
    detect_mime_from_extension,
    supported_mime_types,
)

__all__ = [
    "DEFAULT_TIMEOUT",
    "HttpTransport",
    "MAX_IMAGE_BYTES",
    "build_descriptor",
    "descriptor_from_attachment",
    "detect_mime_from_bytes",
    "detect_mime_from_extension",
    "supported_mime_types",
]
