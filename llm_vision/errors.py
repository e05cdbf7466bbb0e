"""Error taxonomy shared across the vision pipeline."""

from __future__ import annotations

from collections.abc import Iterable


class VisionError(RuntimeError):
    """Base class for every error raised by the package."""


class ConfigurationError(VisionError):
    """Raised when settings are missing or inconsistent."""


class ValidationError(VisionError):
    """Raised when image input is rejected before any network call."""

    def __init__(
        self,
        message: str,
        *,
        field: str,
        detected: object | None = None,
        expected: object | None = None,
    ) -> None:
        super().__init__(message)
        self.field = field
        self.detected = detected
        self.expected = expected


class EmptyPayload(ValidationError):
    """The image payload is missing or decodes to zero bytes."""


class InvalidEncoding(ValidationError):
    """The image payload is not valid base64."""


class Oversized(ValidationError):
    """The decoded image exceeds the size limit."""


class UnsupportedFormat(ValidationError):
    """The image format is not one the providers accept."""


class InvalidUrl(ValidationError):
    """The image URL is empty, unparseable or uses a forbidden scheme."""


class UnsafeUrl(ValidationError):
    """The image URL contains script content."""


class MissingAttachment(ValidationError):
    """The work item has no binary attachment under the configured name."""


class AuthError(VisionError):
    """Raised when no usable credential set could be resolved."""

    def __init__(self, message: str, *, tried: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.tried = tuple(tried)


class NetworkError(VisionError):
    """Raised when the provider could not be reached."""


class ProviderError(VisionError):
    """Raised when the provider answers with an error status or bad payload."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
