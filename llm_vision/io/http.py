"""HTTP transport for provider calls."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import requests
from requests import Response, Session

from ..errors import NetworkError, ProviderError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0
_MAX_ERROR_BODY = 500


class HttpTransport:
    """Send JSON requests over a shared :class:`requests.Session`."""

    def __init__(
        self,
        session: Session | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._session = session or requests.Session()
        self.timeout = timeout

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> HttpTransport:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def send(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        json_body: Mapping[str, Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> Any:
        """Perform the request and return the decoded JSON payload."""
        effective_timeout = timeout or self.timeout
        logger.debug("%s %s (timeout %.1fs)", method, url, effective_timeout)
        try:
            response = self._session.request(
                method,
                url,
                headers=dict(headers),
                json=json_body,
                timeout=effective_timeout,
            )
        except requests.exceptions.Timeout as exc:
            raise NetworkError(
                f"Request to {url} timed out after {effective_timeout}s."
            ) from exc
        except requests.exceptions.RequestException as exc:
            raise NetworkError(f"Failed to contact {url}: {exc}") from exc

        if response.status_code >= 400:
            raise ProviderError(
                f"{url} returned HTTP {response.status_code}: {_provider_message(response)}",
                status_code=response.status_code,
                body=response.text,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(
                f"{url} returned a non-JSON payload: {response.text[:_MAX_ERROR_BODY]!r}",
                status_code=response.status_code,
                body=response.text,
            ) from exc

    def post(self, url: str, headers: Mapping[str, str], json_body: Mapping[str, Any], **kwargs: Any) -> Any:
        return self.send("POST", url, headers, json_body, **kwargs)

    def get(self, url: str, headers: Mapping[str, str], **kwargs: Any) -> Any:
        return self.send("GET", url, headers, **kwargs)


def _provider_message(response: Response) -> str:
    """Pull the provider's own error message out of an error response."""
    try:
        payload = response.json()
    except ValueError:
        return response.text[:_MAX_ERROR_BODY]
    if isinstance(payload, Mapping):
        error = payload.get("error")
        if isinstance(error, Mapping) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(error, str):
            return error
        if isinstance(payload.get("message"), str):
            return payload["message"]
    return response.text[:_MAX_ERROR_BODY]
