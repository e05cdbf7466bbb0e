"""Credential sets and the ordered resolution used once per batch."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from pydantic import BaseModel, Field, ValidationError

from .config import read_config_file
from .errors import AuthError
from .models.providers import CUSTOM_PROVIDER_ID, DEFAULT_PROVIDER_ID

logger = logging.getLogger(__name__)

OPENROUTER_CREDENTIALS = "openrouter"
UNIVERSAL_CREDENTIALS = "universal"
DEFAULT_RESOLUTION_ORDER: tuple[str, ...] = (OPENROUTER_CREDENTIALS, UNIVERSAL_CREDENTIALS)


class CredentialsNotFound(LookupError):
    """Raised by a store when a credential set is not configured."""


class CredentialSet(BaseModel):
    """One named set of provider credentials."""

    provider: str = Field(default=DEFAULT_PROVIDER_ID, description="Provider identifier.")
    api_key: str = Field(default="", description="API key; may be empty for local custom providers.")
    base_url: str | None = Field(default=None, description="Base URL override, required for 'custom'.")
    http_referer: str | None = Field(default=None, description="OpenRouter HTTP-Referer header.")
    app_title: str | None = Field(default=None, description="OpenRouter X-Title header.")

    def is_usable(self) -> bool:
        if self.api_key.strip():
            return True
        return self.provider.strip().lower() == CUSTOM_PROVIDER_ID and bool(
            (self.base_url or "").strip()
        )


class CredentialStore(Protocol):
    """Source of named credential sets."""

    def get(self, name: str) -> CredentialSet:
        """Return the set called ``name`` or raise :class:`CredentialsNotFound`."""


class MappingCredentialStore:
    """Credential store backed by an in-memory mapping."""

    def __init__(self, sets: Mapping[str, CredentialSet | Mapping[str, Any]] | None = None) -> None:
        self._sets: dict[str, CredentialSet] = {}
        for name, value in (sets or {}).items():
            self._sets[name] = (
                value if isinstance(value, CredentialSet) else CredentialSet.model_validate(value)
            )

    def get(self, name: str) -> CredentialSet:
        try:
            return self._sets[name]
        except KeyError as exc:
            raise CredentialsNotFound(f"Credential set '{name}' is not configured.") from exc


class FileCredentialStore(MappingCredentialStore):
    """Read credential sets from a YAML or JSON file keyed by set name."""

    def __init__(self, path: Path) -> None:
        self.path = path
        data: dict[str, Any] = {}
        if path.exists():
            data = read_config_file(path)
        if not isinstance(data, dict):
            raise ValueError(f"Credentials file at {path} must contain a mapping.")
        try:
            super().__init__(data)
        except ValidationError as exc:
            raise ValueError(f"Invalid credentials file at {path}: {exc}") from exc


@dataclass(frozen=True, slots=True)
class ResolvedCredentials:
    """Credentials chosen for a batch."""

    name: str
    provider_id: str
    api_key: str = field(repr=False)
    base_url: str | None = None
    extra_headers: Mapping[str, str] = field(default_factory=dict)


def resolve_credentials(
    store: CredentialStore,
    order: Sequence[str] = DEFAULT_RESOLUTION_ORDER,
) -> ResolvedCredentials:
    """Return the first usable credential set in ``order``.

    Raises :class:`AuthError` naming every set tried when none is usable.
    """
    problems: list[str] = []
    for name in order:
        try:
            credentials = store.get(name)
        except CredentialsNotFound:
            problems.append(f"{name}: not configured")
            continue
        if not credentials.is_usable():
            problems.append(f"{name}: missing API key")
            continue
        logger.info("Using '%s' credentials for provider '%s'.", name, _provider_for(name, credentials))
        return _resolved(name, credentials)

    raise AuthError(
        "No credentials configured. Configure the OpenRouter or the universal credential set "
        f"({'; '.join(problems)}).",
        tried=order,
    )


def _provider_for(name: str, credentials: CredentialSet) -> str:
    if name == OPENROUTER_CREDENTIALS:
        return "openrouter"
    return credentials.provider.strip().lower() or DEFAULT_PROVIDER_ID


def _resolved(name: str, credentials: CredentialSet) -> ResolvedCredentials:
    extra_headers: dict[str, str] = {}
    if name == OPENROUTER_CREDENTIALS:
        if credentials.http_referer:
            extra_headers["HTTP-Referer"] = credentials.http_referer
        if credentials.app_title:
            extra_headers["X-Title"] = credentials.app_title
        base_url = None
    else:
        base_url = (credentials.base_url or "").strip() or None
    return ResolvedCredentials(
        name=name,
        provider_id=_provider_for(name, credentials),
        api_key=credentials.api_key.strip(),
        base_url=base_url,
        extra_headers=extra_headers,
    )
