"""Model discovery from the models.dev catalog or a provider's models endpoint."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from ..credentials import ResolvedCredentials
from ..errors import VisionError
from ..io.http import HttpTransport
from ..models.base import ModelOption
from ..models.builders import merge_headers
from ..models.providers import ModelSort, ProviderProfile, ProviderRegistry

logger = logging.getLogger(__name__)

MODELS_DEV_URL = "https://models.dev/api.json"

MANUAL_MODEL_HINT = (
    "Set 'manual_model_id' and enter the model ID directly (e.g. gpt-4o, claude-3-opus)."
)


@dataclass(slots=True)
class ModelListing:
    """Outcome of a models query.

    ``supported`` is False when the provider has no way to list models, which
    is different from a supported listing returning no models.
    """

    supported: bool
    models: list[ModelOption] = field(default_factory=list)


def list_models(
    profile: ProviderProfile,
    api_key: str,
    transport: HttpTransport,
    *,
    base_url: str | None = None,
    extra_headers: Mapping[str, str] | None = None,
) -> ModelListing:
    """Query ``profile``'s models endpoint and return display options."""
    url = profile.models_url(base_url)
    if url is None:
        return ModelListing(supported=False)

    headers = merge_headers(profile, profile.headers(api_key), extra_headers)
    payload = transport.send("GET", url, headers)
    entries = _model_entries(payload)
    if profile.model_filter is not None:
        entries = [entry for entry in entries if profile.model_filter(entry)]
    return ModelListing(supported=True, models=parse_models(entries, profile.model_sort))


def _model_entries(payload: Any) -> list[Mapping[str, Any]]:
    if isinstance(payload, Mapping):
        payload = payload.get("data", payload.get("models", []))
    if not isinstance(payload, list):
        return []
    return [
        entry
        for entry in payload
        if isinstance(entry, Mapping) and isinstance(entry.get("id"), str) and entry["id"]
    ]


def parse_models(entries: list[Mapping[str, Any]], sort: ModelSort) -> list[ModelOption]:
    """Sort raw entries and map them onto :class:`ModelOption` rows.

    ``ModelSort.CREATED`` orders newest first and falls back to alphabetical
    order when no entry carries a timestamp.
    """
    if sort is ModelSort.CREATED and any(_created_at(entry) is not None for entry in entries):
        ordered = sorted(entries, key=lambda entry: (-(_created_at(entry) or 0.0), _id_key(entry)))
    else:
        ordered = sorted(entries, key=_id_key)
    return [ModelOption(id=entry["id"], name=entry["id"], description=entry["id"]) for entry in ordered]


def _id_key(entry: Mapping[str, Any]) -> str:
    return entry["id"].lower()


def _created_at(entry: Mapping[str, Any]) -> float | None:
    created = entry.get("created")
    if isinstance(created, (int, float)) and not isinstance(created, bool):
        return float(created)
    return None


def list_catalog_models(
    transport: HttpTransport,
    provider: str | None = None,
    *,
    url: str = MODELS_DEV_URL,
) -> ModelListing:
    """Fetch vision-capable models from the models.dev catalog.

    ``provider`` restricts the result to one catalog provider key.
    """
    payload = transport.send("GET", url, {"Accept": "application/json"})
    return ModelListing(supported=True, models=parse_catalog_models(payload, provider))


def parse_catalog_models(payload: Any, provider: str | None = None) -> list[ModelOption]:
    """Map a models.dev document onto options, newest release first.

    Only models whose ``modalities.input`` includes ``image`` are kept.
    """
    if not isinstance(payload, Mapping):
        return []

    rows: list[tuple[str, ModelOption]] = []
    for provider_key, provider_entry in payload.items():
        if provider is not None and provider_key != provider:
            continue
        if not isinstance(provider_entry, Mapping):
            continue
        models = provider_entry.get("models")
        if not isinstance(models, Mapping):
            continue
        provider_name = provider_entry.get("name") or provider_key
        for key, model in models.items():
            if not isinstance(model, Mapping) or not _accepts_image_input(model):
                continue
            model_id = str(model.get("id") or key)
            cost = model.get("cost") if isinstance(model.get("cost"), Mapping) else {}
            option = ModelOption(
                id=model_id,
                name=f"{provider_name}: {model.get('name') or model_id}",
                description=(
                    f"${_price(cost.get('input'))} / ${_price(cost.get('output'))} "
                    f"per 1M tokens ({model_id})"
                ),
            )
            release = model.get("release_date")
            rows.append((release if isinstance(release, str) else "", option))

    rows.sort(key=lambda row: row[0], reverse=True)
    return [option for _, option in rows]


def _accepts_image_input(model: Mapping[str, Any]) -> bool:
    modalities = model.get("modalities")
    if not isinstance(modalities, Mapping):
        return False
    inputs = modalities.get("input")
    return isinstance(inputs, (list, tuple)) and "image" in inputs


def _price(value: Any) -> str:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return f"{value:g}"
    return "0"


class ModelCatalog:
    """Turn model listings into picker options with a manual-entry fallback.

    Known providers are listed from the models.dev catalog; profiles without
    a catalog key (the custom provider) query their own models endpoint.
    """

    def __init__(
        self,
        credentials: ResolvedCredentials,
        transport: HttpTransport,
        registry: ProviderRegistry,
        *,
        catalog_url: str = MODELS_DEV_URL,
    ) -> None:
        self.credentials = credentials
        self.transport = transport
        self.registry = registry
        self.catalog_url = catalog_url

    def listing(self) -> ModelListing:
        profile = self.registry.resolve(self.credentials.provider_id, self.credentials.base_url)
        return self._listing_for(profile)

    def _listing_for(self, profile: ProviderProfile) -> ModelListing:
        if profile.catalog_id is not None:
            return list_catalog_models(self.transport, profile.catalog_id, url=self.catalog_url)
        return list_models(
            profile,
            self.credentials.api_key,
            self.transport,
            base_url=self.credentials.base_url,
            extra_headers=self.credentials.extra_headers,
        )

    def options(self) -> list[ModelOption]:
        """Return model options, or a single placeholder explaining the fallback."""
        source = "the provider"
        try:
            profile = self.registry.resolve(self.credentials.provider_id, self.credentials.base_url)
            if profile.catalog_id is not None:
                source = "models.dev"
            listing = self._listing_for(profile)
        except VisionError as exc:
            logger.info("Unable to list models for %s: %s", self.credentials.provider_id, exc)
            return [
                ModelOption(
                    id="",
                    name=f"Could not fetch models from {source}",
                    description=f"{exc}. {MANUAL_MODEL_HINT}",
                )
            ]
        if not listing.supported:
            return [
                ModelOption(
                    id="",
                    name="Model listing is not supported for this provider",
                    description=MANUAL_MODEL_HINT,
                )
            ]
        if not listing.models:
            return [
                ModelOption(
                    id="",
                    name="No models found for this provider",
                    description=MANUAL_MODEL_HINT,
                )
            ]
        return listing.models
