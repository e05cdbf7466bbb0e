"""Core service running image analysis over a batch of work items."""

from __future__ import annotations

import logging
import traceback
from collections.abc import Callable, Sequence

from ..config import AppConfig
from ..credentials import (
    DEFAULT_RESOLUTION_ORDER,
    CredentialStore,
    ResolvedCredentials,
    resolve_credentials,
)
from ..errors import ConfigurationError, MissingAttachment
from ..io.http import HttpTransport
from ..io.images import build_descriptor, descriptor_from_attachment
from ..models.base import AnalysisRequest, ImageDescriptor, SourceKind, WorkItem
from ..models.builders import build_request
from ..models.extractors import extract_result
from ..models.providers import DEFAULT_REGISTRY, ProviderProfile, ProviderRegistry
from ..utils.text import parse_json_object

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, WorkItem], None]
OptionsProvider = Callable[[int, WorkItem], AppConfig]


class VisionAnalyzer:
    """High-level orchestration: one provider call per work item, in order."""

    def __init__(
        self,
        config: AppConfig,
        credential_store: CredentialStore,
        *,
        transport: HttpTransport | None = None,
        registry: ProviderRegistry | None = None,
        credential_order: Sequence[str] = DEFAULT_RESOLUTION_ORDER,
    ) -> None:
        self.config = config
        self.credential_store = credential_store
        self.transport = transport or HttpTransport(timeout=config.request_timeout)
        self.registry = registry or DEFAULT_REGISTRY
        self.credential_order = tuple(credential_order)

    def analyze_items(
        self,
        items: Sequence[WorkItem],
        *,
        progress_callback: ProgressCallback | None = None,
        options_for: OptionsProvider | None = None,
    ) -> list[WorkItem]:
        """Analyse every item sequentially and return the output records.

        Credentials are resolved once before the first item; an
        :class:`~llm_vision.errors.AuthError` aborts the batch whatever the
        error policy. ``options_for`` may supply per-item settings.
        """
        if not items:
            return []

        credentials = resolve_credentials(self.credential_store, self.credential_order)
        profile = self.registry.resolve(credentials.provider_id, credentials.base_url)
        total = len(items)
        logger.info("Analyzing %d item(s) with provider '%s'.", total, profile.id)

        results: list[WorkItem] = []
        for index, item in enumerate(items):
            config = options_for(index, item) if options_for else self.config
            try:
                output = self.analyze_item(item, credentials, config=config, profile=profile)
            except Exception as exc:
                if not config.continue_on_fail:
                    raise
                logger.warning("Item %d could not be analyzed: %s", index, exc)
                output = self._error_output(item, exc)
            results.append(output)
            if progress_callback:
                progress_callback(index + 1, total, output)
        return results

    def analyze_item(
        self,
        item: WorkItem,
        credentials: ResolvedCredentials,
        *,
        config: AppConfig | None = None,
        profile: ProviderProfile | None = None,
    ) -> WorkItem:
        """Run the full pipeline for a single item."""
        config = config or self.config
        profile = profile or self.registry.resolve(credentials.provider_id, credentials.base_url)

        model = config.effective_model
        if not model:
            raise ConfigurationError(
                "Model is required. Select a model or set 'manual_model_id'."
            )

        descriptor = self._descriptor_for(item, config)
        request = AnalysisRequest(
            model=model,
            prompt=config.prompt,
            image=descriptor,
            sampling=config.sampling.to_options(),
            system_prompt=config.system_prompt or None,
            response_format=config.response_format.value,
            extra_fields=parse_json_object(
                config.additional_parameters, field="additional_parameters"
            ),
        )
        extra_headers = {**config.custom_headers, **credentials.extra_headers}
        spec = build_request(
            profile,
            request,
            credentials.api_key,
            extra_headers=extra_headers,
            base_url=credentials.base_url,
        )

        logger.debug(
            "Sending %s image (%d bytes) to %s", descriptor.mime_type, descriptor.size_bytes, spec.url
        )
        raw = self.transport.send(
            "POST", spec.url, spec.headers, spec.body, timeout=config.request_timeout
        )
        result = extract_result(profile, raw)

        payload = dict(item.json)
        payload[config.output_property_name] = result.text
        if config.include_metadata:
            metadata = result.metadata()
            if descriptor.warnings:
                metadata["warnings"] = list(descriptor.warnings)
            payload["metadata"] = metadata
        return WorkItem(json=payload, binary=item.binary)

    def _descriptor_for(self, item: WorkItem, config: AppConfig) -> ImageDescriptor:
        source = config.image_source
        if source is SourceKind.BINARY:
            name = config.binary_property_name
            attachment = item.binary.get(name)
            if attachment is None:
                available = ", ".join(sorted(item.binary)) or "none"
                raise MissingAttachment(
                    f"No binary data found in property '{name}'. "
                    f"Available binary properties: [{available}].",
                    field="binary_property_name",
                    detected=sorted(item.binary),
                    expected=name,
                )
            return descriptor_from_attachment(attachment, filename=config.filename)
        if source is SourceKind.URL:
            return build_descriptor(SourceKind.URL, config.image_url)
        return build_descriptor(
            SourceKind.BASE64,
            config.base64_data,
            declared_mime=config.base64_mime_type,
        )

    @staticmethod
    def _error_output(item: WorkItem, exc: Exception) -> WorkItem:
        payload = dict(item.json)
        payload["error"] = str(exc)
        payload["details"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return WorkItem(json=payload, binary=item.binary)
