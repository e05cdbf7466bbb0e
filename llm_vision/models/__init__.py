"""Data model, provider profiles and dialect translation."""

from .base import (
    AnalysisRequest,
    AnalysisResult,
    BinaryAttachment,
    Dialect,
    ImageDescriptor,
    ModelOption,
    RequestSpec,
    SamplingOptions,
    SourceKind,
    TokenUsage,
    WorkItem,
)
from .builders import build_request, merge_headers
from .extractors import extract_result
from .providers import DEFAULT_REGISTRY, ProviderProfile, ProviderRegistry

__all__ = [
    "AnalysisRequest",
    "AnalysisResult",
    "BinaryAttachment",
    "DEFAULT_REGISTRY",
    "Dialect",
    "ImageDescriptor",
    "ModelOption",
    "ProviderProfile",
    "ProviderRegistry",
    "RequestSpec",
    "SamplingOptions",
    "SourceKind",
    "TokenUsage",
    "WorkItem",
    "build_request",
    "extract_result",
    "merge_headers",
]
