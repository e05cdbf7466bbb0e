"""Top-level package for the LLM Vision library."""

from .config import AppConfig, SamplingSettings
from .credentials import CredentialSet, FileCredentialStore, MappingCredentialStore
from .models.base import BinaryAttachment, WorkItem
from .services.analyzer import VisionAnalyzer
from .settings_store import SettingsStore

__all__ = [
    "AppConfig",
    "BinaryAttachment",
    "CredentialSet",
    "FileCredentialStore",
    "MappingCredentialStore",
    "SamplingSettings",
    "SettingsStore",
    "VisionAnalyzer",
    "WorkItem",
]
