"""Service layer coordinating provider calls."""

from .analyzer import VisionAnalyzer
from .catalog import ModelCatalog, ModelListing, list_catalog_models, list_models

__all__ = ["ModelCatalog", "ModelListing", "VisionAnalyzer", "list_catalog_models", "list_models"]
