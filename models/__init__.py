"""Model package exports."""

from models.catalog_item import CatalogItem, ClothingMetadata, ImageUrls, WearEvent
from models.detection import BoundingBox, CandidateInput, DetectedCandidate, ProcessedItem, ResolveResult

__all__ = [
    "BoundingBox",
    "CandidateInput",
    "CatalogItem",
    "ClothingMetadata",
    "DetectedCandidate",
    "ImageUrls",
    "ProcessedItem",
    "ResolveResult",
    "WearEvent",
]
