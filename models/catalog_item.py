"""Catalog item data model and helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from models.taxonomy import (
    normalize_color_name,
    normalize_label,
    normalize_season,
    unique_labels,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ClothingMetadata:
    """Structured description of a garment as reported by the classifier."""

    category: str = ""
    sub_category: str = ""
    primary_color: str = ""
    secondary_colors: List[str] = field(default_factory=list)
    vibe_tags: List[str] = field(default_factory=list)
    estimated_season: str = ""

    def __post_init__(self) -> None:
        self.category = normalize_label(self.category)
        self.sub_category = normalize_label(self.sub_category)
        self.primary_color = normalize_color_name(self.primary_color) if self.primary_color else ""
        self.secondary_colors = unique_labels(self.secondary_colors, normalize_color_name)
        self.vibe_tags = unique_labels(self.vibe_tags)
        self.estimated_season = normalize_season(self.estimated_season) if self.estimated_season else ""

    @classmethod
    def from_dict(cls, payload: Optional[Dict[str, Any]]) -> "ClothingMetadata":
        payload = payload or {}
        return cls(
            category=payload.get("category") or "",
            sub_category=payload.get("sub_category") or "",
            primary_color=payload.get("primary_color") or "",
            secondary_colors=list(payload.get("secondary_colors") or []),
            vibe_tags=list(payload.get("vibe_tags") or []),
            estimated_season=payload.get("estimated_season") or "",
        )


@dataclass
class ImageUrls:
    """Primary image plus further photos of the same physical item."""

    primary: str
    variants: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        deduped: List[str] = []
        for url in self.variants or []:
            if url and url not in deduped:
                deduped.append(url)
        self.variants = deduped

    @classmethod
    def from_dict(cls, payload: Optional[Dict[str, Any]]) -> "ImageUrls":
        payload = payload or {}
        return cls(primary=str(payload.get("primary") or ""), variants=list(payload.get("variants") or []))


@dataclass
class CatalogItem:
    """A garment owned by exactly one user.

    Created when no matching signature exists and mutated in place by every
    later duplicate detection. This package never deletes items.
    """

    item_id: str
    owner_id: str
    image_urls: ImageUrls
    perceptual_signature: str
    metadata: ClothingMetadata = field(default_factory=ClothingMetadata)
    embedding: Optional[List[float]] = None
    price: Optional[Decimal] = None
    initial_wears: int = 0
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    # bumped by every successful repository update
    version: int = 0

    def __post_init__(self) -> None:
        if self.embedding is not None:
            self.embedding = [float(value) for value in self.embedding]
        if self.price is not None and not isinstance(self.price, Decimal):
            self.price = Decimal(str(self.price))


@dataclass
class WearEvent:
    """One logged wear of a catalog item. Read-only to the ingestion core."""

    event_id: str
    item_id: str
    owner_id: str
    worn_at: datetime = field(default_factory=utc_now)
    notes: Optional[str] = None


__all__ = ["CatalogItem", "ClothingMetadata", "ImageUrls", "WearEvent", "utc_now"]
