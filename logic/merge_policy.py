"""Rules for folding a duplicate sighting into an existing catalog item."""

from __future__ import annotations

from typing import List

from models.catalog_item import ClothingMetadata, ImageUrls


def _prefer_new(new_value: str, existing_value: str) -> str:
    return new_value if new_value else existing_value


def _union(existing: List[str], new: List[str]) -> List[str]:
    combined = list(existing)
    for value in new:
        if value not in combined:
            combined.append(value)
    return combined


def merge_metadata(existing: ClothingMetadata, new: ClothingMetadata) -> ClothingMetadata:
    """Combine metadata from a new photo with what the catalog already knows.

    Scalar fields take the new value only when it is non-empty. List fields
    are unioned, keeping existing values first.
    """

    return ClothingMetadata(
        category=_prefer_new(new.category, existing.category),
        sub_category=_prefer_new(new.sub_category, existing.sub_category),
        primary_color=_prefer_new(new.primary_color, existing.primary_color),
        secondary_colors=_union(existing.secondary_colors, new.secondary_colors),
        vibe_tags=_union(existing.vibe_tags, new.vibe_tags),
        estimated_season=_prefer_new(new.estimated_season, existing.estimated_season),
    )


def add_variant(image_urls: ImageUrls, image_url: str) -> tuple[ImageUrls, bool]:
    """Append ``image_url`` to the variants unless already listed.

    Returns the updated references and whether anything was added.
    """

    if image_url in image_urls.variants:
        return image_urls, False
    return ImageUrls(primary=image_urls.primary, variants=[*image_urls.variants, image_url]), True


__all__ = ["add_variant", "merge_metadata"]
