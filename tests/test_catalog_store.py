"""SQLite catalog repository tests."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

import pytest

from logic.errors import DuplicateSignatureError, RepositoryError, StaleItemError
from models.catalog_item import CatalogItem, ClothingMetadata, ImageUrls, WearEvent
from tools.catalog_store import SQLiteCatalogStore


def _make_item(item_id: str, owner_id: str = "user-1", signature: str = "1010", **overrides) -> CatalogItem:
    base = dict(
        item_id=item_id,
        owner_id=owner_id,
        image_urls=ImageUrls(primary=f"https://img.test/{item_id}.jpg"),
        perceptual_signature=signature,
        metadata=ClothingMetadata(category="tops", primary_color="navy", vibe_tags=["casual"]),
    )
    base.update(overrides)
    return CatalogItem(**base)


def test_insert_and_find_by_signature(store: SQLiteCatalogStore) -> None:
    item = _make_item("item-1", price=Decimal("49.90"), initial_wears=3)
    store.insert(item)

    found = store.find_by_signature("user-1", "1010")
    assert found is not None
    assert found.item_id == "item-1"
    assert found.image_urls == ImageUrls(primary="https://img.test/item-1.jpg", variants=[])
    assert found.metadata == item.metadata
    assert found.price == Decimal("49.90")
    assert found.initial_wears == 3
    assert found.version == 0


def test_signature_lookup_is_scoped_by_owner(store: SQLiteCatalogStore) -> None:
    store.insert(_make_item("item-1", owner_id="user-1"))
    assert store.find_by_signature("user-2", "1010") is None
    store.insert(_make_item("item-2", owner_id="user-2"))
    assert store.find_by_signature("user-2", "1010").item_id == "item-2"


def test_duplicate_signature_for_owner_is_rejected(store: SQLiteCatalogStore) -> None:
    store.insert(_make_item("item-1"))
    with pytest.raises(DuplicateSignatureError):
        store.insert(_make_item("item-2"))
    assert [item.item_id for item in store.list_items_for_owner("user-1")] == ["item-1"]


def test_insert_requires_primary_url(store: SQLiteCatalogStore) -> None:
    with pytest.raises(RepositoryError):
        store.insert(_make_item("item-1", image_urls=ImageUrls(primary="")))


def test_update_applies_patch_and_bumps_version(store: SQLiteCatalogStore) -> None:
    store.insert(_make_item("item-1"))

    updated = store.update(
        "user-1",
        "item-1",
        {
            "image_urls": ImageUrls(primary="https://img.test/item-1.jpg", variants=["https://img.test/b.jpg"]),
            "metadata": ClothingMetadata(category="outerwear"),
        },
        expected_version=0,
    )

    assert updated is not None
    assert updated.image_urls.variants == ["https://img.test/b.jpg"]
    assert updated.metadata.category == "outerwear"
    assert updated.version == 1
    assert updated.updated_at >= updated.created_at


def test_update_with_stale_version_raises(store: SQLiteCatalogStore) -> None:
    store.insert(_make_item("item-1"))
    store.update("user-1", "item-1", {"initial_wears": 1})
    with pytest.raises(StaleItemError):
        store.update("user-1", "item-1", {"initial_wears": 2}, expected_version=0)


def test_update_missing_item_returns_none(store: SQLiteCatalogStore) -> None:
    assert store.update("user-1", "missing", {"initial_wears": 1}) is None
    assert store.update("user-1", "missing", {"initial_wears": 1}, expected_version=0) is None


def test_update_rejects_unknown_fields(store: SQLiteCatalogStore) -> None:
    store.insert(_make_item("item-1"))
    with pytest.raises(RepositoryError):
        store.update("user-1", "item-1", {"owner_id": "someone-else"})


def test_candidates_with_embedding(store: SQLiteCatalogStore) -> None:
    store.insert(_make_item("with-vector", signature="1111", embedding=[0.1, 0.2, 0.3]))
    store.insert(_make_item("without-vector", signature="0000"))
    store.insert(_make_item("other-owner", owner_id="user-2", signature="1111", embedding=[1.0, 0.0, 0.0]))

    candidates = store.find_candidates_with_embedding("user-1", limit=10)

    assert [item.item_id for item in candidates] == ["with-vector"]
    assert candidates[0].embedding == [0.1, 0.2, 0.3]


def test_wear_events_are_listed_per_item(store: SQLiteCatalogStore) -> None:
    store.insert(_make_item("item-1"))
    worn_at = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)
    store.add_wear_event(WearEvent(event_id="wear-1", item_id="item-1", owner_id="user-1", worn_at=worn_at, notes="office"))

    events = store.list_wear_events("user-1", "item-1")

    assert len(events) == 1
    assert events[0].worn_at == worn_at
    assert events[0].notes == "office"
    assert store.list_wear_events("user-2", "item-1") == []


def test_store_creates_parent_directory(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "catalog.db"
    SQLiteCatalogStore(path)
    assert path.exists()
