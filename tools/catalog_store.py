"""Catalog storage abstractions and SQLite implementation."""
from __future__ import annotations

import json
import sqlite3
from dataclasses import asdict
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

from logic.errors import DuplicateSignatureError, RepositoryError, StaleItemError
from models.catalog_item import CatalogItem, ClothingMetadata, ImageUrls, WearEvent, utc_now

_UPDATABLE_FIELDS = {"image_urls", "metadata", "embedding", "price", "initial_wears"}


class ItemRepository:
    """Persistence interface for catalog items.

    Implementations must make create-if-absent atomic per
    ``(owner_id, perceptual_signature)`` and raise :class:`DuplicateSignatureError`
    when an insert loses that race.
    """

    def find_by_signature(self, owner_id: str, signature: str) -> Optional[CatalogItem]:
        raise NotImplementedError

    def find_candidates_with_embedding(self, owner_id: str, limit: int = 50) -> List[CatalogItem]:
        raise NotImplementedError

    def get(self, owner_id: str, item_id: str) -> Optional[CatalogItem]:
        raise NotImplementedError

    def insert(self, item: CatalogItem) -> CatalogItem:
        raise NotImplementedError

    def update(
        self,
        owner_id: str,
        item_id: str,
        patch: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Optional[CatalogItem]:
        raise NotImplementedError

    def list_items_for_owner(self, owner_id: str) -> List[CatalogItem]:
        raise NotImplementedError

    def list_wear_events(self, owner_id: str, item_id: str) -> List[WearEvent]:
        raise NotImplementedError


class SQLiteCatalogStore(ItemRepository):
    """Local SQLite-backed store for catalog items.

    A connection is opened per operation so the store can be shared by the
    pipeline's worker threads.
    """

    def __init__(self, database_path: str | Path = "data/catalog.db", timeout_seconds: float = 30.0) -> None:
        self.database_path = Path(database_path)
        self.timeout_seconds = timeout_seconds
        if self.database_path.parent and not self.database_path.parent.exists():
            self.database_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_tables()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.database_path, timeout=self.timeout_seconds)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_tables(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS catalog_items (
                    item_id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    primary_url TEXT NOT NULL,
                    variants TEXT NOT NULL DEFAULT '[]',
                    perceptual_signature TEXT NOT NULL,
                    embedding TEXT,
                    metadata TEXT NOT NULL DEFAULT '{}',
                    price TEXT,
                    initial_wears INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    version INTEGER NOT NULL DEFAULT 0,
                    UNIQUE (owner_id, perceptual_signature)
                );
                CREATE INDEX IF NOT EXISTS idx_catalog_items_owner ON catalog_items (owner_id);
                CREATE TABLE IF NOT EXISTS wear_events (
                    event_id TEXT PRIMARY KEY,
                    item_id TEXT NOT NULL REFERENCES catalog_items (item_id) ON DELETE CASCADE,
                    owner_id TEXT NOT NULL,
                    worn_at TEXT NOT NULL,
                    notes TEXT
                );
                CREATE INDEX IF NOT EXISTS idx_wear_events_item ON wear_events (item_id);
                """
            )

    @staticmethod
    def _serialise_list(values: Optional[List[object]]) -> Optional[str]:
        return json.dumps(values) if values is not None else None

    @staticmethod
    def _deserialise_list(raw: Optional[str]) -> Optional[List[Any]]:
        return json.loads(raw) if raw else None

    def _row_to_item(self, row: sqlite3.Row) -> CatalogItem:
        embedding = self._deserialise_list(row["embedding"])
        return CatalogItem(
            item_id=row["item_id"],
            owner_id=row["owner_id"],
            image_urls=ImageUrls(primary=row["primary_url"], variants=self._deserialise_list(row["variants"]) or []),
            perceptual_signature=row["perceptual_signature"],
            metadata=ClothingMetadata.from_dict(json.loads(row["metadata"] or "{}")),
            embedding=[float(x) for x in embedding] if embedding else None,
            price=Decimal(row["price"]) if row["price"] is not None else None,
            initial_wears=row["initial_wears"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            version=row["version"],
        )

    def _fetch_one(self, query: str, params: tuple) -> Optional[CatalogItem]:
        try:
            with self._connect() as conn:
                row = conn.execute(query, params).fetchone()
        except sqlite3.Error as exc:
            raise RepositoryError(f"Catalog lookup failed: {exc}") from exc
        return self._row_to_item(row) if row else None

    def find_by_signature(self, owner_id: str, signature: str) -> Optional[CatalogItem]:
        return self._fetch_one(
            "SELECT * FROM catalog_items WHERE owner_id = ? AND perceptual_signature = ?",
            (owner_id, signature),
        )

    def get(self, owner_id: str, item_id: str) -> Optional[CatalogItem]:
        return self._fetch_one(
            "SELECT * FROM catalog_items WHERE owner_id = ? AND item_id = ?",
            (owner_id, item_id),
        )

    def find_candidates_with_embedding(self, owner_id: str, limit: int = 50) -> List[CatalogItem]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    """
                    SELECT * FROM catalog_items
                    WHERE owner_id = ? AND embedding IS NOT NULL
                    ORDER BY updated_at DESC
                    LIMIT ?
                    """,
                    (owner_id, limit),
                ).fetchall()
        except sqlite3.Error as exc:
            raise RepositoryError(f"Catalog candidate query failed: {exc}") from exc
        return [self._row_to_item(row) for row in rows]

    def list_items_for_owner(self, owner_id: str) -> List[CatalogItem]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT * FROM catalog_items WHERE owner_id = ? ORDER BY created_at, item_id",
                    (owner_id,),
                ).fetchall()
        except sqlite3.Error as exc:
            raise RepositoryError(f"Catalog listing failed: {exc}") from exc
        return [self._row_to_item(row) for row in rows]

    def insert(self, item: CatalogItem) -> CatalogItem:
        if not item.image_urls.primary:
            raise RepositoryError("Catalog items require a primary image URL")
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO catalog_items (
                        item_id, owner_id, primary_url, variants, perceptual_signature, embedding,
                        metadata, price, initial_wears, created_at, updated_at, version
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        item.item_id,
                        item.owner_id,
                        item.image_urls.primary,
                        json.dumps(item.image_urls.variants),
                        item.perceptual_signature,
                        self._serialise_list(item.embedding),
                        json.dumps(asdict(item.metadata)),
                        str(item.price) if item.price is not None else None,
                        item.initial_wears,
                        item.created_at.isoformat(),
                        item.updated_at.isoformat(),
                        item.version,
                    ),
                )
        except sqlite3.IntegrityError as exc:
            if "perceptual_signature" in str(exc):
                raise DuplicateSignatureError(
                    f"An item with this signature already exists for the owner: {exc}"
                ) from exc
            raise RepositoryError(f"Failed to create catalog item: {exc}") from exc
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to create catalog item: {exc}") from exc
        return item

    def _encode_patch(self, patch: Dict[str, Any]) -> Dict[str, Any]:
        columns: Dict[str, Any] = {}
        for key, value in patch.items():
            if key not in _UPDATABLE_FIELDS:
                raise RepositoryError(f"Field '{key}' cannot be updated")
            if key == "image_urls":
                urls = value if isinstance(value, ImageUrls) else ImageUrls.from_dict(value)
                if not urls.primary:
                    raise RepositoryError("Catalog items require a primary image URL")
                columns["primary_url"] = urls.primary
                columns["variants"] = json.dumps(urls.variants)
            elif key == "metadata":
                metadata = value if isinstance(value, ClothingMetadata) else ClothingMetadata.from_dict(value)
                columns["metadata"] = json.dumps(asdict(metadata))
            elif key == "embedding":
                columns["embedding"] = self._serialise_list([float(v) for v in value] if value else None)
            elif key == "price":
                columns["price"] = str(value) if value is not None else None
            else:
                columns[key] = int(value)
        return columns

    def update(
        self,
        owner_id: str,
        item_id: str,
        patch: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Optional[CatalogItem]:
        """Apply ``patch`` and bump the item version.

        Returns ``None`` when the item does not exist. With ``expected_version``
        the write only lands if nobody updated the item in between, otherwise
        :class:`StaleItemError` is raised.
        """

        columns = self._encode_patch(patch)
        columns["updated_at"] = utc_now().isoformat()
        assignments = ", ".join(f"{column} = ?" for column in columns)
        query = f"UPDATE catalog_items SET {assignments}, version = version + 1 WHERE owner_id = ? AND item_id = ?"
        params: List[Any] = [*columns.values(), owner_id, item_id]
        if expected_version is not None:
            query += " AND version = ?"
            params.append(expected_version)

        try:
            with self._connect() as conn:
                cursor = conn.execute(query, params)
                updated = cursor.rowcount > 0
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to update catalog item {item_id}: {exc}") from exc

        if updated:
            return self.get(owner_id, item_id)
        if expected_version is not None and self.get(owner_id, item_id) is not None:
            raise StaleItemError(f"Catalog item {item_id} changed since version {expected_version}")
        return None

    def add_wear_event(self, event: WearEvent) -> WearEvent:
        """Record a wear.

        Ingestion only reads wear events; this writer is used to seed a catalog
        (imports, fixtures) and by the repository tests.
        """

        try:
            with self._connect() as conn:
                conn.execute(
                    "INSERT INTO wear_events (event_id, item_id, owner_id, worn_at, notes) VALUES (?, ?, ?, ?, ?)",
                    (event.event_id, event.item_id, event.owner_id, event.worn_at.isoformat(), event.notes),
                )
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to record wear event: {exc}") from exc
        return event

    def list_wear_events(self, owner_id: str, item_id: str) -> List[WearEvent]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT * FROM wear_events WHERE owner_id = ? AND item_id = ? ORDER BY worn_at",
                    (owner_id, item_id),
                ).fetchall()
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to list wear events: {exc}") from exc
        return [
            WearEvent(
                event_id=row["event_id"],
                item_id=row["item_id"],
                owner_id=row["owner_id"],
                worn_at=datetime.fromisoformat(row["worn_at"]),
                notes=row["notes"],
            )
            for row in rows
        ]


__all__ = ["ItemRepository", "SQLiteCatalogStore"]
