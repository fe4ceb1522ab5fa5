"""Merge-or-create resolution for a single detected clothing item."""

from __future__ import annotations

import logging
import uuid
from typing import List, Optional

from logic.errors import DuplicateSignatureError, MergeConflictError, StaleItemError
from logic.fingerprint import Fingerprinter
from logic.merge_policy import add_variant, merge_metadata
from logic.similarity import best_match
from models.catalog_item import CatalogItem, ClothingMetadata, ImageUrls
from models.detection import CandidateInput, ResolveResult
from tools.catalog_store import ItemRepository
from tools.classifier_gateway import ClassifierGateway
from tools.embeddings import EmbeddingProvider
from tools.image_store import ImageStore
from wardrobe_app.logging_config import get_logger, log_event

logger = get_logger(__name__)

MAX_MERGE_ATTEMPTS = 3


class MergeEngine:
    """Decide whether a candidate duplicates a catalogued item and record it.

    Each call walks: fingerprint -> exact signature lookup -> optional
    embedding similarity -> merge into the match, or create a new item.
    The engine holds no per-candidate state, so one instance can serve
    concurrent resolutions.
    """

    def __init__(
        self,
        repository: ItemRepository,
        gateway: ClassifierGateway,
        image_store: ImageStore,
        fingerprinter: Fingerprinter | None = None,
        embedder: EmbeddingProvider | None = None,
        similarity_threshold: float = 0.85,
        similarity_candidate_limit: int = 50,
    ) -> None:
        self.repository = repository
        self.gateway = gateway
        self.image_store = image_store
        self.fingerprinter = fingerprinter or Fingerprinter()
        self.embedder = embedder
        self.similarity_threshold = similarity_threshold
        self.similarity_candidate_limit = similarity_candidate_limit

    def resolve(self, owner_id: str, candidate: CandidateInput, image_url: str) -> ResolveResult:
        image_bytes = self.image_store.fetch(image_url)
        signature = self.fingerprinter.fingerprint(image_bytes, candidate.region)

        exact = self.repository.find_by_signature(owner_id, signature)
        if exact is not None:
            log_event(logger, logging.INFO, "exact_duplicate_found", item_id=exact.item_id)
            return self._merge(owner_id, exact.item_id, image_url)

        embedding = self._embed(candidate)
        similar = self._find_similar(owner_id, embedding)
        if similar is not None:
            return self._merge(owner_id, similar.item_id, image_url)

        return self._create(owner_id, candidate, image_url, signature, embedding)

    def _embed(self, candidate: CandidateInput) -> Optional[List[float]]:
        if self.embedder is None:
            return None
        try:
            return self.embedder.embed_candidate(candidate)
        except Exception as exc:
            # similarity is best effort, exact matching already ran
            log_event(logger, logging.WARNING, "embedding_failed", error=str(exc))
            return None

    def _find_similar(self, owner_id: str, embedding: Optional[List[float]]) -> Optional[CatalogItem]:
        if not embedding:
            return None
        candidates = self.repository.find_candidates_with_embedding(owner_id, self.similarity_candidate_limit)
        match = best_match(
            embedding,
            ((item, item.embedding) for item in candidates),
            self.similarity_threshold,
        )
        if match is None:
            return None
        item, score = match
        log_event(logger, logging.INFO, "similar_item_found", item_id=item.item_id, similarity=round(score, 4))
        return item

    def _merge(
        self,
        owner_id: str,
        item_id: str,
        image_url: str,
        new_metadata: Optional[ClothingMetadata] = None,
    ) -> ResolveResult:
        existing = self.repository.get(owner_id, item_id)
        if existing is None:
            raise MergeConflictError(f"Existing item {item_id} not found while merging")

        if new_metadata is None:
            new_metadata = self.gateway.analyze_item(image_url)

        for _ in range(MAX_MERGE_ATTEMPTS):
            image_urls, added = add_variant(existing.image_urls, image_url)
            patch = {
                "image_urls": image_urls,
                "metadata": merge_metadata(existing.metadata, new_metadata),
            }
            try:
                updated = self.repository.update(owner_id, item_id, patch, expected_version=existing.version)
            except StaleItemError:
                existing = self.repository.get(owner_id, item_id)
                if existing is None:
                    raise MergeConflictError(f"Existing item {item_id} was removed while merging") from None
                continue
            if updated is None:
                raise MergeConflictError(f"Existing item {item_id} was removed while merging")
            log_event(
                logger,
                logging.INFO,
                "item_merged",
                item_id=item_id,
                image_added=added,
                variant_count=len(updated.image_urls.variants),
            )
            return ResolveResult(
                item_id=updated.item_id, merged=True, existing_item_id=item_id, image_added=added
            )

        raise MergeConflictError(
            f"Item {item_id} kept changing; gave up after {MAX_MERGE_ATTEMPTS} merge attempts"
        )

    def _create(
        self,
        owner_id: str,
        candidate: CandidateInput,
        image_url: str,
        signature: str,
        embedding: Optional[List[float]],
    ) -> ResolveResult:
        metadata = self.gateway.analyze_item(image_url, candidate.description)
        item = CatalogItem(
            item_id=str(uuid.uuid4()),
            owner_id=owner_id,
            image_urls=ImageUrls(primary=image_url, variants=[]),
            perceptual_signature=signature,
            metadata=metadata,
            embedding=embedding,
        )
        try:
            stored = self.repository.insert(item)
        except DuplicateSignatureError:
            # a concurrent resolution created the same item first
            winner = self.repository.find_by_signature(owner_id, signature)
            if winner is None:
                raise MergeConflictError(
                    "Signature collision reported but no matching item could be loaded"
                ) from None
            log_event(logger, logging.INFO, "create_lost_race", item_id=winner.item_id)
            return self._merge(owner_id, winner.item_id, image_url, new_metadata=metadata)

        log_event(logger, logging.INFO, "item_created", item_id=stored.item_id, category=metadata.category)
        return ResolveResult(item_id=stored.item_id, merged=False)


__all__ = ["MAX_MERGE_ATTEMPTS", "MergeEngine"]
