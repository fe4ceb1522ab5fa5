"""Batch ingestion of confirmed clothing candidates."""

from __future__ import annotations

import contextvars
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

from logic.errors import InvalidInputError
from models.detection import CandidateInput, ProcessedItem
from pipeline.merge_engine import MergeEngine
from wardrobe_app.logging_config import get_logger, log_event, operation_context

logger = get_logger(__name__)

CANCELLED = "cancelled"


class IngestionPipeline:
    """Resolves every candidate of an upload independently.

    Candidates run concurrently, bounded by ``max_concurrency`` so a large
    batch cannot outrun the classifier's rate-limit backoff. A failure is
    recorded against its own candidate and never aborts the batch.
    """

    def __init__(self, engine: MergeEngine, max_concurrency: int = 4) -> None:
        if max_concurrency < 1:
            raise InvalidInputError("max_concurrency must be at least 1")
        self.engine = engine
        self.max_concurrency = max_concurrency

    def _resolve_one(
        self,
        owner_id: str,
        candidate: CandidateInput,
        cancel_event: Optional[threading.Event],
        correlation_id: str,
    ) -> ProcessedItem:
        if cancel_event is not None and cancel_event.is_set():
            return ProcessedItem(item_id="", merged=False, error=CANCELLED)
        try:
            result = self.engine.resolve(owner_id, candidate, candidate.image_url)
        except Exception as exc:
            logger.error(
                "Failed to process item",
                extra={
                    "description": candidate.description,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                    "correlation_id": correlation_id,
                },
            )
            return ProcessedItem(item_id="", merged=False, error=str(exc) or type(exc).__name__)
        return ProcessedItem(
            item_id=result.item_id,
            merged=result.merged,
            existing_item_id=result.existing_item_id,
            image_added=result.image_added,
        )

    def process(
        self,
        owner_id: str,
        candidates: Sequence[CandidateInput],
        cancel_event: Optional[threading.Event] = None,
    ) -> List[ProcessedItem]:
        """Merge or create a catalog item per candidate.

        Returns one outcome per candidate in input order. Setting
        ``cancel_event`` skips candidates that have not started yet; work that
        already completed is kept.
        """

        if not isinstance(owner_id, str) or not owner_id.strip():
            raise InvalidInputError("Invalid owner id: a non-empty string is required")

        with operation_context("pipeline:ingestion.process") as correlation_id:
            if not candidates:
                return []

            workers = min(self.max_concurrency, len(candidates))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ingest") as executor:
                futures = [
                    executor.submit(
                        contextvars.copy_context().run,
                        self._resolve_one,
                        owner_id,
                        candidate,
                        cancel_event,
                        correlation_id,
                    )
                    for candidate in candidates
                ]
                outcomes = [future.result() for future in futures]

            merged = sum(1 for outcome in outcomes if outcome.merged)
            failed = sum(1 for outcome in outcomes if not outcome.succeeded)
            log_event(
                logger,
                level=logging.INFO,
                event="ingestion_completed",
                correlation_id=correlation_id,
                total_count=len(outcomes),
                created_count=len(outcomes) - merged - failed,
                merged_count=merged,
                failed_count=failed,
            )
            return outcomes


__all__ = ["CANCELLED", "IngestionPipeline"]
