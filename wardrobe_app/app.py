"""Application bootstrap for the wardrobe ingestion service."""

import logging
from typing import List, Sequence

from google import generativeai as genai

from logic.errors import InvalidInputError
from logic.fingerprint import Fingerprinter
from models.detection import CandidateInput, DetectedCandidate, ProcessedItem
from pipeline.ingestion import IngestionPipeline
from pipeline.merge_engine import MergeEngine
from tools.catalog_store import ItemRepository, SQLiteCatalogStore
from tools.classifier_gateway import ClassifierGateway
from tools.embeddings import EmbeddingProvider, GeminiEmbeddingProvider
from tools.image_store import CachingImageStore, HttpImageStore, ImageStore
from tools.vision_classifier import GeminiVisionClassifier, VisionClassifier
from wardrobe_app.config import IngestConfig
from wardrobe_app.logging_config import configure_logging, get_logger, log_event, operation_context

LOGGER = get_logger(__name__)


class WardrobeIngestApp:
    """Wires together the image store, classifier, repository and pipeline.

    Every collaborator can be injected so tests and alternative deployments
    can swap Gemini, HTTP or SQLite out without touching the pipeline.
    """

    def __init__(
        self,
        config: IngestConfig | None = None,
        repository: ItemRepository | None = None,
        image_store: ImageStore | None = None,
        classifier: VisionClassifier | None = None,
        embedder: EmbeddingProvider | None = None,
        gateway: ClassifierGateway | None = None,
    ) -> None:
        self.config = config or IngestConfig.from_env()
        configure_logging()
        if classifier is None or (embedder is None and self.config.embeddings_enabled):
            genai.configure(api_key=self.config.gemini_api_key)

        self.repository = repository or SQLiteCatalogStore(self.config.catalog_db_path)
        self.image_store = CachingImageStore(
            image_store or HttpImageStore(timeout_seconds=self.config.image_fetch_timeout_seconds)
        )
        self.classifier = classifier or GeminiVisionClassifier(self.image_store, model=self.config.model)
        if embedder is None and self.config.embeddings_enabled:
            embedder = GeminiEmbeddingProvider(model=self.config.embedding_model)
        self.embedder = embedder
        self.gateway = gateway or ClassifierGateway(
            self.classifier,
            max_retries=self.config.max_retries,
            backoff_base_seconds=self.config.backoff_base_seconds,
            min_confidence=self.config.min_confidence,
        )
        self.merge_engine = MergeEngine(
            repository=self.repository,
            gateway=self.gateway,
            image_store=self.image_store,
            fingerprinter=Fingerprinter(self.config.signature_grid_size),
            embedder=self.embedder,
            similarity_threshold=self.config.similarity_threshold,
            similarity_candidate_limit=self.config.similarity_candidate_limit,
        )
        self.pipeline = IngestionPipeline(self.merge_engine, max_concurrency=self.config.max_concurrency)

    @staticmethod
    def _require_owner(owner_id: str) -> None:
        if not isinstance(owner_id, str) or not owner_id.strip():
            raise InvalidInputError("Invalid owner id: a non-empty string is required")

    def detect_items(self, owner_id: str, image_url: str) -> List[DetectedCandidate]:
        """Detect the clothing items in an uploaded photo for review."""

        self._require_owner(owner_id)
        with operation_context("app:detect_items") as correlation_id:
            candidates = self.gateway.detect_items(image_url)
            log_event(
                LOGGER,
                logging.INFO,
                "detect_items_completed",
                correlation_id=correlation_id,
                owner_id=owner_id,
                detected=len(candidates),
            )
            return candidates

    def process_items(self, owner_id: str, items: Sequence[CandidateInput]) -> List[ProcessedItem]:
        """Merge or create catalog items for confirmed candidates."""

        return self.pipeline.process(owner_id, items)

    def ingest_photo(self, owner_id: str, image_url: str) -> List[ProcessedItem]:
        """Detect every item in a photo and process all of them without review."""

        detected = self.detect_items(owner_id, image_url)
        candidates = [
            CandidateInput(
                image_url=image_url,
                description=candidate.description,
                category=candidate.category,
                region=candidate.region,
            )
            for candidate in detected
        ]
        return self.process_items(owner_id, candidates)


__all__ = ["WardrobeIngestApp"]
