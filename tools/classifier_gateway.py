"""Resilient wrapper around the vision classifier.

The gateway owns everything that makes the external model usable from the
merge pipeline:

- input validation before any network traffic,
- stripping of fenced output and schema validation of the JSON payload,
- confidence filtering of detections,
- mapping raw failures onto the error taxonomy, with exponential backoff for
  rate limits only.
"""

from __future__ import annotations

import json
import logging
import math
import re
import time
from typing import Any, Callable, List, Optional, Union

from pydantic import BaseModel, StrictFloat, StrictInt, ValidationError, field_validator

from logic.errors import (
    AuthError,
    ErrorKind,
    InvalidInputError,
    RateLimitError,
    RateLimitExceededError,
    ResponseParseError,
    TransientError,
    WardrobeIngestError,
    classify_error,
    status_code_of,
)
from models.catalog_item import ClothingMetadata
from models.detection import BoundingBox, DetectedCandidate
from tools.vision_classifier import VisionClassifier
from wardrobe_app.logging_config import get_logger, log_event

LOGGER = get_logger(__name__)

_FENCE_PATTERN = re.compile(r"^```[a-zA-Z]*\s*(.*?)\s*```$", re.DOTALL)

Number = Union[StrictInt, StrictFloat]


class _BoundingBoxPayload(BaseModel):
    x: Number
    y: Number
    width: Number
    height: Number

    @field_validator("x", "y", "width", "height")
    @classmethod
    def _finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("bounding box coordinates must be finite")
        return value


class _DetectedItemPayload(BaseModel):
    description: str
    category: str
    bounding_box: _BoundingBoxPayload
    confidence: Number

    @field_validator("description", "category")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value.strip()


class _DetectionResponse(BaseModel):
    items: List[Any]


class _MetadataResponse(BaseModel):
    category: Optional[str] = None
    sub_category: Optional[str] = None
    primary_color: Optional[str] = None
    secondary_colors: Optional[List[str]] = None
    vibe_tags: Optional[List[str]] = None
    estimated_season: Optional[str] = None


def strip_fences(text: str) -> str:
    """Remove a surrounding Markdown code fence (```json ... ```) if present."""

    stripped = (text or "").strip()
    match = _FENCE_PATTERN.match(stripped)
    return match.group(1) if match else stripped


def _load_json(text: str) -> Any:
    body = strip_fences(text)
    try:
        return json.loads(body)
    except json.JSONDecodeError as exc:
        raise ResponseParseError(
            f"Failed to parse classifier response as JSON: {exc}. Raw response: {text[:200]!r}"
        ) from exc


def parse_metadata(text: str) -> ClothingMetadata:
    """Validate an analysis response and convert it to :class:`ClothingMetadata`."""

    payload = _load_json(text)
    try:
        parsed = _MetadataResponse.model_validate(payload)
    except ValidationError as exc:
        raise ResponseParseError(f"Classifier metadata has an unexpected shape: {exc}") from exc
    return ClothingMetadata.from_dict(parsed.model_dump())


class ClassifierGateway:
    """Detect and analyze clothing through an unreliable vision classifier."""

    def __init__(
        self,
        classifier: VisionClassifier,
        max_retries: int = 3,
        backoff_base_seconds: float = 1.0,
        min_confidence: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.classifier = classifier
        self.max_retries = max_retries
        self.backoff_base_seconds = backoff_base_seconds
        self.min_confidence = min_confidence
        self._sleep = sleep

    @staticmethod
    def _require_url(image_url: str) -> str:
        if not isinstance(image_url, str) or not image_url.strip():
            raise InvalidInputError("Invalid image URL: a non-empty string is required")
        return image_url.strip()

    def _call_with_retry(self, operation: str, call: Callable[[], str]) -> str:
        for attempt in range(self.max_retries + 1):
            try:
                return call()
            except Exception as exc:
                if isinstance(exc, WardrobeIngestError) and not isinstance(exc, RateLimitError):
                    raise
                message = str(exc) or type(exc).__name__
                kind = classify_error(exc)
                log_event(
                    LOGGER,
                    logging.WARNING,
                    "classifier_call_failed",
                    operation=operation,
                    attempt=attempt + 1,
                    max_attempts=self.max_retries + 1,
                    kind=kind.value,
                    status_code=status_code_of(exc),
                    error=message,
                )
                if kind is ErrorKind.AUTH:
                    raise AuthError(
                        f"Classifier authentication failed; check GEMINI_API_KEY. Original error: {message}"
                    ) from exc
                if kind is ErrorKind.TRANSIENT:
                    raise TransientError(f"Classifier {operation} failed: {message}") from exc
                if attempt >= self.max_retries:
                    raise RateLimitExceededError(attempts=attempt + 1, last_message=message) from exc
                delay = self.backoff_base_seconds * (2 ** attempt)
                LOGGER.info(
                    "Rate limited by classifier, backing off",
                    extra={"operation": operation, "delay_seconds": delay, "attempt": attempt + 1},
                )
                self._sleep(delay)
        raise RateLimitExceededError(attempts=self.max_retries + 1, last_message="retry budget exhausted")

    def _filter_candidates(self, raw_items: List[Any]) -> List[DetectedCandidate]:
        kept: List[DetectedCandidate] = []
        for raw in raw_items:
            try:
                item = _DetectedItemPayload.model_validate(raw)
            except ValidationError as exc:
                LOGGER.warning("Skipping malformed detection", extra={"errors": exc.error_count()})
                continue
            if item.confidence <= self.min_confidence:
                continue
            box = item.bounding_box
            kept.append(
                DetectedCandidate(
                    description=item.description,
                    category=item.category,
                    region=BoundingBox(
                        x=float(box.x), y=float(box.y), width=float(box.width), height=float(box.height)
                    ),
                    confidence=float(item.confidence),
                )
            )
        return kept

    def detect_items(self, image_url: str) -> List[DetectedCandidate]:
        """Return the confident, well-formed clothing detections for an image."""

        url = self._require_url(image_url)
        text = self._call_with_retry("detect", lambda: self.classifier.detect(url))
        payload = _load_json(text)
        try:
            parsed = _DetectionResponse.model_validate(payload)
        except ValidationError as exc:
            raise ResponseParseError(
                f'Classifier response is missing or has an invalid "items" array: {exc}'
            ) from exc

        candidates = self._filter_candidates(parsed.items)
        if parsed.items and not candidates:
            log_event(
                LOGGER,
                logging.WARNING,
                "detections_all_filtered",
                raw_count=len(parsed.items),
                min_confidence=self.min_confidence,
            )
        else:
            log_event(
                LOGGER,
                logging.INFO,
                "detections_parsed",
                raw_count=len(parsed.items),
                kept=len(candidates),
            )
        return candidates

    def analyze_item(self, image_url: str, hint: Optional[str] = None) -> ClothingMetadata:
        """Return structured metadata for the garment in ``image_url``."""

        url = self._require_url(image_url)
        text = self._call_with_retry("analyze", lambda: self.classifier.analyze(url, hint))
        return parse_metadata(text)


__all__ = ["ClassifierGateway", "parse_metadata", "strip_fences"]
