"""Ephemeral types that flow through one ingestion call."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class BoundingBox:
    """Region of an image expressed as percentages (0-100) of its size."""

    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_dict(cls, payload: Optional[Dict[str, Any]]) -> Optional["BoundingBox"]:
        if not payload:
            return None
        return cls(
            x=float(payload["x"]),
            y=float(payload["y"]),
            width=float(payload["width"]),
            height=float(payload["height"]),
        )


@dataclass(frozen=True)
class DetectedCandidate:
    """A clothing region reported by the classifier. Never persisted."""

    description: str
    category: str
    region: BoundingBox
    confidence: float


@dataclass(frozen=True)
class CandidateInput:
    """A confirmed candidate submitted for merge-or-create resolution."""

    image_url: str
    description: Optional[str] = None
    category: Optional[str] = None
    region: Optional[BoundingBox] = None


@dataclass(frozen=True)
class ResolveResult:
    item_id: str
    merged: bool
    existing_item_id: Optional[str] = None
    image_added: bool = False


@dataclass(frozen=True)
class ProcessedItem:
    """Per-candidate outcome of :meth:`IngestionPipeline.process`.

    Failures carry an empty ``item_id`` and the error text.
    """

    item_id: str
    merged: bool
    existing_item_id: Optional[str] = None
    image_added: bool = False
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return bool(self.item_id)


__all__ = ["BoundingBox", "CandidateInput", "DetectedCandidate", "ProcessedItem", "ResolveResult"]
