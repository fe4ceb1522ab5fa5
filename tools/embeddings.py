"""Semantic embeddings used by the similarity-based duplicate check."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

from google import generativeai as genai

from models.detection import CandidateInput
from tools.observability import instrument_call


def candidate_text(candidate: CandidateInput) -> str:
    """Text representation of a candidate used as embedding input."""

    parts = [candidate.category or "", candidate.description or ""]
    return " ".join(part.strip() for part in parts if part and part.strip())


class EmbeddingProvider(ABC):
    """Creates fixed-dimension vectors for clothing descriptions."""

    @abstractmethod
    def embed(self, text: str) -> List[float]:
        """Return the embedding of ``text``."""

    def embed_candidate(self, candidate: CandidateInput) -> Optional[List[float]]:
        """Embed a candidate, or return ``None`` when it carries no text."""

        text = candidate_text(candidate)
        if not text:
            return None
        return self.embed(text)


class GeminiEmbeddingProvider(EmbeddingProvider):
    """Embed descriptions with the Gemini embedding endpoint."""

    def __init__(self, model: str) -> None:
        self.model = model

    @instrument_call("embeddings.embed")
    def embed(self, text: str) -> List[float]:
        result = genai.embed_content(model=self.model, content=text, task_type="semantic_similarity")
        return [float(value) for value in result["embedding"]]


__all__ = ["EmbeddingProvider", "GeminiEmbeddingProvider", "candidate_text"]
