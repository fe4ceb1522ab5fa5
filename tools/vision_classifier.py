"""Vision classifier capability backed by Google Gemini."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from google import generativeai as genai

from logic.prompts import DETECTION_PROMPT, analysis_prompt, system_instruction
from tools.image_store import ImageStore, guess_mime_type
from tools.observability import instrument_call

logger = logging.getLogger(__name__)


class VisionClassifier(ABC):
    """Raw access to a multi-item detector and metadata analyzer.

    Implementations return the model's text verbatim; parsing and error
    classification belong to :class:`tools.classifier_gateway.ClassifierGateway`.
    """

    @abstractmethod
    def detect(self, image_url: str) -> str:
        """Return raw text listing the clothing items found in the image."""

    @abstractmethod
    def analyze(self, image_url: str, hint: Optional[str] = None) -> str:
        """Return raw text describing one clothing item."""


class GeminiVisionClassifier(VisionClassifier):
    """Send images inline to a Gemini multimodal model."""

    def __init__(self, image_store: ImageStore, model: str) -> None:
        self.image_store = image_store
        self.model_name = model
        self._model = genai.GenerativeModel(
            model_name=model,
            system_instruction=system_instruction("vision classifier"),
        )
        self._generation_config = genai.GenerationConfig(response_mime_type="application/json")

    def _generate(self, prompt: str, image_url: str) -> str:
        image_bytes = self.image_store.fetch(image_url)
        response = self._model.generate_content(
            [prompt, {"mime_type": guess_mime_type(image_bytes), "data": image_bytes}],
            generation_config=self._generation_config,
        )
        text = response.text
        logger.debug("Gemini response received", extra={"model": self.model_name, "length": len(text)})
        return text

    @instrument_call("vision_classifier.detect")
    def detect(self, image_url: str) -> str:
        return self._generate(DETECTION_PROMPT, image_url)

    @instrument_call("vision_classifier.analyze")
    def analyze(self, image_url: str, hint: Optional[str] = None) -> str:
        return self._generate(analysis_prompt(hint), image_url)


__all__ = ["GeminiVisionClassifier", "VisionClassifier"]
