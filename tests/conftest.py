"""Shared fakes and fixtures for the ingestion tests."""

from __future__ import annotations

import io
import json
from pathlib import Path
from typing import Dict, List, Optional, Union

import pytest
from PIL import Image

from logic.errors import ImageFetchError
from pipeline.merge_engine import MergeEngine
from tools.catalog_store import SQLiteCatalogStore
from tools.classifier_gateway import ClassifierGateway
from tools.image_store import ImageStore
from tools.vision_classifier import VisionClassifier

DEFAULT_METADATA = {
    "category": "tops",
    "sub_category": "t-shirt",
    "primary_color": "navy blue",
    "secondary_colors": ["white"],
    "vibe_tags": ["casual"],
    "estimated_season": "summer",
}


def make_png(width: int = 64, height: int = 64, split: str = "vertical", color: int | None = None) -> bytes:
    """Render a grayscale PNG: two-tone split (white half first) or a solid fill."""

    image = Image.new("L", (width, height), color if color is not None else 0)
    if color is None:
        for x in range(width):
            for y in range(height):
                if split == "vertical" and x < width // 2:
                    image.putpixel((x, y), 255)
                elif split == "horizontal" and y < height // 2:
                    image.putpixel((x, y), 255)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


class FakeImageStore(ImageStore):
    def __init__(self, images: Optional[Dict[str, bytes]] = None) -> None:
        self.images: Dict[str, bytes] = dict(images or {})
        self.fetched: List[str] = []

    def fetch(self, url: str) -> bytes:
        self.fetched.append(url)
        if url not in self.images:
            raise ImageFetchError(f"Failed to fetch image {url}: HTTP 404")
        return self.images[url]


Scripted = Union[str, BaseException]


class FakeClassifier(VisionClassifier):
    """Replays scripted responses; exceptions in the script are raised."""

    def __init__(
        self,
        detect_script: Optional[List[Scripted]] = None,
        analyze_script: Optional[List[Scripted]] = None,
        default_metadata: Optional[dict] = None,
    ) -> None:
        self.detect_script = list(detect_script or [])
        self.analyze_script = list(analyze_script or [])
        self.default_metadata = default_metadata or DEFAULT_METADATA
        self.detect_calls: List[str] = []
        self.analyze_calls: List[tuple] = []

    @staticmethod
    def _play(step: Scripted) -> str:
        if isinstance(step, BaseException):
            raise step
        return step

    def detect(self, image_url: str) -> str:
        self.detect_calls.append(image_url)
        if not self.detect_script:
            return json.dumps({"items": []})
        return self._play(self.detect_script.pop(0))

    def analyze(self, image_url: str, hint: Optional[str] = None) -> str:
        self.analyze_calls.append((image_url, hint))
        if not self.analyze_script:
            return json.dumps(self.default_metadata)
        return self._play(self.analyze_script.pop(0))


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture()
def sleeper() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture()
def classifier() -> FakeClassifier:
    return FakeClassifier()


@pytest.fixture()
def gateway(classifier: FakeClassifier, sleeper: RecordingSleep) -> ClassifierGateway:
    return ClassifierGateway(classifier, sleep=sleeper)


@pytest.fixture()
def store(tmp_path: Path) -> SQLiteCatalogStore:
    return SQLiteCatalogStore(tmp_path / "catalog.db")


@pytest.fixture()
def image_store() -> FakeImageStore:
    return FakeImageStore(
        {
            "https://img.test/shirt.png": make_png(split="vertical"),
            "https://img.test/shirt-again.png": make_png(split="vertical"),
            "https://img.test/pants.png": make_png(split="horizontal"),
        }
    )


@pytest.fixture()
def engine(store: SQLiteCatalogStore, gateway: ClassifierGateway, image_store: FakeImageStore) -> MergeEngine:
    return MergeEngine(repository=store, gateway=gateway, image_store=image_store)
