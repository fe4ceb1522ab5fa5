"""Classifier gateway parsing, filtering, classification and retry tests."""

from __future__ import annotations

import json

import pytest

from conftest import FakeClassifier, RecordingSleep
from logic.errors import (
    AuthError,
    ErrorKind,
    ImageFetchError,
    InvalidInputError,
    RateLimitError,
    RateLimitExceededError,
    ResponseParseError,
    TransientError,
    classify_error,
)
from tools.classifier_gateway import ClassifierGateway, strip_fences

IMAGE_URL = "https://img.test/outfit.jpg"


def _item(confidence, description="blue denim jacket", category="jacket", box=None):
    return {
        "description": description,
        "category": category,
        "bounding_box": box if box is not None else {"x": 10, "y": 5, "width": 40, "height": 60},
        "confidence": confidence,
    }


class _StatusError(Exception):
    def __init__(self, message: str, code: int) -> None:
        super().__init__(message)
        self.code = code


def test_detect_filters_low_confidence_items(gateway: ClassifierGateway, classifier: FakeClassifier) -> None:
    classifier.detect_script = [json.dumps({"items": [_item(0.9), _item(0.3), _item(0.6)]})]

    candidates = gateway.detect_items(IMAGE_URL)

    assert [c.confidence for c in candidates] == [0.9, 0.6]
    assert candidates[0].region.width == 40.0
    assert classifier.detect_calls == [IMAGE_URL]


def test_detect_drops_malformed_items(gateway: ClassifierGateway, classifier: FakeClassifier) -> None:
    items = [
        _item(0.9, description=""),
        _item(0.9, category="  "),
        _item(0.9, box={"x": 1, "y": 2, "width": "wide", "height": 3}),
        _item("0.9"),
        {"description": "no box", "category": "shirt", "confidence": 0.8},
        _item(0.51, description="kept"),
    ]
    classifier.detect_script = [json.dumps({"items": items})]

    candidates = gateway.detect_items(IMAGE_URL)

    assert [c.description for c in candidates] == ["kept"]


def test_confidence_exactly_at_threshold_is_dropped(gateway: ClassifierGateway, classifier: FakeClassifier) -> None:
    classifier.detect_script = [json.dumps({"items": [_item(0.5)]})]
    assert gateway.detect_items(IMAGE_URL) == []


def test_detect_strips_markdown_fences(gateway: ClassifierGateway, classifier: FakeClassifier) -> None:
    payload = json.dumps({"items": [_item(0.8)]})
    classifier.detect_script = [f"```json\n{payload}\n```"]
    assert len(gateway.detect_items(IMAGE_URL)) == 1


def test_strip_fences_variants() -> None:
    assert strip_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_fences('```\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_fences('  {"a": 1}  ') == '{"a": 1}'


def test_parse_failure_is_not_retried(gateway: ClassifierGateway, classifier: FakeClassifier, sleeper: RecordingSleep) -> None:
    classifier.detect_script = ["Sorry, I cannot help with that."]
    with pytest.raises(ResponseParseError):
        gateway.detect_items(IMAGE_URL)
    assert len(classifier.detect_calls) == 1
    assert sleeper.delays == []


def test_missing_items_array_is_a_parse_error(gateway: ClassifierGateway, classifier: FakeClassifier) -> None:
    classifier.detect_script = [json.dumps({"objects": []})]
    with pytest.raises(ResponseParseError):
        gateway.detect_items(IMAGE_URL)


def test_all_filtered_is_degraded_success(
    gateway: ClassifierGateway, classifier: FakeClassifier, caplog: pytest.LogCaptureFixture
) -> None:
    classifier.detect_script = [json.dumps({"items": [_item(0.1), _item(0.2)]})]
    with caplog.at_level("WARNING"):
        assert gateway.detect_items(IMAGE_URL) == []
    assert any(record.getMessage() == "detections_all_filtered" for record in caplog.records)


def test_empty_url_fails_fast(gateway: ClassifierGateway, classifier: FakeClassifier) -> None:
    with pytest.raises(InvalidInputError):
        gateway.detect_items("   ")
    with pytest.raises(InvalidInputError):
        gateway.analyze_item("")
    assert classifier.detect_calls == []
    assert classifier.analyze_calls == []


def test_rate_limit_retries_with_exponential_backoff(
    gateway: ClassifierGateway, classifier: FakeClassifier, sleeper: RecordingSleep
) -> None:
    classifier.detect_script = [
        RateLimitError("429 Too Many Requests"),
        Exception("RESOURCE_EXHAUSTED: quota exceeded"),
        _StatusError("slow down", 429),
        json.dumps({"items": [_item(0.7)]}),
    ]

    candidates = gateway.detect_items(IMAGE_URL)

    assert len(candidates) == 1
    assert sleeper.delays == [1.0, 2.0, 4.0]
    assert len(classifier.detect_calls) == 4


def test_rate_limit_exhaustion_stops_after_four_attempts(
    gateway: ClassifierGateway, classifier: FakeClassifier, sleeper: RecordingSleep
) -> None:
    classifier.detect_script = [Exception(f"rate limit hit #{i}") for i in range(5)]

    with pytest.raises(RateLimitExceededError) as excinfo:
        gateway.detect_items(IMAGE_URL)

    assert excinfo.value.attempts == 4
    assert "rate limit hit #3" in excinfo.value.last_message
    assert "rate limit hit #3" in str(excinfo.value)
    assert len(classifier.detect_calls) == 4
    assert sleeper.delays == [1.0, 2.0, 4.0]


def test_auth_error_is_fatal(gateway: ClassifierGateway, classifier: FakeClassifier, sleeper: RecordingSleep) -> None:
    classifier.analyze_script = [Exception("API key not valid. Please pass a valid API key. [API_KEY_INVALID]")]
    with pytest.raises(AuthError) as excinfo:
        gateway.analyze_item(IMAGE_URL)
    assert "API_KEY_INVALID" in str(excinfo.value)
    assert len(classifier.analyze_calls) == 1
    assert sleeper.delays == []


def test_other_errors_surface_as_transient_without_retry(
    gateway: ClassifierGateway, classifier: FakeClassifier, sleeper: RecordingSleep
) -> None:
    classifier.detect_script = [ConnectionError("socket closed by peer")]
    with pytest.raises(TransientError) as excinfo:
        gateway.detect_items(IMAGE_URL)
    assert "socket closed by peer" in str(excinfo.value)
    assert len(classifier.detect_calls) == 1
    assert sleeper.delays == []


def test_taxonomy_errors_pass_through(gateway: ClassifierGateway, classifier: FakeClassifier) -> None:
    classifier.detect_script = [ImageFetchError("Failed to fetch image: HTTP 403")]
    with pytest.raises(ImageFetchError):
        gateway.detect_items(IMAGE_URL)


def test_analyze_item_parses_and_normalises_metadata(gateway: ClassifierGateway, classifier: FakeClassifier) -> None:
    classifier.analyze_script = [
        "```json\n"
        + json.dumps(
            {
                "category": "Outerwear",
                "sub_category": "Denim Jacket",
                "primary_color": "Light Blue",
                "secondary_colors": ["white", "White", "grey"],
                "vibe_tags": ["Casual", "vintage", "casual"],
                "estimated_season": "Autumn",
            }
        )
        + "\n```"
    ]

    metadata = gateway.analyze_item(IMAGE_URL, hint="blue denim jacket")

    assert classifier.analyze_calls == [(IMAGE_URL, "blue denim jacket")]
    assert metadata.category == "outerwear"
    assert metadata.primary_color == "blue"
    assert metadata.secondary_colors == ["white", "gray"]
    assert metadata.vibe_tags == ["casual", "vintage"]
    assert metadata.estimated_season == "fall"


def test_analyze_item_rejects_wrong_shape(gateway: ClassifierGateway, classifier: FakeClassifier) -> None:
    classifier.analyze_script = [json.dumps({"category": "tops", "vibe_tags": "casual"})]
    with pytest.raises(ResponseParseError):
        gateway.analyze_item(IMAGE_URL)
    classifier.analyze_script = [json.dumps(["not", "an", "object"])]
    with pytest.raises(ResponseParseError):
        gateway.analyze_item(IMAGE_URL)


def test_custom_retry_budget() -> None:
    classifier = FakeClassifier(detect_script=[Exception("quota exceeded")] * 2)
    sleeper = RecordingSleep()
    gateway = ClassifierGateway(classifier, max_retries=1, backoff_base_seconds=0.5, sleep=sleeper)
    with pytest.raises(RateLimitExceededError) as excinfo:
        gateway.detect_items(IMAGE_URL)
    assert excinfo.value.attempts == 2
    assert sleeper.delays == [0.5]


@pytest.mark.parametrize(
    "error, expected",
    [
        (_StatusError("anything", 429), ErrorKind.RATE_LIMIT),
        (_StatusError("denied", 401), ErrorKind.AUTH),
        (_StatusError("forbidden", 403), ErrorKind.AUTH),
        (Exception("Too Many Requests"), ErrorKind.RATE_LIMIT),
        (Exception("RESOURCE_EXHAUSTED"), ErrorKind.RATE_LIMIT),
        (Exception("Request had invalid authentication credentials"), ErrorKind.AUTH),
        (Exception("internal server error"), ErrorKind.TRANSIENT),
        (_StatusError("server exploded", 500), ErrorKind.TRANSIENT),
    ],
)
def test_classify_error(error: Exception, expected: ErrorKind) -> None:
    assert classify_error(error) is expected
