"""FastAPI server exposing detection and ingestion endpoints."""

from dataclasses import asdict
from functools import lru_cache
from typing import List, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from logic.errors import (
    AuthError,
    ImageFetchError,
    InvalidInputError,
    RateLimitExceededError,
    RateLimitError,
    RepositoryError,
    ResponseParseError,
    TransientError,
    WardrobeIngestError,
)
from models.detection import BoundingBox, CandidateInput
from wardrobe_app.app import WardrobeIngestApp
from wardrobe_app.logging_config import get_logger

LOGGER = get_logger(__name__)

app = FastAPI(title="Wardrobe Ingest", version="0.1.0")

_STATUS_BY_ERROR = [
    (InvalidInputError, 400),
    (RateLimitExceededError, 429),
    (RateLimitError, 429),
    (AuthError, 502),
    (ResponseParseError, 502),
    (TransientError, 502),
    (ImageFetchError, 502),
    (RepositoryError, 503),
]


@lru_cache(maxsize=1)
def get_ingest_app() -> WardrobeIngestApp:
    """Build the application lazily so importing the server has no side effects."""

    return WardrobeIngestApp()


class RegionModel(BaseModel):
    x: float = Field(..., description="Left edge as a percentage of image width")
    y: float = Field(..., description="Top edge as a percentage of image height")
    width: float
    height: float


class DetectRequest(BaseModel):
    """Request payload for detecting items in an uploaded photo."""

    owner_id: str = Field(..., description="Owner of the catalog")
    image_url: str


class ItemRequest(BaseModel):
    image_url: str
    description: Optional[str] = None
    category: Optional[str] = None
    bounding_box: Optional[RegionModel] = None


class ProcessRequest(BaseModel):
    """Request payload for merging or creating confirmed items."""

    owner_id: str
    items: List[ItemRequest]


@app.exception_handler(WardrobeIngestError)
async def ingest_error_handler(_: Request, exc: WardrobeIngestError) -> JSONResponse:
    status_code = next((code for kind, code in _STATUS_BY_ERROR if isinstance(exc, kind)), 500)
    LOGGER.warning("Request failed", extra={"error_type": type(exc).__name__, "status_code": status_code})
    return JSONResponse(status_code=status_code, content={"error": type(exc).__name__, "detail": str(exc)})


@app.get("/healthz")
async def healthcheck(ingest_app: WardrobeIngestApp = Depends(get_ingest_app)) -> dict:
    """Lightweight readiness probe."""

    return {
        "status": "ok",
        "service": "wardrobe-ingest",
        "environment": ingest_app.config.environment or "local",
        "model": ingest_app.config.model,
    }


@app.post("/items/detect")
def detect_items(request: DetectRequest, ingest_app: WardrobeIngestApp = Depends(get_ingest_app)) -> dict:
    """Return the confident clothing detections for user review."""

    candidates = ingest_app.detect_items(request.owner_id, request.image_url)
    return {"items": [asdict(candidate) for candidate in candidates]}


@app.post("/items/process")
def process_items(request: ProcessRequest, ingest_app: WardrobeIngestApp = Depends(get_ingest_app)) -> dict:
    """Merge or create catalog items, one outcome per submitted item."""

    candidates = [
        CandidateInput(
            image_url=item.image_url,
            description=item.description,
            category=item.category,
            region=BoundingBox(**item.bounding_box.model_dump()) if item.bounding_box else None,
        )
        for item in request.items
    ]
    outcomes = ingest_app.process_items(request.owner_id, candidates)
    return {"results": [asdict(outcome) for outcome in outcomes]}


def get_app() -> FastAPI:
    """Expose the FastAPI instance for ASGI servers."""

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("server.api:app", host="0.0.0.0", port=8080, reload=False)
