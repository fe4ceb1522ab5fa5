"""Average-hash fingerprints for clothing regions.

The signature is computed as follows:

- Decode the image and, when a region is given, crop to it. Regions arrive as
  percentages of the source size and are clamped into the image so that a
  collapsed or out-of-bounds box still yields at least a 1x1 crop.
- Convert to single-channel luminance and resize to ``grid_size`` x
  ``grid_size`` pixels.
- Compare every sample with the grid mean and emit ``"1"`` when it is
  strictly brighter, else ``"0"``, in row-major order.

The result is a ``grid_size ** 2`` character string of ``"0"``/``"1"``.
Signatures produced with different grid sizes are not comparable.
"""

from __future__ import annotations

import io
from typing import Final, Optional, Tuple

from PIL import Image, UnidentifiedImageError

from logic.errors import ImageFetchError, InvalidInputError
from models.detection import BoundingBox
from wardrobe_app.logging_config import get_logger

LOGGER = get_logger(__name__)

DEFAULT_GRID_SIZE: Final[int] = 8


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


def crop_box(region: BoundingBox, width: int, height: int) -> Tuple[int, int, int, int]:
    """Convert a percentage region to a clamped pixel box.

    Returns ``(left, top, crop_width, crop_height)`` with the crop fully
    inside ``[0, width) x [0, height)`` and both sizes at least 1.
    """

    left = round(region.x / 100 * width)
    top = round(region.y / 100 * height)
    crop_width = round(region.width / 100 * width)
    crop_height = round(region.height / 100 * height)

    left = _clamp(left, 0, width - 1)
    top = _clamp(top, 0, height - 1)
    crop_width = _clamp(crop_width, 1, width - left)
    crop_height = _clamp(crop_height, 1, height - top)
    return left, top, crop_width, crop_height


def _decode(image_bytes: bytes) -> Image.Image:
    if not image_bytes:
        raise ImageFetchError("Cannot fingerprint an empty image payload")
    try:
        image = Image.open(io.BytesIO(image_bytes))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise ImageFetchError(f"Unable to decode image: {exc}") from exc
    return image


class Fingerprinter:
    """Derive fixed-length binary signatures from image bytes."""

    def __init__(self, grid_size: int = DEFAULT_GRID_SIZE) -> None:
        if grid_size < 1:
            raise InvalidInputError("Signature grid size must be at least 1")
        self.grid_size = grid_size

    @property
    def signature_length(self) -> int:
        return self.grid_size * self.grid_size

    def fingerprint(self, image_bytes: bytes, region: Optional[BoundingBox] = None) -> str:
        """Return the signature of ``region`` (or the whole image) as a bit string."""

        image = _decode(image_bytes)
        width, height = image.size
        if width <= 0 or height <= 0:
            raise ImageFetchError(f"Image has invalid dimensions {width}x{height}")

        if region is not None:
            left, top, crop_width, crop_height = crop_box(region, width, height)
            image = image.crop((left, top, left + crop_width, top + crop_height))
            LOGGER.debug(
                "Cropped image for fingerprint",
                extra={"box": [left, top, crop_width, crop_height], "source_size": [width, height]},
            )

        gray = image.convert("L").resize(
            (self.grid_size, self.grid_size), resample=Image.Resampling.LANCZOS
        )
        samples = list(gray.tobytes())
        average = sum(samples) / len(samples)
        return "".join("1" if sample > average else "0" for sample in samples)


__all__ = ["DEFAULT_GRID_SIZE", "Fingerprinter", "crop_box"]
