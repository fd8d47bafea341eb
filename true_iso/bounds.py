"""Content bounds detection and cropping for transparent sprites."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .config import EmptyImageError

logger = logging.getLogger("true_iso")


@dataclass(frozen=True)
class BoundingBox:
    """Inclusive pixel rectangle containing a sprite's visible content."""

    min_x: int
    min_y: int
    max_x: int
    max_y: int

    @property
    def width(self) -> int:
        return self.max_x - self.min_x + 1

    @property
    def height(self) -> int:
        return self.max_y - self.min_y + 1

    @property
    def center(self) -> Tuple[float, float]:
        """Geometric center in pixel coordinates."""
        return (self.min_x + self.width / 2.0, self.min_y + self.height / 2.0)


def find_sprite_bounds(
    arr: np.ndarray, alpha_threshold: int = 10
) -> Optional[BoundingBox]:
    """Find the tight bounding box of pixels with alpha above a threshold.

    Pixels at or below the threshold are treated as background, so faint
    anti-aliased fringes do not widen the box.

    Args:
        arr: RGBA array of shape (H, W, 4).
        alpha_threshold: Alpha value (0-255) a pixel must exceed to count.

    Returns:
        BoundingBox, or None if no pixel qualifies.
    """
    mask = arr[:, :, 3] > alpha_threshold
    rows = np.flatnonzero(mask.any(axis=1))
    cols = np.flatnonzero(mask.any(axis=0))
    if rows.size == 0 or cols.size == 0:
        return None
    return BoundingBox(
        min_x=int(cols[0]),
        min_y=int(rows[0]),
        max_x=int(cols[-1]),
        max_y=int(rows[-1]),
    )


def extract_bounds(arr: np.ndarray, alpha_threshold: int = 10) -> BoundingBox:
    """Like find_sprite_bounds, but an empty image is an error.

    Raises:
        EmptyImageError: If no pixel has alpha above the threshold.
    """
    box = find_sprite_bounds(arr, alpha_threshold)
    if box is None:
        height, width = arr.shape[:2]
        raise EmptyImageError(
            f"Bounds extraction failed: no pixel in the {width}x{height} image "
            f"has alpha above {alpha_threshold} (image may be fully transparent)"
        )
    logger.debug(
        f"Sprite bounds: x={box.min_x}..{box.max_x}, y={box.min_y}..{box.max_y} "
        f"({box.width}x{box.height})"
    )
    return box


def crop_to_bounds(arr: np.ndarray, box: BoundingBox) -> np.ndarray:
    """Return a copy of the array restricted to the bounding box."""
    return arr[box.min_y:box.max_y + 1, box.min_x:box.max_x + 1].copy()


def crop_to_content(arr: np.ndarray, alpha_threshold: int = 10) -> np.ndarray:
    """Crop an image to its visible content.

    A fully transparent image is returned unchanged (as a copy).
    """
    box = find_sprite_bounds(arr, alpha_threshold)
    if box is None:
        return arr.copy()
    return crop_to_bounds(arr, box)
