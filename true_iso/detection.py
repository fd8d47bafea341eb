"""Isometric angle detection: sprite bounds -> edges -> lines -> axis angles."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .angles import ClassifiedAngles, classify_angles
from .bounds import BoundingBox, crop_to_bounds, extract_bounds
from .config import Config
from .edges import build_edge_map
from .lines import detect_line_segments

logger = logging.getLogger("true_iso")


@dataclass
class DetectedGeometry:
    """Result of the detection stages for one sprite."""

    angles: ClassifiedAngles
    bounds: BoundingBox
    cropped: np.ndarray
    line_count: int

    @property
    def center(self) -> Tuple[float, float]:
        return self.bounds.center


def detect_isometric_angles(
    arr: np.ndarray, config: Optional[Config] = None
) -> DetectedGeometry:
    """Detect the left and right projection angles of an RGBA sprite.

    Args:
        arr: Decoded RGBA array of shape (H, W, 4).
        config: Configuration options. Uses defaults if None.

    Returns:
        DetectedGeometry including the cropped working buffer.

    Raises:
        EmptyImageError: If the image has no visible content.
        InsufficientEdgesError: If a slope class has no line segments.
    """
    config = config or Config()

    bounds = extract_bounds(arr, config.alpha_threshold)
    cropped = crop_to_bounds(arr, bounds)
    logger.info(
        f"Sprite bounds: ({bounds.min_x}, {bounds.min_y}) {bounds.width}x{bounds.height}, "
        f"center ({bounds.center[0]:.1f}, {bounds.center[1]:.1f})"
    )

    edges = build_edge_map(cropped, config.canny_low, config.canny_high)
    segments = detect_line_segments(edges, config)
    logger.info(f"Detected {len(segments)} line segments")

    angles = classify_angles(segments)
    logger.info(
        f"Left angle: {angles.left.angle:.2f}° "
        f"({angles.left.segment_count} segments, confidence {angles.left.confidence:.2f}); "
        f"right angle: {angles.right.angle:.2f}° "
        f"({angles.right.segment_count} segments, confidence {angles.right.confidence:.2f})"
    )

    return DetectedGeometry(
        angles=angles,
        bounds=bounds,
        cropped=cropped,
        line_count=len(segments),
    )
