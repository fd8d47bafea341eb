"""Alpha-masked luminance and Canny edge map construction."""
from __future__ import annotations

import logging

import cv2
import numpy as np

logger = logging.getLogger("true_iso")

# Opaque content never maps below this level, so a dark sprite still
# differs from the zero-signal background.
LUMA_FLOOR = 64.0

# Transparent border added before edge detection so silhouettes that touch
# the crop rectangle still produce edges.
EDGE_PADDING = 2


def to_masked_luminance(arr: np.ndarray, luma_floor: float = LUMA_FLOOR) -> np.ndarray:
    """Convert RGBA to a single-channel signal weighted by alpha.

    Uses standard luminance weights, lifts opaque content above
    ``luma_floor`` and multiplies by alpha, so fully transparent pixels
    become zero regardless of their (meaningless) color channels.

    Args:
        arr: RGBA array of shape (H, W, 4).
        luma_floor: Minimum signal level of fully opaque content.

    Returns:
        uint8 array of shape (H, W).
    """
    rgb = arr[:, :, :3].astype(np.float64)
    alpha = arr[:, :, 3].astype(np.float64) / 255.0

    gray = 0.299 * rgb[:, :, 0] + 0.587 * rgb[:, :, 1] + 0.114 * rgb[:, :, 2]
    lifted = luma_floor + (255.0 - luma_floor) * gray / 255.0
    signal = lifted * alpha

    return np.clip(np.rint(signal), 0, 255).astype(np.uint8)


def build_edge_map(
    arr: np.ndarray, low_threshold: float = 30.0, high_threshold: float = 100.0
) -> np.ndarray:
    """Build a binary edge map of a cropped RGBA sprite.

    Args:
        arr: RGBA array of shape (H, W, 4).
        low_threshold: Lower Canny hysteresis threshold.
        high_threshold: Upper Canny hysteresis threshold.

    Returns:
        uint8 array of shape (H, W) with edge pixels set to 255.
    """
    signal = to_masked_luminance(arr)
    padded = np.pad(signal, EDGE_PADDING, mode="constant", constant_values=0)

    edges = cv2.Canny(padded, low_threshold, high_threshold)
    edges = edges[EDGE_PADDING:-EDGE_PADDING, EDGE_PADDING:-EDGE_PADDING]

    logger.debug(
        f"Canny edge map ({low_threshold}, {high_threshold}): "
        f"{int(np.count_nonzero(edges))} edge pixels"
    )
    return np.ascontiguousarray(edges)
