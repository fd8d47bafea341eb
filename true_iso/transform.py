"""Alpha-aware bicubic resampling: affine correction and fit-to-size.

Color channels are premultiplied by alpha before interpolation and divided
back out afterwards. Without this, the arbitrary color stored in fully
transparent pixels leaks into the sprite's anti-aliased edge as a dark or
light fringe.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Tuple

import numpy as np

from .bounds import crop_to_content
from .config import CanvasTooLargeError, Config
from .geometry import AffineMatrix, compute_output_bounds

logger = logging.getLogger("true_iso")

# Transparent margin around the source so samples past its edge fade out
SAMPLE_PADDING = 2

# Faint pixels below this alpha with mostly transparent neighbours are specks
SPECK_ALPHA = 32

# Maps destination pixel centres (xs, ys) to source pixel coordinates
CoordinateMap = Callable[[np.ndarray, np.ndarray], Tuple[np.ndarray, np.ndarray]]


def premultiply_alpha(arr: np.ndarray) -> np.ndarray:
    """Return a float64 copy of an RGBA array with RGB scaled by alpha.

    Alpha stays in the 0-255 range.
    """
    result = arr.astype(np.float64)
    result[:, :, :3] *= result[:, :, 3:4] / 255.0
    return result


def unpremultiply_alpha(premultiplied: np.ndarray) -> np.ndarray:
    """Convert premultiplied float RGBA samples back to uint8 RGBA.

    Samples whose alpha rounds below 1 become (0, 0, 0, 0).

    Args:
        premultiplied: Float array whose last axis is RGBA.

    Returns:
        uint8 array of the same shape.
    """
    raw_alpha = premultiplied[..., 3]
    alpha = np.clip(raw_alpha, 0.0, 255.0)
    visible = alpha >= 1.0
    # Divide by the unclipped alpha so overshoot does not tint the color
    safe_alpha = np.where(visible, raw_alpha / 255.0, 1.0)

    rgb = premultiplied[..., :3] / safe_alpha[..., None]
    rgb = np.clip(np.rint(rgb), 0, 255)

    result = np.zeros(premultiplied.shape, dtype=np.uint8)
    result[..., :3] = np.where(visible[..., None], rgb, 0).astype(np.uint8)
    result[..., 3] = np.where(visible, np.rint(alpha), 0).astype(np.uint8)
    return result


def cubic_weights(t: np.ndarray) -> np.ndarray:
    """Catmull-Rom weights for the four taps around a fractional offset.

    Args:
        t: Fractional offsets in [0, 1), shape (N,).

    Returns:
        Array of shape (N, 4) for taps at -1, 0, +1, +2.
    """
    t2 = t * t
    t3 = t2 * t
    return np.stack(
        [
            -0.5 * t3 + t2 - 0.5 * t,
            1.5 * t3 - 2.5 * t2 + 1.0,
            -1.5 * t3 + 2.0 * t2 + 0.5 * t,
            0.5 * t3 - 0.5 * t2,
        ],
        axis=1,
    )


def bicubic_sample(source: np.ndarray, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
    """Sample a float image at fractional coordinates over a 4x4 neighbourhood.

    Neighbour indices are clamped to the image, so callers should pad the
    source with a transparent border.

    Args:
        source: Float array of shape (H, W, C).
        xs: Source x coordinates (pixel centres at integers), shape (N,).
        ys: Source y coordinates, shape (N,).

    Returns:
        Array of shape (N, C).
    """
    height, width = source.shape[:2]
    x_floor = np.floor(xs)
    y_floor = np.floor(ys)
    wx = cubic_weights(xs - x_floor)
    wy = cubic_weights(ys - y_floor)
    x0 = x_floor.astype(np.int64)
    y0 = y_floor.astype(np.int64)

    result = np.zeros((xs.shape[0], source.shape[2]), dtype=np.float64)
    for j in range(4):
        py = np.clip(y0 + j - 1, 0, height - 1)
        for i in range(4):
            px = np.clip(x0 + i - 1, 0, width - 1)
            weight = wx[:, i] * wy[:, j]
            result += source[py, px] * weight[:, None]
    return result


def _resample(
    arr: np.ndarray,
    out_width: int,
    out_height: int,
    coordinate_map: CoordinateMap,
    config: Config,
) -> np.ndarray:
    """Render an output image by inverse mapping every destination pixel.

    Rows are processed in chunks; chunks write disjoint output rows and only
    read the shared source, so they can run on a thread pool.
    """
    premultiplied = premultiply_alpha(arr)
    padded = np.pad(
        premultiplied,
        ((SAMPLE_PADDING, SAMPLE_PADDING), (SAMPLE_PADDING, SAMPLE_PADDING), (0, 0)),
        mode="constant",
    )
    output = np.zeros((out_height, out_width, 4), dtype=np.uint8)
    chunk_rows = max(1, config.chunk_rows)
    col_centres = np.arange(out_width, dtype=np.float64) + 0.5

    def render_rows(start: int) -> None:
        end = min(start + chunk_rows, out_height)
        row_centres = np.arange(start, end, dtype=np.float64) + 0.5
        dst_x, dst_y = np.meshgrid(col_centres, row_centres)
        src_x, src_y = coordinate_map(dst_x.ravel(), dst_y.ravel())
        samples = bicubic_sample(
            padded, src_x + SAMPLE_PADDING, src_y + SAMPLE_PADDING
        )
        output[start:end] = unpremultiply_alpha(samples).reshape(
            end - start, out_width, 4
        )

    starts = range(0, out_height, chunk_rows)
    if config.workers > 1:
        with ThreadPoolExecutor(max_workers=config.workers) as executor:
            # list() re-raises any worker exception here
            list(executor.map(render_rows, starts))
    else:
        for start in starts:
            render_rows(start)

    return output


def remove_edge_specks(arr: np.ndarray, alpha_limit: int = SPECK_ALPHA) -> np.ndarray:
    """Clear faint isolated pixels left behind by interpolation ringing.

    A pixel with 0 < alpha < alpha_limit and at least three fully
    transparent 4-neighbours becomes fully transparent.
    """
    alpha = arr[:, :, 3]
    transparent = np.pad(alpha == 0, 1, mode="constant", constant_values=True)
    neighbours = (
        transparent[:-2, 1:-1].astype(np.int32)
        + transparent[2:, 1:-1]
        + transparent[1:-1, :-2]
        + transparent[1:-1, 2:]
    )
    specks = (alpha > 0) & (alpha < alpha_limit) & (neighbours >= 3)

    result = arr.copy()
    result[specks] = 0
    if np.any(specks):
        logger.debug(f"Cleared {int(specks.sum())} faint edge pixels")
    return result


def apply_affine_transform(
    arr: np.ndarray, matrix: AffineMatrix, config: Optional[Config] = None
) -> np.ndarray:
    """Apply a linear correction to an RGBA sprite via inverse mapping.

    The canvas exactly bounds the transformed source rectangle, so no
    content is clipped, and the transformed content is centred on it.

    Args:
        arr: RGBA array of shape (H, W, 4).
        matrix: Forward linear map (source -> destination).
        config: Configuration options. Uses defaults if None.

    Returns:
        New RGBA array.

    Raises:
        CanvasTooLargeError: If the canvas would exceed ``config.max_scale``
            times the source size on either side.
    """
    config = config or Config()
    src_height, src_width = arr.shape[:2]

    new_width, new_height, min_x, min_y = compute_output_bounds(
        matrix, src_width, src_height
    )
    max_width = max(1, int(src_width * config.max_scale))
    max_height = max(1, int(src_height * config.max_scale))
    if new_width > max_width or new_height > max_height:
        raise CanvasTooLargeError(new_width, new_height, max_width, max_height)

    # Source centre maps to the centre of the transformed parallelogram
    centre_x, centre_y = matrix.apply(src_width / 2.0, src_height / 2.0)
    offset_x = centre_x - new_width / 2.0
    offset_y = centre_y - new_height / 2.0

    logger.debug(
        f"Transform: {src_width}x{src_height} -> {new_width}x{new_height} "
        f"(offset: {offset_x:.1f}, {offset_y:.1f}; corner: {min_x:.1f}, {min_y:.1f})"
    )

    inverse = matrix.inverse()

    def to_source(xs: np.ndarray, ys: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        dst_x = xs + offset_x
        dst_y = ys + offset_y
        src_x = inverse.a * dst_x + inverse.b * dst_y
        src_y = inverse.c * dst_x + inverse.d * dst_y
        # Continuous coordinates to pixel-centre coordinates
        return src_x - 0.5, src_y - 0.5

    output = _resample(arr, new_width, new_height, to_source, config)
    if config.clean_edges:
        output = remove_edge_specks(output)
    return output


def resize_to_fit(
    arr: np.ndarray, target_size: int, config: Optional[Config] = None
) -> np.ndarray:
    """Resize so the longest side equals target_size, keeping aspect ratio.

    Args:
        arr: RGBA array of shape (H, W, 4).
        target_size: Desired length of the longest side in pixels.
        config: Configuration options. Uses defaults if None.

    Returns:
        New RGBA array.
    """
    config = config or Config()
    height, width = arr.shape[:2]
    if width == 0 or height == 0:
        return arr.copy()

    scale = target_size / max(width, height)
    new_width = max(1, int(round(width * scale)))
    new_height = max(1, int(round(height * scale)))
    scale_x = new_width / width
    scale_y = new_height / height

    def to_source(xs: np.ndarray, ys: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        return xs / scale_x - 0.5, ys / scale_y - 0.5

    logger.debug(f"Resize: {width}x{height} -> {new_width}x{new_height}")
    return _resample(arr, new_width, new_height, to_source, config)


def fit_to_size(
    arr: np.ndarray, target_size: int, config: Optional[Config] = None
) -> np.ndarray:
    """Trim transparent margins, then resize the longest side to target_size."""
    config = config or Config()
    cropped = crop_to_content(arr, config.alpha_threshold)
    logger.debug(
        f"Cropped: {arr.shape[1]}x{arr.shape[0]} -> "
        f"{cropped.shape[1]}x{cropped.shape[0]}"
    )
    return resize_to_fit(cropped, target_size, config)
