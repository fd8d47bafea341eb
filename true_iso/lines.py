"""Straight line segment detection using the probabilistic Hough transform.

The algorithm:
1. Run cv2.HoughLinesP over the binary edge map (1 px / 1 degree bins)
2. Convert each segment's endpoints into an angle from horizontal
3. Normalize angles into (-90, 90]
4. Drop segments shorter than the minimum length
5. Refit each angle to the edge pixels within a narrow band of the segment
   with cv2.fitLine for sub-degree precision
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

import cv2
import numpy as np

from .config import Config

logger = logging.getLogger("true_iso")

# Half-width in pixels of the band of edge pixels a segment is refitted to
REFINE_DISTANCE = 1.5

# Fewer supporting pixels than this keeps the Hough angle
MIN_REFINE_POINTS = 5


@dataclass(frozen=True)
class LineSegment:
    """A detected straight edge.

    Angles are measured in image coordinates (x right, y down), so a
    segment running up and to the right has a negative angle.
    """

    angle_degrees: float
    length: float
    endpoints: Optional[Tuple[int, int, int, int]] = None


def normalize_angle(degrees: float) -> float:
    """Fold an undirected line angle into the range (-90, 90]."""
    while degrees > 90.0:
        degrees -= 180.0
    while degrees <= -90.0:
        degrees += 180.0
    return degrees


def segment_from_endpoints(x1: int, y1: int, x2: int, y2: int) -> LineSegment:
    """Build a LineSegment from two endpoints."""
    dx = float(x2 - x1)
    dy = float(y2 - y1)
    angle = normalize_angle(math.degrees(math.atan2(dy, dx)))
    return LineSegment(
        angle_degrees=angle,
        length=math.hypot(dx, dy),
        endpoints=(int(x1), int(y1), int(x2), int(y2)),
    )


def edge_points(edges: np.ndarray) -> np.ndarray:
    """Return the (x, y) coordinates of every non-zero edge pixel, shape (N, 2)."""
    ys, xs = np.nonzero(edges)
    return np.column_stack([xs, ys]).astype(np.float64)


def refine_segment(
    segment: LineSegment,
    points: np.ndarray,
    max_distance: float = REFINE_DISTANCE,
    iterations: int = 2,
) -> LineSegment:
    """Refit a segment's angle to the edge pixels along it.

    Pixels within ``max_distance`` of the current line whose projection
    falls between the segment's endpoints are fitted with cv2.fitLine.
    The band is re-centred on the fitted line and the fit repeated, so a
    poor starting angle does not bias which pixels are used.

    Args:
        segment: Segment with endpoints, as produced by the Hough step.
        points: Edge pixel coordinates from edge_points().
        max_distance: Half-width of the band in pixels.
        iterations: Number of fit passes.

    Returns:
        A new LineSegment with the refined angle, or the input segment when
        too few pixels support it.
    """
    if segment.endpoints is None or segment.length <= 0 or len(points) == 0:
        return segment

    x1, y1, x2, y2 = segment.endpoints
    origin = np.array([x1, y1], dtype=np.float64)
    direction = np.array([x2 - x1, y2 - y1], dtype=np.float64) / segment.length

    along = (points - origin) @ direction
    candidates = points[(along >= 0.0) & (along <= segment.length)]

    angle = segment.angle_degrees
    anchor = origin
    for _ in range(iterations):
        normal = np.array([-direction[1], direction[0]])
        distance = np.abs((candidates - anchor) @ normal)
        inliers = candidates[distance <= max_distance]
        if len(inliers) < MIN_REFINE_POINTS:
            break
        # (4, 1) column in OpenCV 4.x; ravel also accepts a flat result
        vx, vy, px, py = cv2.fitLine(
            inliers.reshape(-1, 1, 2).astype(np.float32), cv2.DIST_L2, 0, 0.01, 0.01
        ).ravel()
        direction = np.array([vx, vy], dtype=np.float64)
        anchor = np.array([px, py], dtype=np.float64)
        angle = normalize_angle(math.degrees(math.atan2(vy, vx)))

    return LineSegment(
        angle_degrees=angle,
        length=segment.length,
        endpoints=segment.endpoints,
    )


def detect_line_segments(
    edges: np.ndarray, config: Optional[Config] = None
) -> List[LineSegment]:
    """Detect straight line segments in a binary edge map.

    Args:
        edges: uint8 edge map (non-zero = edge pixel).
        config: Configuration with Hough parameters. Uses defaults if None.

    Returns:
        Segments at least ``config.min_line_length`` long, in no
        particular order.
    """
    config = config or Config()

    hough_lines = cv2.HoughLinesP(
        edges,
        rho=1.0,
        theta=np.deg2rad(1),
        threshold=config.hough_threshold,
        minLineLength=config.min_line_length,
        maxLineGap=config.max_line_gap,
    )

    if hough_lines is None:
        logger.debug("Hough transform found no line segments")
        return []

    # OpenCV 4.x returns (N, 1, 4) and 5.x returns (N, 4)
    lines = hough_lines.reshape(-1, 4)

    segments: List[LineSegment] = []
    for x1, y1, x2, y2 in lines:
        segment = segment_from_endpoints(x1, y1, x2, y2)
        if segment.length >= config.min_line_length and segment.length > 0:
            segments.append(segment)

    logger.debug(
        f"Hough detected {len(lines)} segments, "
        f"{len(segments)} at least {config.min_line_length}px long"
    )

    if config.refine_angles and segments:
        points = edge_points(edges)
        refined = [
            refine_segment(segment, points, config.refine_distance)
            for segment in segments
        ]
        for before, after in zip(segments, refined):
            logger.debug(
                f"Refined {before.angle_degrees:.2f}° -> {after.angle_degrees:.2f}° "
                f"({before.length:.1f}px)"
            )
        segments = refined

    return segments
