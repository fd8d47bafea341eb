"""Slope classification and robust angle estimation."""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from .config import InsufficientEdgesError
from .lines import LineSegment

logger = logging.getLogger("true_iso")


class AngleClass(enum.Enum):
    """Isometric axis a line segment belongs to."""

    LEFT = "left"
    RIGHT = "right"

    def contains(self, angle_degrees: float) -> bool:
        """Check an angle against the class's half-open range.

        LEFT covers [-60, -15) and RIGHT covers (15, 60].
        """
        if self is AngleClass.LEFT:
            return -60.0 <= angle_degrees < -15.0
        return 15.0 < angle_degrees <= 60.0

    @classmethod
    def classify(cls, angle_degrees: float) -> Optional["AngleClass"]:
        """Return the class for an angle, or None for near-horizontal or
        near-vertical noise."""
        for angle_class in cls:
            if angle_class.contains(angle_degrees):
                return angle_class
        return None


@dataclass(frozen=True)
class AxisEstimate:
    """Representative angle of one slope class."""

    angle: float
    confidence: float
    segment_count: int
    total_length: float


@dataclass(frozen=True)
class ClassifiedAngles:
    """Detected left and right projection axes."""

    left: AxisEstimate
    right: AxisEstimate

    @property
    def left_angle(self) -> float:
        return self.left.angle

    @property
    def right_angle(self) -> float:
        return self.right.angle


def classify_segments(
    segments: Iterable[LineSegment],
) -> Dict[AngleClass, List[LineSegment]]:
    """Partition segments by slope class, discarding unclassified ones."""
    groups: Dict[AngleClass, List[LineSegment]] = {
        angle_class: [] for angle_class in AngleClass
    }
    for segment in segments:
        angle_class = AngleClass.classify(segment.angle_degrees)
        if angle_class is not None:
            groups[angle_class].append(segment)
    return groups


def weighted_median(segments: Sequence[LineSegment]) -> Optional[float]:
    """Compute the length-weighted median angle of a set of segments.

    Segments are sorted by angle and lengths accumulated until the running
    total reaches half the overall weight; the angle at that crossing is
    the median. Long structural edges therefore outvote short noise.

    Returns:
        The median angle, or None for an empty (or zero-weight) input.
    """
    total_weight = sum(segment.length for segment in segments)
    if not segments or total_weight <= 0:
        return None

    ordered = sorted(segments, key=lambda s: (s.angle_degrees, s.length))
    half_weight = total_weight / 2.0
    cumulative = 0.0
    for segment in ordered:
        cumulative += segment.length
        if cumulative >= half_weight:
            return segment.angle_degrees

    # Only reachable through float rounding on the final sum
    return ordered[-1].angle_degrees


def _estimate_axis(
    angle_class: AngleClass,
    segments: Sequence[LineSegment],
    total_segments: int,
) -> AxisEstimate:
    angle = weighted_median(segments)
    if angle is None:
        raise InsufficientEdgesError(angle_class.value, total_segments)

    total_length = sum(segment.length for segment in segments)
    confidence = min(total_length / (len(segments) * 100.0), 1.0)
    return AxisEstimate(
        angle=angle,
        confidence=confidence,
        segment_count=len(segments),
        total_length=total_length,
    )


def classify_angles(segments: Sequence[LineSegment]) -> ClassifiedAngles:
    """Reduce detected segments to one left and one right axis angle.

    Args:
        segments: Detected line segments in any order.

    Returns:
        ClassifiedAngles with per-axis median angle and confidence.

    Raises:
        InsufficientEdgesError: If either slope class has no segments.
    """
    segments = list(segments)
    groups = classify_segments(segments)
    logger.debug(
        f"Classified: {len(groups[AngleClass.LEFT])} left-sloping, "
        f"{len(groups[AngleClass.RIGHT])} right-sloping of {len(segments)} segments"
    )

    left = _estimate_axis(AngleClass.LEFT, groups[AngleClass.LEFT], len(segments))
    right = _estimate_axis(AngleClass.RIGHT, groups[AngleClass.RIGHT], len(segments))

    logger.debug(
        f"Left angle: {left.angle:.2f}° (confidence: {left.confidence:.2f}), "
        f"right angle: {right.angle:.2f}° (confidence: {right.confidence:.2f})"
    )
    return ClassifiedAngles(left=left, right=right)
