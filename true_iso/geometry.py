"""Isometric basis geometry and affine correction matrices.

The correction is M = B_target x B_current^-1, where each B is a 2x2 basis
whose columns are unit vectors along the left and right isometric axes.
M maps every detected axis direction onto the matching target direction.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from .config import DegenerateBasisError, IsoRatio, SingularMatrixError
from .lines import normalize_angle

logger = logging.getLogger("true_iso")

# |det| below this means the detected axes are (nearly) parallel
DETERMINANT_EPSILON = 1e-6

DEFAULT_TOLERANCE_DEGREES = 2.0


@dataclass(frozen=True)
class AffineMatrix:
    """Linear part of a 2D affine transform, row-major ``[[a, b], [c, d]]``."""

    a: float
    b: float
    c: float
    d: float

    @classmethod
    def identity(cls) -> "AffineMatrix":
        return cls(1.0, 0.0, 0.0, 1.0)

    @classmethod
    def from_columns(
        cls, first: Tuple[float, float], second: Tuple[float, float]
    ) -> "AffineMatrix":
        return cls(first[0], second[0], first[1], second[1])

    @property
    def determinant(self) -> float:
        return self.a * self.d - self.b * self.c

    def inverse(self, epsilon: float = DETERMINANT_EPSILON) -> "AffineMatrix":
        """Closed-form 2x2 inverse.

        Raises:
            SingularMatrixError: If |determinant| is below epsilon.
        """
        det = self.determinant
        if abs(det) < epsilon:
            raise SingularMatrixError(det)
        return AffineMatrix(self.d / det, -self.b / det, -self.c / det, self.a / det)

    def __matmul__(self, other: "AffineMatrix") -> "AffineMatrix":
        return AffineMatrix(
            self.a * other.a + self.b * other.c,
            self.a * other.b + self.b * other.d,
            self.c * other.a + self.d * other.c,
            self.c * other.b + self.d * other.d,
        )

    def apply(self, x: float, y: float) -> Tuple[float, float]:
        return (self.a * x + self.b * y, self.c * x + self.d * y)

    def as_array(self) -> np.ndarray:
        return np.array([[self.a, self.b], [self.c, self.d]], dtype=np.float64)

    def format_rows(self) -> Sequence[str]:
        return [
            f"[{self.a:8.4f}, {self.b:8.4f}]",
            f"[{self.c:8.4f}, {self.d:8.4f}]",
        ]


@dataclass(frozen=True)
class CorrectionDecision:
    """Whether a sprite needs correction, with the angles that decided it."""

    apply: bool
    detected_left: float
    detected_right: float
    target_left: float
    target_right: float
    tolerance: float = DEFAULT_TOLERANCE_DEGREES

    @property
    def left_deviation(self) -> float:
        return abs(self.detected_left - self.target_left)

    @property
    def right_deviation(self) -> float:
        return abs(self.detected_right - self.target_right)

    def describe(self) -> str:
        action = "apply correction" if self.apply else "skip correction"
        return (
            f"Detected angles: left={self.detected_left:.2f}°, "
            f"right={self.detected_right:.2f}°; "
            f"target: left={self.target_left:.3f}°, right=+{self.target_right:.3f}°; "
            f"deviation: {self.left_deviation:.2f}°/{self.right_deviation:.2f}° "
            f"(tolerance {self.tolerance:.1f}°) -> {action}"
        )


def unit_vector(angle_degrees: float) -> Tuple[float, float]:
    """Unit direction vector at an angle from horizontal (image coordinates)."""
    radians = math.radians(angle_degrees)
    return (math.cos(radians), math.sin(radians))


def vector_angle(x: float, y: float) -> float:
    """Undirected angle of a vector, folded into (-90, 90]."""
    return normalize_angle(math.degrees(math.atan2(y, x)))


def basis_matrix(left_degrees: float, right_degrees: float) -> AffineMatrix:
    """2x2 basis whose columns are the left and right axis unit vectors."""
    return AffineMatrix.from_columns(
        unit_vector(left_degrees), unit_vector(right_degrees)
    )


def target_angles(ratio: IsoRatio) -> Tuple[float, float]:
    """Return (target_left, target_right) in degrees for a ratio."""
    angle = ratio.target_angle_degrees
    return (-angle, angle)


def decide_correction(
    left_angle: float,
    right_angle: float,
    ratio: IsoRatio,
    tolerance: float = DEFAULT_TOLERANCE_DEGREES,
) -> CorrectionDecision:
    """Compare detected angles to the ratio's target angles.

    Correction is skipped only when both axes are within ``tolerance``.
    """
    target_left, target_right = target_angles(ratio)
    within = (
        abs(left_angle - target_left) <= tolerance
        and abs(right_angle - target_right) <= tolerance
    )
    return CorrectionDecision(
        apply=not within,
        detected_left=left_angle,
        detected_right=right_angle,
        target_left=target_left,
        target_right=target_right,
        tolerance=tolerance,
    )


def compute_correction_matrix(
    left_angle: float, right_angle: float, ratio: IsoRatio
) -> AffineMatrix:
    """Compute the linear map taking the detected axes to the target axes.

    Args:
        left_angle: Detected left axis angle in degrees.
        right_angle: Detected right axis angle in degrees.
        ratio: Target isometric ratio.

    Returns:
        AffineMatrix M with M x u(left) = u(target_left) and
        M x u(right) = u(target_right).

    Raises:
        DegenerateBasisError: If the detected axes or the ratio's target
            axes are (nearly) parallel, or the resulting map is not
            invertible.
    """
    current = basis_matrix(left_angle, right_angle)
    target_left, target_right = target_angles(ratio)
    target = basis_matrix(target_left, target_right)

    det = current.determinant
    if abs(det) < DETERMINANT_EPSILON:
        raise DegenerateBasisError(left_angle, right_angle, det)
    if abs(target.determinant) < DETERMINANT_EPSILON:
        raise DegenerateBasisError(
            target_left, target_right, target.determinant, basis="target"
        )

    matrix = target @ current.inverse()
    # Resampling inverts M, so it must stay invertible too
    if abs(matrix.determinant) < DETERMINANT_EPSILON:
        raise DegenerateBasisError(
            left_angle, right_angle, matrix.determinant, basis="corrected"
        )
    logger.debug(
        f"Correction matrix (det {matrix.determinant:.4f}): "
        + " ".join(matrix.format_rows())
    )
    return matrix


def compute_output_bounds(
    matrix: AffineMatrix, width: int, height: int
) -> Tuple[int, int, float, float]:
    """Bounding box of a width x height rectangle after the linear map.

    Returns:
        Tuple of (new_width, new_height, min_x, min_y) where min_x/min_y is
        the offset of the transformed rectangle's top-left corner.
    """
    corners = [(0.0, 0.0), (float(width), 0.0), (0.0, float(height)),
               (float(width), float(height))]
    transformed = [matrix.apply(x, y) for x, y in corners]

    xs = [p[0] for p in transformed]
    ys = [p[1] for p in transformed]
    min_x, max_x = min(xs), max(xs)
    min_y, max_y = min(ys), max(ys)

    # Rounding noise from the matrix must not add an empty column or row
    new_width = max(1, int(math.ceil(max_x - min_x - 1e-9)))
    new_height = max(1, int(math.ceil(max_y - min_y - 1e-9)))
    return new_width, new_height, min_x, min_y
