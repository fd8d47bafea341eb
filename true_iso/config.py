"""Configuration, errors and validation for true-iso."""
from __future__ import annotations

import math
from dataclasses import dataclass, field


class TrueIsoError(Exception):
    """Base exception for true-iso errors."""

    pass


class EmptyImageError(TrueIsoError):
    """Raised when an image has no visible (non-transparent) content."""

    pass


class InsufficientEdgesError(TrueIsoError):
    """Raised when one slope class has no qualifying line segments."""

    def __init__(self, angle_class: str, segment_count: int = 0) -> None:
        self.angle_class = angle_class
        self.segment_count = segment_count
        super().__init__(
            f"Angle classification failed: no {angle_class}-sloping edges found "
            f"among {segment_count} detected line segments"
        )


class SingularMatrixError(TrueIsoError):
    """Raised when a 2x2 matrix cannot be inverted."""

    def __init__(self, determinant: float) -> None:
        self.determinant = determinant
        super().__init__(f"Matrix is singular (determinant {determinant:.2e})")


class DegenerateBasisError(TrueIsoError):
    """Raised when a pair of axes does not form an invertible basis.

    ``basis`` names which basis failed: the detected axes, the target
    axes of the ratio, or the resulting correction.
    """

    def __init__(
        self,
        left_angle: float,
        right_angle: float,
        determinant: float,
        basis: str = "detected",
    ) -> None:
        self.left_angle = left_angle
        self.right_angle = right_angle
        self.determinant = determinant
        self.basis = basis
        super().__init__(
            f"Geometry correction failed: {basis} axes left={left_angle:.2f}° "
            f"and right={right_angle:.2f}° give a degenerate basis "
            f"(determinant {determinant:.2e})"
        )


class CanvasTooLargeError(TrueIsoError):
    """Raised when a correction would grow the sprite past the scale limit."""

    def __init__(
        self, width: int, height: int, max_width: int, max_height: int
    ) -> None:
        self.width = width
        self.height = height
        self.max_width = max_width
        self.max_height = max_height
        super().__init__(
            f"Affine transform failed: corrected canvas {width}x{height} exceeds "
            f"the {max_width}x{max_height} limit (raise max_scale to allow it)"
        )


class InvalidRatioError(TrueIsoError):
    """Raised for a malformed or non-positive isometric ratio."""

    pass


class CodecError(TrueIsoError):
    """Raised when an image cannot be decoded, encoded or written."""

    pass


@dataclass(frozen=True)
class IsoRatio:
    """Isometric projection ratio, horizontal pixels per vertical pixel.

    The standard 2:1 ratio gives a projection angle of atan(1/2), about
    26.565° from horizontal.
    """

    horizontal: int = 2
    vertical: int = 1

    def __post_init__(self) -> None:
        if self.horizontal <= 0 or self.vertical <= 0:
            raise InvalidRatioError(
                f"Ratio values must be positive, got "
                f"{self.horizontal}:{self.vertical}"
            )

    @property
    def target_angle_degrees(self) -> float:
        return math.degrees(math.atan(self.vertical / self.horizontal))

    @classmethod
    def parse(cls, text: str) -> "IsoRatio":
        """Parse a ratio written as ``H:V`` (e.g. ``2:1``).

        Raises:
            InvalidRatioError: If the text is malformed or a value is not
                a positive integer.
        """
        parts = text.strip().split(":")
        if len(parts) != 2:
            raise InvalidRatioError(
                f"Invalid ratio format '{text}', expected H:V (e.g. 2:1)"
            )
        values = []
        for name, part in zip(("horizontal", "vertical"), parts):
            try:
                values.append(int(part.strip()))
            except ValueError as exc:
                raise InvalidRatioError(f"Invalid {name} value: '{part}'") from exc
        return cls(values[0], values[1])

    def __str__(self) -> str:
        return f"{self.horizontal}:{self.vertical}"


@dataclass
class Config:
    """Configuration for the isometric correction pipeline."""

    input_path: str = ""
    output_path: str = ""
    ratio: IsoRatio = field(default_factory=IsoRatio)
    size: int = 256
    verbose: bool = False
    timing: bool = False

    # Content detection
    alpha_threshold: int = 10

    # Edge map (Canny hysteresis thresholds)
    canny_low: float = 30.0
    canny_high: float = 100.0

    # Line detection (probabilistic Hough transform)
    hough_threshold: int = 20
    min_line_length: int = 8
    max_line_gap: int = 3

    # Angle refinement (line fit over the edge pixels each segment covers)
    refine_angles: bool = True
    refine_distance: float = 1.5

    # Correction
    tolerance_degrees: float = 2.0
    max_scale: float = 3.0
    clean_edges: bool = True

    # Resampling
    workers: int = 1
    chunk_rows: int = 64


def validate_image_dimensions(width: int, height: int) -> None:
    """Validate image dimensions are within acceptable bounds.

    Args:
        width: Image width in pixels.
        height: Image height in pixels.

    Raises:
        CodecError: If dimensions are invalid.
    """
    if width == 0 or height == 0:
        raise CodecError("Image dimensions cannot be zero")
    if width > 10000 or height > 10000:
        raise CodecError("Image dimensions too large (max 10000x10000)")
