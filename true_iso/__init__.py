"""true-iso - Correct isometric sprites to exact projection angles.

This package detects the projection angles of a single isometric sprite on
a transparent background, compares them with a target ratio (2:1 by
default) and, when they are off by more than 2°, applies an affine
correction before resizing the sprite to the requested size.

Example:
    from true_iso import Config, IsoRatio, process_image_bytes

    with open("tile.png", "rb") as f:
        input_bytes = f.read()

    config = Config(ratio=IsoRatio(2, 1), size=128)
    output_bytes = process_image_bytes(input_bytes, config)

    with open("tile_corrected.png", "wb") as f:
        f.write(output_bytes)

To see what was detected, use process_image_bytes_with_result:

    from true_iso import process_image_bytes_with_result

    result = process_image_bytes_with_result(input_bytes)
    print(result.decision.describe())

For debug logging, enable with:

    import logging
    logging.getLogger("true_iso").setLevel(logging.DEBUG)
    logging.basicConfig(level=logging.DEBUG)
"""
import logging

# Package logger - disabled by default, enable with logging.getLogger("true_iso").setLevel(logging.DEBUG)
logger = logging.getLogger("true_iso")
logger.addHandler(logging.NullHandler())
from .angles import AngleClass, ClassifiedAngles, classify_angles, weighted_median
from .bounds import BoundingBox, crop_to_content, find_sprite_bounds
from .cli import (
    CorrectionResult,
    correct_sprite,
    main,
    process_image,
    process_image_bytes,
    process_image_bytes_with_result,
)
from .config import (
    CanvasTooLargeError,
    CodecError,
    Config,
    DegenerateBasisError,
    EmptyImageError,
    InsufficientEdgesError,
    InvalidRatioError,
    IsoRatio,
    SingularMatrixError,
    TrueIsoError,
)
from .detection import DetectedGeometry, detect_isometric_angles
from .geometry import (
    AffineMatrix,
    CorrectionDecision,
    compute_correction_matrix,
    decide_correction,
)
from .lines import LineSegment, detect_line_segments
from .transform import apply_affine_transform, resize_to_fit

__all__ = [
    "Config",
    "IsoRatio",
    "CorrectionResult",
    "main",
    "correct_sprite",
    "process_image",
    "process_image_bytes",
    "process_image_bytes_with_result",
    # Errors
    "TrueIsoError",
    "EmptyImageError",
    "InsufficientEdgesError",
    "DegenerateBasisError",
    "SingularMatrixError",
    "CanvasTooLargeError",
    "InvalidRatioError",
    "CodecError",
    # Detection
    "BoundingBox",
    "find_sprite_bounds",
    "crop_to_content",
    "LineSegment",
    "detect_line_segments",
    "AngleClass",
    "ClassifiedAngles",
    "classify_angles",
    "weighted_median",
    "DetectedGeometry",
    "detect_isometric_angles",
    # Correction
    "AffineMatrix",
    "CorrectionDecision",
    "compute_correction_matrix",
    "decide_correction",
    "apply_affine_transform",
    "resize_to_fit",
]

__version__ = "1.0.0"
