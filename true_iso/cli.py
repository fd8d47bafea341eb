"""Command-line interface and end-to-end pipeline for true-iso."""
from __future__ import annotations

import argparse
import io
import logging
import os
import sys
import time
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger("true_iso")

from .config import (
    CodecError,
    Config,
    InvalidRatioError,
    IsoRatio,
    TrueIsoError,
    validate_image_dimensions,
)
from .detection import detect_isometric_angles
from .geometry import (
    AffineMatrix,
    CorrectionDecision,
    compute_correction_matrix,
    decide_correction,
)
from .transform import apply_affine_transform, fit_to_size


@dataclass
class CorrectionResult:
    """Result of correcting one sprite."""

    output_bytes: bytes
    decision: CorrectionDecision
    matrix: Optional[AffineMatrix]
    input_size: Tuple[int, int]
    output_size: Tuple[int, int]


def decode_image(input_bytes: bytes) -> np.ndarray:
    """Decode image bytes to an RGBA uint8 array.

    Raises:
        CodecError: If the bytes are not a decodable image.
    """
    try:
        img = Image.open(io.BytesIO(input_bytes))
        img = img.convert("RGBA")
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise CodecError(f"Failed to decode image: {exc}") from exc
    width, height = img.size
    validate_image_dimensions(width, height)
    return np.array(img, dtype=np.uint8)


def encode_png(arr: np.ndarray) -> bytes:
    """Encode an RGBA array as PNG bytes."""
    out_buf = io.BytesIO()
    Image.fromarray(arr, "RGBA").save(out_buf, format="PNG")
    return out_buf.getvalue()


def correct_sprite(
    arr: np.ndarray, config: Optional[Config] = None
) -> Tuple[np.ndarray, CorrectionDecision, Optional[AffineMatrix]]:
    """Run detection, correction and fit-to-size on a decoded sprite.

    Args:
        arr: RGBA array of shape (H, W, 4).
        config: Configuration options. Uses defaults if None.

    Returns:
        Tuple of (output array, decision, matrix). The matrix is None when
        the detected angles were already within tolerance.
    """
    config = config or Config()

    t0 = time.perf_counter()
    geometry = detect_isometric_angles(arr, config)
    t1 = time.perf_counter()

    decision = decide_correction(
        geometry.angles.left_angle,
        geometry.angles.right_angle,
        config.ratio,
        config.tolerance_degrees,
    )
    logger.info(decision.describe())

    matrix: Optional[AffineMatrix] = None
    if decision.apply:
        matrix = compute_correction_matrix(
            decision.detected_left, decision.detected_right, config.ratio
        )
        logger.info("Correction matrix:")
        for row in matrix.format_rows():
            logger.info(f"  {row}")
        working = apply_affine_transform(geometry.cropped, matrix, config)
    else:
        logger.info(
            f"Angles already within {config.tolerance_degrees:.1f}° of target, "
            "cropping and resizing only"
        )
        working = geometry.cropped
    t2 = time.perf_counter()

    output = fit_to_size(working, config.size, config)
    t3 = time.perf_counter()
    logger.info(
        f"Resized: {working.shape[1]}x{working.shape[0]} -> "
        f"{output.shape[1]}x{output.shape[0]} (target: {config.size})"
    )

    if config.timing:
        print(
            "Timing (s): "
            f"detect={t1 - t0:.4f}, "
            f"correct={t2 - t1:.4f}, "
            f"fit={t3 - t2:.4f}, "
            f"total={t3 - t0:.4f}"
        )

    return output, decision, matrix


def process_image_bytes_with_result(
    input_bytes: bytes, config: Optional[Config] = None
) -> CorrectionResult:
    """Correct image bytes and return the output with diagnostics.

    Args:
        input_bytes: Input image as PNG bytes (any Pillow-readable format).
        config: Configuration options. Uses defaults if None.

    Returns:
        CorrectionResult with PNG output bytes and the correction decision.
    """
    config = config or Config()
    arr = decode_image(input_bytes)
    output, decision, matrix = correct_sprite(arr, config)
    return CorrectionResult(
        output_bytes=encode_png(output),
        decision=decision,
        matrix=matrix,
        input_size=(arr.shape[1], arr.shape[0]),
        output_size=(output.shape[1], output.shape[0]),
    )


def process_image_bytes(
    input_bytes: bytes, config: Optional[Config] = None
) -> bytes:
    """Correct image bytes and return output PNG bytes."""
    return process_image_bytes_with_result(input_bytes, config).output_bytes


def process_image(config: Config) -> CorrectionResult:
    """Correct an image file and write the result.

    Args:
        config: Configuration with input/output paths.

    Raises:
        CodecError: If the input cannot be read or the output written.
    """
    output_path = config.output_path or default_output_path(config.input_path)
    try:
        with open(config.input_path, "rb") as f:
            img_bytes = f.read()
    except OSError as exc:
        raise CodecError(
            f"Failed to open input file {config.input_path!r}: {exc}"
        ) from exc

    logger.info(f"Loaded image: {config.input_path}")
    logger.info(
        f"Target ratio: {config.ratio} ({config.ratio.target_angle_degrees:.3f}°)"
    )
    result = process_image_bytes_with_result(img_bytes, config)

    try:
        with open(output_path, "wb") as f:
            f.write(result.output_bytes)
    except OSError as exc:
        raise CodecError(f"Failed to save output {output_path!r}: {exc}") from exc

    status = "corrected" if result.decision.apply else "angles unchanged, cropped & resized"
    print(f"Saved ({status}): {output_path}", file=sys.stderr)
    print(
        "Dimensions: "
        f"{result.input_size[0]}x{result.input_size[1]} -> "
        f"{result.output_size[0]}x{result.output_size[1]}",
        file=sys.stderr,
    )
    return result


def default_output_path(input_path: str) -> str:
    """Derive ``<stem>_corrected.png`` next to the input file."""
    parent, name = os.path.split(input_path)
    stem = os.path.splitext(name)[0]
    return os.path.join(parent, f"{stem}_corrected.png")


def _parse_ratio(text: str) -> IsoRatio:
    try:
        return IsoRatio.parse(text)
    except InvalidRatioError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None


def _positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer value: '{text}'") from None
    if value <= 0:
        raise argparse.ArgumentTypeError(f"value must be a positive integer, got {value}")
    return value


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises instead of exiting on bad input."""

    def error(self, message: str) -> None:  # type: ignore[override]
        raise TrueIsoError(f"{self.format_usage().strip()}\n{self.prog}: error: {message}")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="true-iso",
        description=(
            "Correct isometric tile sprites to mathematically consistent "
            "proportions"
        ),
    )
    parser.add_argument("input", metavar="INPUT", help="Input PNG image path")
    parser.add_argument(
        "-o", "--output",
        help="Output path [default: <input>_corrected.png]",
    )
    parser.add_argument(
        "-r", "--ratio",
        type=_parse_ratio,
        default=IsoRatio(2, 1),
        help="Target isometric ratio H:V (default: 2:1)",
    )
    parser.add_argument(
        "-s", "--size",
        type=_positive_int,
        default=256,
        help="Output size, longest side in pixels (default: 256)",
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Show detection details"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Show all debug logging"
    )
    parser.add_argument(
        "--timing", action="store_true", help="Print stage timings"
    )
    parser.add_argument(
        "--workers",
        type=_positive_int,
        default=1,
        help="Threads used for resampling (default: 1)",
    )
    return parser


def parse_args(argv: Sequence[str]) -> Config:
    """Parse command-line arguments.

    Args:
        argv: Command-line arguments (including program name).

    Returns:
        Configured Config instance.

    Raises:
        TrueIsoError: If arguments are invalid.
    """
    args = build_parser().parse_args(list(argv[1:]))

    config = Config(
        input_path=args.input,
        output_path=args.output or default_output_path(args.input),
        ratio=args.ratio,
        size=args.size,
        verbose=args.verbose,
        timing=args.timing,
        workers=args.workers,
    )

    if args.debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(name)s: %(message)s"
        )
        logging.getLogger("true_iso").setLevel(logging.DEBUG)
    elif args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(message)s")
        logging.getLogger("true_iso").setLevel(logging.INFO)

    return config


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point.

    Args:
        argv: Command-line arguments. Defaults to sys.argv.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    if argv is None:
        argv = sys.argv
    try:
        config = parse_args(argv)
        process_image(config)
        return 0
    except TrueIsoError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except Exception as exc:
        print(f"Processing error: {exc}", file=sys.stderr)
        return 1
