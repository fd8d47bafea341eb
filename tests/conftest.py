"""Pytest fixtures for true_iso tests."""
from __future__ import annotations

import io
import logging
import math
from typing import Tuple

import numpy as np
import pytest
from PIL import Image, ImageDraw

from true_iso import Config

ISO_2_1 = math.degrees(math.atan(0.5))

SUPERSAMPLE = 16


def draw_iso_sprite(
    left_deg: float,
    right_deg: float,
    canvas: int = 64,
    edge_length: float = 30.0,
    color: Tuple[int, int, int, int] = (200, 120, 60, 255),
    background: Tuple[int, int, int, int] = (0, 0, 0, 0),
) -> Image.Image:
    """Draw a filled parallelogram whose edges follow the given angles.

    Angles are in image coordinates (y down): the upper-left and
    lower-right edges run at ``left_deg``, the other two at ``right_deg``.

    The polygon is rasterized at 16x and a pixel is filled when at least
    half of it is covered, so edges follow the exact float vertices
    instead of ImageDraw's integer-rounded ones. Pixels are either fully
    opaque ``color`` or ``background``.
    """
    lx, ly = math.cos(math.radians(left_deg)), math.sin(math.radians(left_deg))
    rx, ry = math.cos(math.radians(right_deg)), math.sin(math.radians(right_deg))

    p0 = (0.0, 0.0)
    p1 = (lx * edge_length, ly * edge_length)
    p2 = (p1[0] + rx * edge_length, p1[1] + ry * edge_length)
    p3 = (rx * edge_length, ry * edge_length)
    points = [p0, p1, p2, p3]

    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    shift_x = (canvas - (max(xs) - min(xs))) / 2.0 - min(xs)
    shift_y = (canvas - (max(ys) - min(ys))) / 2.0 - min(ys)

    big = canvas * SUPERSAMPLE
    mask = Image.new("L", (big, big), 0)
    ImageDraw.Draw(mask).polygon(
        [((x + shift_x) * SUPERSAMPLE, (y + shift_y) * SUPERSAMPLE) for x, y in points],
        fill=255,
    )
    coverage = np.asarray(mask.resize((canvas, canvas), Image.Resampling.BOX))

    arr = np.empty((canvas, canvas, 4), dtype=np.uint8)
    arr[:, :] = background
    arr[coverage >= 128] = color
    return Image.fromarray(arr, "RGBA")


def to_png_bytes(img: Image.Image) -> bytes:
    """Encode an image as PNG bytes."""
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo logging setup done by --verbose/--debug parsing."""
    root = logging.getLogger()
    package = logging.getLogger("true_iso")
    root_handlers = root.handlers[:]
    root_level = root.level
    package_level = package.level
    yield
    for handler in root.handlers[:]:
        if handler not in root_handlers:
            root.removeHandler(handler)
    root.setLevel(root_level)
    package.setLevel(package_level)


@pytest.fixture
def default_config() -> Config:
    """Return a default Config instance."""
    return Config()


@pytest.fixture
def skewed_sprite() -> Image.Image:
    """64x64 diamond with a -20° left edge and a +30° right edge."""
    return draw_iso_sprite(-20.0, 30.0)


@pytest.fixture
def skewed_sprite_bytes(skewed_sprite: Image.Image) -> bytes:
    """Return the skewed sprite as PNG bytes."""
    return to_png_bytes(skewed_sprite)


@pytest.fixture
def true_iso_sprite() -> Image.Image:
    """128x128 diamond drawn at exact 2:1 isometric angles."""
    return draw_iso_sprite(-ISO_2_1, ISO_2_1, canvas=128, edge_length=56.0)


@pytest.fixture
def true_iso_sprite_bytes(true_iso_sprite: Image.Image) -> bytes:
    """Return the exact 2:1 sprite as PNG bytes."""
    return to_png_bytes(true_iso_sprite)


@pytest.fixture
def square_sprite() -> Image.Image:
    """32x32 image with an axis-aligned opaque square (no diagonal edges)."""
    arr = np.zeros((32, 32, 4), dtype=np.uint8)
    arr[8:24, 8:24] = (255, 128, 64, 255)
    return Image.fromarray(arr, "RGBA")


@pytest.fixture
def transparent_image() -> Image.Image:
    """Fully transparent 32x32 image."""
    return Image.new("RGBA", (32, 32), (0, 0, 0, 0))


def rgba_array(img: Image.Image) -> np.ndarray:
    """Helper to get an RGBA uint8 array from an image."""
    return np.array(img.convert("RGBA"), dtype=np.uint8)
