"""
Film-grain / paper-noise speckle.

Each pixel of the region becomes, with probability ``density``, a white or
black speck (even odds) whose alpha is drawn uniformly from [10, 70) of 255.
The speck layer is composited at global opacity ``amount`` onto the region
only; the rest of the target is never touched.
"""
import logging
from typing import Optional

import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)

SPECK_ALPHA_MIN = 10
SPECK_ALPHA_MAX = 70
# Rows per band when the single-buffer path cannot allocate
FALLBACK_BAND_ROWS = 64


def _speck_buffer(rng: np.random.Generator, width: int, height: int, density: float, amount: float) -> np.ndarray:
    """(h, w, 4) uint8 speck pixels with alpha already scaled by amount."""
    hit = rng.random((height, width)) < density
    white = rng.random((height, width)) > 0.5
    alpha = np.floor(rng.random((height, width)) * (SPECK_ALPHA_MAX - SPECK_ALPHA_MIN) + SPECK_ALPHA_MIN)

    buf = np.zeros((height, width, 4), dtype=np.uint8)
    value = np.where(white, 255, 0).astype(np.uint8)
    buf[..., 0] = value
    buf[..., 1] = value
    buf[..., 2] = value
    buf[..., 3] = np.where(hit, np.rint(alpha * amount), 0).astype(np.uint8)
    return buf


def build_grain_layer(width: int, height: int, density: float, amount: float, rng: np.random.Generator) -> Image.Image:
    """Whole region in one buffer."""
    return Image.fromarray(_speck_buffer(rng, width, height, density, amount), "RGBA")


def build_grain_layer_banded(width: int, height: int, density: float, amount: float, rng: np.random.Generator) -> Image.Image:
    """Same distribution as build_grain_layer, generated in horizontal bands onto a Pillow layer."""
    layer = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    for top in range(0, height, FALLBACK_BAND_ROWS):
        rows = min(FALLBACK_BAND_ROWS, height - top)
        band = Image.fromarray(_speck_buffer(rng, width, rows, density, amount), "RGBA")
        layer.paste(band, (0, top))
    return layer


def draw_grain(
    target: Image.Image,
    x: int,
    y: int,
    width: int,
    height: int,
    amount: float = 0.04,
    density: float = 0.35,
    rng: Optional[np.random.Generator] = None,
) -> None:
    """
    Draw subtle speckle grain over a rectangular region of target, in place.

    Args:
        target: Image to mutate (RGB or RGBA)
        x, y: Top-left of the region
        width, height: Region size; clipped to the target bounds
        amount: Global opacity of the grain layer (0-1)
        density: Fraction of pixels that receive a speck (0-1)
        rng: Optional numpy Generator for reproducible output
    """
    left, top = max(0, int(x)), max(0, int(y))
    right = min(target.width, int(x) + int(width))
    bottom = min(target.height, int(y) + int(height))
    w, h = right - left, bottom - top
    if w <= 0 or h <= 0 or amount <= 0 or density <= 0:
        return

    rng = rng if rng is not None else np.random.default_rng()
    amount = min(1.0, float(amount))
    density = min(1.0, float(density))

    try:
        layer = build_grain_layer(w, h, density, amount, rng)
    except MemoryError:
        logger.warning("[grain] %sx%s buffer too large; generating in bands", w, h)
        layer = build_grain_layer_banded(w, h, density, amount, rng)

    box = (left, top, right, bottom)
    region = target.crop(box).convert("RGBA")
    region = Image.alpha_composite(region, layer)
    target.paste(region.convert(target.mode), box)
