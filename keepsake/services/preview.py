"""
Preview downscaling.

Halving steps keep fine text crisp where a single large LANCZOS jump would
alias.
"""
import logging
import math
from typing import Optional

from PIL import Image

logger = logging.getLogger(__name__)

MIN_DPR = 2.0
MAX_DPR = 3.0


def preview_target(image: Image.Image, display_width: float, display_height: Optional[float] = None, device_pixel_ratio: float = 1.0):
    dpr = min(MAX_DPR, max(MIN_DPR, float(device_pixel_ratio or 1.0)))
    if display_height is None:
        display_height = display_width * image.height / image.width
    return max(1, int(round(display_width * dpr))), max(1, int(round(display_height * dpr)))


def downscale_for_preview(
    image: Image.Image,
    display_width: float,
    display_height: Optional[float] = None,
    device_pixel_ratio: float = 1.0,
) -> Image.Image:
    """
    Scale a full-resolution render down for on-screen display at
    display size x device pixel ratio (clamped to 2..3).
    """
    target_w, target_h = preview_target(image, display_width, display_height, device_pixel_ratio)
    current = image
    steps = 0
    while math.floor(current.width / 2) > target_w and math.floor(current.height / 2) > target_h:
        current = current.resize((current.width // 2, current.height // 2), Image.Resampling.LANCZOS)
        steps += 1
    if current.size != (target_w, target_h):
        current = current.resize((target_w, target_h), Image.Resampling.LANCZOS)
    logger.debug("[preview] %sx%s -> %sx%s in %s halving steps", image.width, image.height, target_w, target_h, steps)
    return current
