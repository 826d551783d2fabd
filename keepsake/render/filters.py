"""
Instax / polaroid tone filter.

Bright, lifted shadows with a neutral-cool push, then a corner vignette.
Pure over (pixels, config): the same input and config always give the same
output.
"""
import numpy as np
from PIL import Image

from keepsake.domain.models import DEFAULT_FILTER_CONFIG, FilterConfig

MID_GREY = 128.0
VIGNETTE_RADIUS_RATIO = 0.78
VIGNETTE_INNER_RATIO = 0.3
LUMA = np.array([0.299, 0.587, 0.114], dtype=np.float32)


def filter_pixels(rgb: np.ndarray, config: FilterConfig = DEFAULT_FILTER_CONFIG) -> np.ndarray:
    """
    Tone-map an (h, w, 3) array. Order matters: lift, contrast, desaturate,
    tint, clamp. Returns float32 in 0..255.
    """
    px = rgb.astype(np.float32)

    lift = float(config.shadow_lift)
    px = lift + px * ((255.0 - lift) / 255.0)

    px = MID_GREY + (px - MID_GREY) * float(config.contrast_factor)

    lum = (px @ LUMA)[..., None]
    px = px + (lum - px) * float(config.desaturation)

    tint = config.tint
    target = np.array([tint.r, tint.g, tint.b], dtype=np.float32)
    px = px + (target - px) * float(tint.strength)

    return np.clip(px, 0.0, 255.0)


def vignette_alpha(width: int, height: int, strength: float) -> np.ndarray:
    """(h, w) darkening alpha: 0 inside 30% of the radius, strength at the radius and beyond."""
    if strength <= 0:
        return np.zeros((height, width), dtype=np.float32)
    radius = max(width, height) * VIGNETTE_RADIUS_RATIO
    inner = radius * VIGNETTE_INNER_RATIO
    ys, xs = np.mgrid[0:height, 0:width].astype(np.float32)
    dist = np.hypot(xs + 0.5 - width / 2, ys + 0.5 - height / 2)
    t = np.clip((dist - inner) / (radius - inner), 0.0, 1.0)
    return t * float(strength)


def apply_vintage_filter(image: Image.Image, config: FilterConfig = DEFAULT_FILTER_CONFIG) -> Image.Image:
    """
    Apply the tone filter and vignette to image in place (alpha untouched).
    Returns the same image for chaining.
    """
    if image.mode not in ("RGB", "RGBA"):
        raise ValueError(f"apply_vintage_filter expects RGB/RGBA, got {image.mode}")
    arr = np.asarray(image.convert("RGB"))
    px = filter_pixels(arr, config)

    alpha = vignette_alpha(image.width, image.height, config.vignette_strength)
    # black source-over at alpha: darken only
    px = px * (1.0 - alpha[..., None])

    out = Image.fromarray(np.rint(px).astype(np.uint8), "RGB")
    if image.mode == "RGBA":
        out.putalpha(image.getchannel("A"))
    image.paste(out)
    return image
