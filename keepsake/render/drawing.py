"""
Pillow drawing helpers shared by the polaroid and letter renderers.

Canvases are opaque RGB images drawn through ``ImageDraw.Draw(img, "RGBA")``
so semi-transparent inks blend instead of punching holes. Anything that needs
its own alpha (rotated card, thumbnails) is built as a separate layer and
composited.
"""
import logging
import math
from typing import Optional, Sequence, Tuple

import numpy as np
from PIL import Image, ImageDraw, ImageFilter

from keepsake.render.fonts import FontPair, FontLike
from keepsake.render.text_layout import Segment
from keepsake.settings import settings

logger = logging.getLogger(__name__)

RGBA = Tuple[int, int, int, int]
UPSCALE_FACTOR = 4


def hex_to_rgba(value: str, alpha: int = 255) -> RGBA:
    value = value.lstrip("#")
    if len(value) == 3:
        value = "".join(ch * 2 for ch in value)
    if len(value) == 8:
        alpha = int(value[6:8], 16)
        value = value[:6]
    if len(value) != 6:
        raise ValueError(f"Not a hex colour: #{value}")
    return (int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16), alpha)


def rgba(r: int, g: int, b: int, a: float) -> RGBA:
    """CSS-style rgba() with a 0-1 alpha."""
    return (r, g, b, int(round(a * 255)))


def new_draw(img: Image.Image) -> ImageDraw.ImageDraw:
    return ImageDraw.Draw(img, "RGBA")


# --- fills ---

def radial_gradient(
    size: Tuple[int, int],
    center: Tuple[float, float],
    radius: float,
    stops: Sequence[Tuple[float, RGBA]],
    inner_radius: float = 0.0,
) -> Image.Image:
    """RGBA image of a radial gradient; t=0 at inner_radius, t=1 at radius, clamped outside."""
    w, h = size
    ys, xs = np.mgrid[0:h, 0:w].astype(np.float32)
    dist = np.hypot(xs - center[0], ys - center[1])
    span = max(1e-6, radius - inner_radius)
    t = np.clip((dist - inner_radius) / span, 0.0, 1.0)

    offsets = [s[0] for s in stops]
    out = np.empty((h, w, 4), dtype=np.float32)
    for c in range(4):
        out[..., c] = np.interp(t, offsets, [s[1][c] for s in stops])
    return Image.fromarray(np.rint(out).astype(np.uint8), "RGBA")


# --- masks ---

def rounded_mask(size: Tuple[int, int], radius: int) -> Image.Image:
    """Anti-aliased rounded-rectangle mask, drawn oversized then reduced."""
    w, h = size
    big = Image.new("L", (w * UPSCALE_FACTOR, h * UPSCALE_FACTOR), 0)
    ImageDraw.Draw(big).rounded_rectangle(
        (0, 0, big.width - 1, big.height - 1), radius=radius * UPSCALE_FACTOR, fill=255
    )
    return big.resize((w, h), Image.Resampling.LANCZOS)


def circle_mask(diameter: int) -> Image.Image:
    return rounded_mask((diameter, diameter), diameter // 2)


def drop_shadow(mask: Image.Image, color: RGBA, blur: float, pad: int) -> Image.Image:
    """Blurred shadow layer from an alpha mask, padded on every side by pad."""
    padded = Image.new("L", (mask.width + pad * 2, mask.height + pad * 2), 0)
    padded.paste(mask, (pad, pad))
    blurred = padded.filter(ImageFilter.GaussianBlur(radius=max(0.1, blur / 2)))
    alpha = blurred.point(lambda p: min(255, int(p * (color[3] / 255.0))))
    layer = Image.new("RGBA", padded.size, color[:3] + (0,))
    layer.putalpha(alpha)
    return layer


# --- images ---

def cover_fit(image: Image.Image, target_width: int, target_height: int) -> Image.Image:
    """
    Resize/crop to cover the target box while retaining aspect ratio.
    """
    scale = max(target_width / image.width, target_height / image.height)
    new_size = (max(target_width, math.ceil(image.width * scale)), max(target_height, math.ceil(image.height * scale)))
    resized = image.resize(new_size, Image.Resampling.LANCZOS)
    left = (resized.width - target_width) // 2
    top = (resized.height - target_height) // 2
    return resized.crop((left, top, left + target_width, top + target_height))


def paste_masked(canvas: Image.Image, image: Image.Image, xy: Tuple[int, int], mask: Image.Image) -> None:
    """Paste image through mask (combined with image alpha when it has one)."""
    if image.mode == "RGBA":
        mask = Image.fromarray(
            (np.asarray(mask, dtype=np.uint16) * np.asarray(image.getchannel("A"), dtype=np.uint16) // 255).astype(np.uint8),
            "L",
        )
        image = image.convert("RGB")
    canvas.paste(image.convert(canvas.mode) if canvas.mode != image.mode else image, xy, mask)


# --- strokes ---

def dashed_line(
    draw: ImageDraw.ImageDraw,
    start: Tuple[float, float],
    end: Tuple[float, float],
    dash: Tuple[float, float],
    fill: RGBA,
    width: float = 1,
) -> None:
    x0, y0 = start
    x1, y1 = end
    length = math.hypot(x1 - x0, y1 - y0)
    if length <= 0:
        return
    ux, uy = (x1 - x0) / length, (y1 - y0) / length
    on, off = dash
    pos = 0.0
    stroke = max(1, int(round(width)))
    while pos < length:
        seg_end = min(length, pos + on)
        draw.line(
            [(x0 + ux * pos, y0 + uy * pos), (x0 + ux * seg_end, y0 + uy * seg_end)],
            fill=fill,
            width=stroke,
        )
        pos += on + off


# --- text ---

def _text_kwargs(fonts: Optional[FontPair], bold: bool) -> dict:
    if fonts is not None and bold and fonts.synthetic_bold:
        return {"stroke_width": fonts.bold_stroke}
    return {}


def shadow_text(
    canvas: Image.Image,
    xy: Tuple[float, float],
    text: str,
    font: FontLike,
    color: RGBA,
    blur: float,
    offset: Tuple[float, float] = (0, 0),
    anchor: str = "la",
    stroke_width: int = 0,
) -> None:
    """Soft text shadow (canvas shadowBlur analogue), drawn into a cropped mask."""
    if not text or color[3] == 0:
        return
    probe = ImageDraw.Draw(Image.new("L", (1, 1)))
    x, y = xy[0] + offset[0], xy[1] + offset[1]
    left, top, right, bottom = probe.textbbox((x, y), text, font=font, anchor=anchor, stroke_width=stroke_width)
    pad = int(math.ceil(blur * 1.5)) + 2
    box = (int(left) - pad, int(top) - pad, int(math.ceil(right)) + pad, int(math.ceil(bottom)) + pad)
    mask = Image.new("L", (box[2] - box[0], box[3] - box[1]), 0)
    ImageDraw.Draw(mask).text(
        (x - box[0], y - box[1]), text, font=font, fill=255, anchor=anchor, stroke_width=stroke_width, stroke_fill=255
    )
    if blur > 0:
        mask = mask.filter(ImageFilter.GaussianBlur(radius=blur / 2))
    mask = mask.point(lambda p: int(p * color[3] / 255))
    ink = color[:3] if canvas.mode == "RGB" else color[:3] + (255,)
    canvas.paste(ink, box, mask)


def draw_text(
    canvas: Image.Image,
    xy: Tuple[float, float],
    text: str,
    font: FontLike,
    fill: RGBA,
    anchor: str = "la",
    shadow: Optional[Tuple[RGBA, float, Tuple[float, float]]] = None,
    stroke_width: int = 0,
) -> None:
    if shadow is not None:
        color, blur, offset = shadow
        shadow_text(canvas, xy, text, font, color, blur, offset, anchor, stroke_width)
    new_draw(canvas).text(xy, text, font=font, fill=fill, anchor=anchor, stroke_width=stroke_width, stroke_fill=fill)


def draw_segments(
    canvas: Image.Image,
    xy: Tuple[float, float],
    segments: Sequence[Segment],
    fonts: FontPair,
    fill: RGBA,
    align: str = "left",
    shadow: Optional[Tuple[RGBA, float, Tuple[float, float]]] = None,
) -> float:
    """
    Draw a mixed bold/regular run left to right, each piece starting where
    the previous one's measured width ends. Returns the run width.
    """
    total = sum(fonts.measure(seg.text, seg.bold) for seg in segments)
    x, y = xy
    if align == "center":
        x -= total / 2
    for seg in segments:
        draw_text(
            canvas,
            (x, y),
            seg.text,
            fonts.face(seg.bold),
            fill,
            anchor="la",
            shadow=shadow,
            **_text_kwargs(fonts, seg.bold),
        )
        x += fonts.measure(seg.text, seg.bold)
    return total


def save_debug_layer(img: Image.Image, name: str) -> None:
    """Keep intermediates only when debugging."""
    if not settings.DEBUG_ARTIFACTS:
        return
    debug_dir = settings.EXPORT_DIR / "debug"
    try:
        debug_dir.mkdir(parents=True, exist_ok=True)
        img.save(debug_dir / f"{name}.png")
    except OSError:
        logger.warning("[debug-artifacts] failed to save %s", name, exc_info=True)
