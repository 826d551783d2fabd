"""
Polaroid card renderer.

IG (1080x1350) and TikTok (1080x1920) exports: smooth warm cream background,
a slightly rotated rounded card holding the square photo, the auto-fit
message, and a song strip. Format differences live in LAYOUTS; the drawing
steps are shared.
"""
import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

from PIL import Image

from keepsake.domain.models import CapsuleRecord, ExportFormat, FORMAT_SIZES, PolaroidRequest, RenderedBitmap
from keepsake.render import defaults
from keepsake.render.drawing import (
    circle_mask,
    cover_fit,
    dashed_line,
    draw_text,
    drop_shadow,
    hex_to_rgba,
    new_draw,
    paste_masked,
    radial_gradient,
    rgba,
    rounded_mask,
    save_debug_layer,
)
from keepsake.render.fonts import load_fonts
from keepsake.render.grain import draw_grain
from keepsake.render.text_layout import FitTiers, TextFit, fit_text, truncate_text
from keepsake.services.assets import fetch_image
from keepsake.services.image_compose import make_placeholder_photo

logger = logging.getLogger(__name__)

# Card geometry (card-local pixels)
CARD_W = 800
CARD_H = 1080
CARD_RADIUS = 14
CARD_ROT = 0.007  # radians, clockwise
SIDE_PAD = 38
PHOTO_SIZE = CARD_W - SIDE_PAD * 2  # 724
BOTTOM_H = CARD_H - SIDE_PAD - PHOTO_SIZE  # 318
SONG_H = 148
MSG_H = BOTTOM_H - SONG_H

CARD_FILL = hex_to_rgba("#fefcf9")
CARD_SHADOW = rgba(80, 55, 30, 0.22)
CARD_SHADOW_BLUR = 52
CARD_SHADOW_OFFSET_Y = 16

INK_DARK = hex_to_rgba("#4a3426")
INK_NEAR_BLACK = hex_to_rgba("#1a1410")
INK_MESSAGE = hex_to_rgba("#2e2318")
INK_TRACK = hex_to_rgba("#3e3028")
INK_ARTIST = rgba(80, 62, 44, 0.50)
NOTE_INK = hex_to_rgba("#6b4c35")
PLACEHOLDER_ART = hex_to_rgba("#d4c4b0")
WATERMARK_INK = rgba(120, 90, 60, 0.32)

BACKGROUND_STOPS = (
    (0.0, hex_to_rgba("#f9f4ea")),
    (0.7, hex_to_rgba("#f4ece0")),
    (1.0, hex_to_rgba("#ede4d4")),
)

MESSAGE_TIERS = FitTiers(tiers=((200, 26), (100, 32)), default=38, floor=14, step=1)
ART_RADIUS = 24
TRACK_BUDGET_PX = 360
ARTIST_BUDGET_PX = 300
HEADER_SIDE_MARGIN = 60


@dataclass(frozen=True)
class HeaderStyle:
    font_size: int
    two_line: bool
    shadow_alpha: float
    shadow_blur: float
    shadow_offset_y: float
    notes: bool
    underline: bool


@dataclass(frozen=True)
class PolaroidLayout:
    size: Tuple[int, int]
    card_y: int
    header: HeaderStyle
    footer: bool


LAYOUTS = {
    ExportFormat.IG: PolaroidLayout(
        size=FORMAT_SIZES[ExportFormat.IG],
        card_y=(FORMAT_SIZES[ExportFormat.IG][1] - CARD_H) // 2 - 20,
        header=HeaderStyle(28, True, 0.10, 8, 2, notes=False, underline=False),
        footer=False,
    ),
    # Extra room above the card for the decorated header
    ExportFormat.TIKTOK: PolaroidLayout(
        size=FORMAT_SIZES[ExportFormat.TIKTOK],
        card_y=310,
        header=HeaderStyle(52, False, 0.12, 12, 3, notes=True, underline=True),
        footer=True,
    ),
}

# (glyph, dx from centre, y as fraction of header height, alpha)
FLOATING_NOTES = (
    ("♪", -280, 0.38, 0.15),
    ("♫", 265, 0.50, 0.13),
    ("♩", -175, 0.70, 0.10),
    ("♬", 185, 0.24, 0.12),
)


def _header_label(receiver_name: Optional[str]) -> Tuple[str, str]:
    if receiver_name:
        return f"Hey {receiver_name},", f"this one's for you {defaults.SPARKLE}"
    return "hey,", f"this one's for you {defaults.SPARKLE}"


def _fit_size(text: str, start: int, max_width: float, floor: int = 16) -> int:
    size = start
    while size > floor and load_fonts(size).measure(text) > max_width:
        size -= 2
    return size


def draw_background(canvas: Image.Image) -> None:
    w, h = canvas.size
    gradient = radial_gradient((w, h), (w / 2, h * 0.45), max(w, h) * 0.85, BACKGROUND_STOPS)
    canvas.paste(gradient.convert("RGB"))
    # Very faint paper grain
    draw_grain(canvas, 0, 0, w, h, amount=0.012, density=0.14)


def draw_header(canvas: Image.Image, layout: PolaroidLayout, receiver_name: Optional[str]) -> None:
    w = canvas.width
    cx = w / 2
    top_h = layout.card_y
    style = layout.header
    first, second = _header_label(receiver_name)
    shadow = (rgba(74, 52, 38, style.shadow_alpha), style.shadow_blur, (0, style.shadow_offset_y))
    max_w = w - HEADER_SIDE_MARGIN * 2

    if style.notes:
        notes_font = load_fonts(40).regular
        for glyph, dx, fy, alpha in FLOATING_NOTES:
            draw_text(canvas, (cx + dx, top_h * fy), glyph, notes_font, NOTE_INK[:3] + (int(alpha * 255),), anchor="mm")

    if style.two_line:
        size = _fit_size(first, style.font_size, max_w)
        font = load_fonts(size).regular
        draw_text(canvas, (cx, top_h * 0.36), first, font, INK_DARK, anchor="mm", shadow=shadow)
        draw_text(canvas, (cx, top_h * 0.72), second, font, INK_DARK, anchor="mm", shadow=shadow)
    else:
        label = f"{first} {second}"
        size = _fit_size(label, style.font_size, max_w)
        draw_text(canvas, (cx, top_h * 0.52), label, load_fonts(size).regular, INK_DARK, anchor="mm", shadow=shadow)

    if style.underline:
        dashed_line(
            new_draw(canvas),
            (cx - 210, top_h * 0.68),
            (cx + 210, top_h * 0.68),
            dash=(5, 8),
            fill=rgba(120, 90, 65, 0.28),
            width=1.4,
        )


def draw_footer(canvas: Image.Image, start_y: int) -> None:
    w, h = canvas.size
    cx = w / 2
    mid_y = start_y + (h - start_y) * 0.42

    draw_text(
        canvas,
        (cx, mid_y),
        defaults.WORDMARK,
        load_fonts(68).regular,
        INK_DARK,
        anchor="mm",
        shadow=(rgba(74, 52, 38, 0.14), 16, (0, 4)),
    )
    draw_text(canvas, (cx, mid_y + 56), defaults.POLAROID_TAGLINE, load_fonts(22).regular, rgba(100, 75, 55, 0.50), anchor="mm")

    draw = new_draw(canvas)
    for off in (-8, 8):
        y = mid_y + 96 + off
        draw.line([(cx - 120, y), (cx + 120, y)], fill=rgba(120, 90, 65, 0.20), width=1)


def draw_watermark(canvas: Image.Image) -> None:
    w, h = canvas.size
    draw_text(canvas, (w - 32, h - 24), defaults.POLAROID_WATERMARK, load_fonts(16).regular, WATERMARK_INK, anchor="rs")


def message_box(receiver_name: Optional[str]) -> Tuple[float, float]:
    """Card-local (top, bottom) of the message block; the receiver line sits above it when present."""
    bottom_y = SIDE_PAD + PHOTO_SIZE
    top = bottom_y + 22 + (52 if receiver_name else 0)
    return top, bottom_y + MSG_H


def fit_message(message: str, receiver_name: Optional[str]) -> TextFit:
    top, bottom = message_box(receiver_name)
    max_w = CARD_W - SIDE_PAD * 2 - 8
    return fit_text(message, max_w, bottom - top - 8, MESSAGE_TIERS, lambda size: load_fonts(size).measure)


def draw_message(card: Image.Image, message: str, receiver_name: Optional[str]) -> TextFit:
    """Auto-fit the message into its block, centred horizontally and vertically."""
    cx = CARD_W / 2
    top, _ = message_box(receiver_name)
    fit = fit_message(message, receiver_name)

    font = load_fonts(fit.font_size).regular
    y = top + max(0.0, (fit.available_height - fit.total_height) / 2)
    for line in fit.lines:
        if line:
            draw_text(card, (cx, y), line, font, INK_MESSAGE, anchor="ma")
        y += fit.line_height
    return fit


def draw_song_section(card: Image.Image, y: float, track_name: str, artist_name: str, album_art_url: Optional[str]) -> bool:
    """Divider, circular album art, track and artist. Returns True when the art loaded."""
    cx = CARD_W / 2
    draw = new_draw(card)
    cur_y = y + 6

    dashed_line(draw, (cx - 90, cur_y), (cx + 90, cur_y), dash=(4, 7), fill=rgba(160, 135, 110, 0.35), width=1)
    cur_y += 18

    diameter = ART_RADIUS * 2
    art_xy = (int(cx - ART_RADIUS), int(cur_y))
    thumb = fetch_image(album_art_url) if album_art_url else None
    if thumb is not None:
        paste_masked(card, cover_fit(thumb, diameter, diameter), art_xy, circle_mask(diameter))
    else:
        card.paste(PLACEHOLDER_ART[:3], art_xy + (art_xy[0] + diameter, art_xy[1] + diameter), circle_mask(diameter))

    ring = ART_RADIUS + 2
    draw.ellipse(
        (cx - ring, cur_y + ART_RADIUS - ring, cx + ring, cur_y + ART_RADIUS + ring),
        outline=rgba(160, 135, 110, 0.40),
        width=2,
    )
    cur_y += diameter + 12

    track_fonts = load_fonts(20)
    name = truncate_text(track_name, TRACK_BUDGET_PX, track_fonts.measure)
    draw_text(card, (cx, cur_y), name, track_fonts.regular, INK_TRACK, anchor="ma")
    cur_y += 28

    artist_fonts = load_fonts(15)
    artist = truncate_text(artist_name, ARTIST_BUDGET_PX, artist_fonts.measure)
    draw_text(card, (cx, cur_y), artist, artist_fonts.regular, INK_ARTIST, anchor="ma")
    return thumb is not None


def build_card(request: PolaroidRequest) -> Tuple[Image.Image, TextFit, bool]:
    """Card face in card-local coordinates (opaque RGB, unrotated)."""
    card = Image.new("RGB", (CARD_W, CARD_H), CARD_FILL[:3])

    photo = request.processed_image if request.processed_image is not None else make_placeholder_photo(PHOTO_SIZE)
    photo = photo.convert("RGB")
    if photo.size != (PHOTO_SIZE, PHOTO_SIZE):
        photo = cover_fit(photo, PHOTO_SIZE, PHOTO_SIZE)
    card.paste(photo, (SIDE_PAD, SIDE_PAD))
    draw_grain(card, SIDE_PAD, SIDE_PAD, PHOTO_SIZE, PHOTO_SIZE, amount=0.02, density=0.20)

    bottom_y = SIDE_PAD + PHOTO_SIZE
    if request.receiver_name:
        draw_text(card, (CARD_W / 2, bottom_y + 22), f"Hey, {request.receiver_name}", load_fonts(34).regular, INK_NEAR_BLACK, anchor="ma")

    fit = draw_message(card, request.message or "", request.receiver_name)
    art_loaded = draw_song_section(
        card, bottom_y + MSG_H, request.track_name, request.artist_name, request.album_art_url
    )
    return card, fit, art_loaded


def composite_card(canvas: Image.Image, card: Image.Image, card_x: int, card_y: int) -> None:
    """Rounded, shadowed and rotated card pasted with its centre at the unrotated card centre."""
    mask = rounded_mask(card.size, CARD_RADIUS)
    pad = CARD_SHADOW_BLUR * 2 + CARD_SHADOW_OFFSET_Y
    shadow = drop_shadow(mask, CARD_SHADOW, CARD_SHADOW_BLUR, pad)

    layer = Image.new("RGBA", shadow.size, (0, 0, 0, 0))
    layer.alpha_composite(shadow, dest=(0, CARD_SHADOW_OFFSET_Y))
    face = card.convert("RGBA")
    face.putalpha(mask)
    layer.alpha_composite(face, dest=(pad, pad))

    degrees = -math.degrees(CARD_ROT)
    rotated = layer.rotate(degrees, resample=Image.Resampling.BICUBIC, expand=True)
    cx = card_x + CARD_W / 2
    cy = card_y + CARD_H / 2
    dest = (int(round(cx - rotated.width / 2)), int(round(cy - rotated.height / 2)))
    save_debug_layer(rotated, "polaroid_card_layer")

    base = canvas.convert("RGBA")
    overlay = Image.new("RGBA", base.size, (0, 0, 0, 0))
    overlay.paste(rotated, dest)
    canvas.paste(Image.alpha_composite(base, overlay).convert(canvas.mode))


def render_polaroid(request: PolaroidRequest) -> Optional[RenderedBitmap]:
    """
    Render the polaroid keepsake at full export resolution.

    Overwrites a fresh canvas end to end. Album art failures fall back to a
    placeholder circle; any other failure is logged and returns None.
    """
    try:
        fmt = ExportFormat(request.format)
        layout = LAYOUTS[fmt]
        w, h = layout.size
        canvas = Image.new("RGB", (w, h))

        draw_background(canvas)

        card_x = (w - CARD_W) // 2
        draw_header(canvas, layout, request.receiver_name)

        card, fit, art_loaded = build_card(request)
        composite_card(canvas, card, card_x, layout.card_y)

        if layout.footer:
            draw_footer(canvas, layout.card_y + CARD_H + 18)

        draw_watermark(canvas)
        if fit.clamped:
            logger.warning(
                "[polaroid] message clamped at %spx: %s of %s chars kept",
                fit.font_size,
                sum(len(line) for line in fit.lines),
                len(request.message or ""),
            )
        logger.info(
            "[polaroid] rendered format=%s size=%sx%s font=%s lines=%s art=%s",
            fmt.value,
            w,
            h,
            fit.font_size,
            len(fit.lines),
            "loaded" if art_loaded else "placeholder",
        )
        return RenderedBitmap(
            image=canvas,
            kind="polaroid",
            format=fmt,
            message_fit=fit,
            album_art_loaded=art_loaded,
        )
    except Exception:
        logger.exception("[polaroid] render failed")
        return None



def choose_polaroid_message(capsule: CapsuleRecord, prefer_song_meaning: bool = False) -> Optional[str]:
    """
    Pick the text printed on the card.

    The preferred source wins when it is within the character limit and fits
    the message block without clamping; otherwise the other one is used.
    Returns None when neither fits, in which case the capsule has to be
    exported as a letter.
    """
    meaning = (capsule.song_meaning or "").strip()
    message = (capsule.message or "").strip()
    order = [meaning, message] if prefer_song_meaning else [message, meaning]
    for candidate in order:
        if not candidate or len(candidate) > defaults.POLAROID_MESSAGE_LIMIT:
            continue
        if fit_message(candidate, capsule.receiver_name).clamped:
            continue
        return candidate
    if not meaning and not message:
        return ""
    logger.info("[polaroid] no message fits the card (limit=%s chars)", defaults.POLAROID_MESSAGE_LIMIT)
    return None
