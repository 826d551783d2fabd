"""
Letter renderer: handwritten message over an aesthetic background.

Always 1080x1350 so the line-spacing bounds stay the same for every export
format.
"""
import logging
from typing import Optional

from PIL import Image

from keepsake.domain.models import (
    DEFAULT_SENDER,
    DEFAULT_SIGN_OFF,
    ExportFormat,
    FORMAT_SIZES,
    LetterRequest,
    RenderedBitmap,
)
from keepsake.render import defaults
from keepsake.render.drawing import (
    cover_fit,
    dashed_line,
    draw_segments,
    draw_text,
    hex_to_rgba,
    new_draw,
    paste_masked,
    rgba,
    rounded_mask,
)
from keepsake.render.fonts import load_fonts
from keepsake.render.text_layout import FitTiers, TextFit, fit_text
from keepsake.services.assets import fetch_image, is_hex_color

logger = logging.getLogger(__name__)

LETTER_SIZE = FORMAT_SIZES[ExportFormat.IG]
PADDING_X = 120
TOP_PADDING = 220
BOTTOM_PADDING = 300
GREETING_GAP = 90
ART_SIZE = 100
ART_RADIUS = 12

FALLBACK_BG = hex_to_rgba("#f9f4ea")
WASH = rgba(255, 255, 255, 0.4)
INK = rgba(50, 40, 35, 0.92)
INK_SHADOW = (rgba(255, 255, 255, 0.15), 2, (0.5, 0.5))
FOOTER_INK = hex_to_rgba("#3a2b22")
FOOTER_INK_SOFT = rgba(58, 43, 34, 0.7)
FOOTER_SHADOW = (rgba(255, 255, 255, 0.4), 4, (0, 0))
WATERMARK_INK = rgba(255, 255, 255, 0.8)
WATERMARK_SHADOW = (rgba(0, 0, 0, 0.3), 4, (0, 0))

BODY_TIERS = FitTiers(tiers=((300, 32), (150, 40)), default=48, floor=20, step=2)
# blank line, sign-off, sender
SIGN_OFF_LINES = 3


def draw_background(canvas: Image.Image, background: str) -> bool:
    """Fill the canvas from a #hex colour or a cover-fit image. False when the image could not be loaded."""
    w, h = canvas.size
    if is_hex_color(background):
        canvas.paste(hex_to_rgba(background.strip())[:3], (0, 0, w, h))
        return True

    img = fetch_image(background)
    if img is None:
        logger.warning("[letter] background unavailable, using cream fill")
        canvas.paste(FALLBACK_BG[:3], (0, 0, w, h))
        return False
    canvas.paste(cover_fit(img.convert("RGB"), w, h))
    return True


def draw_body(canvas: Image.Image, request: LetterRequest) -> TextFit:
    w, h = canvas.size
    content_w = w - PADDING_X * 2
    cur_y = TOP_PADDING

    if request.receiver_name:
        draw_text(canvas, (PADDING_X, cur_y), f"Dear {request.receiver_name},", load_fonts(38).regular, INK, shadow=INK_SHADOW)
        cur_y += GREETING_GAP

    available = h - BOTTOM_PADDING - cur_y
    fit = fit_text(
        request.message or "",
        content_w,
        available,
        BODY_TIERS,
        lambda size: load_fonts(size).measure,
        bold_aware=True,
        reserved_lines=SIGN_OFF_LINES,
    )

    fonts = load_fonts(fit.font_size)
    y = float(cur_y)
    for line in fit.lines:
        draw_segments(canvas, (PADDING_X, y), line, fonts, INK, shadow=INK_SHADOW)
        y += fit.line_height

    y += fit.line_height
    sign_off = request.sign_off or DEFAULT_SIGN_OFF
    draw_text(canvas, (PADDING_X, y), sign_off, fonts.bold, INK, shadow=INK_SHADOW, stroke_width=fonts.bold_stroke)
    y += fit.line_height * 0.85

    sender = request.sender_name or DEFAULT_SENDER
    draw_text(canvas, (PADDING_X, y), sender, load_fonts(round(fit.font_size * 0.9)).regular, INK, shadow=INK_SHADOW)
    return fit


def draw_footer(canvas: Image.Image, request: LetterRequest) -> bool:
    """Song credit under a dashed rule. Returns True when album art was drawn."""
    w, h = canvas.size
    footer_y = h - BOTTOM_PADDING + 100
    dashed_line(
        new_draw(canvas),
        (PADDING_X, footer_y - 50),
        (w - PADDING_X, footer_y - 50),
        dash=(5, 8),
        fill=rgba(58, 43, 34, 0.25),
        width=1.5,
    )

    art = fetch_image(request.album_art_url) if request.album_art_url else None
    if art is not None:
        paste_masked(canvas, cover_fit(art, ART_SIZE, ART_SIZE), (PADDING_X, footer_y), rounded_mask((ART_SIZE, ART_SIZE), ART_RADIUS))
        x = PADDING_X + ART_SIZE + 25
        y = footer_y + 25
        draw_text(canvas, (x, y), "Sent with", load_fonts(20).regular, FOOTER_INK, anchor="lm", shadow=FOOTER_SHADOW)
        y += 30
        track = load_fonts(28)
        draw_text(canvas, (x, y), request.track_name, track.bold, FOOTER_INK, anchor="lm", shadow=FOOTER_SHADOW, stroke_width=track.bold_stroke)
        y += 30
        draw_text(canvas, (x, y), f"by {request.artist_name}", load_fonts(18).regular, FOOTER_INK_SOFT, anchor="lm", shadow=FOOTER_SHADOW)
        return True

    # No art (or it failed to load): centred credit
    cx = w / 2
    y = footer_y + 25
    draw_text(canvas, (cx, y), "Sent with", load_fonts(24).regular, FOOTER_INK, anchor="mm", shadow=FOOTER_SHADOW)
    y += 36
    track = load_fonts(32)
    draw_text(canvas, (cx, y), request.track_name, track.bold, FOOTER_INK, anchor="mm", shadow=FOOTER_SHADOW, stroke_width=track.bold_stroke)
    y += 36
    draw_text(canvas, (cx, y), f"by {request.artist_name}", load_fonts(20).regular, FOOTER_INK_SOFT, anchor="mm", shadow=FOOTER_SHADOW)
    return False


def draw_watermark(canvas: Image.Image) -> None:
    w, h = canvas.size
    draw_text(canvas, (w / 2, h - 24), defaults.LETTER_WATERMARK, load_fonts(18).regular, WATERMARK_INK, anchor="ms", shadow=WATERMARK_SHADOW)


def render_letter(request: LetterRequest) -> Optional[RenderedBitmap]:
    """
    Render the letter keepsake.

    The requested format is ignored: letters are always IG sized and
    reported as IG. Background and album art
    failures degrade to fallbacks; anything else is logged and returns None.
    """
    try:
        canvas = Image.new("RGB", LETTER_SIZE, FALLBACK_BG[:3])
        bg_loaded = draw_background(canvas, request.background)
        new_draw(canvas).rectangle((0, 0, canvas.width, canvas.height), fill=WASH)

        fit = draw_body(canvas, request)
        art_loaded = draw_footer(canvas, request)
        draw_watermark(canvas)

        logger.info(
            "[letter] rendered font=%s/%s lines=%s clamped=%s background=%s",
            fit.font_size,
            fit.start_size,
            len(fit.lines),
            fit.clamped,
            "loaded" if bg_loaded else "fallback",
        )
        return RenderedBitmap(
            image=canvas,
            kind="letter",
            format=ExportFormat.IG,
            message_fit=fit,
            album_art_loaded=art_loaded,
            background_loaded=bg_loaded,
        )
    except Exception:
        logger.exception("[letter] render failed")
        return None
