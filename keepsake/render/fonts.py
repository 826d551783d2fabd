"""
Font loading and readiness.

Every renderer draws with one handwriting face at many sizes. Fonts are
resolved once per size and cached; when the configured face is missing we
fall back to a system face and finally to Pillow's built-in font so a render
never fails on typography alone.
"""
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from PIL import ImageFont

from keepsake.render import defaults
from keepsake.settings import settings

logger = logging.getLogger(__name__)

FontLike = Union[ImageFont.FreeTypeFont, ImageFont.ImageFont]

# Fixed sizes used for headers, footers and song info, plus the auto-fit ranges of both renderers.
_FIXED_SIZES = (15, 16, 18, 20, 22, 24, 28, 30, 32, 34, 38, 40, 52, 68)
ALL_FONT_SIZES: Tuple[int, ...] = tuple(sorted(set(_FIXED_SIZES) | set(range(14, 49))))


@dataclass(frozen=True)
class FontPair:
    """Regular and bold variants of the same face at one pixel size."""
    size: int
    regular: FontLike
    bold: FontLike
    synthetic_bold: bool = False

    @property
    def bold_stroke(self) -> int:
        # Faux-bold thickness when no real bold face is available
        return max(1, round(self.size / 28)) if self.synthetic_bold else 0

    def face(self, bold: bool = False) -> FontLike:
        return self.bold if bold else self.regular

    def measure(self, text: str, bold: bool = False) -> float:
        if not text:
            return 0.0
        width = float(self.face(bold).getlength(text))
        if bold:
            width += 2 * self.bold_stroke
        return width


def _try_truetype(path: Optional[Union[str, Path]], size: int) -> Optional[ImageFont.FreeTypeFont]:
    if not path:
        return None
    try:
        return ImageFont.truetype(str(path), size)
    except OSError:
        return None


def _font_candidates() -> List[Tuple[Optional[Union[str, Path]], Optional[Union[str, Path]]]]:
    """(regular, bold) pairs in preference order; bold always matches its regular face."""
    return [
        (settings.FONT_PATH, settings.BOLD_FONT_PATH),
        (defaults.FONT_PATH, defaults.BOLD_FONT_PATH),
        (defaults.SYSTEM_FALLBACK_FONT, defaults.SYSTEM_FALLBACK_BOLD_FONT),
    ]


@lru_cache(maxsize=128)
def load_fonts(size: int) -> FontPair:
    """Resolve the regular/bold pair for a pixel size."""
    size = max(1, int(size))
    for regular_path, bold_path in _font_candidates():
        regular = _try_truetype(regular_path, size)
        if regular is None:
            continue
        bold = _try_truetype(bold_path, size)
        if bold is None:
            return FontPair(size=size, regular=regular, bold=regular, synthetic_bold=True)
        return FontPair(size=size, regular=regular, bold=bold)

    logger.warning("[fonts] no TrueType face found for size %s; using Pillow default", size)
    fallback = ImageFont.load_default(size=size)
    return FontPair(size=size, regular=fallback, bold=fallback, synthetic_bold=True)


def ensure_fonts_ready(sizes: Iterable[int] = ALL_FONT_SIZES) -> bool:
    """
    Load every size the renderers draw with before the first paint.

    Best-effort: a failure is logged and the caller proceeds anyway.
    Returns True when all sizes loaded.
    """
    ok = True
    for size in sizes:
        try:
            load_fonts(size)
        except Exception:
            logger.warning("[fonts] readiness check failed for size %s", size, exc_info=True)
            ok = False
    return ok
