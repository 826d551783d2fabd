"""
Crop pipeline: cut the user's crop out of the uploaded photo and produce the
square bitmap the polaroid card draws.

CropProcessor debounces interactive crop changes. Every submit gets a new
generation number and only the latest generation may publish its result, so
a slow job never overwrites a newer one.
"""
import logging
import threading
from typing import Callable, Optional

from PIL import Image, ImageDraw

from keepsake.domain.models import CropRegion, FilterConfig
from keepsake.render.filters import apply_vintage_filter

logger = logging.getLogger(__name__)

OUTPUT_SIZE = 756
PLACEHOLDER_FILL = (216, 207, 196)
PLACEHOLDER_STROKE = (255, 255, 255, 128)
# area of the square not covered by the source when a crop runs past its edge
CLIP_FILL = (255, 255, 255)


def compose_crop(
    source: Image.Image, crop: CropRegion, filter_config: Optional[FilterConfig] = None
) -> Optional[Image.Image]:
    """
    Draw the crop region scaled onto an OUTPUT_SIZE square.

    The crop-to-square scale is kept even when the region runs past the
    source edge: only the in-bounds part is drawn, at its scaled offset, and
    the rest stays CLIP_FILL. Returns None for an empty crop.
    """
    if source is None or not crop.is_valid:
        return None
    left = max(0.0, crop.x)
    top = max(0.0, crop.y)
    right = min(float(source.width), crop.x + crop.width)
    bottom = min(float(source.height), crop.y + crop.height)
    if right - left < 1 or bottom - top < 1:
        logger.warning("[compose] crop %s falls outside %sx%s", crop, source.width, source.height)
        return None

    sx = OUTPUT_SIZE / crop.width
    sy = OUTPUT_SIZE / crop.height
    dest = (
        int(round((left - crop.x) * sx)),
        int(round((top - crop.y) * sy)),
        int(round((right - crop.x) * sx)),
        int(round((bottom - crop.y) * sy)),
    )
    size = (max(1, dest[2] - dest[0]), max(1, dest[3] - dest[1]))
    try:
        part = source.convert("RGB").resize(size, Image.Resampling.LANCZOS, box=(left, top, right, bottom))
    except (OSError, ValueError) as exc:
        logger.warning("[compose] crop failed: %s", exc)
        return None

    if size == (OUTPUT_SIZE, OUTPUT_SIZE):
        out = part
    else:
        out = Image.new("RGB", (OUTPUT_SIZE, OUTPUT_SIZE), CLIP_FILL)
        out.paste(part, dest[:2])

    if filter_config is not None:
        apply_vintage_filter(out, filter_config)
    return out


def make_placeholder_photo(size: int = 724) -> Image.Image:
    """Muted stand-in with a small camera glyph, shown until a photo is chosen."""
    img = Image.new("RGB", (size, size), PLACEHOLDER_FILL)
    draw = ImageDraw.Draw(img, "RGBA")
    cx, cy = size / 2, size / 2
    draw.rectangle((cx - 26, cy - 18, cx + 26, cy + 18), outline=PLACEHOLDER_STROKE, width=2)
    draw.ellipse((cx - 11, cy - 11, cx + 11, cy + 11), outline=PLACEHOLDER_STROKE, width=2)
    return img


class CropProcessor:
    """
    Debounced, generation-checked crop worker.

    on_result is called with (image, generation) from the worker thread
    whenever a result is published.
    """

    def __init__(
        self,
        source: Image.Image,
        on_result: Optional[Callable[[Image.Image, int], None]] = None,
        debounce: float = 0.18,
        filter_config: Optional[FilterConfig] = None,
    ):
        self.source = source
        self.on_result = on_result
        self.debounce = debounce
        self.filter_config = filter_config
        self.generation = 0
        self._lock = threading.Lock()
        self._publish_lock = threading.RLock()
        self._timer: Optional[threading.Timer] = None
        self._pending: Optional[CropRegion] = None
        self._current: Optional[Image.Image] = None
        self._current_generation = 0

    @property
    def current(self) -> Optional[Image.Image]:
        """Latest published square; replaced wholesale, never mutated."""
        with self._lock:
            return self._current

    @property
    def current_generation(self) -> int:
        with self._lock:
            return self._current_generation

    def submit(self, crop: CropRegion) -> int:
        """Queue crop, restarting the debounce window. Returns its generation."""
        with self._lock:
            self.generation += 1
            generation = self.generation
            self._pending = crop
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.debounce, self._run, args=(crop, generation))
            self._timer.daemon = True
            self._timer.start()
        return generation

    def flush(self) -> Optional[Image.Image]:
        """Process the pending crop now instead of waiting for the timer."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            crop, generation = self._pending, self.generation
        if crop is None:
            return self.current
        self._run(crop, generation)
        return self.current

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._pending = None
            # invalidate anything already in flight
            self.generation += 1

    def _run(self, crop: CropRegion, generation: int) -> None:
        with self._lock:
            if generation != self.generation:
                return
        try:
            result = compose_crop(self.source, crop, self.filter_config)
        except Exception:
            logger.exception("[compose] crop job %s failed", generation)
            return
        if result is None:
            return
        # publish and callback together, so callbacks arrive in generation order
        with self._publish_lock:
            with self._lock:
                if generation != self.generation:
                    logger.debug("[compose] dropping stale generation %s (latest %s)", generation, self.generation)
                    return
                self._current = result
                self._current_generation = generation
                if self._pending is crop:
                    self._pending = None
            if self.on_result is not None:
                self.on_result(result, generation)
