"""
PNG export: debounce, font readiness, render, atomic write.
"""
import logging
import os
import re
import tempfile
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Union

from keepsake.domain.models import LetterRequest, RenderedBitmap, RenderRequest
from keepsake.render.fonts import ensure_fonts_ready
from keepsake.render.letter import render_letter
from keepsake.render.polaroid import render_polaroid
from keepsake.settings import settings

logger = logging.getLogger(__name__)

EXPORT_DEBOUNCE_SECONDS = 0.7
TEMP_CLEANUP_DELAY = 0.1
_UNSAFE = re.compile(r"[^a-z0-9]", re.IGNORECASE)


def sanitize_name(name: str) -> str:
    return _UNSAFE.sub("_", name).lower()


def build_export_filename(request: RenderRequest, now: Optional[datetime] = None) -> str:
    """Download name for a render: receiver name when present, else a millisecond timestamp."""
    receiver = (request.receiver_name or "").strip()
    if receiver:
        suffix = sanitize_name(receiver)
    else:
        now = now or datetime.now()
        suffix = str(int(now.timestamp() * 1000))
    prefix = "slow-jam-letter" if isinstance(request, LetterRequest) else "slowjam-card"
    return f"{prefix}-{suffix}.png"


def render_request(request: RenderRequest) -> Optional[RenderedBitmap]:
    if isinstance(request, LetterRequest):
        return render_letter(request)
    return render_polaroid(request)


def _remove_later(path: Path, delay: float) -> threading.Timer:
    def cleanup() -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError:
            logger.warning("[export] could not remove temp file %s", path, exc_info=True)

    timer = threading.Timer(delay, cleanup)
    timer.daemon = True
    timer.start()
    return timer


class Exporter:
    """
    Writes rendered keepsakes as PNG files.

    A second export started within `debounce` seconds of the previous
    accepted one is ignored.
    """

    def __init__(
        self,
        export_dir: Optional[Union[str, Path]] = None,
        clock: Callable[[], float] = time.monotonic,
        debounce: float = EXPORT_DEBOUNCE_SECONDS,
    ):
        self.export_dir = Path(export_dir) if export_dir is not None else Path(settings.EXPORT_DIR)
        self.clock = clock
        self.debounce = debounce
        self._last_started: Optional[float] = None
        self._lock = threading.Lock()

    def _accept(self) -> bool:
        with self._lock:
            now = self.clock()
            if self._last_started is not None and now - self._last_started < self.debounce:
                return False
            self._last_started = now
            return True

    def export_png(self, request: RenderRequest, now: Optional[datetime] = None) -> Optional[Path]:
        """Render and save request. Returns the written path, or None when debounced or failed."""
        if not self._accept():
            logger.info("[export] ignored: previous export started less than %ss ago", self.debounce)
            return None

        try:
            if not ensure_fonts_ready():
                logger.warning("[export] fonts not fully ready, continuing")

            bitmap = render_request(request)
            if bitmap is None:
                logger.error("[export] render returned nothing for %s", request.kind)
                return None

            self.export_dir.mkdir(parents=True, exist_ok=True)
            target = self.export_dir / build_export_filename(request, now)

            fd, tmp_name = tempfile.mkstemp(prefix=".export-", suffix=".png", dir=self.export_dir)
            tmp_path = Path(tmp_name)
            try:
                with os.fdopen(fd, "wb") as fh:
                    bitmap.image.save(fh, format="PNG")
                os.replace(tmp_path, target)
            finally:
                _remove_later(tmp_path, TEMP_CLEANUP_DELAY)

            logger.info("[export] wrote %s (%sx%s)", target, *bitmap.size)
            return target
        except Exception:
            logger.exception("[export] export failed")
            return None
