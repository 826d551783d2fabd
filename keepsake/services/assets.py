"""
Image asset loading for album art and letter backgrounds.

Remote URLs go through a shared requests session; data: URLs are decoded in
place; everything else is a path under the assets dir. Every failure is
logged and returned as None so renderers can draw their fallback.
"""
import base64
import binascii
import logging
import re
from io import BytesIO
from pathlib import Path
from typing import Optional

import requests
from PIL import Image, UnidentifiedImageError

from keepsake.settings import settings

logger = logging.getLogger(__name__)

_session = requests.Session()
_HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")


def is_hex_color(value: Optional[str]) -> bool:
    return bool(value) and bool(_HEX_COLOR.match(value.strip()))


def _decode(data: bytes, source: str) -> Optional[Image.Image]:
    try:
        img = Image.open(BytesIO(data))
        img.load()
        return img.convert("RGBA")
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        logger.warning("[fetch] decode failed for %s: %s", _short(source), exc)
        return None


def _short(source: str) -> str:
    return source if len(source) <= 80 else source[:77] + "..."


def _fetch_http(url: str, timeout: float) -> Optional[Image.Image]:
    try:
        resp = _session.get(url, headers={"User-Agent": settings.USER_AGENT}, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as exc:
        logger.warning("[fetch] request failed for %s: %s", _short(url), exc)
        return None
    return _decode(resp.content, url)


def _fetch_data_url(url: str) -> Optional[Image.Image]:
    try:
        header, payload = url.split(",", 1)
        data = base64.b64decode(payload) if header.endswith(";base64") else payload.encode("latin-1")
    except (ValueError, binascii.Error) as exc:
        logger.warning("[fetch] malformed data URL: %s", exc)
        return None
    return _decode(data, url)


def resolve_local_path(source: str) -> Path:
    """Site-relative paths ("/letter_backgrounds/bg1.jpg") resolve under the assets dir."""
    path = Path(source)
    if path.is_absolute() and path.exists():
        return path
    return Path(settings.ASSETS_DIR) / source.lstrip("/")


def _fetch_local(source: str) -> Optional[Image.Image]:
    path = resolve_local_path(source)
    try:
        data = path.read_bytes()
    except OSError as exc:
        logger.warning("[fetch] cannot read %s: %s", path, exc)
        return None
    return _decode(data, str(path))


def fetch_image(source: Optional[str], timeout: Optional[float] = None) -> Optional[Image.Image]:
    """
    Load an RGBA image from a URL, data: URL or local path.

    Returns None on any network, file or decode failure.
    """
    if not source or not source.strip():
        return None
    source = source.strip()
    if source.startswith(("http://", "https://")):
        return _fetch_http(source, settings.FETCH_TIMEOUT if timeout is None else timeout)
    if source.startswith("data:"):
        return _fetch_data_url(source)
    return _fetch_local(source)
