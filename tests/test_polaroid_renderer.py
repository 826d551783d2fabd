import io
from unittest.mock import MagicMock

import numpy as np
from PIL import Image

from keepsake.domain.models import CapsuleRecord, ExportFormat, PolaroidRequest
from keepsake.render import polaroid
from keepsake.services import assets


def _request(**overrides):
    fields = dict(
        processed_image=Image.new("RGB", (756, 756), (90, 120, 150)),
        track_name="Dreams",
        artist_name="Fleetwood Mac",
        album_art_url="https://unreachable.invalid/cover.jpg",
        message="I love you",
        receiver_name="Alex",
        format=ExportFormat.IG,
    )
    fields.update(overrides)
    return PolaroidRequest(**fields)


def _art_center(fmt=ExportFormat.IG):
    layout = polaroid.LAYOUTS[fmt]
    x = (layout.size[0] - polaroid.CARD_W) // 2 + polaroid.CARD_W // 2
    art_top = polaroid.SIDE_PAD + polaroid.PHOTO_SIZE + polaroid.MSG_H + 6 + 18
    return x, layout.card_y + art_top + polaroid.ART_RADIUS


def test_short_message_ig():
    bitmap = polaroid.render_polaroid(_request())
    assert bitmap is not None
    assert bitmap.size == (1080, 1350)
    assert bitmap.kind == "polaroid"
    fit = bitmap.message_fit
    assert fit.font_size == 38
    assert not fit.shrunk
    assert fit.lines == ["I love you"]


def test_song_section_has_text():
    bitmap = polaroid.render_polaroid(_request())
    cx, art_cy = _art_center()
    # track and artist lines sit under the album circle
    top = art_cy + polaroid.ART_RADIUS + 12
    band = np.asarray(bitmap.image.crop((cx - 100, top, cx + 100, top + 50)).convert("L"))
    assert band.min() < 150


def test_failed_album_art_draws_placeholder_circle():
    bitmap = polaroid.render_polaroid(_request())
    assert bitmap is not None
    assert bitmap.album_art_loaded is False
    px = bitmap.image.getpixel(_art_center())
    for got, want in zip(px, polaroid.PLACEHOLDER_ART[:3]):
        assert abs(got - want) <= 8


def test_album_art_loaded(monkeypatch):
    buf = io.BytesIO()
    Image.new("RGB", (64, 64), (255, 0, 0)).save(buf, format="PNG")
    resp = MagicMock()
    resp.content = buf.getvalue()
    resp.raise_for_status.return_value = None
    monkeypatch.setattr(assets._session, "get", lambda url, headers=None, timeout=None: resp)

    bitmap = polaroid.render_polaroid(_request())
    assert bitmap.album_art_loaded is True
    r, g, b = bitmap.image.getpixel(_art_center())
    assert r > 200 and g < 60 and b < 60


def test_tiktok_size_and_layout():
    bitmap = polaroid.render_polaroid(_request(format=ExportFormat.TIKTOK, receiver_name=None))
    assert bitmap.size == (1080, 1920)
    assert bitmap.format is ExportFormat.TIKTOK
    # footer wordmark area below the card is drawn on
    start = polaroid.LAYOUTS[ExportFormat.TIKTOK].card_y + polaroid.CARD_H + 18
    mid = int(start + (1920 - start) * 0.42)
    band = np.asarray(bitmap.image.crop((340, mid - 40, 740, mid + 40)).convert("L"))
    assert band.min() < 140


def test_long_message_shrinks():
    words = ("we drove all night with the windows down and this song on repeat " * 3).strip()
    bitmap = polaroid.render_polaroid(_request(message=words))
    fit = bitmap.message_fit
    assert fit.font_size < fit.start_size
    assert fit.total_height <= fit.available_height


def test_missing_photo_uses_placeholder():
    bitmap = polaroid.render_polaroid(_request(processed_image=None))
    assert bitmap is not None


def test_render_is_deterministic_apart_from_grain(monkeypatch):
    monkeypatch.setattr(polaroid, "draw_grain", lambda *a, **k: None)
    a = polaroid.render_polaroid(_request())
    b = polaroid.render_polaroid(_request())
    assert (np.asarray(a.image) == np.asarray(b.image)).all()


def test_render_failure_returns_none(monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("draw failed")

    monkeypatch.setattr(polaroid, "draw_background", boom)
    assert polaroid.render_polaroid(_request()) is None


LONG_MESSAGE = ("we drove all night with the windows down and this song on repeat " * 8)[:480]


def test_overlong_message_is_clamped_and_warned(caplog):
    caplog.set_level("WARNING", logger="keepsake.render.polaroid")
    bitmap = polaroid.render_polaroid(_request(message=LONG_MESSAGE))
    fit = bitmap.message_fit
    assert fit.clamped
    assert fit.font_size == polaroid.MESSAGE_TIERS.floor
    assert sum(len(line) for line in fit.lines) < len(LONG_MESSAGE)
    assert any("message clamped" in r.getMessage() for r in caplog.records)


def test_chosen_message_renders_without_clamping():
    cap = CapsuleRecord(
        track_name="Dreams",
        artist_name="Fleetwood Mac",
        message=LONG_MESSAGE,
        receiver_name="Alex",
        song_meaning="about letting go of someone you still love",
    )
    text = polaroid.choose_polaroid_message(cap)
    assert text == cap.song_meaning
    bitmap = polaroid.render_polaroid(_request(message=text))
    assert not bitmap.message_fit.clamped
