import io

from PIL import Image

from keepsake.domain.models import ExportFormat, LetterRequest
from keepsake.render import letter
from keepsake.render.text_layout import Segment
from keepsake.settings import settings


def _request(**overrides):
    fields = dict(
        background="#000000",
        message="I love you",
        track_name="Dreams",
        artist_name="Fleetwood Mac",
        receiver_name="Alex",
        sign_off="Always,",
        sender_name="Sam",
    )
    fields.update(overrides)
    return LetterRequest(**fields)


def test_long_message_letter_shrinks_and_fits():
    words = "remember the night we sang this in the car and laughed until sunrise "
    message = (words * 30)[:1500]
    bitmap = letter.render_letter(_request(message=message, format=ExportFormat.TIKTOK))

    assert bitmap is not None
    assert bitmap.size == (1080, 1350)
    assert bitmap.format is ExportFormat.IG
    fit = bitmap.message_fit
    assert fit.start_size == 32
    assert fit.font_size < 32
    # body plus sign-off stays above the footer boundary
    assert fit.total_height <= fit.available_height
    assert letter.TOP_PADDING + letter.GREETING_GAP + fit.total_height <= 1350 - letter.BOTTOM_PADDING


def test_bold_message_segments():
    bitmap = letter.render_letter(_request(message="**hello** world"))
    assert bitmap.message_fit.lines == [[Segment("hello", True), Segment(" world", False)]]


def test_hex_background_with_white_wash():
    bitmap = letter.render_letter(_request())
    r, g, b = bitmap.image.getpixel((5, 5))
    # 40% white over black
    assert abs(r - 102) <= 2 and abs(g - 102) <= 2 and abs(b - 102) <= 2
    assert bitmap.background_loaded


def test_missing_background_falls_back_to_cream(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "ASSETS_DIR", tmp_path)
    bitmap = letter.render_letter(_request(background="/letter_backgrounds/bg9.jpg"))
    assert bitmap is not None
    assert bitmap.background_loaded is False
    r, g, b = bitmap.image.getpixel((5, 5))
    # #f9f4ea under the wash
    assert r > 245 and g > 240 and b > 235


def test_image_background_is_cover_fit(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "ASSETS_DIR", tmp_path)
    (tmp_path / "letter_backgrounds").mkdir()
    buf = io.BytesIO()
    Image.new("RGB", (400, 300), (0, 0, 255)).save(buf, format="JPEG")
    (tmp_path / "letter_backgrounds" / "bg1.jpg").write_bytes(buf.getvalue())

    bitmap = letter.render_letter(_request(background="/letter_backgrounds/bg1.jpg"))
    assert bitmap.background_loaded
    r, g, b = bitmap.image.getpixel((5, 5))
    assert b > 200 and r < 130


def test_defaults_for_sign_off_and_sender():
    bitmap = letter.render_letter(_request(sign_off=None, sender_name=None, receiver_name=None))
    assert bitmap is not None
    assert bitmap.message_fit.font_size == 48


def test_failed_album_art_uses_centred_credit():
    bitmap = letter.render_letter(_request(album_art_url="https://unreachable.invalid/a.jpg"))
    assert bitmap is not None
    assert bitmap.album_art_loaded is False


def test_render_failure_returns_none(monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("layout failed")

    monkeypatch.setattr(letter, "draw_body", boom)
    assert letter.render_letter(_request()) is None
