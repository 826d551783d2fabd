from datetime import datetime

from PIL import Image

from keepsake.domain.models import ExportFormat, LetterRequest, PolaroidRequest, RenderedBitmap
from keepsake.services import export
from keepsake.services.export import Exporter, build_export_filename


class FakeClock:
    def __init__(self, *times):
        self.times = list(times)

    def __call__(self):
        return self.times.pop(0)


def _polaroid(receiver="Alex"):
    return PolaroidRequest(
        processed_image=Image.new("RGB", (756, 756), (90, 120, 150)),
        track_name="Dreams",
        artist_name="Fleetwood Mac",
        message="I love you",
        receiver_name=receiver,
    )


def _letter(receiver="Alex"):
    return LetterRequest(
        background="#f9f4ea",
        message="I love you",
        track_name="Dreams",
        artist_name="Fleetwood Mac",
        receiver_name=receiver,
    )


def _fake_render(request):
    return RenderedBitmap(image=Image.new("RGB", (10, 10), "white"), kind=request.kind, format=ExportFormat.IG)


def test_filenames():
    assert build_export_filename(_letter("Mary Jane!")) == "slow-jam-letter-mary_jane_.png"
    assert build_export_filename(_polaroid("Zoë")) == "slowjam-card-zo_.png"


def test_filename_falls_back_to_timestamp():
    now = datetime(2024, 2, 14, 12, 0, 0)
    expected = int(now.timestamp() * 1000)
    assert build_export_filename(_polaroid(None), now) == f"slowjam-card-{expected}.png"
    assert build_export_filename(_letter("  "), now) == f"slow-jam-letter-{expected}.png"


def test_two_calls_within_debounce_write_one_file(tmp_path, monkeypatch):
    monkeypatch.setattr(export, "render_request", _fake_render)
    exporter = Exporter(tmp_path, clock=FakeClock(10.0, 10.3))

    first = exporter.export_png(_polaroid("one"))
    second = exporter.export_png(_polaroid("two"))

    assert first == tmp_path / "slowjam-card-one.png"
    assert second is None
    assert sorted(p.name for p in tmp_path.iterdir()) == ["slowjam-card-one.png"]


def test_calls_after_debounce_both_export(tmp_path, monkeypatch):
    monkeypatch.setattr(export, "render_request", _fake_render)
    exporter = Exporter(tmp_path, clock=FakeClock(10.0, 10.8))

    assert exporter.export_png(_polaroid("one")) is not None
    assert exporter.export_png(_polaroid("two")) is not None
    assert sorted(p.name for p in tmp_path.iterdir()) == ["slowjam-card-one.png", "slowjam-card-two.png"]


def test_real_letter_export_is_png(tmp_path):
    path = Exporter(tmp_path).export_png(_letter())
    assert path is not None
    with Image.open(path) as img:
        assert img.format == "PNG"
        assert img.size == (1080, 1350)
    assert not list(tmp_path.glob(".export-*"))


def test_render_failure_returns_none(tmp_path, monkeypatch):
    monkeypatch.setattr(export, "render_request", lambda request: None)
    assert Exporter(tmp_path).export_png(_letter()) is None
    assert list(tmp_path.iterdir()) == []


def test_write_failure_is_logged_not_raised(tmp_path, monkeypatch, caplog):
    monkeypatch.setattr(export, "render_request", _fake_render)

    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(export.os, "replace", broken_replace)
    assert Exporter(tmp_path).export_png(_letter()) is None
    assert "export failed" in caplog.text
