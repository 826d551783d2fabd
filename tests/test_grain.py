import numpy as np
from PIL import Image

from keepsake.render import grain
from keepsake.render.grain import SPECK_ALPHA_MAX, SPECK_ALPHA_MIN, draw_grain


def _grey(size=(64, 48)):
    return Image.new("RGB", size, (128, 128, 128))


def test_grain_only_touches_region():
    img = _grey()
    draw_grain(img, 10, 8, 20, 16, amount=1.0, density=1.0, rng=np.random.default_rng(1))
    arr = np.asarray(img).astype(int)
    inside = arr[8:24, 10:30]
    outside = arr.copy()
    outside[8:24, 10:30] = 128
    assert (outside == 128).all()
    assert (inside != 128).any()


def test_grain_region_clipped_to_bounds():
    img = _grey((20, 20))
    draw_grain(img, -10, -10, 50, 50, amount=1.0, density=1.0, rng=np.random.default_rng(2))
    assert img.size == (20, 20)
    assert (np.asarray(img) != 128).any()


def test_empty_region_is_noop():
    img = _grey()
    before = np.asarray(img).copy()
    draw_grain(img, 100, 100, 10, 10, amount=1.0, density=1.0)
    draw_grain(img, 0, 0, 0, 10, amount=1.0, density=1.0)
    assert (np.asarray(img) == before).all()


def test_speck_distribution_bounds():
    buf = grain._speck_buffer(np.random.default_rng(3), 200, 100, density=0.35, amount=1.0)
    alpha = buf[..., 3]
    hits = alpha > 0
    assert SPECK_ALPHA_MIN <= alpha[hits].min()
    assert alpha[hits].max() < SPECK_ALPHA_MAX
    assert 0.3 < hits.mean() < 0.4
    # specks are pure black or pure white
    assert set(np.unique(buf[..., 0][hits])) <= {0, 255}


def test_same_seed_same_grain():
    a, b = _grey(), _grey()
    draw_grain(a, 0, 0, 64, 48, rng=np.random.default_rng(7))
    draw_grain(b, 0, 0, 64, 48, rng=np.random.default_rng(7))
    assert (np.asarray(a) == np.asarray(b)).all()


def test_falls_back_to_bands_when_buffer_cannot_allocate(monkeypatch):
    def boom(*args, **kwargs):
        raise MemoryError

    monkeypatch.setattr(grain, "build_grain_layer", boom)
    img = _grey((40, 200))
    draw_grain(img, 0, 0, 40, 200, amount=1.0, density=1.0, rng=np.random.default_rng(4))
    assert (np.asarray(img) != 128).any()


def test_banded_fallback_keeps_speck_distribution():
    layer = grain.build_grain_layer_banded(200, 150, density=0.35, amount=1.0, rng=np.random.default_rng(3))
    assert layer.size == (200, 150)
    arr = np.asarray(layer)
    alpha = arr[..., 3]
    hits = alpha > 0
    assert SPECK_ALPHA_MIN <= alpha[hits].min()
    assert alpha[hits].max() < SPECK_ALPHA_MAX
    assert 0.3 < hits.mean() < 0.4
    assert set(np.unique(arr[..., 0][hits])) <= {0, 255}
    # every band got specks, not just the first
    band = grain.FALLBACK_BAND_ROWS
    for top in range(0, 150, band):
        assert hits[top : top + band].any()


def test_grain_keeps_rgba_mode():
    img = Image.new("RGBA", (16, 16), (10, 20, 30, 200))
    draw_grain(img, 0, 0, 16, 16, amount=0.5, density=0.5, rng=np.random.default_rng(5))
    assert img.mode == "RGBA"
