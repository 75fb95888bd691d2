"""Tests for the pixel buffer, grayscale, histogram and parameter helpers."""

import numpy as np
import pytest

from imganalysis.core import (
    PixelBuffer,
    clamp_round,
    load_image,
    save_image,
    save_params,
    load_params,
    to_grayscale,
    apply_lut,
    histogram,
    stretch_histogram,
    equalize_histogram,
    otsu_threshold,
    threshold_binarize,
    otsu_binarize,
)
from imganalysis.core.grayscale import gamma_lut, brightness_lut, contrast_lut, resolve_weights


def test_buffer_bounds():
    """Out-of-range reads are black and out-of-range writes are ignored."""
    buf = PixelBuffer(4, 3, fill=(10, 20, 30))
    assert buf.get_pixel(3, 2) == (10, 20, 30)
    assert buf.get_pixel(4, 0) == (0, 0, 0)
    assert buf.get_pixel(-1, 1) == (0, 0, 0)
    before = buf.copy()
    buf.set_pixel(5, 5, 255, 255, 255)
    buf.set_pixel(-1, 0, 255, 255, 255)
    assert buf == before


def test_buffer_set_pixel_clamps():
    """Channel values are clamped to the byte range."""
    buf = PixelBuffer(2, 2)
    buf.set_pixel(1, 0, 300, -5, 128)
    assert buf.get_pixel(1, 0) == (255, 0, 128)


def test_buffer_from_gray_array():
    """A 2-D array fills all three channels."""
    buf = PixelBuffer.from_array(np.array([[0, 100], [200, 255]]))
    assert buf.width == 2 and buf.height == 2
    assert buf.get_pixel(0, 1) == (200, 200, 200)


def test_clamp_round_range():
    """Rounding and clamping always lands in 0-255."""
    values = np.array([-1e9, -0.4, 0.5, 1.49, 254.5, 1e12, np.nan, np.inf, -np.inf])
    out = clamp_round(values)
    assert out.dtype == np.uint8
    assert out.tolist() == [0, 0, 1, 1, 255, 255, 0, 255, 0]


def test_grayscale_weights():
    """Default Rec. 601 weights and the legacy weights give different grays."""
    buf = PixelBuffer(1, 1, fill=(0, 255, 0))
    legacy = buf.copy()
    to_grayscale(buf)
    to_grayscale(legacy, "legacy")
    assert buf.get_pixel(0, 0) == (150, 150, 150)
    assert legacy.get_pixel(0, 0) == (153, 153, 153)


def test_unknown_weights():
    with pytest.raises(ValueError):
        resolve_weights("cie")


def test_apply_lut_invert():
    """A reversed table inverts every channel."""
    buf = PixelBuffer(2, 1, fill=(0, 100, 255))
    apply_lut(buf, 255 - np.arange(256))
    assert buf.get_pixel(1, 0) == (255, 155, 0)


def test_apply_lut_bad_table():
    buf = PixelBuffer(2, 2, fill=(1, 2, 3))
    apply_lut(buf, np.arange(10))
    assert buf.get_pixel(0, 0) == (1, 2, 3)


def test_lut_curves():
    """Identity settings leave values alone; curves stay monotonic."""
    assert gamma_lut(1.0).tolist() == list(range(256))
    assert brightness_lut(0).tolist() == list(range(256))
    for table in (gamma_lut(2.2), brightness_lut(3.0), contrast_lut(2.0), contrast_lut(0.5)):
        assert np.all(np.diff(table.astype(int)) >= 0)
    assert gamma_lut(2.2)[128] > 128


def test_histogram_counts():
    buf = PixelBuffer.from_array(np.array([[0, 0, 7], [7, 7, 255]]))
    hist = histogram(buf, "red")
    assert hist[0] == 2 and hist[7] == 3 and hist[255] == 1
    assert hist.sum() == 6


def test_otsu_bimodal():
    """Equal mass at 10 and 240 gives a threshold strictly between them."""
    hist = np.zeros(256)
    hist[10] = 50
    hist[240] = 50
    threshold = otsu_threshold(hist)
    assert 10 < threshold < 240


def test_otsu_degenerate():
    """Empty or single-valued histograms fall back to 128."""
    assert otsu_threshold(np.zeros(256)) == 128
    hist = np.zeros(256)
    hist[42] = 9
    assert otsu_threshold(hist) == 128


def test_otsu_binarize():
    values = np.array([[10, 10, 240], [240, 10, 240]])
    buf = PixelBuffer.from_array(values)
    threshold = otsu_binarize(buf)
    assert 10 < threshold < 240
    assert np.array_equal(buf.pixels[:, :, 0], np.where(values > 100, 255, 0))


def test_threshold_binarize_clamps():
    buf = PixelBuffer.from_array(np.array([[0, 255]]))
    threshold_binarize(buf, 1000)
    assert buf.pixels.max() == 0


def test_stretch_histogram():
    """The occupied range is spread to full scale."""
    buf = PixelBuffer.from_array(np.array([[50, 75], [90, 100]]))
    stretch_histogram(buf)
    assert buf.pixels.min() == 0
    assert buf.pixels.max() == 255


def test_equalize_histogram_keeps_shape():
    rng = np.random.default_rng(1)
    buf = PixelBuffer.from_array(rng.integers(40, 90, (8, 8, 3)))
    equalize_histogram(buf)
    assert buf.shape == (8, 8)
    assert buf.pixels.max() == 255


def test_params_roundtrip(tmp_path):
    """Saved overrides come back merged over the defaults."""
    path = tmp_path / "params.yaml"
    save_params({"canny": {"upper": 80}, "bogus": {"x": 1}}, path)
    params = load_params(path)
    assert params["canny"]["upper"] == 80
    assert params["canny"]["lower"] == 20.0
    assert params["watershed"]["connectivity"] == 8
    assert "bogus" not in params


def test_image_roundtrip(tmp_path):
    """PNG save and load preserve pixels."""
    rng = np.random.default_rng(0)
    buf = PixelBuffer.from_array(rng.integers(0, 256, (6, 9, 3)))
    path = tmp_path / "out" / "img.png"
    save_image(buf, path)
    loaded = load_image(path)
    assert loaded == buf
