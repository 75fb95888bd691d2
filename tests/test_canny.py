"""Tests for the Canny edge detector."""

import importlib

import numpy as np
import pytest

from imganalysis.core import PixelBuffer, canny, canny_edges
from imganalysis.core.canny import (
    angle_difference,
    direction_sector,
    magnitude_and_direction,
    non_maximum_suppression,
    sanitize_thresholds,
)

canny_module = importlib.import_module("imganalysis.core.canny")


def vertical_step(size=20):
    values = np.zeros((size, size))
    values[:, size // 2:] = 255
    return PixelBuffer.from_array(values)


def vertical_line(size=20):
    values = np.zeros((size, size))
    values[:, size // 2] = 255
    return PixelBuffer.from_array(values)


@pytest.mark.parametrize("level", [0, 255])
def test_uniform_image_has_no_edges(level):
    buf = PixelBuffer(12, 9, fill=(level, level, level))
    assert canny(buf)
    assert buf.pixels.max() == 0


def test_vertical_step_two_pixel_ridge_rejected():
    """The two equal magnitudes either side of an ideal step suppress each other."""
    buf = vertical_step()
    assert canny(buf, 50, 20)
    assert buf.pixels.max() == 0


def test_vertical_step_keep_ties():
    """Accepting a forward tie keeps one column of the step ridge."""
    edges = canny_edges(vertical_step(), 50, 20, keep_ties=True)
    assert edges[1:19, 9].all()
    assert edges.sum() == 18


def test_vertical_step_keep_ties_follow_edge():
    """Growing along the contour also reaches the border rows."""
    buf = vertical_step()
    assert canny(buf, 50, 20, keep_ties=True, follow_edge=True)
    gray = buf.pixels[:, :, 0]
    assert np.all(gray[:, 9] == 255)
    gray[:, 9] = 0
    assert gray.max() == 0
    assert set(np.unique(buf.pixels)) <= {0, 255}


def test_horizontal_step_keep_ties_follow_edge():
    values = np.zeros((16, 16))
    values[8:, :] = 200
    buf = PixelBuffer.from_array(values)
    edges = canny_edges(buf, 50, 20, keep_ties=True, follow_edge=True)
    assert edges[7].all()
    assert edges.sum() == 16


def test_thin_line_grows_across_gradient_by_default():
    """Hysteresis follows the gradient neighbours, so border rows are not reached."""
    edges = canny_edges(vertical_line(), 50, 20)
    assert edges[1:19, 9].all() and edges[1:19, 11].all()
    assert edges.sum() == 36


def test_thin_line_follow_edge_links_full_height():
    edges = canny_edges(vertical_line(), 50, 20, follow_edge=True)
    assert edges[:, 9].all() and edges[:, 11].all()
    assert edges.sum() == 40


def test_suppression_rejects_equal_neighbours():
    """A flat two-pixel ridge gives no seeds unless ties are kept."""
    magnitude = np.zeros((5, 5))
    magnitude[:, 2:4] = 100.0
    direction = np.zeros((5, 5))
    assert not non_maximum_suppression(magnitude, direction, 50).any()
    strong = non_maximum_suppression(magnitude, direction, 50, keep_ties=True)
    assert strong[1:4, 2].all()
    assert strong.sum() == 3


def test_canny_edges_leaves_input_alone():
    buf = vertical_step()
    before = buf.copy()
    canny_edges(buf)
    assert buf == before


@pytest.mark.parametrize(
    "given, expected",
    [((0, 0), (1, 1)), ((100, 95), (100, 80)), ((10, -5), (10, 1)), ((60, 30), (60, 30))],
)
def test_sanitize_thresholds(given, expected):
    assert sanitize_thresholds(*given) == expected


@pytest.mark.parametrize(
    "angle, sector",
    [(0, 0), (10, 0), (170, 0), (45, 1), (90, 2), (135, 3), (-45, 3), (200, 0)],
)
def test_direction_sector(angle, sector):
    assert direction_sector(angle) == sector


def test_direction_sector_array():
    angles = np.array([[0.0, 45.0], [90.0, 135.0]])
    assert direction_sector(angles).tolist() == [[0, 1], [2, 3]]


def test_angle_difference_wraps():
    assert angle_difference(10, 170) == 20
    assert angle_difference(0, 90) == 90
    assert angle_difference(30, 30) == 0


def test_direction_folded():
    gx = np.array([[1.0, -1.0, 0.0]])
    gy = np.array([[0.0, 0.0, -1.0]])
    magnitude, direction = magnitude_and_direction(gx, gy)
    assert magnitude.tolist() == [[1.0, 1.0, 1.0]]
    assert np.allclose(direction, [[0.0, 0.0, 90.0]])


def test_failure_leaves_buffer_unchanged(monkeypatch):
    """An error inside the pipeline is reported and the buffer is kept."""
    def broken(*args, **kwargs):
        raise RuntimeError("blur failed")

    monkeypatch.setattr(canny_module, "gaussian_blur", broken)
    buf = vertical_step()
    before = buf.copy()
    assert canny(buf) is False
    assert buf == before
