"""Tests for the Hough line transform."""

import math

import numpy as np
import pytest

from imganalysis.core import (
    PixelBuffer,
    accumulate,
    detect_lines,
    draw_lines,
    find_peaks,
    line_endpoints,
    strongest_line,
    transform,
)
from imganalysis.core.hough import LINE_COLOR


def line_image(width, height, points):
    values = np.zeros((height, width))
    for x, y in points:
        values[y, x] = 255
    return PixelBuffer.from_array(values)


def assert_line(line, theta, rho):
    assert line is not None
    assert math.isclose(line[0], theta, abs_tol=1e-9)
    assert math.isclose(line[1], rho, abs_tol=1e-9)


def test_horizontal_line():
    buf = line_image(50, 50, [(x, 20) for x in range(50)])
    space = accumulate(buf, skip_edge_detection=True)
    assert_line(strongest_line(space), math.pi / 2, 20.0)
    assert space.votes.max() == 50


def test_vertical_line():
    buf = line_image(50, 50, [(15, y) for y in range(50)])
    assert_line(strongest_line(accumulate(buf, skip_edge_detection=True)), 0.0, 15.0)


def test_diagonal_line():
    buf = line_image(40, 40, [(i, i) for i in range(40)])
    assert_line(strongest_line(accumulate(buf, skip_edge_detection=True)), 3 * math.pi / 4, 0.0)


def test_transform_dimensions():
    """theta_density * 180 columns by 2 * ceil(diagonal) + 1 rows."""
    buf = PixelBuffer(30, 40, fill=(255, 255, 255))
    out = transform(buf, theta_density=2, skip_edge_detection=True)
    assert out.width == 360
    assert out.height == 101
    assert out.pixels.max() == 255


def test_black_image_gives_empty_accumulator():
    buf = PixelBuffer(20, 10)
    out = transform(buf)
    assert out.pixels.max() == 0
    assert strongest_line(accumulate(buf)) is None


def test_find_peaks_threshold():
    buf = line_image(50, 50, [(x, 20) for x in range(50)])
    space = accumulate(buf, skip_edge_detection=True)
    peaks = find_peaks(space, 49)
    assert len(peaks) == 1
    assert_line(peaks[0], math.pi / 2, 20.0)
    assert find_peaks(space, 50) == []


def test_draw_vertical_and_horizontal():
    buf = PixelBuffer(8, 6)
    draw_lines(buf, [(0.0, 5.0), (math.pi / 2, 3.0)])
    red = np.all(buf.pixels == LINE_COLOR, axis=2)
    assert red[:, 5].all()
    assert red[3, :].all()
    assert red.sum() == 6 + 8 - 1


def test_draw_line_outside_is_ignored():
    buf = PixelBuffer(8, 6)
    draw_lines(buf, [(0.0, 50.0), (math.pi / 2, -4.0)])
    assert buf.pixels.max() == 0


def test_detect_lines_on_step():
    """The Laplacian keeps the bright side of a step, which gets one line."""
    values = np.zeros((50, 50))
    values[20:, :] = 255
    buf = PixelBuffer.from_array(values)
    lines = detect_lines(buf, threshold=40)
    assert len(lines) == 1
    assert_line(lines[0], math.pi / 2, 20.0)
    assert all(buf.get_pixel(x, 20) == LINE_COLOR for x in range(50))
    assert buf.get_pixel(0, 30) == (255, 255, 255)


@pytest.mark.parametrize(
    "rho, theta, expected",
    [(5.0, 0.0, [(5.0, 0.0), (5.0, 10.0)]), (3.0, math.pi / 2, [(0.0, 3.0), (10.0, 3.0)])],
)
def test_line_endpoints(rho, theta, expected):
    points = line_endpoints(rho, theta, 10, 10)
    assert len(points) == 2
    for (x, y), (ex, ey) in zip(points, expected):
        assert math.isclose(x, ex, abs_tol=1e-9)
        assert math.isclose(y, ey, abs_tol=1e-9)
