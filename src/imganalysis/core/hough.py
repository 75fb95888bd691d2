"""Detect straight lines with the Hough transform."""

import logging
import math

import numpy as np

from .buffer import PixelBuffer, clamp_round
from .convolution import correlate, laplacian_kernel
from .grayscale import gray_values

logger = logging.getLogger(__name__)

LINE_COLOR = (255, 0, 0)


class HoughSpace:
    """Vote counts over (theta, rho).

    Row ``k`` holds angle ``k * pi / (180 * theta_density)``; column ``r``
    holds offset ``r - rho_max``.
    """

    def __init__(self, votes, theta_density, rho_max):
        self.votes = votes
        self.theta_density = theta_density
        self.rho_max = rho_max

    @property
    def theta_size(self):
        return self.votes.shape[0]

    def theta(self, k):
        return k * math.pi / (180.0 * self.theta_density)

    def rho(self, r):
        return float(r - self.rho_max)


def edge_map(buffer, skip_edge_detection=False, weights=None):
    """Grayscale copy of the buffer, Laplacian-filtered unless skipped."""
    gray = gray_values(buffer, weights)
    if skip_edge_detection:
        return gray
    return clamp_round(correlate(gray, laplacian_kernel(3)))


def accumulate(buffer, theta_density=1, skip_edge_detection=False, weights=None):
    """Vote every non-zero pixel of the edge map into a HoughSpace."""
    theta_density = max(1, int(theta_density))
    height, width = buffer.shape
    rho_max = int(math.ceil(math.hypot(width, height)))
    theta_size = 180 * theta_density
    rho_size = 2 * rho_max + 1
    votes = np.zeros((theta_size, rho_size), dtype=np.int64)

    ys, xs = np.nonzero(edge_map(buffer, skip_edge_detection, weights))
    xs = xs.astype(np.float64)
    ys = ys.astype(np.float64)
    for k in range(theta_size):
        theta = k * math.pi / theta_size
        rho = xs * math.cos(theta) + ys * math.sin(theta)
        index = np.floor(rho + 0.5).astype(np.int64) + rho_max
        index = index[(index >= 0) & (index < rho_size)]
        votes[k] += np.bincount(index, minlength=rho_size)

    logger.debug("Hough: %d edge pixels, %dx%d accumulator", xs.size, theta_size, rho_size)
    return HoughSpace(votes, theta_density, rho_max)


def accumulator_image(space):
    """Votes scaled to 0-255; x is the angle bin, y the offset bin."""
    votes = space.votes
    peak = int(votes.max()) if votes.size else 0
    scaled = np.zeros_like(votes) if peak == 0 else votes * 255 // peak
    return PixelBuffer.from_array(scaled.T)


def transform(buffer, theta_density=1, skip_edge_detection=False, weights=None):
    """Hough accumulator of the buffer rendered as a new grayscale buffer."""
    return accumulator_image(accumulate(buffer, theta_density, skip_edge_detection, weights))


def find_peaks(space, threshold):
    """(theta, rho) of every accumulator cell with more than threshold votes."""
    ks, rs = np.nonzero(space.votes > threshold)
    return [(space.theta(k), space.rho(r)) for k, r in zip(ks, rs)]


def strongest_line(space):
    """(theta, rho) of the accumulator's global maximum, or None if empty."""
    if not space.votes.size or space.votes.max() == 0:
        return None
    k, r = np.unravel_index(np.argmax(space.votes), space.votes.shape)
    return space.theta(k), space.rho(r)


def draw_lines(buffer, peaks, color=LINE_COLOR):
    """Rasterise each x*cos(theta) + y*sin(theta) = rho line onto the buffer.

    Lines are stepped along their dominant axis, so near-vertical lines
    (|sin theta| small) are drawn from the x-intercept form.
    """
    height, width = buffer.shape
    for theta, rho in peaks:
        cos_t, sin_t = math.cos(theta), math.sin(theta)
        if abs(sin_t) >= abs(cos_t):
            xs = np.arange(width)
            ys = np.floor((rho - xs * cos_t) / sin_t + 0.5).astype(np.int64)
        else:
            ys = np.arange(height)
            xs = np.floor((rho - ys * sin_t) / cos_t + 0.5).astype(np.int64)
        inside = (xs >= 0) & (xs < width) & (ys >= 0) & (ys < height)
        buffer.pixels[ys[inside], xs[inside]] = color


def detect_lines(buffer, theta_density=1, skip_edge_detection=False, threshold=100, color=LINE_COLOR, weights=None):
    """Find lines above the vote threshold and draw them over the buffer."""
    space = accumulate(buffer, theta_density, skip_edge_detection, weights)
    lines = find_peaks(space, threshold)
    logger.info("Hough: %d lines above %d votes", len(lines), threshold)
    draw_lines(buffer, lines, color)
    return lines


def line_endpoints(rho, theta, width, height):
    """The two points where a (rho, theta) line crosses the image border."""
    a = math.cos(theta)
    b = math.sin(theta)
    points = []
    # Left x=0 and right x=width
    if abs(b) > 1e-6:
        for x in (0, width):
            y = (rho - x * a) / b
            if 0 <= y <= height:
                points.append((x, y))
    # Top y=0 and bottom y=height
    if abs(a) > 1e-6:
        for y in (0, height):
            x = (rho - y * b) / a
            if 0 <= x <= width and all(abs(x - px) > 1e-9 or abs(y - py) > 1e-9 for px, py in points):
                points.append((x, y))
    return points[:2]
