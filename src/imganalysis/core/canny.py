"""Canny edge detector.

The pipeline runs six fixed stages in order:

1. grayscale conversion
2. Gaussian blur (sigma 1.6, 3x3)
3. Sobel gradients on the luminance channel
4. gradient magnitude and direction folded to [0, 180)
5. non-maximum suppression producing strong seed pixels
6. hysteresis linking that grows edges from the seeds through their
   directional neighbours

Directions are in image coordinates (x right, y down), so 0 degrees is a
gradient pointing along +x, i.e. a vertical edge.
"""

import logging

import numpy as np

from .blur import gaussian_blur
from .convolution import correlate, sobel_kernels
from .grayscale import to_grayscale

logger = logging.getLogger(__name__)

BLUR_SIGMA = 1.6
BLUR_SIZE = 3
DIRECTION_TOLERANCE = 22.5

# (dx, dy) pairs across the edge, i.e. along the gradient, for each sector.
NORMAL_OFFSETS = (
    ((-1, 0), (1, 0)),
    ((-1, -1), (1, 1)),
    ((0, -1), (0, 1)),
    ((1, -1), (-1, 1)),
)
# Along the edge: the normal pair of the sector rotated by 90 degrees.
TANGENT_OFFSETS = tuple(NORMAL_OFFSETS[(sector + 2) % 4] for sector in range(4))


def sanitize_thresholds(upper, lower):
    """upper >= 1 and 1 <= lower <= 0.8 * upper."""
    upper = max(1.0, float(upper))
    lower = max(1.0, min(float(lower), upper * 0.8))
    return upper, lower


def sobel_gradients(gray):
    """(Gx, Gy) fields of a single-channel image."""
    kernel_x, kernel_y = sobel_kernels()
    return correlate(gray, kernel_x), correlate(gray, kernel_y)


def magnitude_and_direction(gx, gy):
    """Gradient magnitude and direction in degrees folded to [0, 180)."""
    magnitude = np.hypot(gx, gy)
    direction = np.mod(np.degrees(np.arctan2(gy, gx)), 180.0)
    direction[direction >= 180.0] -= 180.0
    return magnitude, direction


def direction_sector(angle):
    """Quantise an angle in degrees into sectors 0 (0), 1 (45), 2 (90), 3 (135)."""
    if np.ndim(angle) == 0:
        angle = float(angle) % 180.0
        if angle < 22.5 or angle >= 157.5:
            return 0
        if angle < 67.5:
            return 1
        if angle < 112.5:
            return 2
        return 3
    angle = np.mod(angle, 180.0)
    return np.select(
        [(angle < 22.5) | (angle >= 157.5), angle < 67.5, angle < 112.5],
        [0, 1, 2],
        default=3,
    )


def angle_difference(a, b):
    """Smallest difference between two edge orientations in [0, 180)."""
    diff = abs(a - b) % 180.0
    return min(diff, 180.0 - diff)


def _neighbour(field, dx, dy):
    """field shifted so out[y, x] == field[y + dy, x + dx]; the border wraps but is never used."""
    return np.roll(field, shift=(-dy, -dx), axis=(0, 1))


def non_maximum_suppression(magnitude, direction, upper_threshold, keep_ties=False):
    """Strong seed pixels: ridge maxima across the edge above the upper threshold.

    A pixel must exceed both neighbours along the gradient. An ideal step
    edge produces a two-pixel ridge of equal magnitudes, which this rejects;
    with ``keep_ties`` a tie with the forward neighbour is accepted, so one
    pixel of such a ridge survives. Border pixels never become seeds.
    """
    height, width = magnitude.shape
    strong = np.zeros((height, width), dtype=bool)
    if height < 3 or width < 3:
        return strong
    sectors = direction_sector(direction)
    for sector, ((bx, by), (fx, fy)) in enumerate(NORMAL_OFFSETS):
        backward = _neighbour(magnitude, bx, by)
        forward = _neighbour(magnitude, fx, fy)
        ahead = magnitude >= forward if keep_ties else magnitude > forward
        strong |= (sectors == sector) & (magnitude > backward) & ahead
    strong &= magnitude > upper_threshold
    strong[0, :] = strong[-1, :] = False
    strong[:, 0] = strong[:, -1] = False
    return strong


def _is_ridge(magnitude, direction, x, y, keep_ties=False):
    height, width = magnitude.shape
    value = magnitude[y, x]
    (bx, by), (fx, fy) = NORMAL_OFFSETS[direction_sector(direction[y, x])]
    if 0 <= x + bx < width and 0 <= y + by < height and value <= magnitude[y + by, x + bx]:
        return False
    if 0 <= x + fx < width and 0 <= y + fy < height:
        forward = magnitude[y + fy, x + fx]
        if value < forward or (value == forward and not keep_ties):
            return False
    return True


def hysteresis(magnitude, direction, strong, lower_threshold, keep_ties=False, follow_edge=False):
    """Grow edges from the strong seeds with an explicit stack.

    From each pixel its two neighbours along the gradient are followed when
    their magnitude reaches the lower threshold, their orientation is within
    22.5 degrees of the current pixel's and they are themselves ridge maxima.
    With ``follow_edge`` the two neighbours along the edge are followed
    instead, which links pixels of a continuous contour.
    Every pixel is visited at most once.
    """
    height, width = magnitude.shape
    offsets = TANGENT_OFFSETS if follow_edge else NORMAL_OFFSETS
    edges = np.zeros((height, width), dtype=bool)
    visited = np.zeros((height, width), dtype=bool)
    for seed_y, seed_x in zip(*np.nonzero(strong)):
        if visited[seed_y, seed_x]:
            continue
        stack = [(int(seed_x), int(seed_y))]
        while stack:
            x, y = stack.pop()
            if visited[y, x]:
                continue
            visited[y, x] = True
            edges[y, x] = True
            current = direction[y, x]
            for dx, dy in offsets[direction_sector(current)]:
                nx, ny = x + dx, y + dy
                if not (0 <= nx < width and 0 <= ny < height) or visited[ny, nx]:
                    continue
                if magnitude[ny, nx] < lower_threshold:
                    continue
                if angle_difference(direction[ny, nx], current) > DIRECTION_TOLERANCE:
                    continue
                if _is_ridge(magnitude, direction, nx, ny, keep_ties):
                    stack.append((nx, ny))
    return edges


def canny_edges(buffer, upper_threshold=50.0, lower_threshold=20.0, weights=None,
                keep_ties=False, follow_edge=False):
    """Boolean edge map of a buffer; the buffer itself is not modified."""
    work = buffer.copy()
    to_grayscale(work, weights)
    gaussian_blur(work, BLUR_SIGMA, BLUR_SIZE)
    gx, gy = sobel_gradients(work.channel(0))
    magnitude, direction = magnitude_and_direction(gx, gy)
    upper, lower = sanitize_thresholds(upper_threshold, lower_threshold)
    strong = non_maximum_suppression(magnitude, direction, upper, keep_ties)
    edges = hysteresis(magnitude, direction, strong, lower, keep_ties, follow_edge)
    logger.debug(
        "Canny: %d seeds, %d edge pixels (upper=%.1f, lower=%.1f)",
        int(strong.sum()), int(edges.sum()), upper, lower,
    )
    return edges


def canny(buffer, upper_threshold=50.0, lower_threshold=20.0, weights=None,
          keep_ties=False, follow_edge=False):
    """Replace the buffer with a white-on-black Canny edge map.

    ``keep_ties`` and ``follow_edge`` are passed to ``canny_edges``.
    Any failure inside the pipeline leaves the buffer untouched.
    """
    try:
        edges = canny_edges(buffer, upper_threshold, lower_threshold, weights, keep_ties, follow_edge)
    except Exception:
        logger.exception("Canny pipeline failed, buffer left unchanged")
        return False
    buffer.set_gray(np.where(edges, 255, 0))
    return True
