"""Kernel generation and replicate-border convolution.

Kernels are 2-D float arrays indexed ``[dy, dx]``. Applying a kernel of size
``k`` with radius ``r = k // 2`` samples the source at ``(x + kx - r, y + ky - r)``
without flipping, and coordinates outside the image are clamped to the
nearest edge pixel (replicate border, never zero padding or wrap-around).
"""

import logging
import math

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from .buffer import clamp_round
from .grayscale import luminance

logger = logging.getLogger(__name__)

SOBEL_X = np.array([[-1, 0, 1], [-2, 0, 2], [-1, 0, 1]], dtype=np.float64)
PREWITT_X = np.array([[-1, 0, 1], [-1, 0, 1], [-1, 0, 1]], dtype=np.float64)
ROBERTS_X = np.array([[1, 0], [0, -1]], dtype=np.float64)
ROBERTS_Y = np.array([[0, 1], [-1, 0]], dtype=np.float64)

LAPLACIAN_3 = np.array([[0, -1, 0], [-1, 4, -1], [0, -1, 0]], dtype=np.float64)
LAPLACIAN_5 = np.array(
    [
        [0, 0, -1, 0, 0],
        [0, -1, -2, -1, 0],
        [-1, -2, 16, -2, -1],
        [0, -1, -2, -1, 0],
        [0, 0, -1, 0, 0],
    ],
    dtype=np.float64,
)


def odd_size(size, minimum=3):
    """Bump even sizes to the next odd value and enforce a minimum."""
    size = int(size)
    if size % 2 == 0:
        size += 1
    return max(minimum, size)


def size_for_sigma(sigma):
    """Kernel size covering +/- 3 sigma: max(3, odd(6 sigma + 1))."""
    return odd_size(int(6 * sigma + 1))


def _offsets(size):
    center = size // 2
    d = np.arange(size) - center
    dy, dx = np.meshgrid(d, d, indexing="ij")
    return dx, dy


def gaussian_kernel(sigma, size=None):
    """Normalised 2-D Gaussian kernel, or None when sigma is not positive."""
    if not sigma > 0:
        logger.warning("Gaussian kernel rejected: sigma must be positive, got %s", sigma)
        return None
    size = size_for_sigma(sigma) if not size or size <= 0 else odd_size(size)
    dx, dy = _offsets(size)
    kernel = np.exp(-(dx**2 + dy**2) / (2.0 * sigma * sigma)) / (2.0 * math.pi * sigma * sigma)
    return kernel / kernel.sum()


def uniform_kernel(size):
    """Box kernel with every weight equal to 1 / size^2."""
    size = odd_size(size)
    return np.full((size, size), 1.0 / (size * size))


def laplacian_kernel(size=3):
    """Discrete 4-neighbour Laplacian (positive centre)."""
    size = odd_size(size)
    if size == 3:
        return LAPLACIAN_3.copy()
    if size == 5:
        return LAPLACIAN_5.copy()
    kernel = np.zeros((size, size))
    c = size // 2
    kernel[c, c] = 4.0
    kernel[c - 1, c] = kernel[c + 1, c] = kernel[c, c - 1] = kernel[c, c + 1] = -1.0
    return kernel


def laplacian_negative_kernel(size=3):
    """Negated Laplacian, responding to dark lines on a bright background."""
    return -laplacian_kernel(size)


def log_kernel(sigma, size=None):
    """Laplacian-of-Gaussian kernel, not normalised; None when sigma is not positive."""
    if not sigma > 0:
        logger.warning("LoG kernel rejected: sigma must be positive, got %s", sigma)
        return None
    size = size_for_sigma(sigma) if not size or size <= 0 else odd_size(size)
    dx, dy = _offsets(size)
    r2 = dx**2 + dy**2
    s2 = sigma * sigma
    return -1.0 / (math.pi * s2 * s2) * (1.0 - r2 / (2.0 * s2)) * np.exp(-r2 / (2.0 * s2))


def sobel_kernels():
    return SOBEL_X.copy(), SOBEL_X.T.copy()


def prewitt_kernels():
    return PREWITT_X.copy(), PREWITT_X.T.copy()


def roberts_kernels():
    return ROBERTS_X.copy(), ROBERTS_Y.copy()


GRADIENT_OPERATORS = {
    "sobel": sobel_kernels,
    "prewitt": prewitt_kernels,
    "roberts": roberts_kernels,
}


def gradient_kernels(operator):
    """(gx, gy) kernel pair for a named gradient operator."""
    try:
        return GRADIENT_OPERATORS[operator.lower()]()
    except KeyError:
        raise ValueError(f"unknown gradient operator {operator!r}, expected one of {sorted(GRADIENT_OPERATORS)}")


def generate_kernel(kind, **params):
    """Build a single kernel by name: gaussian, uniform, laplacian, laplacian_negative or log.

    The sigma-based kinds return None for a sigma that is not positive.
    """
    kind = kind.lower()
    if kind == "gaussian":
        return gaussian_kernel(params["sigma"], params.get("size"))
    if kind in ("uniform", "box"):
        return uniform_kernel(params.get("size", 3))
    if kind == "laplacian":
        return laplacian_kernel(params.get("size", 3))
    if kind == "laplacian_negative":
        return laplacian_negative_kernel(params.get("size", 3))
    if kind == "log":
        return log_kernel(params["sigma"], params.get("size"))
    raise ValueError(f"unknown kernel kind {kind!r}")


def correlate(field, kernel):
    """Weighted sum over each pixel's kernel window of a 2-D field."""
    field = np.asarray(field, dtype=np.float64)
    kernel = np.asarray(kernel, dtype=np.float64)
    kh, kw = kernel.shape
    ry, rx = kh // 2, kw // 2
    padded = np.pad(field, ((ry, kh - 1 - ry), (rx, kw - 1 - rx)), mode="edge")
    windows = sliding_window_view(padded, kernel.shape)
    return np.einsum("ijkl,kl->ij", windows, kernel)


def correlate_channels(pixels, kernel):
    """Apply ``correlate`` to each channel of a (H, W, 3) array."""
    return np.stack([correlate(pixels[:, :, c], kernel) for c in range(pixels.shape[2])], axis=2)


def _valid_kernel(kernel):
    if kernel is None:
        logger.warning("Ignoring missing kernel")
        return None
    kernel = np.asarray(kernel, dtype=np.float64)
    if kernel.ndim != 2 or kernel.size == 0 or not np.all(np.isfinite(kernel)):
        logger.warning("Ignoring invalid kernel of shape %s", kernel.shape)
        return None
    return kernel


def convolve(buffer, kernel):
    """Replace every channel with its clamped, rounded kernel response."""
    kernel = _valid_kernel(kernel)
    if kernel is None:
        return
    response = correlate_channels(buffer.pixels, kernel)
    buffer.pixels[:] = clamp_round(response)


def convolve_abs(buffer, kernel):
    """Like ``convolve`` but keeps the magnitude of signed responses."""
    kernel = _valid_kernel(kernel)
    if kernel is None:
        return
    response = correlate_channels(buffer.pixels, kernel)
    buffer.pixels[:] = clamp_round(np.abs(response))


def gradient_convolve(buffer, kernel_x, kernel_y):
    """Per-channel gradient magnitude sqrt(Gx^2 + Gy^2)."""
    kernel_x = _valid_kernel(kernel_x)
    kernel_y = _valid_kernel(kernel_y)
    if kernel_x is None or kernel_y is None:
        return
    snapshot = buffer.pixels.copy()
    gx = correlate_channels(snapshot, kernel_x)
    gy = correlate_channels(snapshot, kernel_y)
    buffer.pixels[:] = clamp_round(np.hypot(gx, gy))


def laplacian_grayscale_convolve(buffer, kernel, weights=None):
    """Fold the absolute per-channel responses into one luminance value."""
    kernel = _valid_kernel(kernel)
    if kernel is None:
        return
    response = np.abs(correlate_channels(buffer.pixels, kernel))
    buffer.set_gray(clamp_round(luminance(response, weights)))
