"""Edge detection filters: Laplacian family, LoG and gradient operators."""

import logging

import numpy as np
from scipy import ndimage

from .buffer import clamp_round
from .convolution import (
    convolve,
    convolve_abs,
    correlate,
    gradient_convolve,
    gradient_kernels,
    laplacian_grayscale_convolve,
    laplacian_kernel,
    laplacian_negative_kernel,
    log_kernel,
    odd_size,
)
from .grayscale import luminance

logger = logging.getLogger(__name__)


def _kernel_size(size, name):
    if size <= 0:
        logger.warning("%s skipped: kernel size must be positive, got %s", name, size)
        return None
    return odd_size(size)


def laplacian(buffer, size=3):
    """Laplacian filter; bright-on-dark detail survives, the rest clamps to 0."""
    size = _kernel_size(size, "Laplacian")
    if size:
        convolve(buffer, laplacian_kernel(size))


def laplacian_negative(buffer, size=3):
    """Negated Laplacian filter for dark lines on a bright background."""
    size = _kernel_size(size, "Negative Laplacian")
    if size:
        convolve(buffer, laplacian_negative_kernel(size))


def laplacian_grayscale(buffer, size=3, weights=None):
    """Laplacian magnitude folded to a single gray level."""
    size = _kernel_size(size, "Grayscale Laplacian")
    if size:
        laplacian_grayscale_convolve(buffer, laplacian_kernel(size), weights)


def log_response(buffer, sigma, weights=None):
    """Laplacian-of-Gaussian response of the buffer's luminance."""
    return correlate(luminance(buffer.pixels, weights), log_kernel(sigma))


def log_simple(buffer, sigma, weights=None):
    """LoG response min-max normalised to 0-255 and written as grayscale."""
    if sigma <= 0:
        logger.warning("LoG skipped: sigma must be positive, got %s", sigma)
        return
    response = log_response(buffer, sigma, weights)
    low, high = response.min(), response.max()
    if high - low <= 0:
        logger.debug("LoG response is flat, leaving buffer unchanged")
        return
    buffer.set_gray(clamp_round((response - low) / (high - low) * 255.0))


def log_thresholded(buffer, sigma, window_size=3, threshold_fraction=0.1, weights=None):
    """LoG edge map keeping pixels whose neighbourhood response varies enough.

    A pixel is kept when the spread (max - min) of the LoG response inside its
    ``window_size`` square exceeds ``threshold_fraction`` of the global spread.
    This approximates zero-crossing detection: a strong local swing of the
    response is taken as evidence of a crossing, but the sign change itself is
    never checked. Kept pixels get their normalised response, others 0.
    """
    if sigma <= 0 or window_size < 3:
        logger.warning("Thresholded LoG skipped: sigma=%s window_size=%s", sigma, window_size)
        return
    window_size = odd_size(window_size)
    response = log_response(buffer, sigma, weights)
    low, high = response.min(), response.max()
    spread = high - low
    local_max = ndimage.maximum_filter(response, size=window_size, mode="nearest")
    local_min = ndimage.minimum_filter(response, size=window_size, mode="nearest")
    keep = (local_max - local_min) > spread * threshold_fraction
    values = np.zeros_like(response)
    if spread > 0:
        values = np.abs(response - low) / spread * 255.0
    buffer.set_gray(np.where(keep, clamp_round(values), 0))


def gradient_filter(buffer, operator="sobel"):
    """Gradient magnitude with the Roberts, Prewitt or Sobel operator."""
    try:
        kernel_x, kernel_y = gradient_kernels(operator)
    except ValueError as e:
        logger.warning("Gradient filter skipped: %s", e)
        return
    gradient_convolve(buffer, kernel_x, kernel_y)


def roberts(buffer):
    gradient_filter(buffer, "roberts")


def prewitt(buffer):
    gradient_filter(buffer, "prewitt")


def sobel(buffer):
    gradient_filter(buffer, "sobel")


def custom_edge_filter(buffer, matrix):
    """Apply a caller-supplied square, odd-sized kernel; absolute responses are kept."""
    rows = [list(row) for row in matrix] if matrix is not None else []
    size = len(rows)
    if size == 0 or any(len(row) != size for row in rows):
        logger.warning("Custom edge filter skipped: matrix must be square and non-empty")
        return
    if size % 2 == 0:
        logger.warning("Custom edge filter skipped: matrix size %d is even", size)
        return
    convolve_abs(buffer, np.array(rows, dtype=np.float64))
