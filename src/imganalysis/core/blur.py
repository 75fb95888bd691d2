"""Smoothing filters built on the convolution engine."""

import logging

import numpy as np

from .convolution import convolve, gaussian_kernel, uniform_kernel

logger = logging.getLogger(__name__)


def gaussian_blur(buffer, sigma, size=0):
    """Gaussian blur in place; size <= 0 derives the size from sigma."""
    if sigma <= 0:
        logger.warning("Gaussian blur skipped: sigma must be positive, got %s", sigma)
        return
    convolve(buffer, gaussian_kernel(sigma, size))


def uniform_blur(buffer, size):
    """Box blur in place."""
    if size <= 0:
        logger.warning("Uniform blur skipped: size must be positive, got %s", size)
        return
    convolve(buffer, uniform_kernel(size))


def normalize_kernel(matrix):
    """Scale a kernel so its weights sum to 1; near-zero sums are left as is."""
    kernel = np.asarray(matrix, dtype=np.float64)
    total = kernel.sum()
    if abs(total) < 1e-6:
        logger.warning("Kernel weights sum to %.3g, skipping normalisation", total)
        return kernel
    return kernel / total


def custom_blur(buffer, matrix, normalize=True):
    """Blur with a caller-supplied square, odd-sized matrix."""
    kernel = np.asarray(matrix, dtype=np.float64)
    if kernel.ndim != 2 or kernel.size == 0 or kernel.shape[0] != kernel.shape[1] or kernel.shape[0] % 2 == 0:
        logger.warning("Custom blur skipped: matrix of shape %s is not square and odd-sized", kernel.shape)
        return
    convolve(buffer, normalize_kernel(kernel) if normalize else kernel)
