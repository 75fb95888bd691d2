"""Histograms, histogram-based LUTs and global thresholding."""

import logging

import numpy as np

from .buffer import clamp_round
from .grayscale import apply_lut, gray_values

logger = logging.getLogger(__name__)

CHANNELS = {"red": 0, "green": 1, "blue": 2}
DEFAULT_THRESHOLD = 128


def histogram(buffer, channel="luminance", weights=None):
    """Count of each 0-255 value in one channel (or luminance)."""
    if channel == "luminance":
        values = gray_values(buffer, weights)
    elif channel in CHANNELS:
        values = buffer.pixels[:, :, CHANNELS[channel]]
    else:
        raise ValueError(f"unknown channel {channel!r}")
    return np.bincount(values.ravel(), minlength=256).astype(np.int64)


def cumulative_histogram(hist):
    return np.cumsum(np.asarray(hist, dtype=np.int64))


def stretch_histogram(buffer, weights=None):
    """Linearly stretch the occupied luminance range to 0-255."""
    hist = histogram(buffer, "luminance", weights)
    occupied = np.nonzero(hist)[0]
    if occupied.size == 0:
        return
    low, high = int(occupied[0]), int(occupied[-1])
    if (low == 0 and high == 255) or low == high:
        return
    levels = np.arange(256)
    table = clamp_round((levels - low) * 255.0 / (high - low)).astype(np.int64)
    table[levels < low] = 0
    table[levels > high] = 255
    apply_lut(buffer, table)


def equalization_lut(hist):
    """CDF-based equalisation table for one channel histogram."""
    cdf = cumulative_histogram(hist)
    total = int(cdf[-1])
    nonzero = cdf[cdf > 0]
    cdf_min = int(nonzero[0]) if nonzero.size else 0
    if total == cdf_min:
        return np.arange(256, dtype=np.int64)
    table = (cdf - cdf_min) / float(total - cdf_min) * 255.0
    return np.clip(table.astype(np.int64), 0, 255)


def equalize_histogram(buffer):
    """Equalise each RGB channel independently, in place."""
    tables = [equalization_lut(histogram(buffer, name)) for name in ("red", "green", "blue")]
    for index, table in enumerate(tables):
        buffer.pixels[:, :, index] = table.astype(np.uint8)[buffer.pixels[:, :, index]]


def otsu_threshold(hist):
    """Threshold maximising the between-class variance of a 256-bin histogram.

    Values <= threshold form the background class. When several thresholds
    reach the maximum (empty bins between two modes), the middle of that run
    is returned. Degenerate histograms fall back to 128.
    """
    hist = np.asarray(hist, dtype=np.float64)
    total = hist.sum()
    if total <= 0 or np.count_nonzero(hist) < 2:
        return DEFAULT_THRESHOLD
    levels = np.arange(hist.size, dtype=np.float64)
    weight_bg = np.cumsum(hist)
    weight_fg = total - weight_bg
    mass_bg = np.cumsum(hist * levels)
    mass_total = mass_bg[-1]
    with np.errstate(divide="ignore", invalid="ignore"):
        mean_bg = mass_bg / weight_bg
        mean_fg = (mass_total - mass_bg) / weight_fg
        variance = weight_bg * weight_fg * (mean_bg - mean_fg) ** 2
    variance = np.nan_to_num(variance, nan=0.0, posinf=0.0)
    best = variance.max()
    if best <= 0:
        return DEFAULT_THRESHOLD
    candidates = np.nonzero(variance >= best * (1 - 1e-12))[0]
    return int((candidates[0] + candidates[-1]) // 2)


def threshold_binarize(buffer, threshold, weights=None):
    """Luminance above threshold becomes white, everything else black."""
    threshold = min(255, max(0, int(threshold)))
    gray = gray_values(buffer, weights)
    buffer.set_gray(np.where(gray > threshold, 255, 0))


def otsu_binarize(buffer, weights=None):
    """Binarise with the Otsu threshold of the luminance histogram; returns it."""
    threshold = otsu_threshold(histogram(buffer, "luminance", weights))
    logger.debug("Otsu threshold %d", threshold)
    threshold_binarize(buffer, threshold, weights)
    return threshold
