"""Grayscale conversion and lookup-table transforms."""

import logging

import numpy as np

from .buffer import clamp_round

logger = logging.getLogger(__name__)

# Rec. 601 luma, used wherever a luminance value is needed.
LUMA_WEIGHTS = (0.299, 0.587, 0.114)
# Rounded weights of the earlier desktop tool, kept selectable for matching old output.
LEGACY_WEIGHTS = (0.3, 0.6, 0.1)

NAMED_WEIGHTS = {
    "rec601": LUMA_WEIGHTS,
    "legacy": LEGACY_WEIGHTS,
}


def resolve_weights(weights=None):
    """Turn None, a preset name or an (r, g, b) triple into a weight triple."""
    if weights is None:
        return LUMA_WEIGHTS
    if isinstance(weights, str):
        try:
            return NAMED_WEIGHTS[weights.lower()]
        except KeyError:
            raise ValueError(f"unknown grayscale weights {weights!r}, expected one of {sorted(NAMED_WEIGHTS)}")
    r, g, b = (float(w) for w in weights)
    return r, g, b


def luminance(pixels, weights=None):
    """Weighted sum of the channels of a (H, W, 3) array as a float field."""
    r, g, b = resolve_weights(weights)
    pixels = np.asarray(pixels, dtype=np.float64)
    return r * pixels[:, :, 0] + g * pixels[:, :, 1] + b * pixels[:, :, 2]


def gray_values(buffer, weights=None):
    """Rounded 0-255 luminance of a buffer as a uint8 array."""
    return clamp_round(luminance(buffer.pixels, weights))


def to_grayscale(buffer, weights=None):
    """Convert the buffer to grayscale in place."""
    buffer.set_gray(gray_values(buffer, weights))


def apply_lut(buffer, table):
    """Map every channel value through a 256-entry lookup table, in place."""
    table = np.asarray(table)
    if table.shape != (256,):
        logger.warning("Ignoring lookup table of shape %s, expected (256,)", table.shape)
        return
    table = np.clip(table, 0, 255).astype(np.uint8)
    buffer.pixels[:] = table[buffer.pixels]


def brightness_lut(value):
    """Normalised exponential curve (e^(v x) - 1) / (e^v - 1).

    Positive values darken the mid-tones, negative values brighten them;
    black and white stay fixed.
    """
    x = np.arange(256) / 255.0
    if abs(value) < 1e-6:
        return np.arange(256, dtype=np.uint8)
    numerator = np.exp(value * (x - 0.5)) - np.exp(-value * 0.5)
    denominator = np.exp(value * 0.5) - np.exp(-value * 0.5)
    return clamp_round(numerator / denominator * 255.0)


def contrast_lut(factor):
    """Sigmoid contrast curve around mid-gray.

    For |factor| < 1 the raw sigmoid is used, which flattens the curve;
    otherwise the sigmoid is rescaled to span the full range.
    """
    x = np.arange(256) / 255.0
    midpoint = 0.5
    steepness = factor * 5.0
    sigmoid = 1.0 / (1.0 + np.exp(-steepness * (x - midpoint)))
    if -1.0 < factor < 1.0:
        return clamp_round(sigmoid * 255.0)
    offset = 1.0 / (1.0 + np.exp(steepness * midpoint))
    scale = 1.0 / (1.0 / (1.0 + np.exp(-steepness * (1.0 - midpoint))) - offset)
    return clamp_round((sigmoid - offset) * scale * 255.0)


def gamma_lut(gamma):
    """Gamma correction curve, out = in ** (1 / gamma)."""
    gamma = max(gamma, 0.0001)
    x = np.arange(256) / 255.0
    return clamp_round(np.power(x, 1.0 / gamma) * 255.0)


def adjust_brightness(buffer, value):
    apply_lut(buffer, brightness_lut(value))


def adjust_contrast(buffer, factor):
    apply_lut(buffer, contrast_lut(factor))


def adjust_gamma(buffer, gamma):
    apply_lut(buffer, gamma_lut(gamma))
