"""RGB pixel buffer shared by all algorithms."""

import numpy as np


BLACK = (0, 0, 0)


def clamp_round(values):
    """Round half up and clamp to the 0-255 byte range, returning uint8."""
    values = np.nan_to_num(np.asarray(values, dtype=np.float64), nan=0.0, posinf=255.0, neginf=0.0)
    return np.clip(np.floor(values + 0.5), 0, 255).astype(np.uint8)


class PixelBuffer:
    """Fixed-size grid of RGB triples backed by a (height, width, 3) uint8 array.

    Reads outside the grid return black and writes outside it are ignored,
    so neighbourhood code can probe past the border without checks.
    """

    def __init__(self, width, height, fill=BLACK):
        self._width = int(width)
        self._height = int(height)
        self.pixels = np.empty((self._height, self._width, 3), dtype=np.uint8)
        self.pixels[:, :] = np.clip(fill, 0, 255)

    @classmethod
    def from_array(cls, array):
        """Build a buffer from a (H, W) gray or (H, W, 3) RGB array."""
        array = np.asarray(array)
        if array.ndim == 2:
            array = np.repeat(array[:, :, None], 3, axis=2)
        if array.ndim != 3 or array.shape[2] < 3:
            raise ValueError(f"expected (H, W) or (H, W, 3) array, got shape {array.shape}")
        buffer = cls(array.shape[1], array.shape[0])
        buffer.pixels[:] = np.clip(np.rint(array[:, :, :3]), 0, 255).astype(np.uint8)
        return buffer

    @property
    def width(self):
        return self._width

    @property
    def height(self):
        return self._height

    @property
    def shape(self):
        return self._height, self._width

    def in_bounds(self, x, y):
        return 0 <= x < self._width and 0 <= y < self._height

    def get_pixel(self, x, y):
        """Return (r, g, b) at (x, y), or black outside the grid."""
        if not self.in_bounds(x, y):
            return BLACK
        r, g, b = self.pixels[y, x]
        return int(r), int(g), int(b)

    def set_pixel(self, x, y, r, g, b):
        """Write (r, g, b) at (x, y); out-of-range coordinates are ignored."""
        if not self.in_bounds(x, y):
            return
        self.pixels[y, x] = (
            min(255, max(0, int(r))),
            min(255, max(0, int(g))),
            min(255, max(0, int(b))),
        )

    def channel(self, index):
        """Return one channel as a float field."""
        return self.pixels[:, :, index].astype(np.float64)

    def set_gray(self, values):
        """Write a (H, W) array of 0-255 values to all three channels."""
        self.pixels[:] = np.asarray(values, dtype=np.uint8)[:, :, None]

    def copy(self):
        clone = PixelBuffer(self._width, self._height)
        clone.pixels[:] = self.pixels
        return clone

    def __eq__(self, other):
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return self.shape == other.shape and np.array_equal(self.pixels, other.pixels)

    def __repr__(self):
        return f"PixelBuffer(width={self._width}, height={self._height})"
