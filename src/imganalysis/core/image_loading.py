"""Load and save pixel buffers."""

from pathlib import Path

import numpy as np
from PIL import Image
from scipy import ndimage

from .buffer import PixelBuffer


def load_image(image_path, coarsen_factor=1):
    """Load an image as an RGB PixelBuffer, optionally coarsened by a factor."""
    img = Image.open(image_path).convert('RGB')
    img_array = np.array(img)
    if coarsen_factor > 1:
        img_array = ndimage.zoom(
            img_array.astype(float), (1 / coarsen_factor, 1 / coarsen_factor, 1), order=1
        )
    return PixelBuffer.from_array(img_array)


def save_image(buffer, image_path):
    """Write the buffer to disk; the format follows the file extension."""
    path = Path(image_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(buffer.pixels).save(path)
