"""Pixel-grid image analysis: convolution filters, Canny, watershed and Hough."""

__version__ = "0.1.0"
