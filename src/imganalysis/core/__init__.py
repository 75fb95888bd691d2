"""Core package for image analysis."""

from .buffer import PixelBuffer, clamp_round
from .image_loading import load_image, save_image
from .params import DEFAULT_PARAMS, save_params, load_params, merge_params
from .grayscale import (
    LUMA_WEIGHTS,
    LEGACY_WEIGHTS,
    to_grayscale,
    apply_lut,
    adjust_brightness,
    adjust_contrast,
    adjust_gamma,
)
from .histogram import (
    histogram,
    stretch_histogram,
    equalize_histogram,
    otsu_threshold,
    threshold_binarize,
    otsu_binarize,
)
from .convolution import generate_kernel, gradient_kernels, convolve, gradient_convolve
from .blur import gaussian_blur, uniform_blur, custom_blur
from .edge_detection import (
    laplacian,
    laplacian_negative,
    laplacian_grayscale,
    log_simple,
    log_thresholded,
    gradient_filter,
    custom_edge_filter,
)
from .canny import canny, canny_edges
from .watershed import segment, watershed, render_labels
from .hough import (
    accumulate,
    transform,
    find_peaks,
    strongest_line,
    draw_lines,
    detect_lines,
    line_endpoints,
)
