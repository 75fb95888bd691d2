"""Command-line interface for imganalysis."""

import argparse
import logging
import sys
from pathlib import Path

import yaml

from .core import (
    load_image,
    save_image,
    load_params,
    merge_params,
    to_grayscale,
    adjust_brightness,
    adjust_contrast,
    adjust_gamma,
    stretch_histogram,
    equalize_histogram,
    threshold_binarize,
    otsu_binarize,
    gaussian_blur,
    uniform_blur,
    laplacian,
    laplacian_negative,
    laplacian_grayscale,
    log_simple,
    log_thresholded,
    gradient_filter,
    canny,
    watershed,
    transform,
    detect_lines,
    line_endpoints,
)

EDGE_METHODS = [
    "laplacian",
    "laplacian-negative",
    "laplacian-gray",
    "log",
    "log-threshold",
    "roberts",
    "prewitt",
    "sobel",
]


def pick(value, default):
    """Command-line value if given, else the parameter-file value."""
    return default if value is None else value


def run_blur(buffer, args, params):
    section = params["blur"]
    if args.kind == "uniform":
        uniform_blur(buffer, pick(args.size, section["size"]) or 3)
    else:
        gaussian_blur(buffer, pick(args.sigma, section["sigma"]), pick(args.size, section["size"]))


def run_edges(buffer, args, params):
    section = params["edges"]
    weights = params["grayscale"]["weights"]
    method = args.method or section["operator"]
    size = pick(args.size, section["laplacian_size"])
    sigma = pick(args.sigma, section["log_sigma"])
    if method == "laplacian":
        laplacian(buffer, size)
    elif method == "laplacian-negative":
        laplacian_negative(buffer, size)
    elif method == "laplacian-gray":
        laplacian_grayscale(buffer, size, weights)
    elif method == "log":
        log_simple(buffer, sigma, weights)
    elif method == "log-threshold":
        log_thresholded(
            buffer,
            sigma,
            pick(args.window, section["log_window"]),
            pick(args.threshold, section["log_threshold"]),
            weights,
        )
    else:
        gradient_filter(buffer, method)


def run_canny(buffer, args, params):
    section = params["canny"]
    ok = canny(
        buffer,
        pick(args.upper, section["upper"]),
        pick(args.lower, section["lower"]),
        params["grayscale"]["weights"],
        args.keep_ties or section["keep_ties"],
        args.follow_edge or section["follow_edge"],
    )
    if not ok:
        print("Canny edge detection failed, image left unchanged", file=sys.stderr)


def run_watershed(buffer, args, params):
    to_grayscale(buffer, params["grayscale"]["weights"])
    labels = watershed(buffer, pick(args.connectivity, params["watershed"]["connectivity"]))
    print(f"{int(labels.max())} regions, {int((labels == 0).sum())} watershed pixels")


def run_hough(buffer, args, params):
    section = params["hough"]
    density = pick(args.density, section["theta_density"])
    skip = args.skip_edges or section["skip_edge_detection"]
    weights = params["grayscale"]["weights"]
    if args.accumulator:
        return transform(buffer, density, skip, weights)
    lines = detect_lines(buffer, density, skip, pick(args.threshold, section["threshold"]), weights=weights)
    for theta, rho in lines:
        ends = line_endpoints(rho, theta, buffer.width, buffer.height)
        ends = " -> ".join(f"({x:.1f}, {y:.1f})" for x, y in ends)
        print(f"theta={theta:.4f} rho={rho:.1f} {ends}")
    return buffer


def run_threshold(buffer, args, params):
    weights = params["grayscale"]["weights"]
    if args.value is None:
        print(f"Otsu threshold: {otsu_binarize(buffer, weights)}")
    else:
        threshold_binarize(buffer, args.value, weights)


def run_adjust(buffer, args, params):
    if args.grayscale:
        to_grayscale(buffer, params["grayscale"]["weights"])
    if args.brightness is not None:
        adjust_brightness(buffer, args.brightness)
    if args.contrast is not None:
        adjust_contrast(buffer, args.contrast)
    if args.gamma is not None:
        adjust_gamma(buffer, args.gamma)
    if args.stretch:
        stretch_histogram(buffer, params["grayscale"]["weights"])
    if args.equalize:
        equalize_histogram(buffer)


COMMANDS = {
    "blur": run_blur,
    "edges": run_edges,
    "canny": run_canny,
    "watershed": run_watershed,
    "hough": run_hough,
    "threshold": run_threshold,
    "adjust": run_adjust,
}


def build_parser():
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("image", help="Path to the image file.")
    common.add_argument("-o", "--output", help="Where to write the result (default: <image>_<command>.png).")
    common.add_argument("-p", "--params", help="Path to a parameters YAML file.")
    common.add_argument("--coarsen", type=int, default=1, help="Downsample the input by this factor.")
    common.add_argument("--show", action="store_true", help="Display the result with matplotlib.")
    common.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-v, -vv).")

    parser = argparse.ArgumentParser(description="Filter, segment and detect lines in images.")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("blur", parents=[common], help="Gaussian or uniform blur.")
    p.add_argument("--kind", choices=["gaussian", "uniform"], default="gaussian")
    p.add_argument("--sigma", type=float)
    p.add_argument("--size", type=int)

    p = sub.add_parser("edges", parents=[common], help="Laplacian, LoG or gradient edge filters.")
    p.add_argument("--method", choices=EDGE_METHODS)
    p.add_argument("--size", type=int, help="Laplacian kernel size.")
    p.add_argument("--sigma", type=float, help="LoG sigma.")
    p.add_argument("--window", type=int, help="LoG threshold window size.")
    p.add_argument("--threshold", type=float, help="LoG threshold as a fraction of the response range.")

    p = sub.add_parser("canny", parents=[common], help="Canny edge detector.")
    p.add_argument("--upper", type=float)
    p.add_argument("--lower", type=float)
    p.add_argument("--keep-ties", action="store_true", help="Accept a tie with the forward neighbour, thinning step edges to one pixel.")
    p.add_argument("--follow-edge", action="store_true", help="Grow edges along the contour instead of across it.")

    p = sub.add_parser("watershed", parents=[common], help="Watershed segmentation.")
    p.add_argument("--connectivity", type=int, choices=[4, 8])

    p = sub.add_parser("hough", parents=[common], help="Hough line detection.")
    p.add_argument("--density", type=int, help="Angle bins per degree.")
    p.add_argument("--skip-edges", action="store_true", help="Vote with the grayscale image as is.")
    p.add_argument("--threshold", type=int, help="Minimum votes for a line.")
    p.add_argument("--accumulator", action="store_true", help="Write the accumulator instead of the lines.")

    p = sub.add_parser("threshold", parents=[common], help="Global binarisation.")
    p.add_argument("--value", type=int, help="Fixed threshold (default: Otsu).")

    p = sub.add_parser("adjust", parents=[common], help="Point operations and histogram tools.")
    p.add_argument("--grayscale", action="store_true")
    p.add_argument("--brightness", type=float)
    p.add_argument("--contrast", type=float)
    p.add_argument("--gamma", type=float)
    p.add_argument("--stretch", action="store_true")
    p.add_argument("--equalize", action="store_true")
    return parser


def show(buffer, title):
    import matplotlib.pyplot as plt

    fig, ax = plt.subplots()
    ax.imshow(buffer.pixels)
    ax.set_title(title)
    plt.show()


def main(argv=None):
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=max(logging.DEBUG, logging.WARNING - 10 * args.verbose),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        params = load_params(args.params) if args.params else merge_params(None)
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"Error loading parameters: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        buffer = load_image(args.image, args.coarsen)
    except Exception as e:
        print(f"Error loading image: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        result = COMMANDS[args.command](buffer, args, params) or buffer
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    output = args.output
    if output is None:
        source = Path(args.image)
        output = source.with_name(f"{source.stem}_{args.command}.png")
    try:
        save_image(result, output)
    except OSError as e:
        print(f"Error saving image: {e}", file=sys.stderr)
        sys.exit(1)

    if args.show:
        show(result, f"{args.command}: {Path(args.image).name}")


if __name__ == "__main__":
    main()
