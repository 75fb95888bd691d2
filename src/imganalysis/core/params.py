"""Save and load analysis parameters."""

import copy
import logging

import yaml

logger = logging.getLogger(__name__)

DEFAULT_PARAMS = {
    "grayscale": {"weights": "rec601"},
    "blur": {"sigma": 1.0, "size": 0},
    "edges": {
        "operator": "sobel",
        "laplacian_size": 3,
        "log_sigma": 1.0,
        "log_window": 3,
        "log_threshold": 0.1,
    },
    "canny": {"upper": 50.0, "lower": 20.0, "keep_ties": False, "follow_edge": False},
    "watershed": {"connectivity": 8},
    "hough": {"theta_density": 1, "skip_edge_detection": False, "threshold": 100},
}


def merge_params(overrides):
    """Defaults updated section by section; unknown keys are dropped."""
    params = copy.deepcopy(DEFAULT_PARAMS)
    for section, values in (overrides or {}).items():
        if section not in params:
            logger.warning("Ignoring unknown parameter section %r", section)
            continue
        if not isinstance(values, dict):
            raise ValueError(f"parameter section {section!r} must be a mapping")
        for key, value in values.items():
            if key not in params[section]:
                logger.warning("Ignoring unknown parameter %s.%s", section, key)
                continue
            params[section][key] = value
    return params


def save_params(params, filename="params.yaml"):
    """Save analysis parameters to YAML."""
    with open(filename, "w") as f:
        yaml.safe_dump(merge_params(params), f, sort_keys=False)


def load_params(filename="params.yaml"):
    """Load analysis parameters from YAML, filling gaps with defaults."""
    with open(filename, "r") as f:
        params = yaml.safe_load(f)
    if params is not None and not isinstance(params, dict):
        raise ValueError(f"{filename}: expected a mapping of parameter sections")
    return merge_params(params)
