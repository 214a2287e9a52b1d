"""
voter_uplift/config.py
======================
Configuration loader for the uplift pipeline.

Reads ``config/campaign_params.yaml`` and deep-merges it over the built-in
``DEFAULTS`` so that a partial file still yields a complete
configuration.  Every value here is also an explicit parameter of the
function that uses it, and ``main.py`` exposes each one as a CLI flag.

Usage
-----
    from voter_uplift.config import load_config
    cfg = load_config()
    cfg["campaign"]["unit_cost"]      # 2.0
"""

import os
import copy
import logging

import yaml

from voter_uplift.errors import InputError

logger = logging.getLogger(__name__)

_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DEFAULT_CONFIG_PATH = os.path.join(_ROOT, "config", "campaign_params.yaml")

DEFAULTS = {
    "data": {
        "feature_columns": [
            "AGE", "GENDER_F", "HH_ND", "HH_NR", "HH_NI",
            "NH_WHITE", "NH_AA", "COMM_PT", "H_F1", "REG_DAYS",
            "PR_PELIG", "E_PELIG", "POLITICALC", "VG_12", "VPR_12",
        ],
        "treatment_column": "MESSAGE_A",
        "response_column":  "MOVED_AD",
    },
    "split": {
        "train_fraction": 0.8,
        "seed":           420,
    },
    "experiment": {
        "n_resamples": 10000,
        "seed":        420,
    },
    "model": {
        "type":         "gbm",
        "cv_folds":     5,
        "random_state": 42,
        "threshold":    0.5,
    },
    "campaign": {
        "unit_cost":       2.0,
        "campaign_size":   100000,
        "decile_fraction": 0.1,
    },
    "economics": {
        "currency":        "USD",
        "currency_symbol": "$",
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: str = None) -> dict:
    """
    Load the YAML configuration merged over ``DEFAULTS``.

    Parameters
    ----------
    path : str, optional
        YAML file to read. Defaults to ``config/campaign_params.yaml`` at the
        project root.

    Returns
    -------
    dict
        Complete configuration. When ``path`` is omitted and the shipped file
        is missing or unreadable, ``DEFAULTS`` is returned.

    Raises
    ------
    InputError
        If an explicitly given ``path`` is missing, is not valid YAML or does
        not hold a mapping.
    """
    if path is None:
        try:
            with open(DEFAULT_CONFIG_PATH, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f)
            logger.debug("[Config] Loaded config from %s", DEFAULT_CONFIG_PATH)
        except (OSError, yaml.YAMLError) as exc:
            logger.debug("[Config] Could not load YAML config (%s). Using defaults.", exc)
            loaded = {}
        if loaded is not None and not isinstance(loaded, dict):
            logger.warning("[Config] %s does not contain a mapping; ignoring it.", DEFAULT_CONFIG_PATH)
            loaded = {}
        return _deep_merge(DEFAULTS, loaded or {})

    if not os.path.exists(path):
        raise InputError(f"[Config] Config file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise InputError(f"[Config] Could not read config file {path}: {exc}") from exc
    if loaded is not None and not isinstance(loaded, dict):
        raise InputError(f"[Config] {path} must contain a mapping, got {type(loaded).__name__}")
    logger.debug("[Config] Loaded config from %s", path)
    return _deep_merge(DEFAULTS, loaded or {})


def get_currency_symbol(cfg: dict = None) -> str:
    """Currency symbol for reports and figures, e.g. '$'."""
    cfg = cfg if cfg is not None else load_config()
    return cfg.get("economics", {}).get("currency_symbol", "$")


def get_currency_code(cfg: dict = None) -> str:
    """ISO currency code, e.g. 'USD'."""
    cfg = cfg if cfg is not None else load_config()
    return cfg.get("economics", {}).get("currency", "USD")
