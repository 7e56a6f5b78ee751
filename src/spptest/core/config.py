"""Configuration loading and resolution."""

from __future__ import annotations

from copy import deepcopy
from pathlib import Path
from typing import Any

import yaml


class ConfigError(ValueError):
    """Raised when configuration is invalid."""


DEFAULT_CONFIG: dict[str, Any] = {
    "envelope": {
        "method": "rank",
        "alpha": 0.05,
        "alternative": "two.sided",
        "ties": "conservative",
        "probs": [0.025, 0.975],
        "use_theo": True,
        "n_norm": 10000,
        "seed": None,
    },
    "deviation": {
        "measure": "max",
        "scaling": "qdir",
        "ties": "conservative",
        "probs": [0.025, 0.975],
        "use_theo": True,
    },
    "crop": {
        "r_min": None,
        "r_max": None,
    },
    "residual": {
        "enabled": False,
        "reference": "auto",
    },
}

ENVELOPE_METHODS = {"rank", "st", "qdir", "q", "unscaled", "normal"}
ALTERNATIVES = {"two.sided", "less", "greater"}
TIE_METHODS = {"conservative", "liberal", "midrank"}
DEVIATION_MEASURES = {"max", "int", "int2"}
DEVIATION_SCALINGS = {"none", "q", "qdir", "st"}
RESIDUAL_REFERENCES = {"auto", "theo", "mean"}


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries and return a new dictionary."""

    out = deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = deep_merge(out[key], value)
        else:
            out[key] = value
    return out


def load_yaml(path: str | Path) -> dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Config file not found: {p}")
    with p.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config must be a mapping at root: {p}")
    return data


def resolve_config(
    manifest: dict[str, Any] | None = None,
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Resolve run configuration from defaults, the curve set manifest, and optional user file."""

    resolved = deepcopy(DEFAULT_CONFIG)
    analysis = (manifest or {}).get("analysis", {})
    if analysis:
        resolved = deep_merge(resolved, analysis)
    if config_path is not None:
        resolved = deep_merge(resolved, load_yaml(config_path))
    if overrides:
        resolved = deep_merge(resolved, overrides)
    _validate(resolved)
    return resolved


def dump_yaml(data: dict[str, Any], out_path: str | Path) -> None:
    p = Path(out_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, sort_keys=False)


def _validate(cfg: dict[str, Any]) -> None:
    env = cfg.get("envelope", {})
    _check_choice("envelope.method", env.get("method"), ENVELOPE_METHODS)
    _check_choice("envelope.alternative", env.get("alternative"), ALTERNATIVES)
    _check_choice("envelope.ties", env.get("ties"), TIE_METHODS)
    alpha = env.get("alpha")
    if not isinstance(alpha, (int, float)) or not (0.0 < float(alpha) < 1.0):
        raise ConfigError(f"envelope.alpha must be a number in (0,1). Got {alpha!r}")
    _check_probs("envelope.probs", env.get("probs"))
    n_norm = env.get("n_norm")
    if isinstance(n_norm, bool) or not isinstance(n_norm, int) or n_norm < 1:
        raise ConfigError(f"envelope.n_norm must be a positive integer. Got {n_norm!r}")
    seed = env.get("seed")
    if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int)):
        raise ConfigError(f"envelope.seed must be an integer or null. Got {seed!r}")

    dev = cfg.get("deviation", {})
    _check_choice("deviation.measure", dev.get("measure"), DEVIATION_MEASURES)
    _check_choice("deviation.scaling", dev.get("scaling"), DEVIATION_SCALINGS)
    _check_choice("deviation.ties", dev.get("ties"), TIE_METHODS)
    _check_probs("deviation.probs", dev.get("probs"))

    crop = cfg.get("crop", {})
    r_min, r_max = crop.get("r_min"), crop.get("r_max")
    for key, value in (("crop.r_min", r_min), ("crop.r_max", r_max)):
        if value is not None and not isinstance(value, (int, float)):
            raise ConfigError(f"{key} must be a number or null. Got {value!r}")
    if r_min is not None and r_max is not None and r_min > r_max:
        raise ConfigError(f"crop.r_min must not exceed crop.r_max. Got {r_min} > {r_max}")

    _check_choice("residual.reference", cfg.get("residual", {}).get("reference"), RESIDUAL_REFERENCES)


def _check_choice(key: str, value: Any, allowed: set[str]) -> None:
    if value not in allowed:
        raise ConfigError(f"Unsupported {key} '{value}'. Supported: {'|'.join(sorted(allowed))}")


def _check_probs(key: str, probs: Any) -> None:
    if not isinstance(probs, (list, tuple)) or len(probs) != 2:
        raise ConfigError(f"{key} must be a list of two quantile levels. Got {probs!r}")
    lo, hi = probs
    if not all(isinstance(p, (int, float)) for p in probs) or not (0.0 < lo < hi < 1.0):
        raise ConfigError(f"{key} must satisfy 0 < lower < upper < 1. Got {probs!r}")
