"""Structured report payload generation."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import numpy as np

from spptest.core.types import DeviationResult, EnvelopeResult


def build_report_payload(
    result: EnvelopeResult | DeviationResult,
    metadata: dict[str, Any] | None = None,
    include_curves: bool = True,
) -> dict[str, Any]:
    """Self-describing payload of a test result for downstream plotting and archiving."""

    metadata = metadata or {}
    payload: dict[str, Any] = {
        "result": _coerce_scalars(result.to_dict()),
        "reproducibility": {
            "input_hash": metadata.get("input_hash"),
            "curve_set_hash": metadata.get("curve_set_hash"),
            "config_hash": metadata.get("config_hash"),
            "timestamp_utc": metadata.get("timestamp_utc"),
            "package_versions": metadata.get("package_versions"),
        },
        "measures": {
            "obs": _finite_list([result.measures.obs])[0],
            "sim": _finite_list(result.measures.sim),
        },
    }
    if include_curves and isinstance(result, EnvelopeResult):
        payload["curves"] = {
            "r": _finite_list(result.r),
            "obs": _finite_list(result.obs),
            "central": _finite_list(result.central),
            "lower": _finite_list(result.lower),
            "upper": _finite_list(result.upper),
        }
    return payload


def write_report_json(payload: dict[str, Any], out_path: str | Path) -> None:
    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(json.dumps(payload, indent=2, sort_keys=True) + "\n", encoding="utf-8")


def _finite_list(values: np.ndarray) -> list[float | None]:
    # JSON has no infinities; one-sided bounds are written as null
    return [float(v) if np.isfinite(v) else None for v in np.asarray(values, dtype=float)]


def _coerce_scalars(values: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in values.items():
        if isinstance(value, (str, int, list, dict)) or value is None:
            out[key] = value
            continue
        try:
            number = float(value)
        except (TypeError, ValueError):
            out[key] = str(value)
            continue
        out[key] = number if np.isfinite(number) else None
    return out
