"""Reproducibility record written next to every test run."""

from __future__ import annotations

import hashlib
import importlib.metadata
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import numpy as np

from spptest.curves.curve_set import CurveSet
from spptest.data.io import ensure_curve_paths

STACK = ("numpy", "scipy", "pandas", "pyarrow", "PyYAML", "matplotlib")


def stack_versions() -> dict[str, str]:
    out: dict[str, str] = {}
    for name in ("spptest", *STACK):
        try:
            out[name] = importlib.metadata.version(name)
        except importlib.metadata.PackageNotFoundError:
            out[name] = "not-installed"
    return out


def curve_set_digest(curve_set: CurveSet) -> str:
    """sha256 of the curves as tested, after cropping and residual transforms."""

    h = hashlib.sha256()
    h.update(f"n_r={curve_set.n_r};n_sim={curve_set.n_sim};residual={curve_set.is_residual}".encode("ascii"))
    for name in curve_set.fields():
        if name == "is_residual":
            continue
        h.update(name.encode("ascii"))
        h.update(np.ascontiguousarray(getattr(curve_set, name), dtype="<f8").tobytes())
    return h.hexdigest()


def source_digest(path: str | Path) -> str:
    """sha256 of the manifest (if any) and the curve table a run was read from."""

    manifest, table = ensure_curve_paths(path)
    h = hashlib.sha256()
    for p in (manifest, table):
        if p is None:
            continue
        h.update(p.name.encode("utf-8"))
        h.update(p.read_bytes())
    return h.hexdigest()


def config_digest(cfg: dict[str, Any]) -> str:
    canonical = json.dumps(cfg, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def run_metadata(
    curves_path: str | Path,
    resolved: dict[str, Any],
    curve_set: CurveSet,
    manifest: dict[str, Any],
    kind: str,
    argv: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "timestamp_utc": datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z"),
        "package_versions": stack_versions(),
        "input_hash": source_digest(curves_path),
        "curve_set_hash": curve_set_digest(curve_set),
        "config_hash": config_digest(resolved),
        "cli_invocation": " ".join(argv or []),
        "curves_path": str(Path(curves_path).resolve()),
        "curve_set_id": manifest.get("id"),
        "test": kind,
        "n_r": curve_set.n_r,
        "n_sim": curve_set.n_sim,
        "is_residual": curve_set.is_residual,
    }
