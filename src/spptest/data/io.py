"""I/O helpers for curve set folders and run outputs."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd
import yaml

from spptest.curves.curve_set import CurveSet, create_curve_set
from spptest.curves.ops import MissingSimulationDataError, from_simulation_source
from spptest.data.schema import DEFAULT_COLUMNS, MANIFEST_NAME, TABLE_NAMES

logger = logging.getLogger(__name__)


class CurveSetIOError(FileNotFoundError):
    """Raised when expected curve set files are missing."""


def ensure_curve_paths(path: str | Path) -> tuple[Path | None, Path]:
    """Return ``(manifest, table)`` for a curve set folder or a bare table file."""

    p = Path(path)
    if not p.exists():
        raise CurveSetIOError(f"Curve set path does not exist: {p}")
    if p.is_file():
        if p.suffix not in {".parquet", ".csv"}:
            raise CurveSetIOError(f"Unsupported curve table format: {p}")
        return None, p

    manifest = p / MANIFEST_NAME
    for name in TABLE_NAMES:
        table = p / name
        if table.exists():
            return (manifest if manifest.exists() else None), table
    raise CurveSetIOError(f"Missing curve table ({' or '.join(TABLE_NAMES)}) in {p}")


def load_manifest(path: str | Path) -> dict[str, Any]:
    manifest_path, _ = ensure_curve_paths(path)
    if manifest_path is None:
        return {}
    with manifest_path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{MANIFEST_NAME} must be a mapping: {manifest_path}")
    return data


def load_curve_table(path: str | Path) -> pd.DataFrame:
    _, table_path = ensure_curve_paths(path)
    if table_path.suffix == ".csv":
        return pd.read_csv(table_path)
    return pd.read_parquet(table_path)


def load_curve_set(path: str | Path, allow_inf_values: bool = False) -> CurveSet:
    """Read a curve set folder (or table file) into a validated curve set."""

    manifest = load_manifest(path)
    table = load_curve_table(path)
    curve_set = frame_to_curve_set(table, manifest, allow_inf_values=allow_inf_values)
    logger.info("Loaded curve set from %s: %d distances, %d simulations", path, curve_set.n_r, curve_set.n_sim)
    return curve_set


def frame_to_curve_set(
    table: pd.DataFrame,
    manifest: dict[str, Any] | None = None,
    allow_inf_values: bool = False,
) -> CurveSet:
    """Adapt a wide table (one column per curve) into a curve set."""

    columns = {**DEFAULT_COLUMNS, **(manifest or {}).get("columns", {})}
    r_col, obs_col, theo_col = columns["r"], columns["obs"], columns["theo"]
    sim_cols = simulation_columns(table, columns["sim_prefix"])

    if r_col not in table.columns:
        raise CurveSetIOError(f"Curve table is missing the distance column '{r_col}'")
    if obs_col not in table.columns:
        raise CurveSetIOError(f"Curve table is missing the observed curve column '{obs_col}'")
    if not sim_cols:
        raise MissingSimulationDataError(
            f"Curve table has no simulated curve columns with prefix '{columns['sim_prefix']}'."
        )

    r = table[r_col].to_numpy(dtype=float)
    obs = table[obs_col].to_numpy(dtype=float)
    sim_m = table[sim_cols].to_numpy(dtype=float)
    theo = table[theo_col].to_numpy(dtype=float) if theo_col in table.columns else None

    if bool((manifest or {}).get("is_residual", False)):
        fields: dict[str, Any] = {"r": r, "obs": obs, "sim_m": sim_m, "is_residual": True}
        if theo is not None:
            fields["theo"] = theo
        return create_curve_set(fields, allow_inf_values=allow_inf_values)
    return from_simulation_source(r, obs, sim_m, theo=theo, allow_inf_values=allow_inf_values)


def simulation_columns(table: pd.DataFrame, prefix: str) -> list[str]:
    return [str(c) for c in table.columns if str(c).startswith(prefix)]


def curve_set_to_frame(curve_set: CurveSet, sim_prefix: str = "sim_") -> pd.DataFrame:
    data: dict[str, np.ndarray] = {"r": curve_set.r, "obs": curve_set.obs}
    if curve_set.theo is not None:
        data["theo"] = curve_set.theo
    width = len(str(curve_set.n_sim))
    for j in range(curve_set.n_sim):
        data[f"{sim_prefix}{j + 1:0{width}d}"] = curve_set.sim_m[:, j]
    return pd.DataFrame(data)


def write_curve_set(
    curve_set: CurveSet,
    path: str | Path,
    manifest: dict[str, Any] | None = None,
    fmt: str = "parquet",
) -> Path:
    """Write a curve set folder with manifest and wide curve table."""

    root = Path(path)
    root.mkdir(parents=True, exist_ok=True)
    spec = {"schema_version": 1, "id": root.name, "columns": dict(DEFAULT_COLUMNS)}
    spec.update(manifest or {})
    spec["is_residual"] = curve_set.is_residual
    columns = {**DEFAULT_COLUMNS, **spec["columns"]}
    spec["columns"] = columns
    with (root / MANIFEST_NAME).open("w", encoding="utf-8") as f:
        yaml.safe_dump(spec, f, sort_keys=False)

    frame = curve_set_to_frame(curve_set, sim_prefix=columns["sim_prefix"])
    frame = frame.rename(columns={"r": columns["r"], "obs": columns["obs"], "theo": columns["theo"]})
    if fmt == "csv":
        frame.to_csv(root / "curves.csv", index=False)
    elif fmt == "parquet":
        frame.to_parquet(root / "curves.parquet", index=False)
    else:
        raise ValueError(f"Unsupported table format '{fmt}'. Supported: parquet|csv")
    return root


def write_json(data: dict[str, Any], path: str | Path) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, sort_keys=True)
