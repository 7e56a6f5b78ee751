"""Envelope and curve set figures."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np

from spptest.core.types import EnvelopeResult
from spptest.curves.curve_set import CurveSet

METHOD_TITLES = {
    "rank": "Rank envelope test",
    "st": "Studentized envelope test",
    "qdir": "Directional quantile envelope test",
    "q": "Quantile envelope test",
    "unscaled": "Unscaled envelope test",
    "normal": "Normal approximation envelope test",
}


@dataclass(frozen=True)
class RAxis:
    """x axis layout for curves whose distances may restart (combined curve sets)."""

    retick: bool
    x: np.ndarray
    break_locs: np.ndarray
    break_values: np.ndarray
    newstart_ids: np.ndarray


def check_r(r: np.ndarray) -> RAxis:
    """Plot combined curve sets against the index when ``r`` is not increasing."""

    r_arr = np.asarray(r, dtype=float)
    n_r = r_arr.size
    if n_r < 2 or np.all(np.diff(r_arr) >= 0):
        empty = np.empty(0)
        return RAxis(retick=False, x=r_arr, break_locs=empty, break_values=empty, newstart_ids=empty.astype(int))

    newstart_ids = np.flatnonzero(np.diff(r_arr) < 0) + 1
    break_locs = np.unique(np.concatenate([[0], newstart_ids - 1, newstart_ids, [n_r - 1]]))
    return RAxis(
        retick=True,
        x=np.arange(n_r, dtype=float),
        break_locs=break_locs,
        break_values=r_arr[break_locs],
        newstart_ids=newstart_ids,
    )


def plot_envelope(result: EnvelopeResult, out_path: str | Path, ylabel: str = "T(r)") -> Path:
    p = Path(out_path)
    p.parent.mkdir(parents=True, exist_ok=True)

    axis = check_r(result.r)
    lower = np.where(np.isfinite(result.lower), result.lower, np.nan)
    upper = np.where(np.isfinite(result.upper), result.upper, np.nan)

    fig, ax = plt.subplots(figsize=(6, 4))
    ax.fill_between(axis.x, lower, upper, color="grey", alpha=0.4, linewidth=0, label="global envelope")
    ax.plot(axis.x, result.central, color="black", linestyle="--", linewidth=1.0, label="central")
    ax.plot(axis.x, result.obs, color="black", linewidth=1.5, label="observed")
    outside = result.outside_mask
    if outside.any():
        ax.scatter(axis.x[outside], result.obs[outside], color="red", s=12, zorder=3, label="outside")
    _apply_r_axis(ax, axis)
    ax.set_ylabel(ylabel)
    title = METHOD_TITLES.get(result.method, result.method)
    ax.set_title(f"{title}: p = {result.p:.3g} [{result.p_interval[0]:.3g}, {result.p_interval[1]:.3g}]")
    ax.legend(loc="best", fontsize="small", frameon=False)
    ax.grid(alpha=0.3)
    fig.tight_layout()
    fig.savefig(p, dpi=140)
    plt.close(fig)
    return p


def plot_curve_set(curve_set: CurveSet, out_path: str | Path, ylabel: str = "T(r)") -> Path:
    p = Path(out_path)
    p.parent.mkdir(parents=True, exist_ok=True)

    axis = check_r(curve_set.r)
    fig, ax = plt.subplots(figsize=(6, 4))
    ax.plot(axis.x, curve_set.sim_m, color="0.7", linewidth=0.6)
    ax.plot(axis.x, curve_set.obs, color="black", linewidth=1.5)
    _apply_r_axis(ax, axis)
    ax.set_ylabel(ylabel)
    ax.set_title(f"Observed curve and {curve_set.n_sim} simulations")
    ax.grid(alpha=0.3)
    fig.tight_layout()
    fig.savefig(p, dpi=140)
    plt.close(fig)
    return p


def _apply_r_axis(ax: plt.Axes, axis: RAxis) -> None:
    if not axis.retick:
        ax.set_xlabel("r")
        return
    ax.set_xticks(axis.break_locs)
    ax.set_xticklabels([f"{v:.2f}" for v in axis.break_values])
    for idx in axis.newstart_ids:
        ax.axvline(idx - 0.5, color="black", linestyle=":", linewidth=0.8)
    ax.set_xlabel("r (combined curve sets)")
