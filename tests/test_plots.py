from pathlib import Path

import numpy as np

from spptest.curves.curve_set import create_curve_set
from spptest.curves.ops import combine
from spptest.stats.envelope import rank_envelope
from spptest.viz.plots import check_r, plot_curve_set, plot_envelope


def _curve_set():
    rng = np.random.default_rng(5)
    r = np.linspace(0.0, 1.0, 10)
    return create_curve_set({"r": r, "obs": r + 0.5, "sim_m": r[:, None] + rng.normal(0.0, 0.1, (10, 39))})


def test_check_r_increasing_grid_is_kept():
    axis = check_r(np.array([0.0, 0.5, 1.0]))
    assert not axis.retick
    np.testing.assert_array_equal(axis.x, [0.0, 0.5, 1.0])


def test_check_r_combined_grid_uses_index_axis():
    axis = check_r(np.array([1.0, 2.0, 3.0, 1.0, 2.0, 3.0]))
    assert axis.retick
    np.testing.assert_array_equal(axis.x, np.arange(6))
    np.testing.assert_array_equal(axis.newstart_ids, [3])
    np.testing.assert_array_equal(axis.break_locs, [0, 2, 3, 5])
    np.testing.assert_array_equal(axis.break_values, [1.0, 3.0, 1.0, 3.0])


def test_envelope_figures(tmp_path: Path):
    cs = _curve_set()
    single = plot_envelope(rank_envelope(cs), tmp_path / "figs" / "env.png", ylabel="L(r)")
    combined = plot_envelope(
        rank_envelope(combine([cs, cs]), alternative="greater"), tmp_path / "figs" / "combined.png"
    )
    assert single.exists() and single.stat().st_size > 0
    assert combined.exists()


def test_curve_set_figure(tmp_path: Path):
    out = plot_curve_set(_curve_set(), tmp_path / "curves.png")
    assert out.exists()
