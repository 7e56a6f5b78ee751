import numpy as np
import pytest

from spptest.core.registry import RegistryError
from spptest.curves.curve_set import create_curve_set
from spptest.curves.ops import residual
from spptest.stats.envelope import (
    critical_value,
    global_envelope_test,
    normal_envelope,
    qdir_envelope,
    rank_envelope,
    st_envelope,
)
from spptest.stats.pvalues import InvalidAlternativeError

SIMS = np.array(
    [
        [0.1, 0.2, 0.3, 0.4],
        [0.2, 0.4, 0.6, 0.8],
        [0.3, 0.6, 0.9, 1.2],
    ]
)
OBS = np.array([0.5, 1.0, 1.5])


def _fixture():
    return create_curve_set({"r": [1.0, 2.0, 3.0], "obs": OBS, "sim_m": SIMS})


def _random_curve_set(seed=0, n_r=30, n_sim=99, obs_shift=0.0):
    rng = np.random.default_rng(seed)
    r = np.linspace(0.0, 3.0, n_r)
    sd = 0.5 + r
    theo = np.sin(r)
    sims = theo[:, None] + sd[:, None] * rng.standard_normal((n_r, n_sim))
    obs = theo + sd * rng.standard_normal(n_r) + obs_shift
    return create_curve_set({"r": r, "obs": obs, "sim_m": sims, "theo": theo})


def test_rank_envelope_small_example():
    result = rank_envelope(_fixture(), alpha=0.05)
    assert result.threshold == 4.0
    np.testing.assert_allclose(result.lower, SIMS[:, 0])
    np.testing.assert_allclose(result.upper, OBS)
    assert not result.outside
    assert result.p == pytest.approx(0.4)
    assert result.p_interval == pytest.approx((0.2, 0.4))
    np.testing.assert_allclose(result.central, SIMS.mean(axis=1))


def test_rank_envelope_larger_alpha_narrows_band():
    result = rank_envelope(_fixture(), alpha=0.25)
    assert result.threshold == 3.0
    np.testing.assert_allclose(result.lower, SIMS[:, 1])
    np.testing.assert_allclose(result.upper, SIMS[:, 3])
    assert result.outside
    assert result.outside_mask.all()


def test_midrank_p_value():
    result = rank_envelope(_fixture(), ties="midrank")
    assert result.p == pytest.approx(0.3)


def test_one_sided_rank_envelopes():
    greater = rank_envelope(_fixture(), alternative="greater")
    assert np.all(np.isneginf(greater.lower))
    np.testing.assert_allclose(greater.upper, SIMS[:, 3])
    assert greater.outside
    assert greater.p == pytest.approx(0.2)

    less = rank_envelope(_fixture(), alternative="less")
    assert np.all(np.isposinf(less.upper))
    np.testing.assert_allclose(less.lower, SIMS[:, 1])
    assert not less.outside
    assert less.p == pytest.approx(1.0)


def test_studentized_envelope_small_example():
    result = st_envelope(_fixture())
    assert result.threshold == pytest.approx(1.161895, rel=1e-5)
    np.testing.assert_allclose(result.lower, SIMS[:, 0], atol=1e-12)
    np.testing.assert_allclose(result.upper, SIMS[:, 3], atol=1e-12)
    assert result.outside
    assert result.p == pytest.approx(0.2)


def test_mapping_input_is_validated():
    fields = {"r": [1.0, 2.0, 3.0], "obs": OBS, "sim_m": SIMS}
    assert rank_envelope(fields).p == pytest.approx(0.4)


def _curve_outside(curves, lower, upper):
    return np.any((curves < lower) | (curves > upper), axis=1)


def _poisson_curve_set(seed=0, n_r=10, n_sim=39, lam=3.0):
    rng = np.random.default_rng(seed)
    r = np.arange(1.0, n_r + 1.0)
    sims = rng.poisson(lam, (n_r, n_sim)).astype(float)
    obs = rng.poisson(lam, n_r).astype(float)
    return create_curve_set({"r": r, "obs": obs, "sim_m": sims})


CURVE_SETS = {
    "gaussian": lambda seed: _random_curve_set(seed=seed),
    "poisson": lambda seed: _poisson_curve_set(seed=seed),
}


@pytest.mark.parametrize("kind", sorted(CURVE_SETS))
@pytest.mark.parametrize("method", ["rank", "st", "qdir", "q", "unscaled", "normal"])
@pytest.mark.parametrize("alternative", ["two.sided", "less", "greater"])
def test_decision_follows_the_measure_threshold(kind, method, alternative):
    params = {"n_norm": 500, "seed": 0} if method == "normal" else {}
    for seed in range(5):
        cs = CURVE_SETS[kind](seed)
        result = global_envelope_test(cs, method=method, alpha=0.1, alternative=alternative, **params)
        values = result.measures.values
        assert result.outside == bool(values[0] > result.threshold)
        band_outside = _curve_outside(cs.all_curves(), result.lower, result.upper)
        assert result.band_exact == bool(np.array_equal(band_outside, values > result.threshold))
        if method == "rank" and kind == "gaussian":
            assert result.band_exact


def test_rank_band_with_half_integer_threshold():
    cs = create_curve_set(
        {"r": [1.0, 2.0], "obs": [2.0, 3.0], "sim_m": [[1.0, 3.0, 4.0, 5.0], [1.0, 2.0, 2.0, 5.0]]}
    )
    result = rank_envelope(cs, alpha=0.7)
    np.testing.assert_allclose(result.measures.values, [3.0, 4.0, 2.5, 3.0, 4.0])
    assert result.threshold == 2.5
    np.testing.assert_allclose(result.lower, [3.0, 2.0])
    np.testing.assert_allclose(result.upper, [3.0, 2.0])
    assert result.outside
    assert result.outside_mask.all()
    assert result.band_exact
    assert result.p == pytest.approx(0.8)


@pytest.mark.parametrize("method", ["rank", "st", "qdir", "q", "unscaled"])
def test_observed_equal_to_a_simulation_sits_on_the_threshold(method):
    cs = create_curve_set({"r": [1.0, 2.0, 3.0], "obs": SIMS[:, 3], "sim_m": SIMS})
    result = global_envelope_test(cs, method=method)
    assert result.measures.obs == result.threshold
    assert not result.outside
    assert result.p == pytest.approx(0.6)


def test_degenerate_measures_give_p_one():
    cs = create_curve_set({"r": [1.0, 2.0], "obs": [0.0, 2.0], "sim_m": [[1.0], [1.0]]})
    result = rank_envelope(cs)
    assert result.degenerate
    assert result.p == 1.0
    assert result.p_interval == (1.0, 1.0)
    assert not result.outside
    np.testing.assert_allclose(result.lower, [0.0, 1.0])
    np.testing.assert_allclose(result.upper, [1.0, 2.0])


def test_normal_envelope_bounds_use_the_studentized_scale():
    cs = _random_curve_set(seed=8)
    result = normal_envelope(cs, n_norm=2000, seed=1)
    sd = (cs.sim_m - cs.theo[:, None]).std(axis=1, ddof=1)
    assert result.method == "normal"
    assert result.threshold > 0
    np.testing.assert_allclose(result.lower, cs.theo - result.threshold * sd)
    np.testing.assert_allclose(result.upper, cs.theo + result.threshold * sd)
    assert result.measures.details["null_values"].shape == (2000,)
    assert result.outside == bool(result.measures.obs > result.threshold)


def test_normal_envelope_p_values():
    shifted = normal_envelope(_random_curve_set(seed=7, obs_shift=10.0), n_norm=999, seed=2)
    assert shifted.outside
    assert shifted.p == pytest.approx(1.0 / 1000.0)

    cs = _random_curve_set(seed=7)
    centred = create_curve_set({"r": cs.r, "obs": cs.theo, "sim_m": cs.sim_m, "theo": cs.theo})
    result = normal_envelope(centred, n_norm=999, seed=2)
    assert result.measures.obs == 0.0
    assert not result.outside
    assert result.p == pytest.approx(1.0)


def test_normal_envelope_is_reproducible_with_a_seed():
    cs = _random_curve_set(seed=5)
    first = normal_envelope(cs, n_norm=500, seed=11)
    second = normal_envelope(cs, n_norm=500, seed=11)
    other = normal_envelope(cs, n_norm=500, seed=12)
    assert first.threshold == second.threshold
    assert first.p == second.p
    assert first.threshold != other.threshold


@pytest.mark.parametrize("method", ["rank", "st", "qdir"])
def test_envelope_covers_the_central_curve(method):
    result = global_envelope_test(_random_curve_set(seed=1), method=method)
    assert np.all(result.lower <= result.central + 1e-12)
    assert np.all(result.central <= result.upper + 1e-12)


def test_shifted_observation_is_rejected():
    result = st_envelope(_random_curve_set(seed=7, obs_shift=10.0))
    assert result.outside
    assert result.p == pytest.approx(0.01)


def test_use_theo_switches_the_central_curve():
    cs = _random_curve_set(seed=3)
    with_theo = qdir_envelope(cs)
    without = qdir_envelope(cs, use_theo=False)
    np.testing.assert_allclose(with_theo.central, cs.theo)
    np.testing.assert_allclose(without.central, cs.sim_m.mean(axis=1))


def test_residual_curve_set_is_centred_on_zero():
    result = global_envelope_test(residual(_random_curve_set(seed=4)), method="st")
    np.testing.assert_array_equal(result.central, np.zeros(30))


def test_critical_value_needs_enough_simulations():
    measures = rank_envelope(_fixture()).measures
    assert critical_value(measures, 0.25) == 3.0
    with pytest.raises(ValueError):
        critical_value(measures, 0.9)


def test_argument_checks():
    cs = _fixture()
    with pytest.raises(ValueError):
        global_envelope_test(cs, alpha=1.5)
    with pytest.raises(ValueError):
        global_envelope_test(cs, ties="random")
    with pytest.raises(InvalidAlternativeError):
        global_envelope_test(cs, alternative="both")
    with pytest.raises(RegistryError):
        global_envelope_test(cs, method="erl")


def test_result_serialization():
    result = rank_envelope(_fixture())
    frame = result.to_frame()
    assert list(frame.columns) == ["r", "obs", "central", "lower", "upper", "outside"]
    data = result.to_dict()
    assert data["method"] == "rank"
    assert data["n_sim"] == 4
    assert data["tie_count"] == 1
    assert data["p_interval"] == pytest.approx([0.2, 0.4])
    assert data["band_exact"] is True
    assert data["degenerate"] is False
