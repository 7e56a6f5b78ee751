"""Global envelope tests built on the curve ranking methods."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

import numpy as np

from spptest.core.registry import create_method
from spptest.core.types import EnvelopeResult, RankingMeasures
from spptest.curves.curve_set import CurveSet, as_curve_set
from spptest.stats.pvalues import TIE_METHODS, DegenerateMeasuresError, estimate_p_value, p_value_interval

logger = logging.getLogger(__name__)


def global_envelope_test(
    curve_set: CurveSet | Mapping[str, Any],
    method: str = "rank",
    alpha: float = 0.05,
    alternative: str = "two.sided",
    ties: str = "conservative",
    **params: Any,
) -> EnvelopeResult:
    """Run a global envelope test of the observed curve against the simulations.

    The threshold is the ``floor((1 - alpha) * (n_sim + 1))``-th smallest
    measure over all curves. The observed curve is outside iff its measure
    exceeds the threshold. The returned band is the set of pointwise values
    whose measure stays at or below the threshold; where average-rank ties
    or floating point rounding keep the band from reproducing the decision
    for every curve, ``band_exact`` is False.
    """

    cs = as_curve_set(curve_set)
    _check_alpha(alpha)
    if ties not in TIE_METHODS:
        raise ValueError(f"Unsupported ties '{ties}'. Supported: {'|'.join(TIE_METHODS)}")

    ranking = create_method(method, **params)
    measures = ranking.compute_measures(cs, alternative=alternative)
    threshold = critical_value(measures, alpha)
    lower, upper = ranking.bounds(cs, measures, threshold)

    calibration = measures.calibration_values
    degenerate = False
    try:
        p = estimate_p_value(calibration, alternative="greater", ties=ties)
        p_interval = p_value_interval(calibration, alternative="greater")
    except DegenerateMeasuresError:
        logger.warning("All %d curves have the same %s measure; reporting p = 1", calibration.size, ranking.name)
        degenerate = True
        p, p_interval = 1.0, (1.0, 1.0)

    measure_outside = measures.values > threshold
    band_outside = np.any((cs.all_curves() < lower) | (cs.all_curves() > upper), axis=1)
    band_exact = bool(np.array_equal(measure_outside, band_outside))
    if not band_exact:
        logger.debug(
            "%s band classifies %d of %d curves differently from their measure",
            ranking.name,
            int(np.sum(measure_outside != band_outside)),
            measure_outside.size,
        )
    outside = bool(measure_outside[0])
    logger.debug(
        "%s envelope: threshold=%.6g obs_measure=%.6g p=%.4g outside=%s",
        ranking.name,
        threshold,
        measures.obs,
        p,
        outside,
    )

    return EnvelopeResult(
        r=np.asarray(cs.r),
        obs=np.asarray(cs.obs),
        central=np.asarray(measures.details["central"], dtype=float),
        lower=np.asarray(lower, dtype=float),
        upper=np.asarray(upper, dtype=float),
        method=ranking.name,
        alternative=measures.alternative,
        alpha=float(alpha),
        p=p,
        p_interval=p_interval,
        ties=ties,
        threshold=float(threshold),
        measures=measures,
        outside=outside,
        params=dict(params),
        band_exact=band_exact,
        degenerate=degenerate,
    )


def critical_value(measures: RankingMeasures, alpha: float) -> float:
    """Measure value that at most a fraction ``alpha`` of the calibration sample exceeds."""

    values = measures.calibration_values
    k = int(np.floor((1.0 - alpha) * values.size + 1e-9))
    if k < 1:
        raise ValueError(
            f"Too few simulations ({values.size - 1}) for alpha={alpha}; "
            "the envelope would be unbounded."
        )
    return float(np.sort(values)[k - 1])

def rank_envelope(
    curve_set: CurveSet | Mapping[str, Any],
    alpha: float = 0.05,
    alternative: str = "two.sided",
    ties: str = "conservative",
) -> EnvelopeResult:
    """Completely non-parametric rank envelope test."""

    return global_envelope_test(curve_set, method="rank", alpha=alpha, alternative=alternative, ties=ties)


def st_envelope(
    curve_set: CurveSet | Mapping[str, Any],
    alpha: float = 0.05,
    alternative: str = "two.sided",
    ties: str = "conservative",
    use_theo: bool = True,
) -> EnvelopeResult:
    """Studentized envelope test, protected against unequal variance across distances."""

    return global_envelope_test(
        curve_set, method="st", alpha=alpha, alternative=alternative, ties=ties, use_theo=use_theo
    )


def qdir_envelope(
    curve_set: CurveSet | Mapping[str, Any],
    alpha: float = 0.05,
    alternative: str = "two.sided",
    ties: str = "conservative",
    probs: Sequence[float] = (0.025, 0.975),
    use_theo: bool = True,
) -> EnvelopeResult:
    """Directional quantile envelope test, also protected against asymmetry of T(r)."""

    return global_envelope_test(
        curve_set,
        method="qdir",
        alpha=alpha,
        alternative=alternative,
        ties=ties,
        probs=tuple(probs),
        use_theo=use_theo,
    )


def normal_envelope(
    curve_set: CurveSet | Mapping[str, Any],
    alpha: float = 0.05,
    alternative: str = "two.sided",
    ties: str = "conservative",
    n_norm: int = 10000,
    seed: int | None = None,
    use_theo: bool = True,
) -> EnvelopeResult:
    """Parametric envelope test using a normal approximation of T(r).

    Needs fewer simulations than the rank envelope, at the price of assuming
    that T(r) is jointly Gaussian over the distances.
    """

    return global_envelope_test(
        curve_set,
        method="normal",
        alpha=alpha,
        alternative=alternative,
        ties=ties,
        n_norm=n_norm,
        seed=seed,
        use_theo=use_theo,
    )


def _check_alpha(alpha: float) -> None:
    if not (0.0 < float(alpha) < 1.0):
        raise ValueError(f"alpha must be in (0,1). Got {alpha}.")
