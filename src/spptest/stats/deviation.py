"""Deviation tests: scalar discrepancy of each curve from the central curve."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

import numpy as np

from spptest.core.types import DeviationResult, RankingMeasures
from spptest.curves.curve_set import CurveSet, as_curve_set
from spptest.stats.measures import (
    DirectionalQuantileMethod,
    QuantileMethod,
    ScaledDeviationMethod,
    StudentizedMethod,
)
from spptest.stats.pvalues import TIE_METHODS, estimate_p_value, p_value_interval

logger = logging.getLogger(__name__)

DEVIATION_MEASURES = ("max", "int", "int2")
SCALINGS = ("none", "q", "qdir", "st")


def deviation_test(
    curve_set: CurveSet | Mapping[str, Any],
    measure: str = "max",
    scaling: str = "qdir",
    use_theo: bool = True,
    ties: str = "conservative",
    probs: Sequence[float] = (0.025, 0.975),
) -> DeviationResult:
    """Monte Carlo deviation test.

    ``measure`` is ``max`` (largest absolute deviation), ``int`` (sum of
    absolute deviations over the distances) or ``int2`` (sum of squared
    deviations). Deviations are taken from T0 and divided pointwise by the
    spread named by ``scaling``.
    """

    cs = as_curve_set(curve_set)
    if measure not in DEVIATION_MEASURES:
        raise ValueError(f"Unsupported measure '{measure}'. Supported: {'|'.join(DEVIATION_MEASURES)}")
    if ties not in TIE_METHODS:
        raise ValueError(f"Unsupported ties '{ties}'. Supported: {'|'.join(TIE_METHODS)}")

    scaler = _make_scaler(scaling, use_theo=use_theo, probs=probs)
    scaled, central, lower_scale, upper_scale = scaler.scaled_deviations(cs)
    values = deviation_measure(scaled, measure)

    measures = RankingMeasures(
        method=f"deviation_{measure}",
        alternative="two.sided",
        values=values,
        details={"central": central, "lower_scale": lower_scale, "upper_scale": upper_scale},
    )
    p = estimate_p_value(values, alternative="greater", ties=ties)
    logger.debug("Deviation test %s/%s: statistic=%.6g p=%.4g", measure, scaling, measures.obs, p)

    params: dict[str, Any] = {"use_theo": bool(use_theo)}
    if scaling in {"q", "qdir"}:
        params["probs"] = [float(x) for x in probs]
    return DeviationResult(
        measure=measure,
        scaling=scaling,
        p=p,
        p_interval=p_value_interval(values, alternative="greater"),
        ties=ties,
        statistic=measures.obs,
        measures=measures,
        params=params,
    )


def deviation_measure(scaled: np.ndarray, measure: str) -> np.ndarray:
    """Reduce pointwise deviations (one row per curve) to one value per curve."""

    if measure == "max":
        return np.abs(scaled).max(axis=1)
    if measure == "int":
        return np.abs(scaled).sum(axis=1)
    if measure == "int2":
        return np.square(scaled).sum(axis=1)
    raise ValueError(f"Unsupported measure '{measure}'. Supported: {'|'.join(DEVIATION_MEASURES)}")


def _make_scaler(scaling: str, use_theo: bool, probs: Sequence[float]) -> ScaledDeviationMethod:
    if scaling == "none":
        return ScaledDeviationMethod(use_theo=use_theo)
    if scaling == "st":
        return StudentizedMethod(use_theo=use_theo)
    if scaling == "q":
        return QuantileMethod(use_theo=use_theo, probs=tuple(probs))
    if scaling == "qdir":
        return DirectionalQuantileMethod(use_theo=use_theo, probs=tuple(probs))
    raise ValueError(f"Unsupported scaling '{scaling}'. Supported: {'|'.join(SCALINGS)}")
