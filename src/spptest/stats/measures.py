"""Extremeness measures that order the observed and simulated curves.

Every method maps a curve set to one scalar per curve (observed first) where
larger means more extreme, and knows how to turn a calibrated threshold on
that scale back into pointwise envelope bounds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Protocol, Sequence

import numpy as np
from scipy.stats import rankdata

from spptest.core.types import RankingMeasures
from spptest.curves.curve_set import CurveSet
from spptest.curves.ops import central_curve
from spptest.stats.pvalues import ALTERNATIVES, InvalidAlternativeError

logger = logging.getLogger(__name__)


class RankingMethod(Protocol):
    name: str

    def compute_measures(self, curve_set: CurveSet, alternative: str = "two.sided") -> RankingMeasures:
        """Return one extremeness value per curve, observed curve first."""

    def bounds(
        self, curve_set: CurveSet, measures: RankingMeasures, threshold: float
    ) -> tuple[np.ndarray, np.ndarray]:
        """Pointwise bounds whose violation is equivalent to ``measure > threshold``."""


def check_alternative(alternative: str) -> str:
    if alternative not in ALTERNATIVES:
        raise InvalidAlternativeError(
            f"Unsupported alternative '{alternative}'. Supported: {'|'.join(ALTERNATIVES)}"
        )
    return alternative


def pointwise_ranks(curves: np.ndarray, alternative: str = "two.sided") -> np.ndarray:
    """Rank the curves at every distance; ties share their average rank.

    ``curves`` has one row per curve. The returned rank is small for extreme
    values: from below for ``"less"``, from above for ``"greater"`` and from
    the nearer end for ``"two.sided"``.
    """

    n_curves = curves.shape[0]
    lo_ranks = rankdata(curves, method="average", axis=0)
    hi_ranks = n_curves + 1.0 - lo_ranks
    if alternative == "less":
        return lo_ranks
    if alternative == "greater":
        return hi_ranks
    return np.minimum(lo_ranks, hi_ranks)


@dataclass
class RankMethod:
    """Global rank envelope ordering: a curve is as extreme as its worst pointwise rank."""

    name: str = "rank"
    use_theo: bool = True

    def compute_measures(self, curve_set: CurveSet, alternative: str = "two.sided") -> RankingMeasures:
        alt = check_alternative(alternative)
        curves = curve_set.all_curves()
        n_curves = curves.shape[0]
        ranks = pointwise_ranks(curves, alternative=alt)
        min_rank = ranks.min(axis=1)
        return RankingMeasures(
            method=self.name,
            alternative=alt,
            values=n_curves - min_rank,
            details={
                "min_rank": min_rank,
                "central": central_curve(curve_set, use_theo=self.use_theo),
            },
        )

    def bounds(
        self, curve_set: CurveSet, measures: RankingMeasures, threshold: float
    ) -> tuple[np.ndarray, np.ndarray]:
        curves = np.sort(curve_set.all_curves(), axis=0)
        n_curves = curves.shape[0]
        # half-integer thresholds come from average-rank ties
        k_alpha = int(np.ceil(n_curves - threshold - 1e-9))
        k_alpha = min(max(k_alpha, 1), n_curves)
        logger.debug("Rank envelope uses k_alpha=%d of %d curves", k_alpha, n_curves)
        lower = curves[k_alpha - 1, :].copy()
        upper = curves[n_curves - k_alpha, :].copy()
        if measures.alternative == "less":
            upper = np.full(curve_set.n_r, np.inf)
        elif measures.alternative == "greater":
            lower = np.full(curve_set.n_r, -np.inf)
        return lower, upper


@dataclass
class ScaledDeviationMethod:
    """Maximum scaled deviation from the central curve.

    Subclasses provide the pointwise spreads used below and above the central
    curve. Spreads are estimated from the simulated curves only.
    """

    name: str = "unscaled"
    use_theo: bool = True

    def scales(self, sim_residuals: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        ones = np.ones(sim_residuals.shape[0])
        return ones, ones

    def compute_measures(self, curve_set: CurveSet, alternative: str = "two.sided") -> RankingMeasures:
        alt = check_alternative(alternative)
        scaled, central, lower_scale, upper_scale = self.scaled_deviations(curve_set)
        if alt == "two.sided":
            pointwise = np.abs(scaled)
        elif alt == "greater":
            pointwise = np.maximum(scaled, 0.0)
        else:
            pointwise = np.maximum(-scaled, 0.0)
        return RankingMeasures(
            method=self.name,
            alternative=alt,
            values=pointwise.max(axis=1),
            details={"central": central, "lower_scale": lower_scale, "upper_scale": upper_scale},
        )

    def scaled_deviations(self, curve_set: CurveSet) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """Signed deviations of all curves from T0 divided by the matching spread."""

        central = central_curve(curve_set, use_theo=self.use_theo)
        deviations = curve_set.all_curves() - central
        lower_scale, upper_scale = self.scales(curve_set.sim_m - central[:, np.newaxis])
        lower_scale = np.abs(np.asarray(lower_scale, dtype=float))
        upper_scale = np.abs(np.asarray(upper_scale, dtype=float))
        scaled = np.where(
            deviations >= 0,
            _safe_ratio(deviations, upper_scale),
            _safe_ratio(deviations, lower_scale),
        )
        return scaled, central, lower_scale, upper_scale

    def bounds(
        self, curve_set: CurveSet, measures: RankingMeasures, threshold: float
    ) -> tuple[np.ndarray, np.ndarray]:
        central = measures.details["central"]
        lower = central - threshold * measures.details["lower_scale"]
        upper = central + threshold * measures.details["upper_scale"]
        if measures.alternative == "less":
            upper = np.full(curve_set.n_r, np.inf)
        elif measures.alternative == "greater":
            lower = np.full(curve_set.n_r, -np.inf)
        return lower, upper


@dataclass
class StudentizedMethod(ScaledDeviationMethod):
    """Deviations divided by the pointwise standard deviation of the simulations."""

    name: str = "st"

    def scales(self, sim_residuals: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        if sim_residuals.shape[1] < 2:
            raise ValueError("Studentized scaling requires at least two simulated curves")
        sd = sim_residuals.std(axis=1, ddof=1)
        return sd, sd


@dataclass
class QuantileMethod(ScaledDeviationMethod):
    """Deviations divided by half the pointwise inter-quantile width."""

    name: str = "q"
    probs: Sequence[float] = (0.025, 0.975)

    def __post_init__(self) -> None:
        self.probs = _check_probs(self.probs)

    def scales(self, sim_residuals: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        q_lo, q_hi = np.quantile(sim_residuals, self.probs, axis=1)
        half_width = (q_hi - q_lo) / 2.0
        return half_width, half_width


@dataclass
class DirectionalQuantileMethod(ScaledDeviationMethod):
    """Deviations above T0 scaled by the upper quantile, below T0 by the lower one."""

    name: str = "qdir"
    probs: Sequence[float] = (0.025, 0.975)

    def __post_init__(self) -> None:
        self.probs = _check_probs(self.probs)

    def scales(self, sim_residuals: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        q_lo, q_hi = np.quantile(sim_residuals, self.probs, axis=1)
        return np.abs(q_lo), np.abs(q_hi)


@dataclass
class NormalMethod(StudentizedMethod):
    """Studentized ordering calibrated on a Gaussian approximation of T(r).

    The simulated curves only estimate the pointwise mean and the covariance
    across distances. The threshold and p-value come from ``n_norm`` draws of
    a multivariate normal with that covariance, stored as ``null_values``.
    """

    name: str = "normal"
    n_norm: int = 10000
    seed: int | None = None

    def __post_init__(self) -> None:
        if int(self.n_norm) < 1:
            raise ValueError(f"n_norm must be a positive integer. Got {self.n_norm}")
        self.n_norm = int(self.n_norm)

    def compute_measures(self, curve_set: CurveSet, alternative: str = "two.sided") -> RankingMeasures:
        measures = super().compute_measures(curve_set, alternative=alternative)
        central = measures.details["central"]
        residuals = curve_set.sim_m - central[:, np.newaxis]
        sd = measures.details["upper_scale"]

        cov = np.atleast_2d(np.cov(residuals, ddof=1))
        rng = np.random.default_rng(self.seed)
        draws = rng.multivariate_normal(
            np.zeros(curve_set.n_r), cov, size=self.n_norm, method="eigh", check_valid="ignore"
        )
        scaled = _safe_ratio(draws, sd)
        if measures.alternative == "two.sided":
            pointwise = np.abs(scaled)
        elif measures.alternative == "greater":
            pointwise = np.maximum(scaled, 0.0)
        else:
            pointwise = np.maximum(-scaled, 0.0)
        logger.debug("Normal approximation from %d draws over %d distances", self.n_norm, curve_set.n_r)
        return replace(measures, details={**measures.details, "null_values": pointwise.max(axis=1)})


def register_builtin_methods() -> None:
    from spptest.core.registry import register_method

    register_method("rank", RankMethod)
    register_method("unscaled", ScaledDeviationMethod)
    register_method("st", StudentizedMethod)
    register_method("q", QuantileMethod)
    register_method("qdir", DirectionalQuantileMethod)
    register_method("normal", NormalMethod)


def _safe_ratio(num: np.ndarray, den: np.ndarray) -> np.ndarray:
    den_b = np.broadcast_to(den, num.shape)
    out = np.where(num == 0, 0.0, np.copysign(np.inf, num))
    np.divide(num, den_b, out=out, where=den_b > 0)
    return out


def _check_probs(probs: Sequence[float]) -> tuple[float, float]:
    values = tuple(float(p) for p in probs)
    if len(values) != 2:
        raise ValueError("probs must hold exactly two quantile levels")
    lo, hi = values
    if not (0.0 < lo < hi < 1.0):
        raise ValueError(f"probs must satisfy 0 < lower < upper < 1. Got {values}")
    return lo, hi
