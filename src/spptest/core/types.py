"""Core result types shared across test stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

import numpy as np
import pandas as pd


@dataclass(frozen=True)
class RankingMeasures:
    """Extremeness of every curve; index 0 is the observed curve.

    Larger values are more extreme. ``details`` carries the pointwise
    quantities the envelope of the same method is built from.
    """

    method: str
    alternative: str
    values: np.ndarray
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def obs(self) -> float:
        return float(self.values[0])

    @property
    def sim(self) -> np.ndarray:
        return self.values[1:]

    @property
    def n_sim(self) -> int:
        return int(self.values.size - 1)

    @property
    def tie_count(self) -> int:
        return int(np.sum(self.sim == self.values[0]))

    @property
    def calibration_values(self) -> np.ndarray:
        """Observed measure followed by the null sample the test is calibrated on.

        This is the simulated curves unless the method drew its own null
        sample (``details["null_values"]``).
        """

        null = self.details.get("null_values")
        if null is None:
            return self.values
        return np.concatenate([self.values[:1], np.asarray(null, dtype=float)])


@dataclass(frozen=True)
class EnvelopeResult:
    """Global envelope and the decision for the observed curve.

    ``outside`` compares the observed measure with ``threshold``. The band is
    the pointwise picture of that decision; ``band_exact`` is False when it
    classifies some curve differently, as tied average ranks can force.
    ``degenerate`` marks curve sets where every measure is equal and ``p`` is 1.
    """

    r: np.ndarray
    obs: np.ndarray
    central: np.ndarray
    lower: np.ndarray
    upper: np.ndarray
    method: str
    alternative: str
    alpha: float
    p: float
    p_interval: tuple[float, float]
    ties: str
    threshold: float
    measures: RankingMeasures
    outside: bool
    params: dict[str, Any] = field(default_factory=dict)
    band_exact: bool = True
    degenerate: bool = False

    @property
    def outside_mask(self) -> np.ndarray:
        return (self.obs < self.lower) | (self.obs > self.upper)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "r": self.r,
                "obs": self.obs,
                "central": self.central,
                "lower": self.lower,
                "upper": self.upper,
                "outside": self.outside_mask,
            }
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "test": "envelope",
            "method": self.method,
            "alternative": self.alternative,
            "alpha": float(self.alpha),
            "p": float(self.p),
            "p_interval": [float(self.p_interval[0]), float(self.p_interval[1])],
            "ties": self.ties,
            "threshold": float(self.threshold),
            "outside": bool(self.outside),
            "band_exact": bool(self.band_exact),
            "degenerate": bool(self.degenerate),
            "n_sim": self.measures.n_sim,
            "n_r": int(self.r.size),
            "obs_measure": self.measures.obs,
            "tie_count": self.measures.tie_count,
            "params": dict(self.params),
        }


@dataclass(frozen=True)
class DeviationResult:
    measure: str
    scaling: str
    p: float
    p_interval: tuple[float, float]
    ties: str
    statistic: float
    measures: RankingMeasures
    params: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "test": "deviation",
            "measure": self.measure,
            "scaling": self.scaling,
            "p": float(self.p),
            "p_interval": [float(self.p_interval[0]), float(self.p_interval[1])],
            "ties": self.ties,
            "statistic": float(self.statistic),
            "n_sim": self.measures.n_sim,
            "tie_count": self.measures.tie_count,
            "params": dict(self.params),
        }


@dataclass(frozen=True)
class ValidationIssue:
    level: str
    code: str
    message: str
    context: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ValidationReport:
    valid: bool
    issues: Sequence[ValidationIssue]
    n_r: int = 0
    n_sim: int = 0


@dataclass(frozen=True)
class RunResult:
    result: EnvelopeResult | DeviationResult
    metadata: dict[str, Any]
