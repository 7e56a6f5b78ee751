"""Monte Carlo p-values from per-curve extremeness measures."""

from __future__ import annotations

from typing import Sequence

import numpy as np

ALTERNATIVES = ("two.sided", "less", "greater")
TIE_METHODS = ("conservative", "liberal", "midrank")


class PValueError(ValueError):
    """Base class for p-value estimation misuse."""


class InvalidAlternativeError(PValueError):
    """Raised for an unknown alternative."""


class DegenerateMeasuresError(PValueError):
    """Raised when every curve has the same measure."""


def estimate_p_value(
    measures: Sequence[float] | np.ndarray,
    alternative: str = "greater",
    ties: str = "conservative",
) -> float:
    """Estimate the Monte Carlo p-value of the observed curve.

    ``measures[0]`` belongs to the observed curve and ``measures[1:]`` to the
    simulated curves. With ``alternative="greater"`` large measures are
    extreme and the conservative estimate is
    ``(1 + #{sim >= obs}) / (n_sim + 1)``. ``"liberal"`` counts only strictly
    larger simulated measures and ``"midrank"`` counts ties as one half.
    ``"two.sided"`` doubles the smaller tail, capped at one.
    """

    obs, sim = _split(measures)
    alt = _check_alternative(alternative)
    if ties not in TIE_METHODS:
        raise ValueError(f"Unsupported ties '{ties}'. Supported: {'|'.join(TIE_METHODS)}")

    if alt == "greater":
        return _upper_tail(obs, sim, ties)
    if alt == "less":
        return _upper_tail(-obs, -sim, ties)
    upper = _upper_tail(obs, sim, ties)
    lower = _upper_tail(-obs, -sim, ties)
    return float(min(1.0, 2.0 * min(upper, lower)))


def p_value_interval(
    measures: Sequence[float] | np.ndarray,
    alternative: str = "greater",
) -> tuple[float, float]:
    """Return the (liberal, conservative) p-values."""

    return (
        estimate_p_value(measures, alternative=alternative, ties="liberal"),
        estimate_p_value(measures, alternative=alternative, ties="conservative"),
    )


def count_ties(measures: Sequence[float] | np.ndarray) -> int:
    """Number of simulated measures equal to the observed one."""

    obs, sim = _split(measures, check_degenerate=False)
    return int(np.sum(sim == obs))


def _upper_tail(obs: float, sim: np.ndarray, ties: str) -> float:
    n_sim = sim.size
    n_greater = int(np.sum(sim > obs))
    n_equal = int(np.sum(sim == obs))
    if ties == "conservative":
        count = 1.0 + n_greater + n_equal
    elif ties == "liberal":
        count = 1.0 + n_greater
    else:
        count = 1.0 + n_greater + n_equal / 2.0
    return float(count / (n_sim + 1.0))


def _split(measures: Sequence[float] | np.ndarray, check_degenerate: bool = True) -> tuple[float, np.ndarray]:
    values = np.asarray(measures, dtype=float).reshape(-1)
    if values.size < 2:
        raise ValueError("measures must hold the observed and at least one simulated value")
    if np.any(np.isnan(values)):
        raise ValueError("measures must not contain NaN")
    if check_degenerate and np.all(values == values[0]):
        raise DegenerateMeasuresError(
            "All curves have the same measure; the p-value is undefined."
        )
    return float(values[0]), values[1:]


def _check_alternative(alternative: str) -> str:
    if alternative not in ALTERNATIVES:
        raise InvalidAlternativeError(
            f"Unsupported alternative '{alternative}'. Supported: {'|'.join(ALTERNATIVES)}"
        )
    return alternative
