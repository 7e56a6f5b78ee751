"""Operations that derive new curve sets from existing ones."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

import numpy as np

from spptest.curves.curve_set import CurveSet, CurveSetError, ValidationError, create_curve_set

logger = logging.getLogger(__name__)

REFERENCE_CHOICES = ("auto", "theo", "mean")


class MissingSimulationDataError(CurveSetError):
    """Raised when a simulation source did not retain the simulated curves."""


class IncompatibleCurveSetsError(CurveSetError):
    """Raised when curve sets cannot be combined."""


class EmptyRangeError(CurveSetError):
    """Raised when cropping leaves no distances."""


class AlreadyResidualError(CurveSetError):
    """Raised when residual curves are made residual again."""


class MissingReferenceError(CurveSetError):
    """Raised when no reference curve is available for a residual transform."""


def from_simulation_source(
    r: Any,
    obs: Any,
    sim_m: Any = None,
    theo: Any = None,
    sim_r: Any = None,
    allow_inf_values: bool = False,
) -> CurveSet:
    """Adapt the output of an external simulation/estimation run.

    ``sim_m`` holds one column per retained simulation. When the source
    reports the distance grid of the simulated curves separately, pass it as
    ``sim_r``; it must then equal ``r``.
    """

    r_arr = np.asarray(r, dtype=float).reshape(-1) if r is not None else np.empty(0)
    n_r = r_arr.size
    if n_r < 1:
        raise ValidationError("r", "must exist in the simulation source")

    obs_arr = np.asarray(obs, dtype=float).reshape(-1) if obs is not None else np.empty(0)
    if obs_arr.size != n_r:
        raise ValidationError("obs", "and r of the simulation source must have the same length")

    if sim_m is None or np.size(sim_m) < 1:
        raise MissingSimulationDataError(
            "The simulation source did not include the simulated curves. "
            "Retain the per-simulation curves when running the simulations."
        )
    if sim_r is not None and not np.array_equal(np.asarray(sim_r, dtype=float).reshape(-1), r_arr):
        raise ValidationError("r", "of the simulation source must equal the r of the simulated curves")

    sim_arr = np.asarray(sim_m, dtype=float)
    if sim_arr.ndim == 1:
        sim_arr = sim_arr.reshape(-1, 1)
    if sim_arr.shape[0] != n_r:
        raise ValidationError("sim_m", "simulated curves must have the same length as r")

    fields: dict[str, Any] = {"r": r_arr, "obs": obs_arr, "sim_m": sim_arr}
    if theo is not None and np.size(theo) > 0:
        theo_arr = np.asarray(theo, dtype=float).reshape(-1)
        if theo_arr.size != n_r:
            raise ValidationError("theo", "and r of the simulation source must have the same length")
        fields["theo"] = theo_arr
    fields["is_residual"] = False

    return create_curve_set(fields, allow_inf_values=allow_inf_values)


def combine(curve_sets: Sequence[CurveSet | Mapping[str, Any]]) -> CurveSet:
    """Concatenate curve sets along the distance axis, in the given order."""

    if len(curve_sets) < 1:
        raise IncompatibleCurveSetsError("At least one curve set is required.")
    sets = [cs if isinstance(cs, CurveSet) else create_curve_set(cs) for cs in curve_sets]
    check_curve_set_dimensions(sets)

    first = sets[0]
    fields: dict[str, Any] = {
        "r": np.concatenate([cs.r for cs in sets]),
        "obs": np.concatenate([cs.obs for cs in sets]),
        "sim_m": np.vstack([cs.sim_m for cs in sets]),
    }
    if first.has_theo:
        fields["theo"] = np.concatenate([cs.theo for cs in sets])
    fields["is_residual"] = first.is_residual
    logger.debug("Combined %d curve sets into %d distances", len(sets), fields["r"].size)
    return create_curve_set(fields)


def check_curve_set_dimensions(curve_sets: Sequence[CurveSet]) -> None:
    first = curve_sets[0]
    if not all(cs.fields() == first.fields() for cs in curve_sets):
        raise IncompatibleCurveSetsError("The curve sets contain different elements.")
    if not all(cs.is_residual == first.is_residual for cs in curve_sets):
        raise IncompatibleCurveSetsError("The element 'is_residual' should be the same for each curve set.")
    if not all(cs.n_sim == first.n_sim for cs in curve_sets):
        raise IncompatibleCurveSetsError("The numbers of simulations in curve sets differ.")


def crop(curve_set: CurveSet, r_min: float | None = None, r_max: float | None = None) -> CurveSet:
    """Keep the distances with ``r_min <= r <= r_max``.

    The input may have been built with ``allow_inf_values=True``; the cropped
    curve set is validated strictly.
    """

    if r_min is not None and not np.isfinite(r_min):
        raise ValueError("r_min must be a finite number")
    if r_max is not None and not np.isfinite(r_max):
        raise ValueError("r_max must be a finite number")
    if r_min is not None and r_max is not None and r_min > r_max:
        raise EmptyRangeError(f"r_min={r_min} exceeds r_max={r_max}; no distance can remain.")

    mask = np.ones(curve_set.n_r, dtype=bool)
    if r_min is not None:
        mask &= curve_set.r >= r_min
    if r_max is not None:
        mask &= curve_set.r <= r_max
    if not mask.any():
        raise EmptyRangeError(f"r_min={r_min} and r_max={r_max} cropped everything away.")

    fields: dict[str, Any] = {
        "r": curve_set.r[mask],
        "obs": curve_set.obs[mask],
        "sim_m": curve_set.sim_m[mask, :],
    }
    if curve_set.has_theo:
        fields["theo"] = curve_set.theo[mask]
    fields["is_residual"] = curve_set.is_residual
    logger.debug("Cropped curve set from %d to %d distances", curve_set.n_r, int(mask.sum()))
    return create_curve_set(fields)


def residual(curve_set: CurveSet, reference: str | Any = "auto") -> CurveSet:
    """Subtract a reference curve from the observed and simulated curves.

    ``reference`` is ``"theo"``, ``"mean"`` (pointwise mean of the simulated
    curves), ``"auto"`` (``theo`` when present, otherwise the mean) or an
    explicit curve aligned to ``r``. The result carries no ``theo``.
    """

    if curve_set.is_residual:
        raise AlreadyResidualError("curve_set already consists of residual curves.")

    ref = reference_curve(curve_set, reference)
    fields = {
        "r": curve_set.r,
        "obs": curve_set.obs - ref,
        "sim_m": curve_set.sim_m - ref[:, np.newaxis],
        "is_residual": True,
    }
    return create_curve_set(fields)


def reference_curve(curve_set: CurveSet, reference: str | Any = "auto") -> np.ndarray:
    if isinstance(reference, str):
        key = reference.strip().lower()
        if key not in REFERENCE_CHOICES:
            raise ValueError(f"Unsupported reference '{reference}'. Supported: auto|theo|mean")
        if key == "theo" and not curve_set.has_theo:
            raise MissingReferenceError("curve_set has no theoretical curve to use as reference.")
        if key in {"auto", "theo"} and curve_set.has_theo:
            return np.asarray(curve_set.theo, dtype=float)
        return curve_set.sim_m.mean(axis=1)

    if reference is None:
        raise MissingReferenceError("A reference curve is required.")
    ref = np.asarray(reference, dtype=float).reshape(-1)
    if ref.size != curve_set.n_r:
        raise ValidationError("reference", "must have as many values as curve_set['r']")
    if not np.all(np.isfinite(ref)):
        raise ValidationError("reference", "must have only finite numeric values")
    return ref


def central_curve(curve_set: CurveSet, use_theo: bool = True) -> np.ndarray:
    """Expected curve T0 under the null model.

    Zero for residual curve sets, ``theo`` when present and ``use_theo``,
    otherwise the pointwise mean of the simulated curves.
    """

    if curve_set.is_residual:
        return np.zeros(curve_set.n_r)
    if use_theo and curve_set.has_theo:
        logger.debug("Central curve: theoretical curve")
        return np.asarray(curve_set.theo, dtype=float)
    logger.debug("Central curve: mean of %d simulated curves", curve_set.n_sim)
    return curve_set.sim_m.mean(axis=1)
