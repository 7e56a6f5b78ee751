"""Curve set record and its validating constructor."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

import numpy as np

CURVE_SET_FIELDS = ("r", "obs", "sim_m", "theo", "is_residual")


class CurveSetError(ValueError):
    """Base class for curve set failures."""


class ValidationError(CurveSetError):
    """Raised when a curve set field is malformed or inconsistent."""

    def __init__(self, field: str, reason: str) -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"curve_set['{field}'] {reason}")


class NotResidualError(CurveSetError):
    """Raised when residual curves are required but not given."""


@dataclass(frozen=True, eq=False)
class CurveSet:
    """Observed curve and simulated curves sampled on a common distance grid.

    ``sim_m`` has one row per distance in ``r`` and one column per simulation.
    Instances are only produced by :func:`create_curve_set`, so every field
    satisfies the invariants checked there. Arrays are read-only.
    """

    r: np.ndarray
    obs: np.ndarray
    sim_m: np.ndarray
    theo: np.ndarray | None = None
    is_residual: bool = False

    @property
    def n_r(self) -> int:
        return int(self.r.size)

    @property
    def n_sim(self) -> int:
        return int(self.sim_m.shape[1])

    @property
    def has_theo(self) -> bool:
        return self.theo is not None

    def fields(self) -> tuple[str, ...]:
        """Names of the fields present on this curve set."""

        return tuple(name for name in CURVE_SET_FIELDS if name != "theo" or self.theo is not None)

    def all_curves(self) -> np.ndarray:
        """Observed and simulated curves stacked as rows, observed first."""

        return np.vstack([self.obs[np.newaxis, :], self.sim_m.T])

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"r": self.r, "obs": self.obs, "sim_m": self.sim_m}
        if self.theo is not None:
            out["theo"] = self.theo
        out["is_residual"] = self.is_residual
        return out

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CurveSet):
            return NotImplemented
        if self.is_residual != other.is_residual or self.has_theo != other.has_theo:
            return False
        pairs = [(self.r, other.r), (self.obs, other.obs), (self.sim_m, other.sim_m)]
        if self.theo is not None:
            pairs.append((self.theo, other.theo))
        return all(a.shape == b.shape and np.array_equal(a, b, equal_nan=True) for a, b in pairs)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        theo = ", theo" if self.theo is not None else ""
        return f"CurveSet(n_r={self.n_r}, n_sim={self.n_sim}{theo}, is_residual={self.is_residual})"


def create_curve_set(fields: Mapping[str, Any] | CurveSet, allow_inf_values: bool = False) -> CurveSet:
    """Validate ``fields`` and build a :class:`CurveSet`.

    ``fields`` may only use the keys ``r``, ``obs``, ``sim_m``, ``theo`` and
    ``is_residual``. ``allow_inf_values`` relaxes the finiteness check on
    ``obs``, ``sim_m`` and ``theo`` so that an intermediate curve set can be
    cropped to a range where all values are finite.
    """

    if isinstance(fields, CurveSet):
        fields = fields.to_dict()
    if not isinstance(fields, Mapping):
        raise ValidationError("curve_set", "must be a mapping of named fields")
    if len(fields) < 1:
        raise ValidationError("curve_set", "must have some elements")

    unknown = sorted(str(key) for key in fields if key not in CURVE_SET_FIELDS)
    if unknown:
        raise ValidationError(
            unknown[0],
            "is not a curve set field; allowed names are " + ", ".join(CURVE_SET_FIELDS),
        )

    r = _as_vector(fields.get("r"), "r")
    n_r = r.size
    if n_r < 1:
        raise ValidationError("r", "must have at least one element")
    if not np.all(np.isfinite(r)):
        raise ValidationError("r", "must have only finite numeric values")

    obs = _as_vector(fields.get("obs"), "obs")
    if obs.size != n_r:
        raise ValidationError("obs", "must have as many values as curve_set['r']")
    _check_finite(obs, "obs", allow_inf_values)

    sim_m = _as_matrix(fields.get("sim_m"), "sim_m")
    if sim_m.shape[0] != n_r:
        raise ValidationError("sim_m", "must have as many rows as there are elements in curve_set['r']")
    if sim_m.shape[1] < 1:
        raise ValidationError("sim_m", "must have at least one column")
    _check_finite(sim_m, "sim_m", allow_inf_values)

    theo = None
    if fields.get("theo") is not None:
        theo = _as_vector(fields["theo"], "theo")
        if theo.size > 0:
            if theo.size != n_r:
                raise ValidationError("theo", "must have as many values as curve_set['r']")
            _check_finite(theo, "theo", allow_inf_values)
        else:
            theo = None

    is_residual = _as_flag(fields.get("is_residual"))
    if is_residual and theo is not None:
        raise ValidationError("theo", "must not be present in a residual curve set")

    return CurveSet(
        r=_frozen(r),
        obs=_frozen(obs),
        sim_m=_frozen(sim_m),
        theo=_frozen(theo) if theo is not None else None,
        is_residual=is_residual,
    )


def is_curve_set(obj: Any) -> bool:
    return isinstance(obj, CurveSet)


def is_residual_curve_set(curve_set: CurveSet) -> bool:
    return bool(curve_set.is_residual)


def require_residual(curve_set: CurveSet) -> CurveSet:
    """Return ``curve_set`` unchanged if it holds residual curves."""

    if not curve_set.is_residual:
        raise NotResidualError("curve_set must consist of residual curves. Run residual() first.")
    return curve_set


def _as_vector(value: Any, name: str) -> np.ndarray:
    if value is None:
        raise ValidationError(name, "is required")
    arr = _as_float_array(value, name)
    if arr.ndim == 2 and 1 in arr.shape:
        arr = arr.reshape(-1)
    if arr.ndim != 1:
        raise ValidationError(name, "must be a vector")
    return arr


def _as_matrix(value: Any, name: str) -> np.ndarray:
    if value is None:
        raise ValidationError(name, "is required")
    arr = _as_float_array(value, name)
    if arr.ndim != 2:
        raise ValidationError(name, "must be a matrix")
    return arr


def _as_float_array(value: Any, name: str) -> np.ndarray:
    arr = np.array(value, copy=True)
    if arr.dtype == bool or not (np.issubdtype(arr.dtype, np.number) or arr.size == 0):
        raise ValidationError(name, "must have only numeric values")
    try:
        return arr.astype(float)
    except (TypeError, ValueError) as exc:
        raise ValidationError(name, "must have only numeric values") from exc


def _check_finite(arr: np.ndarray, name: str, allow_inf_values: bool) -> None:
    if not allow_inf_values and not np.all(np.isfinite(arr)):
        raise ValidationError(name, "must have only finite numeric values")


def _as_flag(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    arr = np.asarray(value)
    if arr.size == 1 and arr.dtype == bool:
        return bool(arr.reshape(-1)[0])
    raise ValidationError("is_residual", "must be either True or False")


def _frozen(arr: np.ndarray) -> np.ndarray:
    arr.setflags(write=False)
    return arr


def as_curve_set(obj: CurveSet | Mapping[str, Any]) -> CurveSet:
    """Return ``obj`` if it is a curve set, otherwise validate it into one."""

    if isinstance(obj, CurveSet):
        return obj
    return create_curve_set(obj)
