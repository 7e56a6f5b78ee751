"""Curve set data model and its transformations."""

from spptest.curves.curve_set import (
    CURVE_SET_FIELDS,
    CurveSet,
    CurveSetError,
    NotResidualError,
    ValidationError,
    as_curve_set,
    create_curve_set,
    is_curve_set,
    is_residual_curve_set,
    require_residual,
)
from spptest.curves.ops import (
    AlreadyResidualError,
    EmptyRangeError,
    IncompatibleCurveSetsError,
    MissingReferenceError,
    MissingSimulationDataError,
    central_curve,
    combine,
    crop,
    from_simulation_source,
    residual,
)

__all__ = [
    "CURVE_SET_FIELDS",
    "CurveSet",
    "CurveSetError",
    "ValidationError",
    "NotResidualError",
    "MissingSimulationDataError",
    "IncompatibleCurveSetsError",
    "EmptyRangeError",
    "AlreadyResidualError",
    "MissingReferenceError",
    "as_curve_set",
    "create_curve_set",
    "is_curve_set",
    "is_residual_curve_set",
    "require_residual",
    "from_simulation_source",
    "combine",
    "crop",
    "residual",
    "central_curve",
]
