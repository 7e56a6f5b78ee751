"""Global envelope and deviation tests for functional data."""

from importlib import metadata as _metadata

from spptest.curves import (
    CurveSet,
    combine,
    create_curve_set,
    crop,
    from_simulation_source,
    residual,
)
from spptest.stats import (
    deviation_test,
    estimate_p_value,
    global_envelope_test,
    normal_envelope,
    qdir_envelope,
    rank_envelope,
    st_envelope,
)

try:
    __version__ = _metadata.version("spptest")
except _metadata.PackageNotFoundError:  # pragma: no cover - during local usage
    __version__ = "0.0.0"

__all__ = [
    "__version__",
    "CurveSet",
    "create_curve_set",
    "from_simulation_source",
    "combine",
    "crop",
    "residual",
    "global_envelope_test",
    "rank_envelope",
    "st_envelope",
    "qdir_envelope",
    "normal_envelope",
    "deviation_test",
    "estimate_p_value",
]
