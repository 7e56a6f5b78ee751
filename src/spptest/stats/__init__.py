"""Ranking measures, envelopes, deviation tests and p-values."""

from spptest.stats.deviation import deviation_test
from spptest.stats.envelope import (
    global_envelope_test,
    normal_envelope,
    qdir_envelope,
    rank_envelope,
    st_envelope,
)
from spptest.stats.measures import (
    DirectionalQuantileMethod,
    NormalMethod,
    QuantileMethod,
    RankMethod,
    RankingMethod,
    ScaledDeviationMethod,
    StudentizedMethod,
    register_builtin_methods,
)
from spptest.stats.pvalues import (
    DegenerateMeasuresError,
    InvalidAlternativeError,
    PValueError,
    estimate_p_value,
    p_value_interval,
)

register_builtin_methods()

__all__ = [
    "register_builtin_methods",
    "RankingMethod",
    "RankMethod",
    "ScaledDeviationMethod",
    "StudentizedMethod",
    "QuantileMethod",
    "DirectionalQuantileMethod",
    "NormalMethod",
    "global_envelope_test",
    "rank_envelope",
    "st_envelope",
    "qdir_envelope",
    "normal_envelope",
    "deviation_test",
    "estimate_p_value",
    "p_value_interval",
    "PValueError",
    "InvalidAlternativeError",
    "DegenerateMeasuresError",
]
