"""Curve set folder schema constants."""

from __future__ import annotations

MANIFEST_NAME = "curve_set.yaml"
TABLE_NAMES = ("curves.parquet", "curves.csv")

REQUIRED_MANIFEST_FIELDS = ["schema_version", "id", "columns"]
ALLOWED_MANIFEST_FIELDS = {
    "schema_version",
    "id",
    "description",
    "summary_function",
    "is_residual",
    "columns",
    "analysis",
}

DEFAULT_COLUMNS = {
    "r": "r",
    "obs": "obs",
    "theo": "theo",
    "sim_prefix": "sim_",
}

# Recommended minimum simulation counts per test family.
RECOMMENDED_NSIM = {"rank": 2499, "scaled": 99}

MANIFEST_TEMPLATE = {
    "schema_version": 1,
    "id": "example_curve_set",
    "description": "K-function of the observed pattern and 2499 CSR simulations",
    "summary_function": "K",
    "is_residual": False,
    "columns": dict(DEFAULT_COLUMNS),
    "analysis": {
        "envelope": {"method": "rank", "alpha": 0.05, "alternative": "two.sided"},
        "crop": {"r_min": 0.0, "r_max": 10.0},
    },
}
