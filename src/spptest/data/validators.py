"""Validation logic for curve set folders."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import numpy as np

from spptest.core.types import ValidationIssue, ValidationReport
from spptest.curves.curve_set import ValidationError
from spptest.curves.ops import MissingSimulationDataError
from spptest.data.io import CurveSetIOError, frame_to_curve_set, load_curve_table, load_manifest
from spptest.data.schema import ALLOWED_MANIFEST_FIELDS, RECOMMENDED_NSIM, REQUIRED_MANIFEST_FIELDS


def validate_curve_set_folder(path: str | Path, allow_inf_values: bool = False) -> ValidationReport:
    issues: list[ValidationIssue] = []

    try:
        manifest = load_manifest(path)
        table = load_curve_table(path)
    except (CurveSetIOError, ValueError, OSError) as exc:
        return ValidationReport(
            valid=False,
            issues=[ValidationIssue(level="error", code="io_error", message=str(exc), context={})],
        )

    if manifest:
        issues.extend(_validate_manifest(manifest))

    try:
        curve_set = frame_to_curve_set(table, manifest, allow_inf_values=allow_inf_values)
    except ValidationError as exc:
        issues.append(
            ValidationIssue(
                level="error",
                code=f"invalid_{exc.field}",
                message=str(exc),
                context={"field": exc.field, "reason": exc.reason},
            )
        )
        return ValidationReport(valid=False, issues=issues)
    except MissingSimulationDataError as exc:
        issues.append(ValidationIssue(level="error", code="missing_simulations", message=str(exc), context={}))
        return ValidationReport(valid=False, issues=issues)
    except CurveSetIOError as exc:
        issues.append(ValidationIssue(level="error", code="missing_column", message=str(exc), context={}))
        return ValidationReport(valid=False, issues=issues)

    issues.extend(_curve_warnings(curve_set.r, curve_set.n_sim))

    has_error = any(issue.level == "error" for issue in issues)
    return ValidationReport(valid=not has_error, issues=issues, n_r=curve_set.n_r, n_sim=curve_set.n_sim)


def _validate_manifest(manifest: dict[str, Any]) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []

    for field in REQUIRED_MANIFEST_FIELDS:
        if field not in manifest:
            issues.append(
                ValidationIssue(
                    level="error",
                    code="missing_manifest_field",
                    message=f"Missing required curve_set.yaml field '{field}'",
                    context={"field": field},
                )
            )

    unknown = sorted(set(manifest) - ALLOWED_MANIFEST_FIELDS)
    if unknown:
        issues.append(
            ValidationIssue(
                level="warning",
                code="unknown_manifest_field",
                message=f"curve_set.yaml has unknown fields {unknown}",
                context={"fields": unknown},
            )
        )

    columns = manifest.get("columns", {})
    if not isinstance(columns, dict):
        issues.append(
            ValidationIssue(
                level="error",
                code="invalid_columns_mapping",
                message="curve_set.yaml columns must be a mapping",
                context={},
            )
        )

    is_residual = manifest.get("is_residual", False)
    if not isinstance(is_residual, bool):
        issues.append(
            ValidationIssue(
                level="error",
                code="invalid_is_residual",
                message="curve_set.yaml is_residual must be true or false",
                context={"value": is_residual},
            )
        )

    return issues


def _curve_warnings(r: np.ndarray, n_sim: int) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    steps = np.diff(r)
    if steps.size and not (np.all(steps > 0) or np.all(steps < 0)):
        issues.append(
            ValidationIssue(
                level="warning",
                code="r_not_monotonic",
                message="Distances in r are not strictly monotonic (a combined curve set?)",
                context={},
            )
        )
    if n_sim < RECOMMENDED_NSIM["scaled"]:
        issues.append(
            ValidationIssue(
                level="warning",
                code="few_simulations",
                message=(
                    f"Only {n_sim} simulations; at least {RECOMMENDED_NSIM['scaled']} are recommended "
                    f"for scaled envelopes and {RECOMMENDED_NSIM['rank']} for the rank envelope"
                ),
                context={"n_sim": n_sim},
            )
        )
    return issues


def report_to_dict(report: ValidationReport) -> dict[str, Any]:
    return {
        "valid": report.valid,
        "n_r": report.n_r,
        "n_sim": report.n_sim,
        "issues": [
            {
                "level": issue.level,
                "code": issue.code,
                "message": issue.message,
                "context": dict(issue.context),
            }
            for issue in report.issues
        ],
    }
