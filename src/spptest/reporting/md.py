"""Markdown report writer."""

from __future__ import annotations

from pathlib import Path
from typing import Any


def write_report_md(payload: dict[str, Any], out_path: str | Path) -> None:
    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)

    res = payload.get("result", {})
    rep = payload.get("reproducibility", {})
    if res.get("test") == "envelope":
        heading = f"Global envelope test ({res.get('method')})"
        decision = "observed curve OUTSIDE the envelope" if res.get("outside") else "observed curve inside the envelope"
        details = [
            f"- alpha: `{_fmt(res.get('alpha'))}`",
            f"- alternative: `{res.get('alternative')}`",
            f"- threshold: `{_fmt(res.get('threshold'))}`",
            f"- decision: {decision}",
        ]
        if res.get("degenerate"):
            details.append("- all curves share one measure; the p-value is set to 1")
        if res.get("band_exact") is False:
            details.append("- the pointwise band does not reproduce the decision for every curve; the decision uses the measure")
    else:
        heading = f"Deviation test ({res.get('measure')}, scaling {res.get('scaling')})"
        details = [f"- statistic: `{_fmt(res.get('statistic'))}`"]

    p_interval = res.get("p_interval") or [None, None]
    text = "\n".join(
        [
            f"# {heading}",
            "",
            "## Result",
            f"- p-value ({res.get('ties')}): `{_fmt(res.get('p'))}`",
            f"- p-interval: `[{_fmt(p_interval[0])}, {_fmt(p_interval[1])}]`",
            f"- simulations: `{res.get('n_sim')}`",
            f"- simulated measures tied with observed: `{res.get('tie_count')}`",
            *details,
            "",
            "## Reproducibility",
            f"- Input hash: `{rep.get('input_hash')}`",
            f"- Curve set hash: `{rep.get('curve_set_hash')}`",
            f"- Config hash: `{rep.get('config_hash')}`",
            f"- Timestamp (UTC): `{rep.get('timestamp_utc')}`",
            "",
        ]
    )
    out.write_text(text, encoding="utf-8")


def _fmt(v: Any) -> str:
    try:
        return f"{float(v):.6g}"
    except (TypeError, ValueError):
        return str(v)
