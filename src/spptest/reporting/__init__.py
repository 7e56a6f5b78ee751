"""Report builders for JSON/Markdown bundles."""

from spptest.reporting.json import build_report_payload, write_report_json
from spptest.reporting.md import write_report_md

__all__ = [
    "build_report_payload",
    "write_report_json",
    "write_report_md",
]
