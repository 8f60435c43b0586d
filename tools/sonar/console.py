"""tools/sonar/console.py

Plain-text console tables for the end of a run.

Rendering returns strings; printing is left to the caller so tests can assert
on the text and the CLI decides where it goes.
"""

from __future__ import annotations

from typing import List

from qualitygate.domain import Report, ReportSummary

LINE_BREAK = "-" * 46


def _row(label: str, value: object) -> str:
    return f"| {label:<27}| {str(value):<15}|"


def render_gate_status(status: str, enforced: bool) -> str:
    lines: List[str] = [
        LINE_BREAK,
        "|         QUALITY GATE STATUS REPORT           |",
        LINE_BREAK,
        _row("STATUS", status),
        LINE_BREAK,
        _row("QUALITY GATE ENABLED", "YES" if enforced else "NO"),
        LINE_BREAK,
    ]
    return "\n".join(lines)


def render_summary(summary: ReportSummary) -> str:
    lines: List[str] = [
        LINE_BREAK,
        _row("STATUS", "COUNT"),
        LINE_BREAK,
        _row("PASSED", summary.passed),
        LINE_BREAK,
        _row("FAILED", summary.failed),
        LINE_BREAK,
        _row("TOTAL", summary.total),
        LINE_BREAK,
        "",
        f"Success rate: {summary.success_rate:.2f}%",
        f"Categorization: {summary.category}",
    ]
    return "\n".join(lines)


def render_conditions(report: Report) -> str:
    """One line per condition, failures marked."""
    if not report.test_cases:
        return "(quality gate has no conditions)"
    lines: List[str] = []
    for case in report.test_cases:
        mark = "FAIL" if case.failed else "ok  "
        detail = case.failure_message or case.classname
        lines.append(f"  [{mark}] {case.name}: {detail}")
    return "\n".join(lines)
