"""tools/sonar/report.py

Report builder: verdict -> summary counts + JUnit test report.

Every gate condition becomes one JUnit test case so CI systems that already
understand test reports (Drone, Harness, Jenkins, GitLab) can show which
metric broke the gate. The suite name carries the Sonar dashboard URL so the
report links back to the analysis.

Counting rules
--------------
* total  = number of conditions
* failed = conditions whose status is not ``OK``
* passed = total - failed (never counted separately)
* errors = failed conditions whose status is exactly ``ERROR``. This is a
  finer split of ``failed`` for SONAR_RESULT_ERRORS only; the JUnit
  ``errors`` attribute is always 0 since a broken condition is a failure.
* new_errors = failed conditions on ``new_*`` metrics
* success_rate = passed / total * 100, or 0 for an empty gate
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path
from typing import List, Optional, Tuple, Union

from qualitygate.domain import QualityVerdict, Report, ReportSummary, ReportTestCase, ScanTarget
from qualitygate.domain.verdict import CONDITION_ERROR
from qualitygate.errors import DecodeError
from qualitygate.io.fs import write_text_atomic

DASHBOARD_PATH = "/dashboard?id="
DEFAULT_JUNIT_FILENAME = "sonarResults.xml"


def dashboard_url(host: str, target: ScanTarget) -> str:
    return f"{host.rstrip('/')}{DASHBOARD_PATH}{target.project_key}{target.dashboard_qualifier()}"


def success_rate(passed: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return passed / total * 100


def build_report(verdict: QualityVerdict, scope_name: str, *, suite_name: Optional[str] = None) -> Report:
    """Pure transformation of a verdict into a :class:`Report`.

    ``scope_name`` is the project the gate belongs to (JUnit ``package``);
    ``suite_name`` defaults to it and is normally the dashboard URL.
    """
    total = 0
    failed = 0
    errors = 0
    new_errors = 0
    cases: List[ReportTestCase] = []

    for condition in verdict.conditions:
        total += 1
        rule = condition.describe_rule()
        failure: Optional[str] = None
        if not condition.passed:
            failed += 1
            if condition.status == CONDITION_ERROR:
                errors += 1
            if condition.is_new_code:
                new_errors += 1
            failure = f"Violated: {rule}"
        cases.append(ReportTestCase(name=condition.metric_key, classname=f"Violate if {rule}", failure_message=failure))

    passed = total - failed
    summary = ReportSummary(
        total=total,
        passed=passed,
        failed=failed,
        errors=errors,
        new_errors=new_errors,
        success_rate=success_rate(passed, total),
    )
    return Report(
        suite_name=suite_name or scope_name,
        package=scope_name,
        test_cases=tuple(cases),
        summary=summary,
    )


# -------------------------
# JUnit XML
# -------------------------

def build_junit_tree(report: Report) -> ET.ElementTree:
    root = ET.Element("testsuites")
    suite = ET.SubElement(
        root,
        "testsuite",
        {
            "name": report.suite_name,
            "package": report.package,
            "tests": str(report.summary.total),
            "failures": str(report.summary.failed),
            "errors": "0",
            "time": "0",
        },
    )
    for case in report.test_cases:
        el = ET.SubElement(suite, "testcase", {"name": case.name, "classname": case.classname, "time": "0"})
        if case.failure_message is not None:
            ET.SubElement(el, "failure", {"message": case.failure_message})
    return ET.ElementTree(root)


def render_junit_xml(report: Report) -> str:
    tree = build_junit_tree(report)
    ET.indent(tree, space="  ", level=0)
    body = ET.tostring(tree.getroot(), encoding="unicode")
    return f'<?xml version="1.0" encoding="UTF-8"?>\n{body}\n'


def write_junit_report(report: Report, path: Union[str, Path]) -> Path:
    p = Path(path)
    write_text_atomic(p, render_junit_xml(report))
    return p


def parse_junit_counts(xml_text: str) -> Tuple[int, int]:
    """Re-read a JUnit document and return ``(total, failed)`` from its test cases."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise DecodeError(f"Invalid JUnit XML: {e}") from e

    total = 0
    failed = 0
    for case in root.iter("testcase"):
        total += 1
        if case.find("failure") is not None:
            failed += 1
    return total, failed
