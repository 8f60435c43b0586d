"""qualitygate.domain.verdict

Quality gate verdicts and the report derived from them.

The ``/api/qualitygates/project_status`` payload is heterogeneous: period
metadata comes and goes between server versions, ``ignoredConditions`` is
optional, condition thresholds may be absent. Decoding here is lenient about
all of that and strict about the two things a run cannot do without: the
aggregate ``status`` and the ``conditions`` list.

A condition's ``status`` is the only field that decides pass/fail. Comparator
and thresholds are carried for reporting.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from qualitygate.errors import DecodeError

CONDITION_OK = "OK"
CONDITION_WARN = "WARN"
CONDITION_ERROR = "ERROR"

# Metric keys with this prefix describe regressions since the baseline.
NEW_METRIC_PREFIX = "new_"


def _str_field(d: Mapping[str, Any], key: str) -> str:
    v = d.get(key)
    return "" if v is None else str(v)


@dataclass(frozen=True)
class QualityCondition:
    """One evaluated gate rule."""

    metric_key: str
    status: str
    comparator: str = ""
    error_threshold: str = ""
    actual_value: str = ""

    @property
    def passed(self) -> bool:
        return self.status == CONDITION_OK

    @property
    def is_new_code(self) -> bool:
        return self.metric_key.startswith(NEW_METRIC_PREFIX)

    def describe_rule(self) -> str:
        return f"{self.actual_value} is {self.comparator} {self.error_threshold}"

    @classmethod
    def from_dict(cls, d: Any) -> "QualityCondition":
        if not isinstance(d, Mapping):
            raise DecodeError(f"Quality gate condition is not an object: {d!r}")
        status = d.get("status")
        if not isinstance(status, str) or not status:
            raise DecodeError(f"Quality gate condition has no status: {dict(d)!r}")
        return cls(
            metric_key=_str_field(d, "metricKey"),
            status=status,
            comparator=_str_field(d, "comparator"),
            error_threshold=_str_field(d, "errorThreshold"),
            actual_value=_str_field(d, "actualValue"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metricKey": self.metric_key,
            "status": self.status,
            "comparator": self.comparator,
            "errorThreshold": self.error_threshold,
            "actualValue": self.actual_value,
        }


@dataclass(frozen=True)
class QualityVerdict:
    """Aggregate gate status plus its ordered conditions.

    ``status`` is compared for exact string equality against the expected
    value configured for the run.
    """

    status: str
    conditions: Tuple[QualityCondition, ...] = ()
    ignored_conditions: bool = False

    @classmethod
    def from_payload(cls, payload: Any) -> "QualityVerdict":
        """Decode a ``project_status`` response body (already JSON-parsed)."""
        if not isinstance(payload, Mapping):
            raise DecodeError("Quality gate response is not a JSON object")
        project = payload.get("projectStatus")
        if not isinstance(project, Mapping):
            raise DecodeError("Quality gate response has no 'projectStatus' object")

        status = project.get("status")
        if not isinstance(status, str) or not status:
            raise DecodeError("Quality gate response has no 'projectStatus.status'")

        raw_conditions = project.get("conditions")
        if not isinstance(raw_conditions, list):
            raise DecodeError("Quality gate response has no 'projectStatus.conditions' list")

        return cls(
            status=status,
            conditions=tuple(QualityCondition.from_dict(c) for c in raw_conditions),
            ignored_conditions=bool(project.get("ignoredConditions", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "projectStatus": {
                "status": self.status,
                "ignoredConditions": self.ignored_conditions,
                "conditions": [c.to_dict() for c in self.conditions],
            }
        }


# -------------------------
# Report
# -------------------------

CATEGORY_EXCELLENT = "Excellent"
CATEGORY_GOOD = "Good"
CATEGORY_NEEDS_IMPROVEMENT = "Needs Improvement"


def classify_success_rate(rate: float) -> str:
    if rate >= 90:
        return CATEGORY_EXCELLENT
    if rate >= 70:
        return CATEGORY_GOOD
    return CATEGORY_NEEDS_IMPROVEMENT


@dataclass(frozen=True)
class ReportTestCase:
    name: str
    classname: str
    failure_message: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.failure_message is not None


@dataclass(frozen=True)
class ReportSummary:
    """Counts exposed to the calling CI environment."""

    total: int
    passed: int
    failed: int
    errors: int = 0
    new_errors: int = 0
    success_rate: float = 0.0

    @property
    def category(self) -> str:
        return classify_success_rate(self.success_rate)

    def as_env(self) -> Dict[str, str]:
        return {
            "SONAR_RESULT_SUCCESS_RATE": f"{self.success_rate:.2f}",
            "SONAR_RESULT_TOTAL": str(self.total),
            "SONAR_RESULT_PASSED": str(self.passed),
            "SONAR_RESULT_FAILED": str(self.failed),
            "SONAR_RESULT_ERRORS": str(self.errors),
            "SONAR_RESULT_NEW_ERRORS": str(self.new_errors),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "errors": self.errors,
            "newErrors": self.new_errors,
            "successRate": round(self.success_rate, 2),
            "category": self.category,
        }


@dataclass(frozen=True)
class Report:
    """Test-report view of a verdict: one test case per condition."""

    suite_name: str
    package: str
    test_cases: Tuple[ReportTestCase, ...] = ()
    summary: ReportSummary = field(default_factory=lambda: ReportSummary(total=0, passed=0, failed=0))
