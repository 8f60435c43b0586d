"""qualitygate.domain

Data contracts between the steps of a quality gate run.

Key idea
--------
The locate -> wait -> fetch -> report steps only ever hand each other the
objects defined here. Raw JSON is decoded into them at the HTTP boundary and
never travels further.
"""

from __future__ import annotations

from .task import (
    TARGET_BRANCH,
    TARGET_PROJECT,
    TARGET_PULL_REQUEST,
    TASK_CANCELED,
    TASK_ERROR,
    TASK_IN_PROGRESS,
    TASK_PENDING,
    TASK_SUCCESS,
    TASK_UNKNOWN,
    TERMINAL_TASK_STATUSES,
    AnalysisTaskRef,
    ScanTarget,
    TaskInfo,
    normalize_project_key,
    normalize_task_status,
)
from .verdict import (
    CATEGORY_EXCELLENT,
    CATEGORY_GOOD,
    CATEGORY_NEEDS_IMPROVEMENT,
    NEW_METRIC_PREFIX,
    QualityCondition,
    QualityVerdict,
    Report,
    ReportSummary,
    ReportTestCase,
    classify_success_rate,
)

__all__ = [
    "TARGET_BRANCH",
    "TARGET_PROJECT",
    "TARGET_PULL_REQUEST",
    "TASK_CANCELED",
    "TASK_ERROR",
    "TASK_IN_PROGRESS",
    "TASK_PENDING",
    "TASK_SUCCESS",
    "TASK_UNKNOWN",
    "TERMINAL_TASK_STATUSES",
    "AnalysisTaskRef",
    "ScanTarget",
    "TaskInfo",
    "normalize_project_key",
    "normalize_task_status",
    "CATEGORY_EXCELLENT",
    "CATEGORY_GOOD",
    "CATEGORY_NEEDS_IMPROVEMENT",
    "NEW_METRIC_PREFIX",
    "QualityCondition",
    "QualityVerdict",
    "Report",
    "ReportSummary",
    "ReportTestCase",
    "classify_success_rate",
]
