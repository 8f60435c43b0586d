"""qualitygate.domain.task

What is being analyzed, and which server-side task holds the answer.

* :class:`ScanTarget` - project key plus at most one active discriminator
  (pull request or branch).
* :class:`AnalysisTaskRef` - opaque handle on a Compute Engine task, an
  analysis, or a branch/PR-scoped quality status document.
* :class:`TaskInfo` - one decoded ``/api/ce/task`` response.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional
from urllib.parse import quote

from qualitygate.errors import DecodeError

if TYPE_CHECKING:
    from .verdict import QualityVerdict


# -------------------------
# Scan target
# -------------------------

TARGET_PROJECT = "projectKey"
TARGET_BRANCH = "branch"
TARGET_PULL_REQUEST = "pullRequest"

TARGET_KINDS = frozenset({TARGET_PROJECT, TARGET_BRANCH, TARGET_PULL_REQUEST})


def normalize_project_key(key: str) -> str:
    """Sonar project keys use ``:`` where CI systems tend to use ``/``."""
    return (key or "").strip().replace("/", ":")


@dataclass(frozen=True)
class ScanTarget:
    """The single thing a run looks up.

    ``kind`` is the active discriminator. ``value`` is the branch name or the
    pull request key and is ``None`` for a bare project lookup.
    """

    project_key: str
    kind: str = TARGET_PROJECT
    value: Optional[str] = None

    def __post_init__(self) -> None:
        if self.kind not in TARGET_KINDS:
            raise ValueError(f"Unknown scan target kind: {self.kind!r}")
        if self.kind != TARGET_PROJECT and not self.value:
            raise ValueError(f"Scan target kind {self.kind!r} requires a value")

    @classmethod
    def resolve(
        cls,
        project_key: str,
        *,
        branch: Optional[str] = None,
        pull_request: Optional[str] = None,
    ) -> "ScanTarget":
        """Pick the active discriminator: pull request > branch > project."""
        key = normalize_project_key(project_key)
        if pull_request:
            return cls(project_key=key, kind=TARGET_PULL_REQUEST, value=str(pull_request))
        if branch:
            return cls(project_key=key, kind=TARGET_BRANCH, value=str(branch))
        return cls(project_key=key)

    def query_params(self) -> Dict[str, str]:
        """Query keys for ``/api/qualitygates/project_status``."""
        params: Dict[str, str] = {}
        if self.kind != TARGET_PROJECT:
            params[self.kind] = str(self.value)
        params["projectKey"] = self.project_key
        return params

    def dashboard_qualifier(self) -> str:
        if self.kind == TARGET_PROJECT:
            return ""
        return f"&{self.kind}={quote(str(self.value), safe='/')}"

    def describe(self) -> str:
        if self.kind == TARGET_PROJECT:
            return f"project:{self.project_key}"
        return f"{self.kind}:{self.value} ({self.project_key})"


# -------------------------
# Task status
# -------------------------

TASK_PENDING = "PENDING"
TASK_IN_PROGRESS = "IN_PROGRESS"
TASK_SUCCESS = "SUCCESS"
TASK_ERROR = "ERROR"
TASK_CANCELED = "CANCELED"
TASK_UNKNOWN = "UNKNOWN"

TASK_STATUSES = frozenset({TASK_PENDING, TASK_IN_PROGRESS, TASK_SUCCESS, TASK_ERROR, TASK_CANCELED})

# Only these stop the waiter. CANCELED keeps polling until the deadline.
TERMINAL_TASK_STATUSES = frozenset({TASK_SUCCESS, TASK_ERROR})


def normalize_task_status(raw: Any) -> str:
    s = str(raw or "").strip().upper()
    return s if s in TASK_STATUSES else TASK_UNKNOWN


# -------------------------
# Task references
# -------------------------

REF_CE_TASK = "ce_task"
REF_ANALYSIS = "analysis"
REF_TARGET = "target"


@dataclass(frozen=True)
class AnalysisTaskRef:
    """Read-only handle on the server-side work that produced (or will produce) a verdict.

    Kinds
    -----
    ``ce_task``
        A Compute Engine task id. Must be waited on before a verdict exists.
    ``analysis``
        An analysis key from ``/api/project_analyses/search``. Already done.
    ``target``
        A branch/PR lookup. ``query`` holds the parameters that were sent and
        ``verdict`` the status document that came back.
    """

    key: str
    kind: str
    server_url: str
    project_key: str = ""
    status_url: Optional[str] = None
    query: Dict[str, str] = field(default_factory=dict)
    verdict: Optional["QualityVerdict"] = None

    @classmethod
    def for_ce_task(
        cls,
        task_id: str,
        *,
        server_url: str,
        project_key: str = "",
        status_url: Optional[str] = None,
    ) -> "AnalysisTaskRef":
        host = server_url.rstrip("/")
        return cls(
            key=task_id,
            kind=REF_CE_TASK,
            server_url=host,
            project_key=project_key,
            status_url=status_url or f"{host}/api/ce/task?id={quote(task_id, safe='')}",
        )

    @classmethod
    def for_analysis(cls, analysis_key: str, *, server_url: str, project_key: str = "") -> "AnalysisTaskRef":
        return cls(key=analysis_key, kind=REF_ANALYSIS, server_url=server_url.rstrip("/"), project_key=project_key)


@dataclass(frozen=True)
class TaskInfo:
    """Decoded ``/api/ce/task`` payload (only the fields the waiter uses)."""

    task_id: str
    status: str
    analysis_id: Optional[str] = None
    component_key: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_TASK_STATUSES

    @classmethod
    def from_payload(cls, payload: Any) -> "TaskInfo":
        if not isinstance(payload, Mapping):
            raise DecodeError("CE task response is not a JSON object")
        task = payload.get("task")
        if not isinstance(task, Mapping):
            raise DecodeError("CE task response has no 'task' object")
        return cls(
            task_id=str(task.get("id") or ""),
            status=normalize_task_status(task.get("status")),
            analysis_id=task.get("analysisId") or None,
            component_key=task.get("componentKey") or None,
            error_message=task.get("errorMessage") or None,
        )
