"""qualitygate.io.report_task

Reader for the scanner's task descriptor (``.scannerwork/report-task.txt``).

After a fresh analysis the scanner writes a small ``key=value`` file naming the
Compute Engine task it submitted::

    projectKey=my_project
    serverUrl=https://sonarcloud.io
    serverVersion=8.0.0.46
    dashboardUrl=https://sonarcloud.io/dashboard?id=my_project
    ceTaskId=AYx...
    ceTaskUrl=https://sonarcloud.io/api/ce/task?id=AYx...

Values may themselves contain ``=`` (URLs with query strings), so only the
first ``=`` on a line separates key from value.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union

from qualitygate.domain.task import AnalysisTaskRef, normalize_project_key
from qualitygate.errors import DecodeError

REPORT_TASK_RELPATH = Path(".scannerwork") / "report-task.txt"


@dataclass(frozen=True)
class ReportTask:
    project_key: str
    server_url: str
    ce_task_id: str
    ce_task_url: Optional[str] = None
    dashboard_url: Optional[str] = None
    server_version: Optional[str] = None

    def task_ref(self) -> AnalysisTaskRef:
        return AnalysisTaskRef.for_ce_task(
            self.ce_task_id,
            server_url=self.server_url,
            project_key=self.project_key,
            status_url=self.ce_task_url,
        )


def default_report_task_path(workspace: Union[str, Path, None] = None) -> Path:
    base = Path(workspace) if workspace else Path.cwd()
    return base / REPORT_TASK_RELPATH


def parse_report_task(text: str) -> Dict[str, str]:
    """Parse descriptor text into a dict. Comments and blank lines are skipped."""
    out: Dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, val = line.split("=", 1)
        key = key.strip()
        if key:
            out[key] = val.strip().strip('"')
    return out


def read_report_task(path: Union[str, Path]) -> ReportTask:
    """Read and validate a descriptor file.

    Raises DecodeError when the file is missing or lacks ``ceTaskId`` /
    ``serverUrl`` (the run cannot find its task without them).
    """
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise DecodeError(f"Scanner descriptor not found: {p}") from e
    except OSError as e:
        raise DecodeError(f"Could not read scanner descriptor {p}: {e}") from e

    fields = parse_report_task(text)
    missing = [k for k in ("ceTaskId", "serverUrl") if not fields.get(k)]
    if missing:
        raise DecodeError(f"Scanner descriptor {p} is missing: {', '.join(missing)}")

    return ReportTask(
        project_key=normalize_project_key(fields.get("projectKey", "")),
        server_url=fields["serverUrl"].rstrip("/"),
        ce_task_id=fields["ceTaskId"],
        ce_task_url=fields.get("ceTaskUrl") or None,
        dashboard_url=fields.get("dashboardUrl") or None,
        server_version=fields.get("serverVersion") or None,
    )
