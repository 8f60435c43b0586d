"""qualitygate.io

Filesystem contracts: atomic artifact writers and the scanner descriptor.
"""

from __future__ import annotations

from .fs import write_json_atomic, write_text_atomic
from .report_task import (
    REPORT_TASK_RELPATH,
    ReportTask,
    default_report_task_path,
    parse_report_task,
    read_report_task,
)

__all__ = [
    "write_json_atomic",
    "write_text_atomic",
    "REPORT_TASK_RELPATH",
    "ReportTask",
    "default_report_task_path",
    "parse_report_task",
    "read_report_task",
]
