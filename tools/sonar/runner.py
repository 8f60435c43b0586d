"""tools/sonar/runner.py

Quality gate orchestration.

This module contains the *implementation* of one CI step run:

  (scanner already ran) -> resolve task -> wait CE -> fetch gate -> report -> outcome

Why this exists
---------------

We keep tools/check_quality_gate.py as a stable, thin CLI entrypoint. The
heavier implementation lives here so:

* Sonar-specific complexity is contained in tools/sonar/
* tests can import and exercise execute() with a fake HTTP session and a
  simulated clock, without subprocess CLI parsing

Three ways to find the task
---------------------------
1. ``task_id`` configured: wait on that Compute Engine task, then fetch the
   gate of the analysis it produced. Without a configured project key the
   task's component names the project.
2. ``skip_scan``: nothing ran in this step. Branch/PR targets are looked up
   directly; a bare project uses its most recent analysis.
3. Default: the external scanner just ran and left
   ``.scannerwork/report-task.txt``. Wait on the task it names.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, MutableMapping, Optional

from qualitygate.domain import (
    TARGET_PROJECT,
    AnalysisTaskRef,
    QualityVerdict,
    Report,
    ScanTarget,
    TaskInfo,
    normalize_project_key,
)
from qualitygate.domain.task import TARGET_KINDS
from qualitygate.errors import ConfigError
from qualitygate.io.fs import write_json_atomic
from qualitygate.io.report_task import read_report_task

from .config import GateConfig
from .console import render_conditions, render_gate_status, render_summary
from .gate import GATE_QUERY_ANALYSIS, fetch_verdict
from .locator import locate_by_target, locate_latest_task
from .report import build_report, dashboard_url, write_junit_report
from .transport import SonarHttpClient
from .waiter import wait_for_task

logger = logging.getLogger(__name__)

# Status reported when a fresh scan ran but waiting for the gate is disabled.
ASSUMED_STATUS = "OK"


@dataclass(frozen=True)
class GateOutcome:
    """Result of one run. ``passed`` is exact string equality with the expected status."""

    status: str
    expected: str
    enforced: bool
    report: Report
    dashboard_url: str
    junit_path: Optional[Path] = None
    verdict: Optional[QualityVerdict] = None
    gate_error_exit_code: int = 1

    @property
    def passed(self) -> bool:
        return self.status == self.expected

    @property
    def exit_code(self) -> int:
        if self.passed or not self.enforced:
            return 0
        return self.gate_error_exit_code


@dataclass(frozen=True)
class _Resolved:
    host: str
    target: ScanTarget
    verdict: Optional[QualityVerdict]


def _query_target(config: GateConfig, target: ScanTarget) -> ScanTarget:
    if config.gate_query in TARGET_KINDS:
        forced = config.scan_target(config.gate_query)
        return ScanTarget(project_key=target.project_key, kind=forced.kind, value=forced.value)
    return target


def _fetch_for_analysis(
    client: SonarHttpClient,
    config: GateConfig,
    host: str,
    analysis_id: Optional[str],
    target: ScanTarget,
) -> QualityVerdict:
    mode = config.gate_query or (GATE_QUERY_ANALYSIS if analysis_id else None)
    return fetch_verdict(client, config.token, host, analysis_id, _query_target(config, target), mode=mode)


def _wait(
    client: SonarHttpClient,
    config: GateConfig,
    ref: AnalysisTaskRef,
    *,
    clock: Callable[[], float],
    sleep: Callable[[float], None],
) -> TaskInfo:
    print(f"⏳ Waiting for analysis task {ref.key} (timeout {config.gate_timeout:g}s)...")
    task = wait_for_task(
        client,
        config.token,
        ref,
        interval=config.poll_interval,
        timeout=config.gate_timeout,
        clock=clock,
        sleep=sleep,
    )
    print(f"✅ Analysis task {ref.key} completed successfully.")
    return task


def _target_for_task(config: GateConfig, task: TaskInfo) -> ScanTarget:
    """Configured target, with the project taken from the task when no key is configured."""
    project_key = config.project_key or normalize_project_key(task.component_key or "")
    if not project_key:
        raise ConfigError(
            f"PLUGIN_SONAR_KEY is not set and analysis task {task.task_id or config.task_id} names no project."
        )
    return ScanTarget.resolve(project_key, branch=config.branch or None, pull_request=config.pull_request or None)


def resolve_verdict(
    client: SonarHttpClient,
    config: GateConfig,
    *,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> _Resolved:
    """Locate the task, wait for it and fetch its verdict.

    Returns a verdict of ``None`` only when a fresh scan ran and waiting for
    the gate is disabled.
    """
    host = config.host

    if config.task_id:
        print(f"Using configured analysis task: {config.task_id}")
        ref = AnalysisTaskRef.for_ce_task(config.task_id, server_url=host, project_key=config.project_key)
        task = _wait(client, config, ref, clock=clock, sleep=sleep)
        target = _target_for_task(config, task)
        verdict = _fetch_for_analysis(client, config, host, task.analysis_id, target)
        return _Resolved(host, target, verdict)

    if config.skip_scan:
        target = config.scan_target()
        print(f"⏭️ Skipping scan, looking up the last analysis for {target.describe()}")
        if target.kind != TARGET_PROJECT and not config.gate_query:
            ref = locate_by_target(client, config.token, target, host, target.project_key)
            return _Resolved(host, target, ref.verdict)

        ref = locate_latest_task(client, config.token, host, target.project_key)
        print(f"Latest analysis: {ref.key}")
        return _Resolved(host, target, _fetch_for_analysis(client, config, host, ref.key, target))

    report_task_path = config.report_task_path()
    descriptor = read_report_task(report_task_path)
    print(f"📄 Scanner descriptor: {report_task_path}")
    logger.info("CE task %s (%s)", descriptor.ce_task_id, descriptor.ce_task_url or descriptor.server_url)

    project_key = config.project_key or descriptor.project_key
    target = ScanTarget.resolve(project_key, branch=config.branch or None, pull_request=config.pull_request or None)

    if not config.wait_quality_gate:
        print("⚠️ Not waiting for the quality gate; assuming it passes.")
        return _Resolved(host, target, None)

    ref = descriptor.task_ref()
    task = _wait(client, config, ref, clock=clock, sleep=sleep)
    if not target.project_key:
        target = _target_for_task(config, task)
    verdict = _fetch_for_analysis(client, config, ref.server_url, task.analysis_id, target)
    return _Resolved(descriptor.server_url, target, verdict)


def _export_summary(report: Report, environ: MutableMapping[str, str]) -> None:
    for key, value in report.summary.as_env().items():
        environ[key] = value


def execute(
    config: GateConfig,
    *,
    client: Optional[SonarHttpClient] = None,
    environ: Optional[MutableMapping[str, str]] = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> GateOutcome:
    """Run one quality gate check and write its artifacts.

    Returns a GateOutcome for a verdict of any status. Raises a
    QualityGateError subclass when no verdict could be obtained.

    This is safe to import and call from tests and from
    tools/check_quality_gate.py.
    """
    own_client = client is None
    http = client if client is not None else SonarHttpClient(timeout=config.http_timeout)
    try:
        resolved = resolve_verdict(http, config, clock=clock, sleep=sleep)
    finally:
        if own_client:
            http.close()

    verdict = resolved.verdict if resolved.verdict is not None else QualityVerdict(status=ASSUMED_STATUS)
    link = dashboard_url(resolved.host, resolved.target)
    report = build_report(verdict, resolved.target.project_key, suite_name=link)

    junit_path = write_junit_report(report, config.resolve_output(config.junit_path))
    print(f"📄 JUnit report saved to: {junit_path}")

    if config.verdict_json_path:
        verdict_path = config.resolve_output(config.verdict_json_path)
        write_json_atomic(verdict_path, {**verdict.to_dict(), "summary": report.summary.to_dict(), "dashboard": link})
        print(f"📄 Verdict JSON saved to: {verdict_path}")

    _export_summary(report, os.environ if environ is None else environ)

    outcome = GateOutcome(
        status=verdict.status,
        expected=config.expected_status,
        enforced=config.gate_enabled,
        report=report,
        dashboard_url=link,
        junit_path=junit_path,
        verdict=resolved.verdict,
        gate_error_exit_code=config.gate_error_exit_code,
    )

    print()
    print(render_conditions(report))
    print()
    print(render_summary(report.summary))
    print()
    print("==> SONAR PROJECT DASHBOARD <==")
    print(link)
    print()
    print(render_gate_status(outcome.status, outcome.enforced))

    if outcome.passed:
        logger.info("Quality gate status %s matches expected %s", outcome.status, outcome.expected)
    elif outcome.enforced:
        logger.info("Quality gate status %s != expected %s, failing the step", outcome.status, outcome.expected)
    else:
        logger.info("Quality gate status %s != expected %s, enforcement disabled", outcome.status, outcome.expected)

    return outcome
