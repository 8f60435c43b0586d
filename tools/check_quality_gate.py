#!/usr/bin/env python3
"""tools/check_quality_gate.py

Sonar quality gate CI step.

This file is intentionally kept as a thin orchestrator:
  - parse CLI args (every flag can also come from a PLUGIN_* env var / .env)
  - build the run configuration
  - call tools.sonar.runner.execute()
  - map the outcome to a process exit status

Exit status:
  0                  gate status matched the expected one, or enforcement is off
  gate exit code     gate status did not match and enforcement is on (default 1)
  1                  no verdict could be obtained (config, network, auth, timeout...)
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from qualitygate.errors import ConfigError, QualityGateError

from tools.sonar.config import configure_logging, load_gate_config, parse_bool
from tools.sonar.runner import execute


def _bool_arg(value: str) -> bool:
    try:
        return parse_bool(value)
    except ConfigError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Wait for a Sonar analysis, check its quality gate and write a JUnit report."
    )
    p.add_argument("--host", default=None, help="Sonar server URL (PLUGIN_SONAR_HOST)")
    p.add_argument("--token", default=None, help="Sonar token (PLUGIN_SONAR_TOKEN)")
    p.add_argument("--project-key", default=None, help="Sonar project key (PLUGIN_SONAR_KEY)")
    p.add_argument("--branch", default=None, help="Branch name (PLUGIN_BRANCH)")
    p.add_argument("--pr-key", dest="pull_request", default=None, help="Pull request key (PLUGIN_PR_KEY)")
    p.add_argument("--task-id", default=None, help="Compute Engine task id to wait on (PLUGIN_TASKID)")
    p.add_argument("--skip-scan", action="store_true", default=None, help="No scan ran; look up the last analysis")
    p.add_argument("--wait-quality-gate", type=_bool_arg, default=None, help="Wait for the CE task (true/false)")
    p.add_argument("--quality", dest="expected_status", default=None, help="Expected gate status (default OK)")
    p.add_argument("--quality-gate-enabled", dest="gate_enabled", type=_bool_arg, default=None)
    p.add_argument("--quality-gate-exit-code", dest="gate_error_exit_code", type=int, default=None)
    p.add_argument("--qualitygate-timeout", dest="gate_timeout", type=float, default=None, help="Seconds")
    p.add_argument("--http-timeout", type=float, default=None, help="Seconds per HTTP request")
    p.add_argument("--workspace", default=None, help="Directory holding .scannerwork/report-task.txt")
    p.add_argument("--qg-type", dest="gate_query", default=None,
                   choices=["analysisId", "branch", "pullRequest", "projectKey"])
    p.add_argument("--junit-report", dest="junit_path", default=None)
    p.add_argument("--verdict-json", dest="verdict_json_path", default=None)
    p.add_argument("--level", dest="log_level", default=None, help="Log level (PLUGIN_LEVEL)")
    p.add_argument("--env-file", default=None, help="Path to a .env file (default ./.env)")
    return p.parse_args(argv)


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    out = {k: v for k, v in vars(args).items() if k != "env_file"}
    if out.get("log_level"):
        out["log_level"] = str(out["log_level"]).upper()
    return out


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    try:
        cfg = load_gate_config(overrides=_overrides(args), dotenv_path=Path(args.env_file) if args.env_file else None)
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    configure_logging(cfg.log_level)
    print(f"Using Sonar host: {cfg.host}")
    print(f"Project: {cfg.scan_target().describe()}")

    try:
        outcome = execute(cfg)
    except QualityGateError as e:
        print(f"\n==> ERROR: {e.headline}", file=sys.stderr)
        print(f"{type(e).__name__}: {e}", file=sys.stderr)
        return 1

    if outcome.passed:
        print(f"✅ Quality gate status {outcome.status}")
    elif outcome.enforced:
        print(f"❌ Quality gate status {outcome.status} (expected {outcome.expected}), failing the step")
    else:
        print(f"⚠️ Quality gate status {outcome.status} (expected {outcome.expected}), enforcement disabled")
    return outcome.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
