"""tools/sonar/config.py

Run configuration for the quality gate step.

Settings come from the environment (CI plugins export ``PLUGIN_*`` variables),
optionally seeded from a ``.env`` file, and may be overridden by CLI flags.
Everything is resolved once into a frozen :class:`GateConfig`; nothing reads
``os.environ`` after that.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from dotenv import load_dotenv

from qualitygate.domain import TARGET_BRANCH, TARGET_PROJECT, TARGET_PULL_REQUEST, ScanTarget, normalize_project_key
from qualitygate.errors import ConfigError
from qualitygate.io.report_task import default_report_task_path

from .gate import GATE_QUERY_MODES
from .report import DEFAULT_JUNIT_FILENAME
from .transport import DEFAULT_HTTP_TIMEOUT
from .waiter import DEFAULT_POLL_INTERVAL, DEFAULT_WAIT_TIMEOUT

SONAR_HOST_DEFAULT = "https://sonarcloud.io"

_TRUE = frozenset({"1", "true", "yes", "y", "on"})
_FALSE = frozenset({"0", "false", "no", "n", "off", ""})


def parse_bool(value: Any, *, name: str = "value") -> bool:
    if isinstance(value, bool):
        return value
    s = str(value if value is not None else "").strip().lower()
    if s in _TRUE:
        return True
    if s in _FALSE:
        return False
    raise ConfigError(f"{name} must be true or false, got {value!r}")


def parse_int(value: Any, *, name: str = "value") -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from e


def parse_float(value: Any, *, name: str = "value") -> float:
    try:
        out = float(str(value).strip())
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be a number, got {value!r}") from e
    if out <= 0:
        raise ConfigError(f"{name} must be positive, got {value!r}")
    return out


@dataclass(frozen=True)
class GateConfig:
    host: str
    token: str
    project_key: str = ""
    branch: str = ""
    pull_request: str = ""
    task_id: str = ""
    skip_scan: bool = False
    wait_quality_gate: bool = True
    expected_status: str = "OK"
    gate_enabled: bool = True
    gate_error_exit_code: int = 1
    gate_timeout: float = DEFAULT_WAIT_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    workspace: str = ""
    gate_query: str = ""
    junit_path: str = DEFAULT_JUNIT_FILENAME
    verdict_json_path: str = ""
    log_level: str = "INFO"

    def scan_target(self, kind: Optional[str] = None) -> ScanTarget:
        """The active scan target, or one forced to ``kind`` when given."""
        if kind == TARGET_PULL_REQUEST:
            return ScanTarget.resolve(self.project_key, pull_request=self.pull_request or None)
        if kind == TARGET_BRANCH:
            return ScanTarget.resolve(self.project_key, branch=self.branch or None)
        if kind == TARGET_PROJECT:
            return ScanTarget.resolve(self.project_key)
        return ScanTarget.resolve(self.project_key, branch=self.branch or None, pull_request=self.pull_request or None)

    def report_task_path(self) -> Path:
        return default_report_task_path(self.workspace or None)

    def resolve_output(self, path: str) -> Path:
        p = Path(path)
        if p.is_absolute() or not self.workspace:
            return p
        return Path(self.workspace) / p


def _first(env: Mapping[str, str], *names: str, default: str = "") -> str:
    for n in names:
        v = env.get(n)
        if v is not None and str(v).strip() != "":
            return str(v).strip()
    return default


def load_gate_config(
    environ: Optional[Mapping[str, str]] = None,
    *,
    overrides: Optional[Mapping[str, Any]] = None,
    dotenv_path: Union[str, Path, None] = None,
) -> GateConfig:
    """Resolve a :class:`GateConfig` from the environment plus overrides.

    When ``environ`` is omitted the process environment is used, after
    loading ``dotenv_path`` (default ``./.env``) without overriding
    variables that are already set.
    """
    if environ is None:
        load_dotenv(Path(dotenv_path) if dotenv_path else Path.cwd() / ".env", override=False)
        environ = os.environ
    env = environ

    token = _first(env, "PLUGIN_SONAR_TOKEN", "SONAR_TOKEN")
    cfg = GateConfig(
        host=_first(env, "PLUGIN_SONAR_HOST", "SONAR_HOST", default=SONAR_HOST_DEFAULT).rstrip("/"),
        token=token,
        project_key=normalize_project_key(_first(env, "PLUGIN_SONAR_KEY")),
        branch=_first(env, "PLUGIN_BRANCH"),
        pull_request=_first(env, "PLUGIN_PR_KEY"),
        task_id=_first(env, "PLUGIN_TASKID"),
        skip_scan=parse_bool(_first(env, "PLUGIN_SKIP_SCAN", default="false"), name="PLUGIN_SKIP_SCAN"),
        wait_quality_gate=parse_bool(
            _first(env, "PLUGIN_WAIT_QUALITYGATE", default="true"), name="PLUGIN_WAIT_QUALITYGATE"
        ),
        expected_status=_first(env, "PLUGIN_QUALITYGATE", "SONAR_QUALITYGATE", default="OK"),
        gate_enabled=parse_bool(
            _first(env, "PLUGIN_SONAR_QUALITY_ENABLED", default="true"), name="PLUGIN_SONAR_QUALITY_ENABLED"
        ),
        gate_error_exit_code=parse_int(
            _first(env, "PLUGIN_QUALITYGATE_ERROR_EXIT_CODE", default="1"), name="PLUGIN_QUALITYGATE_ERROR_EXIT_CODE"
        ),
        gate_timeout=parse_float(
            _first(env, "PLUGIN_SONAR_QUALITYGATE_TIMEOUT", default=str(DEFAULT_WAIT_TIMEOUT)),
            name="PLUGIN_SONAR_QUALITYGATE_TIMEOUT",
        ),
        http_timeout=parse_float(
            _first(env, "PLUGIN_HTTP_TIMEOUT", default=str(DEFAULT_HTTP_TIMEOUT)), name="PLUGIN_HTTP_TIMEOUT"
        ),
        workspace=_first(env, "PLUGIN_WORKSPACE"),
        gate_query=_first(env, "PLUGIN_QG_TYPE"),
        junit_path=_first(env, "PLUGIN_JUNIT_REPORT", default=DEFAULT_JUNIT_FILENAME),
        verdict_json_path=_first(env, "PLUGIN_VERDICT_JSON"),
        log_level=_first(env, "PLUGIN_LEVEL", default="INFO").upper(),
    )

    if overrides:
        cfg = apply_overrides(cfg, overrides)
    return validate_gate_config(cfg)


def apply_overrides(cfg: GateConfig, overrides: Mapping[str, Any]) -> GateConfig:
    """Replace fields with non-None override values (CLI flags)."""
    changes = {k: v for k, v in overrides.items() if v is not None}
    unknown = set(changes) - set(GateConfig.__dataclass_fields__)
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
    if "project_key" in changes:
        changes["project_key"] = normalize_project_key(str(changes["project_key"]))
    if "host" in changes:
        changes["host"] = str(changes["host"]).rstrip("/")
    return replace(cfg, **changes)


def validate_gate_config(cfg: GateConfig) -> GateConfig:
    if not cfg.token:
        raise ConfigError("PLUGIN_SONAR_TOKEN (or SONAR_TOKEN) is not set.")
    if not cfg.host:
        raise ConfigError("PLUGIN_SONAR_HOST is empty.")
    if cfg.gate_query and cfg.gate_query not in GATE_QUERY_MODES:
        raise ConfigError(f"PLUGIN_QG_TYPE must be one of {sorted(GATE_QUERY_MODES)}, got {cfg.gate_query!r}")
    if cfg.gate_timeout <= 0 or cfg.http_timeout <= 0 or cfg.poll_interval <= 0:
        raise ConfigError("Timeouts and poll interval must be positive.")
    if cfg.skip_scan and not cfg.task_id and not cfg.project_key:
        raise ConfigError("PLUGIN_SONAR_KEY is required when skipping the scan.")
    if cfg.gate_query == TARGET_BRANCH and not cfg.branch:
        raise ConfigError("PLUGIN_QG_TYPE=branch requires PLUGIN_BRANCH.")
    if cfg.gate_query == TARGET_PULL_REQUEST and not cfg.pull_request:
        raise ConfigError("PLUGIN_QG_TYPE=pullRequest requires PLUGIN_PR_KEY.")
    return cfg


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger once, for the CLI process."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
