"""tools/sonar/gate.py

Quality gate fetcher: turn a resolved analysis (or a scan target) into a
:class:`QualityVerdict`.

The project status endpoint takes exactly one way of naming what to evaluate:

* ``analysisId``                 - a specific analysis (fresh scans, search results)
* ``branch`` + ``projectKey``    - latest analysis of a branch
* ``pullRequest`` + ``projectKey`` - latest analysis of a pull request
* ``projectKey``                 - latest analysis of the main branch

``mode`` lets a pipeline force one of these (``PLUGIN_QG_TYPE``); otherwise a
known analysis id wins and the scan target decides the rest.
"""

from __future__ import annotations

from typing import Dict, Optional

from qualitygate.domain import TARGET_PROJECT, QualityVerdict, ScanTarget
from qualitygate.domain.task import TARGET_KINDS
from qualitygate.errors import ConfigError

from .api import fetch_project_status
from .transport import SonarHttpClient

GATE_QUERY_ANALYSIS = "analysisId"
GATE_QUERY_MODES = frozenset({GATE_QUERY_ANALYSIS}) | TARGET_KINDS


def build_gate_params(
    analysis_id: Optional[str],
    target: Optional[ScanTarget],
    mode: Optional[str] = None,
) -> Dict[str, str]:
    """Build the ``project_status`` query string parameters."""
    if mode and mode not in GATE_QUERY_MODES:
        raise ConfigError(f"Unknown quality gate query type {mode!r}; expected one of {sorted(GATE_QUERY_MODES)}")

    if mode == GATE_QUERY_ANALYSIS or (not mode and analysis_id):
        if not analysis_id:
            raise ConfigError("Quality gate query by analysisId requested but no analysis id is known")
        return {"analysisId": analysis_id}

    if target is None:
        raise ConfigError("Quality gate query needs an analysis id or a scan target")

    if mode and mode != target.kind:
        if mode == TARGET_PROJECT:
            return {"projectKey": target.project_key}
        raise ConfigError(f"Quality gate query type {mode!r} does not match the configured target ({target.describe()})")

    return target.query_params()


def fetch_verdict(
    client: SonarHttpClient,
    token: str,
    host: str,
    analysis_or_task_key: Optional[str],
    target: Optional[ScanTarget],
    *,
    mode: Optional[str] = None,
) -> QualityVerdict:
    """Fetch the verdict. Transport, auth and decode errors are fatal and propagate."""
    params = build_gate_params(analysis_or_task_key, target, mode)
    return fetch_project_status(client, token, host, params)
