"""tools/sonar/api.py

All Sonar HTTP endpoints used by the quality gate step live here.

Design goals:
  - Keep network I/O separated from state handling and reporting.
  - Decode JSON into domain objects at this boundary; nothing past it sees
    raw payloads.
  - Fail loudly. A run without a verdict has nothing to report, so there is
    no "return partial results" mode here.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping

from qualitygate.domain import AnalysisTaskRef, QualityVerdict, TaskInfo
from qualitygate.errors import DecodeError

from .transport import SonarHttpClient, authorized_get

logger = logging.getLogger(__name__)

CE_TASK_PATH = "/api/ce/task"
PROJECT_STATUS_PATH = "/api/qualitygates/project_status"
PROJECT_ANALYSES_PATH = "/api/project_analyses/search"


def _url(host: str, path: str) -> str:
    return f"{host.rstrip('/')}{path}"


def fetch_task(client: SonarHttpClient, token: str, ref: AnalysisTaskRef) -> TaskInfo:
    """Fetch Compute Engine task details for a ``ce_task`` reference."""
    if ref.status_url:
        url, params = ref.status_url, None
    else:
        url, params = _url(ref.server_url, CE_TASK_PATH), {"id": ref.key}

    logger.debug("CE task request: %s", url)
    result = authorized_get(client, url, token, params=params)
    return TaskInfo.from_payload(result.json())


def search_project_analyses(
    client: SonarHttpClient,
    token: str,
    host: str,
    project_key: str,
    *,
    page_size: int = 1,
) -> List[Dict[str, Any]]:
    """Return the ``analyses`` array of ``/api/project_analyses/search`` (most recent first)."""
    url = _url(host, PROJECT_ANALYSES_PATH)
    logger.debug("Analyses search request: %s project=%s ps=%s", url, project_key, page_size)
    result = authorized_get(client, url, token, params={"project": project_key, "ps": page_size})

    payload = result.json()
    if not isinstance(payload, Mapping):
        raise DecodeError(f"Analyses search response from {result.url} is not a JSON object")
    analyses = payload.get("analyses")
    if not isinstance(analyses, list):
        raise DecodeError(f"Analyses search response from {result.url} has no 'analyses' list")
    return analyses


def fetch_project_status(
    client: SonarHttpClient,
    token: str,
    host: str,
    params: Mapping[str, str],
) -> QualityVerdict:
    """Fetch and decode ``/api/qualitygates/project_status`` for the given query."""
    url = _url(host, PROJECT_STATUS_PATH)
    logger.info("Quality gate request: %s %s", url, dict(params))
    result = authorized_get(client, url, token, params=params)
    return QualityVerdict.from_payload(result.json())
