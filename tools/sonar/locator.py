"""tools/sonar/locator.py

Find the analysis whose quality gate a run should report on, when no fresh
scan descriptor is available (``--skip-scan`` or re-checking an old result).

Two lookups:

* :func:`locate_latest_task` - most recent analysis of a project, via
  ``/api/project_analyses/search?ps=1``.
* :func:`locate_by_target` - branch or pull request scoped. Sonar has no
  cheap "latest analysis of this PR" search, so the project status document is
  fetched directly and carried on the returned reference.
"""

from __future__ import annotations

import logging

from qualitygate.domain import TARGET_PROJECT, AnalysisTaskRef, ScanTarget, normalize_project_key
from qualitygate.domain.task import REF_TARGET
from qualitygate.errors import DecodeError, EmptyResultError

from .api import fetch_project_status, search_project_analyses
from .transport import SonarHttpClient

logger = logging.getLogger(__name__)


def locate_latest_task(client: SonarHttpClient, token: str, host: str, project_slug: str) -> AnalysisTaskRef:
    """Return a reference to the most recent analysis of ``project_slug``.

    Raises:
        EmptyResultError: empty body, or the project has no analyses yet.
        DecodeError: the body is not the expected JSON shape.
    """
    project_key = normalize_project_key(project_slug)
    analyses = search_project_analyses(client, token, host, project_key, page_size=1)
    if not analyses:
        raise EmptyResultError(f"No analyses found for project {project_key}")

    first = analyses[0]
    key = first.get("key") if isinstance(first, dict) else None
    if not key:
        raise DecodeError(f"Latest analysis of {project_key} has no 'key': {first!r}")

    logger.info("Latest analysis for %s: %s", project_key, key)
    return AnalysisTaskRef.for_analysis(str(key), server_url=host, project_key=project_key)


def locate_by_target(
    client: SonarHttpClient,
    token: str,
    target: ScanTarget,
    host: str,
    project_slug: str,
) -> AnalysisTaskRef:
    """Resolve a branch/PR target to its quality status document.

    A bare project target falls through to :func:`locate_latest_task`.
    """
    if target.kind == TARGET_PROJECT:
        return locate_latest_task(client, token, host, project_slug)

    project_key = normalize_project_key(project_slug) or target.project_key
    scoped = ScanTarget(project_key=project_key, kind=target.kind, value=target.value)
    params = scoped.query_params()

    logger.info("Searching last analysis by %s", scoped.describe())
    verdict = fetch_project_status(client, token, host, params)

    return AnalysisTaskRef(
        key=scoped.describe(),
        kind=REF_TARGET,
        server_url=host.rstrip("/"),
        project_key=project_key,
        query=params,
        verdict=verdict,
    )
