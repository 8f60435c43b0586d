"""tools/sonar/transport.py

HTTP transport and authentication negotiation for every Sonar call.

Design goals:
  - One bounded-timeout client per run, passed explicitly to each step.
  - Every physical response is read to the end and closed before the next
    request goes out (the waiter issues hundreds of them on a slow server).
  - Auth is renegotiated per logical call: Basic first, Bearer once on
    401/403. Nothing is cached between calls.

SonarQube accepts a user token as the Basic username with an empty password;
SonarCloud and newer SonarQube versions also take it as a Bearer token. Which
one a given server (or proxy in front of it) wants is not knowable up front.
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Dict, Mapping, Optional

import requests

from qualitygate.errors import AuthError, TransportError, UpstreamError

from .types import AUTH_BASIC, AUTH_BEARER, HttpResult

logger = logging.getLogger(__name__)

DEFAULT_HTTP_TIMEOUT = 10.0
DEFAULT_CONNECT_TIMEOUT = 5.0

AUTH_REJECTED_STATUSES = frozenset({401, 403})


class SonarHttpClient:
    """Thin wrapper over a ``requests.Session`` with a fixed timeout.

    The timeout is the only configuration and is set at construction. The
    session can be injected (tests pass a scripted fake).
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.timeout = (min(connect_timeout, timeout), timeout)
        self._session = session if session is not None else requests.Session()

    def get(
        self,
        url: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> HttpResult:
        """Issue one GET and return the fully-read response.

        Raises TransportError on connection problems and timeouts. Never
        raises on HTTP status codes; callers decide what a status means.
        """
        try:
            resp = self._session.get(
                url,
                params=dict(params) if params else None,
                headers=dict(headers) if headers else None,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransportError(f"GET {url} failed: {e}") from e

        try:
            body = resp.content or b""
        except requests.RequestException as e:
            raise TransportError(f"Reading response from {url} failed: {e}") from e
        finally:
            resp.close()

        return HttpResult(status_code=resp.status_code, url=getattr(resp, "url", None) or url, body=body)

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "SonarHttpClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def basic_auth_header(token: str) -> Dict[str, str]:
    encoded = base64.b64encode(f"{token}:".encode("utf-8")).decode("ascii")
    return {"Authorization": "Basic " + encoded}


def bearer_auth_header(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _upstream_error(result: HttpResult) -> UpstreamError:
    return UpstreamError(
        f"HTTP {result.status_code} from {result.url}: {result.text[:200]!r}",
        status_code=result.status_code,
        url=result.url,
        body=result.text[:200],
    )


def authorized_get(
    client: SonarHttpClient,
    url: str,
    token: str,
    *,
    params: Optional[Mapping[str, Any]] = None,
) -> HttpResult:
    """GET ``url`` with Basic auth, falling back to Bearer once on 401/403.

    At most two physical requests are made. Returns the first 2xx result,
    tagged with the scheme that worked.

    Raises:
        AuthError: both schemes were rejected with 401/403.
        UpstreamError: any other non-2xx status from either attempt.
        TransportError: network failure or timeout.
    """
    first = client.get(url, params=params, headers=basic_auth_header(token))
    if first.ok:
        return HttpResult(first.status_code, first.url, first.body, AUTH_BASIC)
    if first.status_code not in AUTH_REJECTED_STATUSES:
        raise _upstream_error(first)

    logger.info("Basic auth rejected (HTTP %s) for %s, retrying with Bearer token", first.status_code, first.url)

    second = client.get(url, params=params, headers=bearer_auth_header(token))
    if second.ok:
        return HttpResult(second.status_code, second.url, second.body, AUTH_BEARER)
    if second.status_code in AUTH_REJECTED_STATUSES:
        raise AuthError(
            f"Unauthorized: Sonar rejected the token with Basic (HTTP {first.status_code}) "
            f"and Bearer (HTTP {second.status_code}) auth for {second.url}",
            status_code=second.status_code,
            url=second.url,
            body=second.text[:200],
        )
    raise _upstream_error(second)
