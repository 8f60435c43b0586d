"""qualitygate.errors

Typed failures for the quality gate step.

Why this exists
---------------
A run can end three ways: the gate passed, the gate said no, or we never got
an answer. Only the last one is an exception. Every failure that means "no
answer" is one of the classes below so the CLI can report *which* kind of
no-answer it was without parsing messages.

A verdict whose status does not match the expected one is a normal outcome and
is never raised as an error.
"""

from __future__ import annotations

from typing import Optional


class QualityGateError(RuntimeError):
    """Base class for every error that aborts a quality gate run."""

    headline = "quality gate check failed"


class ConfigError(QualityGateError):
    """Missing or invalid run configuration."""

    headline = "invalid configuration"


class TransportError(QualityGateError):
    """Network failure or client-side timeout while talking to the server."""

    headline = "could not reach the Sonar server"


class HttpStatusError(QualityGateError):
    """The server answered, but not with a 2xx status."""

    headline = "unexpected HTTP status from the Sonar server"

    def __init__(self, message: str, *, status_code: int, url: str, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url
        self.body = body


class AuthError(HttpStatusError):
    """Both Basic and Bearer authentication were rejected (401/403)."""

    headline = "authentication rejected by the Sonar server"


class UpstreamError(HttpStatusError):
    """Any other non-2xx status. Surfaced to the caller, never retried here."""

    headline = "Sonar server returned an error"


class DecodeError(QualityGateError):
    """A JSON payload or scanner descriptor is malformed or incomplete."""

    headline = "could not decode the Sonar response"


class EmptyResultError(QualityGateError):
    """The server answered with nothing usable (empty body, zero analyses)."""

    headline = "no analysis found"


class GateTimeoutError(QualityGateError):
    """The analysis task did not reach a terminal state before the deadline."""

    headline = "quality gate never answered (timeout)"

    def __init__(self, message: str, *, task_id: Optional[str] = None, last_status: Optional[str] = None) -> None:
        super().__init__(message)
        self.task_id = task_id
        self.last_status = last_status


class GateFailedError(QualityGateError):
    """The analysis task itself ended in the ERROR state."""

    headline = "analysis task failed on the server"

    def __init__(self, message: str, *, task_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.task_id = task_id
