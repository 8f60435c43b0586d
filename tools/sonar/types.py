from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from qualitygate.errors import DecodeError, EmptyResultError

AUTH_BASIC = "basic"
AUTH_BEARER = "bearer"


@dataclass(frozen=True)
class HttpResult:
    """One fully-read HTTP response. The underlying connection is already released."""
    status_code: int
    url: str
    body: bytes = b""
    auth_scheme: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        if not self.body.strip():
            raise EmptyResultError(f"Received empty response from {self.url}")
        try:
            return json.loads(self.body)
        except ValueError as e:
            raise DecodeError(f"Could not decode JSON from {self.url}: {e}") from e
