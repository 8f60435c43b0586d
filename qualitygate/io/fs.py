"""qualitygate.io.fs

Atomic filesystem writers for run artifacts.

Why this module exists
----------------------
CI consumers pick up the JUnit report as soon as the step exits. A report that
was half-written when the process died is worse than no report, so every
artifact goes through a temp file and ``os.replace()``.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional


def _atomic_write_text(
    path: Path,
    write_fn,
    *,
    encoding: str = "utf-8",
    newline: Optional[str] = None,
) -> None:
    """Write a file atomically by writing to a temp file and os.replace()."""

    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f"{p.name}.", suffix=".tmp", dir=str(p.parent))
    tmp_path = Path(tmp_name)

    try:
        with os.fdopen(fd, "w", encoding=encoding, newline=newline) as f:
            write_fn(f)
            f.flush()
            os.fsync(f.fileno())

        os.replace(tmp_path, p)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


def write_text_atomic(path: Path, text: str, *, encoding: str = "utf-8") -> None:
    """Write UTF-8 text atomically."""

    def _write(f) -> None:
        f.write(text)

    _atomic_write_text(Path(path), _write, encoding=encoding)


def write_json_atomic(
    path: Path,
    data: Any,
    *,
    indent: int = 2,
    sort_keys: bool = True,
    ensure_ascii: bool = False,
    encoding: str = "utf-8",
) -> None:
    """Write JSON atomically with stable formatting."""

    def _write(f) -> None:
        json.dump(data, f, indent=indent, sort_keys=sort_keys, ensure_ascii=ensure_ascii)
        f.write("\n")

    _atomic_write_text(Path(path), _write, encoding=encoding)

