"""Shared utilities for hook entrypoints.

Provides stdin/stdout protocol helpers, the hook error log, and response
builders used by the dispatcher and the individual event handlers.
"""

from __future__ import annotations

import json
import os
import sys
import threading
import time
from pathlib import Path
from typing import IO, Any

MAX_STDIN_BYTES = 524_288
"""512KB limit on hook input."""

STDIN_TIMEOUT_SECONDS = 1.0
"""No input after this long is treated as valid-empty."""

STDIN_READ_TIMEOUT_SECONDS = 30.0
"""Upper bound on reading input that has already started arriving."""

_MAX_LOG_SIZE = 1_048_576
"""Maximum log file size in bytes before rotation (1MB)."""

ENV_RECORD_VAR = "CLAUDE_ENV_FILE"


# ---------------------------------------------------------------------------
# stdin / stdout helpers
# ---------------------------------------------------------------------------


def read_stdin(
    stream: IO[str] | None = None,
    timeout: float = STDIN_TIMEOUT_SECONDS,
    read_timeout: float = STDIN_READ_TIMEOUT_SECONDS,
) -> dict[str, object]:
    """Read and parse JSON from stdin with a bounded wait.

    The read runs on a daemon thread so a host that never closes stdin
    cannot hang the hook.  *timeout* bounds the wait for the first byte;
    once input has started, the rest is read to EOF (or the size cap)
    within *read_timeout*.

    Returns:
        Parsed dict, or empty dict on timeout, empty input, or any error.
    """
    stream = stream if stream is not None else sys.stdin
    chunks: list[str] = []
    started = threading.Event()
    finished = threading.Event()

    def _reader() -> None:
        try:
            first = stream.read(1)
            if first:
                chunks.append(first)
                started.set()
                chunks.append(stream.read(MAX_STDIN_BYTES - 1))
        except (OSError, ValueError):
            chunks.clear()
        finally:
            started.set()
            finished.set()

    threading.Thread(target=_reader, name="hook-stdin", daemon=True).start()
    if not started.wait(timeout) or not finished.wait(read_timeout):
        return {}

    raw = "".join(chunks)
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def write_response(response: dict[str, Any], stream: IO[str] | None = None) -> None:
    """Write exactly one JSON document to stdout and flush."""
    stream = stream if stream is not None else sys.stdout
    try:
        json.dump(response, stream, ensure_ascii=False)
        stream.write("\n")
        stream.flush()
    except (OSError, ValueError):
        pass


def context_response(event_name: str, context: str) -> dict[str, Any]:
    """Response carrying an additional-context block for the host."""
    return {
        "hookSpecificOutput": {
            "hookEventName": event_name,
            "additionalContext": context,
        }
    }


def continue_response() -> dict[str, Any]:
    """Response for hooks with nothing to inject."""
    return {"continue": True, "suppressOutput": True}


def get_record_path(data: dict[str, object] | None = None) -> str:
    """Resolve the session env record path.

    ``$CLAUDE_ENV_FILE`` wins; an ``env_file`` field on stdin is accepted as
    a fallback.
    """
    path = os.environ.get(ENV_RECORD_VAR, "")
    if not path and data:
        value = data.get("env_file", "")
        path = value if isinstance(value, str) else ""
    return path


# ---------------------------------------------------------------------------
# Error logging
# ---------------------------------------------------------------------------


def log_hook_error(exc: BaseException, hook_name: str, log_dir: str | Path = "") -> None:
    """Append an error entry to ``hook-errors.log``.

    Rotates the log file when it exceeds ``_MAX_LOG_SIZE`` (1MB).
    This function **must never raise**.

    Args:
        exc: The exception to log.
        hook_name: Name of the hook that failed.
        log_dir: Directory for the log file; skipped when empty.
    """
    try:
        if not log_dir:
            return

        os.makedirs(log_dir, exist_ok=True)
        log_path = os.path.join(str(log_dir), "hook-errors.log")

        try:
            if os.path.exists(log_path) and os.path.getsize(log_path) > _MAX_LOG_SIZE:
                rotated = log_path + ".1"
                if os.path.exists(rotated):
                    os.remove(rotated)
                os.rename(log_path, rotated)
        except OSError:
            pass

        timestamp = time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
        line = f"[{timestamp}] {hook_name}: {type(exc).__name__}: {exc}\n"
        with open(log_path, "a", encoding="utf-8") as f:
            f.write(line)
    except Exception:
        pass  # Logger must never raise
