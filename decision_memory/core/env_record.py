"""Session environment record (``CLAUDE_ENV_FILE``) reader and writer.

The host sources this file into the environment of every later hook process
in the same session, so it is the only channel that survives between hook
invocations.  Lines have the form ``export NAME="value"``.

Writes take a ``filelock.FileLock`` on a sibling ``.lock`` file and replace the
record atomically (tmp + ``os.replace``), so each key has exactly one line and
the last writer wins per key.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path

from filelock import FileLock
from filelock import Timeout as FileLockTimeout

from decision_memory.core.errors import RecordWriteError

logger = logging.getLogger(__name__)

LOCK_TIMEOUT_SECONDS: float = 2.0
"""Maximum wait for the record lock before giving up on the write."""

_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_LINE_RE = re.compile(r'^export\s+([A-Za-z_][A-Za-z0-9_]*)=(.*)$')


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("\n", "\\n")
    for ch in ('"', "$", "`"):
        escaped = escaped.replace(ch, "\\" + ch)
    return f'"{escaped}"'


def _unquote(raw: str) -> str:
    raw = raw.strip()
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in ('"', "'"):
        body = raw[1:-1]
        if raw[0] == "'":
            return body
        out: list[str] = []
        i = 0
        while i < len(body):
            ch = body[i]
            if ch == "\\" and i + 1 < len(body):
                nxt = body[i + 1]
                out.append("\n" if nxt == "n" else nxt)
                i += 2
                continue
            out.append(ch)
            i += 1
        return "".join(out)
    return raw


def format_export_line(name: str, value: str) -> str:
    """Render one ``export NAME="value"`` line (no trailing newline)."""
    return f"export {name}={_quote(value)}"


def read_env_record(path: str | Path) -> dict[str, str]:
    """Parse the record into a ``{name: value}`` mapping.

    Unparseable lines are ignored.  A missing or unreadable file yields an
    empty mapping.
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (FileNotFoundError, OSError):
        return {}

    values: dict[str, str] = {}
    for line in text.splitlines():
        match = _LINE_RE.match(line.strip())
        if match:
            values[match.group(1)] = _unquote(match.group(2))
    return values


def write_env_var(path: str | Path, name: str, value: str) -> None:
    """Replace the line for *name* in the record, or append it.

    Args:
        path: Record file path (created if missing).
        name: Environment variable name.
        value: Raw value; quoted and escaped on write.

    Raises:
        RecordWriteError: If the name is invalid, the lock cannot be taken,
            or the file cannot be written.
    """
    write_env_vars(path, {name: value})


def write_env_vars(path: str | Path, values: dict[str, str]) -> None:
    """Apply several replace-or-append updates under a single lock."""
    record = Path(path)
    for name in values:
        if not _NAME_RE.match(name):
            raise RecordWriteError(record, f"invalid variable name {name!r}")

    lock = FileLock(str(record) + ".lock", timeout=LOCK_TIMEOUT_SECONDS)
    try:
        with lock:
            _rewrite(record, values)
    except FileLockTimeout as e:
        raise RecordWriteError(record, "lock timeout") from e
    except OSError as e:
        raise RecordWriteError(record, str(e)) from e


def _rewrite(record: Path, values: dict[str, str]) -> None:
    try:
        existing = record.read_text(encoding="utf-8").splitlines()
    except FileNotFoundError:
        existing = []

    pending = dict(values)
    lines: list[str] = []
    for line in existing:
        match = _LINE_RE.match(line.strip())
        if match and match.group(1) in values:
            name = match.group(1)
            if name in pending:
                lines.append(format_export_line(name, pending.pop(name)))
            # Later duplicates of a replaced key are dropped
            continue
        lines.append(line)

    for name, value in pending.items():
        lines.append(format_export_line(name, value))

    record.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = record.with_name(record.name + f".{os.getpid()}.tmp")
    tmp_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    os.replace(str(tmp_path), str(record))
    logger.debug(f"Updated env record {record.name}: {', '.join(values)}")
