"""Session-scoped cache shared across hook processes.

Values are stored as base64-encoded JSON under ``DECISION_MEMORY_CACHE_<KEY>``.
A value written with a record path lands in the session environment record,
which the host sources into every later hook process of the same session, so
those processes see it through ``os.environ``.  Without a record path the
value only lives in this process.

Content hashes of injected text are tracked in a process-local set.  That set
does not survive the process; enable ``persist_seen_hashes`` to mirror it into
the record under the ``SEEN_HASHES`` key.

Limitation: ``reset()`` cannot revoke variables already exported to the host.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
from collections.abc import MutableMapping
from pathlib import Path
from typing import Any

from decision_memory.config import Settings
from decision_memory.core.env_record import write_env_var
from decision_memory.core.errors import InvalidInputError, RecordWriteError
from decision_memory.core.hashing import compute_content_hash

logger = logging.getLogger(__name__)

CACHE_PREFIX = "DECISION_MEMORY_CACHE_"
"""Environment name prefix for cache entries."""

INITIAL_KEYS: tuple[str, ...] = ("AGENTS", "RULES", "CONTRACTS")
"""Entries registered empty when a session record is initialized.

They are slots for the host's agent, rule and contract injectors; nothing in
this package reads them back.
"""

SEEN_HASHES_KEY = "SEEN_HASHES"


def env_name(key: str) -> str:
    """Map a cache key to its environment variable name."""
    return f"{CACHE_PREFIX}{key.upper()}"


def encode_value(value: Any) -> str:
    """Encode a JSON-serializable value as base64 text.

    Raises:
        TypeError, ValueError: If *value* is not JSON-serializable.
    """
    payload = json.dumps(value, ensure_ascii=False, separators=(",", ":"), allow_nan=False)
    return base64.b64encode(payload.encode("utf-8")).decode("ascii")


def decode_value(encoded: str) -> Any:
    """Inverse of ``encode_value``.

    Raises:
        ValueError: If *encoded* is not valid base64 JSON.
    """
    try:
        raw = base64.b64decode(encoded.encode("ascii"), validate=True)
        return json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError) as e:
        raise ValueError(f"Malformed cache value: {e}") from e


class SessionCache:
    """Key/value cache scoped to one assistant session.

    Reads check the process environment first (values inherited from the
    session record) and fall back to the in-process map.  Mutations that
    touch the record never raise: a persist failure is logged and reported
    through the boolean return after the in-memory write has happened.
    """

    def __init__(
        self,
        settings: Settings,
        environ: MutableMapping[str, str] | None = None,
        record_path: str | Path | None = None,
    ) -> None:
        self._settings = settings
        self._environ = environ if environ is not None else os.environ
        self._record_path = str(record_path) if record_path else None
        self._memory: dict[str, str] = {}
        self._seen: set[str] = set()

    @property
    def record_path(self) -> str | None:
        """Record path used by default for persisted writes."""
        return self._record_path

    # -- raw environment -------------------------------------------------

    def read_env(self, name: str) -> str | None:
        """Return the raw environment value for *name*, or ``None``."""
        value = self._environ.get(name)
        return value if value else None

    def export_env(self, values: dict[str, str], record_path: str | Path | None = None) -> bool:
        """Export raw variables to this process and the session record.

        Used for non-cache session state such as the warmup status.

        Returns:
            ``True`` if persisted (or no record applies), ``False`` if the
            record write failed.
        """
        for name, value in values.items():
            self._environ[name] = value

        path = record_path or self._record_path
        if not path:
            return True

        ok = True
        for name, value in values.items():
            try:
                write_env_var(path, name, value)
            except RecordWriteError as e:
                logger.warning(f"Failed to persist {name}: {e}")
                ok = False
        return ok

    # -- cache entries ---------------------------------------------------

    def get(self, key: str) -> Any | None:
        """Return the cached value for *key*, or ``None`` if absent or malformed."""
        if not key or not isinstance(key, str):
            return None

        name = env_name(key)
        encoded = self._environ.get(name) or self._memory.get(name)
        if not encoded:
            return None

        try:
            return decode_value(encoded)
        except ValueError:
            return None

    def set(self, key: str, value: Any, record_path: str | Path | None = None) -> bool:
        """Store *value* under *key*.

        Args:
            key: Uppercase identifier such as ``AGENTS``.
            value: Any JSON-serializable value.
            record_path: Session record to persist into.  When omitted the
                value stays in this process only.

        Returns:
            ``True`` when stored (and persisted, if a record was given).
        """
        if not key or not isinstance(key, str):
            return False

        try:
            encoded = encode_value(value)
        except (TypeError, ValueError) as e:
            logger.warning(f"Cannot encode cache value for key={key}: {e}")
            return False

        name = env_name(key)
        self._memory[name] = encoded
        # Environment wins on read, keep it in step with this process's writes
        if name in self._environ:
            self._environ[name] = encoded

        if not record_path:
            return True

        try:
            write_env_var(record_path, name, encoded)
        except RecordWriteError as e:
            logger.warning(f"Failed to set cache for key={key}: {e}")
            return False
        return True

    def init_record(self, record_path: str | Path) -> bool:
        """Create the session record and register the initial empty entries.

        Existing lines are kept; initial keys already present are not
        duplicated.
        """
        if not record_path:
            return False

        ok = True
        for key in INITIAL_KEYS:
            if self.get(key) is None:
                ok = self.set(key, {}, record_path) and ok
        self._record_path = str(record_path)
        return ok

    # -- content hashes --------------------------------------------------

    @staticmethod
    def hash_of(text: str) -> str:
        """Deterministic content hash of *text*.

        Raises:
            InvalidInputError: If *text* is empty or not a string.
        """
        return compute_content_hash(text)

    def has_seen(self, content_hash: str) -> bool:
        """Return whether *content_hash* was already emitted this session."""
        if not content_hash or not isinstance(content_hash, str):
            return False
        if content_hash in self._seen:
            return True
        if self._settings.persist_seen_hashes:
            stored = self.get(SEEN_HASHES_KEY)
            if isinstance(stored, list) and content_hash in stored:
                return True
        return False

    def mark_seen(self, content_hash: str) -> None:
        """Record *content_hash* as emitted.

        Raises:
            InvalidInputError: If *content_hash* is empty or not a string.
        """
        if not content_hash or not isinstance(content_hash, str):
            raise InvalidInputError("Hash must be a non-empty string")

        self._seen.add(content_hash)

        if self._settings.persist_seen_hashes and self._record_path:
            stored = self.get(SEEN_HASHES_KEY)
            hashes = stored if isinstance(stored, list) else []
            if content_hash not in hashes:
                hashes.append(content_hash)
                self.set(SEEN_HASHES_KEY, hashes, self._record_path)

    def reset(self) -> None:
        """Clear in-process state.  Exported variables are not revoked."""
        self._memory.clear()
        self._seen.clear()
