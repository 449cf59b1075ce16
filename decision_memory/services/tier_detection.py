"""Installation-time capability tier detection.

Probes, in order:

1. Python version against the configured minimum (fatal).
2. Free disk space at the data directory (fatal).
3. Native store driver: a disposable LanceDB database with a one-column
   table created and dropped (non-fatal, downgrades the tier).
4. Embedding runtime: importing ``sentence_transformers`` (non-fatal).

The tier is computed once by ``install`` and persisted to the config record;
runtime hooks only read it back.
"""

from __future__ import annotations

import importlib
import json
import logging
import shutil
import sys
import tempfile
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from decision_memory.config import Settings
from decision_memory.core.errors import PreconditionError
from decision_memory.core.models import CapabilityTier, TierReport

logger = logging.getLogger(__name__)

ProbeFn = Callable[[], None]
"""A probe returns on success and raises on failure."""

_FULL_FEATURES = [
    "Vector search (semantic similarity)",
    "Graph search (decision evolution)",
    "Recency weighting",
    "Multi-language support (Korean-English)",
    "Auto-context injection",
]

_DEGRADED_FEATURES = [
    "Exact match search only",
    "No vector search",
    "No semantic similarity",
    "Graph search (decision evolution)",
    "All data saved and retrievable",
]

_FULL_PERFORMANCE = {
    "embedding": "~3ms",
    "search": "~50ms",
    "hook latency": "~100ms",
}

_DEGRADED_PERFORMANCE = {
    "search": "~10ms (exact match)",
    "hook latency": "~50ms",
}


def probe_store() -> None:
    """Create and drop a table in a throwaway LanceDB database."""
    import lancedb
    import pyarrow as pa

    with tempfile.TemporaryDirectory(prefix="decision-memory-probe-") as tmpdir:
        db = lancedb.connect(tmpdir)
        db.create_table("probe", schema=pa.schema([pa.field("id", pa.int32())]))
        db.drop_table("probe")


def probe_embeddings() -> None:
    """Import the embedding runtime module."""
    importlib.import_module("sentence_transformers")


def _nearest_existing(path: Path) -> Path:
    current = path
    while not current.exists() and current != current.parent:
        current = current.parent
    return current


class TierDetector:
    """Determines the capability tier for this installation."""

    def __init__(
        self,
        settings: Settings,
        store_probe: ProbeFn = probe_store,
        embedding_probe: ProbeFn = probe_embeddings,
        version_info: tuple[int, ...] | None = None,
        disk_usage: Callable[[Path], Any] = shutil.disk_usage,
    ) -> None:
        self._settings = settings
        self._store_probe = store_probe
        self._embedding_probe = embedding_probe
        self._version_info = version_info or tuple(sys.version_info[:3])
        self._disk_usage = disk_usage

    def check_python_version(self) -> None:
        """Raises PreconditionError if the interpreter is too old."""
        required = tuple(self._settings.min_python)
        current = self._version_info
        if tuple(current[: len(required)]) < required:
            req_str = ".".join(str(p) for p in required)
            cur_str = ".".join(str(p) for p in current)
            raise PreconditionError(
                f"Python {req_str}+ required (found: {cur_str})",
                remediation=(
                    f"Install Python {req_str} or newer:\n"
                    "  - pyenv: pyenv install 3.12 && pyenv local 3.12\n"
                    "  - uv: uv python install 3.12\n"
                    "  - Download: https://www.python.org/downloads/"
                ),
            )
        logger.info(f"Python version compatible ({'.'.join(map(str, current))})")

    def check_disk_space(self) -> int | None:
        """Raises PreconditionError if the data directory lacks free space.

        Returns:
            Available MB, or ``None`` when free space could not be read.
        """
        target = _nearest_existing(self._settings.data_path)
        try:
            usage = self._disk_usage(target)
        except OSError as e:
            logger.warning(f"Could not verify disk space: {e}; proceeding anyway")
            return None

        available_mb = int(usage.free // (1024 * 1024))
        required_mb = self._settings.min_disk_mb
        if available_mb < required_mb:
            raise PreconditionError(
                "Insufficient disk space for the decision store "
                f"(required: {required_mb}MB, available: {available_mb}MB)",
                remediation=(
                    "Free up disk space and retry:\n"
                    "  - macOS: ~/Library/Caches cleanup, brew cleanup\n"
                    "  - Linux: sudo apt clean, clear ~/.cache\n"
                    "  - Windows: Disk Cleanup, clear %TEMP%"
                ),
            )
        logger.info(f"Disk space sufficient ({available_mb}MB available)")
        return available_mb

    def _run_optional(self, probe: ProbeFn, label: str) -> str | None:
        try:
            probe()
        except Exception as e:
            logger.warning(f"{label} unavailable: {e}")
            return f"{label} unavailable: {e}"
        return None

    def detect(self) -> TierReport:
        """Run every probe and build the tier report.

        Raises:
            PreconditionError: If the Python version or disk space check fails.
        """
        self.check_python_version()
        self.check_disk_space()

        reasons: list[str] = []
        store_reason = self._run_optional(self._store_probe, "Native store driver")
        if store_reason:
            reasons.append(store_reason)
        embedding_reason = self._run_optional(self._embedding_probe, "Embedding runtime")
        if embedding_reason:
            reasons.append(embedding_reason)

        detected_at = datetime.now(timezone.utc).isoformat()
        if not reasons:
            return TierReport(
                tier=CapabilityTier.FULL,
                store_available=True,
                embedding_available=True,
                accuracy="80%",
                features=list(_FULL_FEATURES),
                performance=dict(_FULL_PERFORMANCE),
                detected_at=detected_at,
            )

        return TierReport(
            tier=CapabilityTier.DEGRADED,
            store_available=store_reason is None,
            embedding_available=embedding_reason is None,
            accuracy="40%",
            features=list(_DEGRADED_FEATURES),
            reasons=reasons,
            performance=dict(_DEGRADED_PERFORMANCE),
            detected_at=detected_at,
        )


# ---------------------------------------------------------------------------
# Persisted tier config
# ---------------------------------------------------------------------------


def save_tier_config(report: TierReport, path: Path) -> bool:
    """Merge the tier fields into the JSON config at *path*.

    Returns:
        ``True`` on success; I/O failures are logged and reported as ``False``.
    """
    config: dict[str, Any] = {}
    try:
        if path.exists():
            loaded = json.loads(path.read_text(encoding="utf-8"))
            if isinstance(loaded, dict):
                config = loaded
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Ignoring unreadable tier config: {e}")

    config["tier"] = int(report.tier)
    config["tier_name"] = report.name
    config["tier_detected_at"] = report.detected_at
    config["store_available"] = report.store_available
    config["embedding_available"] = report.embedding_available

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(config, indent=2) + "\n", encoding="utf-8")
    except OSError as e:
        logger.warning(f"Could not save tier config: {e}")
        return False
    return True


def load_tier_config(path: Path) -> dict[str, Any] | None:
    """Return the persisted tier config, or ``None`` if missing or invalid."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return None
    if not isinstance(data, dict) or "tier" not in data:
        return None
    return data


def persisted_tier(path: Path) -> CapabilityTier | None:
    """Tier recorded at install time, or ``None`` before installation."""
    config = load_tier_config(path)
    if config is None:
        return None
    try:
        return CapabilityTier(int(config["tier"]))
    except (TypeError, ValueError):
        return None


def format_tier_report(report: TierReport) -> str:
    """Render the operator-facing installation report."""
    width = 60
    border = "=" * width
    lines = [
        border,
        f" Decision Memory installed - Tier {int(report.tier)} ({report.name})",
        border,
        f"Accuracy: {report.accuracy}",
        "",
        "Features:",
        *(f"  - {f}" for f in report.features),
        "",
        "Expected latency:",
        *(f"  - {k}: {v}" for k, v in report.performance.items()),
    ]
    if report.tier is CapabilityTier.DEGRADED:
        lines += [
            "",
            "Limitations:",
            *(f"  - {r}" for r in report.reasons),
            "",
            "Running in degraded mode: fully functional with reduced accuracy.",
            "Repair the failing packages and re-run `decision-memory install` to upgrade:",
            "  pip install --force-reinstall lancedb sentence-transformers",
        ]
    lines.append(border)
    return "\n".join(lines)
