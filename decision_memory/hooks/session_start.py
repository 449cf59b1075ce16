"""SessionStart handler: warm the store and model, then show recent decisions.

A session whose warmup already succeeded recently (resume, or SessionStart
re-fired after compaction) gets a short status line instead of a second
warmup.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from decision_memory.core.errors import StorageError
from decision_memory.core.models import CapabilityTier, DecisionRow, WarmupResult
from decision_memory.factory import ServiceContainer
from decision_memory.hooks.hook_helpers import context_response
from decision_memory.services.warmup import DISABLED_FOR_TIER, EMBEDDING, STORE

logger = logging.getLogger(__name__)

EVENT_NAME = "SessionStart"
PREFIX = "DECISION MEMORY:"

_OUTCOME_MARKERS = {"SUCCESS": "[ok]", "FAILED": "[failed]", "PARTIAL": "[partial]"}


def format_time_ago(then: datetime | None, now: datetime | None = None) -> str:
    """Render an age such as ``5m ago``."""
    if then is None:
        return "unknown"
    now = now or datetime.now(timezone.utc)
    if then.tzinfo is None:
        then = then.replace(tzinfo=timezone.utc)
    seconds = max(0, int((now - then).total_seconds()))
    minutes, hours, days = seconds // 60, seconds // 3600, seconds // 86400
    if days > 0:
        return f"{days}d ago"
    if hours > 0:
        return f"{hours}h ago"
    if minutes > 0:
        return f"{minutes}m ago"
    return f"{seconds}s ago"


def truncate(text: str, max_len: int) -> str:
    if not text:
        return ""
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def format_recent_decisions(rows: list[DecisionRow], now: datetime | None = None) -> str:
    if not rows:
        return ""
    lines = [f"Recent decisions ({len(rows)}):"]
    for i, row in enumerate(rows, start=1):
        marker = _OUTCOME_MARKERS.get((row.outcome or "").upper(), "[pending]")
        lines.append(
            f"  {i}. {marker} {row.topic}: {truncate(row.decision, 60)} "
            f"({format_time_ago(row.created_at, now)})"
        )
    return "\n".join(lines)


def _status_text(result: WarmupResult) -> str:
    if result.timed_out:
        return f"Session warmup timed out ({result.total_latency_ms}ms), continuing degraded"

    parts = []
    for name, label in ((STORE, "Store"), (EMBEDDING, "Embedding")):
        sub = result.subsystems.get(name)
        if sub is None:
            continue
        if sub.error == DISABLED_FOR_TIER:
            parts.append(f"{label}: off")
        elif sub.success:
            parts.append(f"{label}: {sub.latency_ms}ms")
        else:
            parts.append(f"{label}: failed")

    if result.success:
        return f"Ready ({', '.join(parts)})"
    return f"Partial ({result.error}; {', '.join(parts)})"


def _recent_rows(services: ServiceContainer, result: WarmupResult) -> list[DecisionRow]:
    store = services.store
    store_result = result.subsystems.get(STORE)
    if store is None or store_result is None or not store_result.success:
        return []
    if store_result.error == DISABLED_FOR_TIER:
        return []
    try:
        return store.recent(limit=services.settings.recent_decision_limit)
    except StorageError as e:
        logger.warning(f"Failed to query recent decisions: {e}")
        return []


def handle(data: dict[str, object], services: ServiceContainer, record_path: str = "") -> dict[str, Any]:
    """Run the session warmup and build the SessionStart response."""
    warmup = services.warmup
    if warmup.is_warm():
        logger.info("Session already warm, skipping re-initialization")
        return context_response(EVENT_NAME, f"{PREFIX} Session resumed (already initialized)")

    if record_path:
        services.cache.init_record(record_path)

    result = warmup.run_warmup()

    lines = [f"{PREFIX} {_status_text(result)}"]
    if services.tier is CapabilityTier.DEGRADED:
        lines.append("Running in degraded tier: exact-match search only.")
    if not result.timed_out:
        lines.append(f"Session initialized in {result.total_latency_ms}ms")
        recent = format_recent_decisions(_recent_rows(services, result))
        if recent:
            lines.append("")
            lines.append(recent)
        lines.append("")
        lines.append(
            f"Save important decisions as they are made with {services.settings.save_tool_name} "
            '(e.g. "Let\'s use PostgreSQL" -> topic="database_choice").'
        )

    return context_response(EVENT_NAME, "\n".join(lines))
