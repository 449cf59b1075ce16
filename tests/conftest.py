"""Pytest fixtures for Decision Memory tests."""

from __future__ import annotations

import json
import time
import uuid
from collections.abc import Generator
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import numpy as np
import pytest

from decision_memory.config import Settings, override_settings, reset_settings
from decision_memory.core.errors import StorageError
from decision_memory.core.models import DecisionRow
from decision_memory.core.session_cache import SessionCache

# ---------------------------------------------------------------------------
# Fakes for the store and embedding boundaries
# ---------------------------------------------------------------------------


class FakeStore:
    """In-memory stand-in for ``LanceDBDecisionStore``.

    ``delay`` slows ``connect()``; ``error`` makes every operation raise it.
    """

    def __init__(self, rows: list[DecisionRow] | None = None) -> None:
        self.rows: list[DecisionRow] = list(rows or [])
        self.delay = 0.0
        self.error: Exception | None = None
        self.connect_calls = 0
        self.search_calls: list[dict[str, Any]] = []
        self.connected = False

    def connect(self) -> None:
        self.connect_calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.connected = True

    def recent(self, limit: int = 5) -> list[DecisionRow]:
        if self.error is not None:
            raise self.error
        if not self.connected:
            raise StorageError("Database not connected")
        ordered = sorted(
            self.rows,
            key=lambda r: r.created_at or datetime.min.replace(tzinfo=timezone.utc),
            reverse=True,
        )
        return ordered[:limit]

    def search(
        self,
        query_vector: np.ndarray,
        limit: int = 5,
        min_similarity: float = 0.0,
    ) -> list[DecisionRow]:
        self.search_calls.append({"limit": limit, "min_similarity": min_similarity})
        if self.error is not None:
            raise self.error
        if not self.connected:
            raise StorageError("Database not connected")
        hits = [r for r in self.rows if (r.similarity or 0.0) >= min_similarity]
        hits.sort(key=lambda r: r.similarity or 0.0, reverse=True)
        return hits[:limit]


class FakeEmbedder:
    """Deterministic embedder; ``available=False`` simulates the degraded signal."""

    def __init__(self, dim: int = 4) -> None:
        self.dim = dim
        self.delay = 0.0
        self.available = True
        self.warm_error: Exception | None = None
        self.warm_calls = 0
        self.embedded: list[str] = []

    def warm(self) -> bool:
        self.warm_calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.warm_error is not None:
            raise self.warm_error
        return self.available

    def embed(self, text: str) -> np.ndarray | None:
        self.embedded.append(text)
        if not self.available:
            return None
        return np.ones(self.dim, dtype=np.float32)


# ---------------------------------------------------------------------------
# Basic fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings(tmp_path: Path) -> Generator[Settings, None, None]:
    """Provide test settings rooted in a temp directory."""
    settings = Settings(
        data_path=tmp_path / "store",
        config_dir=tmp_path / "config",
        log_level="DEBUG",
        warmup_deadline_ms=2000,
    )
    override_settings(settings)
    yield settings
    reset_settings()


@pytest.fixture
def environ() -> dict[str, str]:
    """Isolated process environment mapping."""
    return {}


@pytest.fixture
def record_path(tmp_path: Path) -> Path:
    """Session env record path (not created yet)."""
    return tmp_path / "session.env"


@pytest.fixture
def cache(test_settings: Settings, environ: dict[str, str]) -> SessionCache:
    return SessionCache(test_settings, environ=environ)


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


# ---------------------------------------------------------------------------
# Factory fixtures for creating test data
# ---------------------------------------------------------------------------


@pytest.fixture
def make_row() -> Any:
    """Factory fixture for creating DecisionRow objects.

    Usage:
        def test_something(make_row):
            row = make_row(topic="database_choice", similarity=0.9)
    """

    def _make_row(
        topic: str = "database_choice",
        decision: str = "Use PostgreSQL for storage",
        reasoning: str = "",
        outcome: str | None = None,
        created_at: datetime | None = None,
        similarity: float | None = None,
    ) -> DecisionRow:
        return DecisionRow(
            id=str(uuid.uuid4()),
            topic=topic,
            decision=decision,
            reasoning=reasoning,
            outcome=outcome,
            created_at=created_at or datetime.now(timezone.utc),
            similarity=similarity,
        )

    return _make_row


def jsonl(*messages: dict[str, Any]) -> str:
    """Render messages as transcript JSONL."""
    return "\n".join(json.dumps(m, ensure_ascii=False) for m in messages) + "\n"


@pytest.fixture
def make_transcript() -> Any:
    """Factory fixture rendering message dicts as a JSONL transcript."""
    return jsonl
