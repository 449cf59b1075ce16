"""Data models for Decision Memory."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Any


class CapabilityTier(IntEnum):
    """Capability level determined by which optional subsystems load."""

    FULL = 1
    DEGRADED = 2

    @property
    def label(self) -> str:
        return "Full Features" if self is CapabilityTier.FULL else "Degraded Mode"


@dataclass
class TierReport:
    """Outcome of installation-time capability detection."""

    tier: CapabilityTier
    store_available: bool
    embedding_available: bool
    accuracy: str
    features: list[str] = field(default_factory=list)
    reasons: list[str] = field(default_factory=list)
    performance: dict[str, str] = field(default_factory=dict)
    detected_at: str = ""

    @property
    def name(self) -> str:
        return self.tier.label

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["tier"] = int(self.tier)
        data["name"] = self.name
        return data


@dataclass(frozen=True)
class SubsystemResult:
    """Warmup outcome of one subsystem."""

    name: str
    success: bool
    latency_ms: int
    error: str | None = None


@dataclass
class WarmupResult:
    """Outcome of one session warmup.

    ``subsystems`` is empty for a timed-out warmup: results that arrive after
    the deadline are discarded.
    """

    success: bool
    total_latency_ms: int
    subsystems: dict[str, SubsystemResult] = field(default_factory=dict)
    timed_out: bool = False
    skipped: bool = False
    error: str | None = None

    @property
    def latencies_ms(self) -> dict[str, int]:
        return {name: r.latency_ms for name, r in self.subsystems.items()}

    @property
    def status(self) -> str:
        """Value persisted as the session warm status."""
        if self.timed_out:
            return "timeout"
        return "ready" if self.success else "failed"


@dataclass(frozen=True)
class TranscriptEntry:
    """Single message parsed from a JSONL transcript line."""

    line_index: int = 0
    role: str = ""  # "user" | "assistant" | "" when the line carries no role
    text: str = ""  # concatenated text content
    saved_topics: frozenset[str] = frozenset()  # topics from save tool calls


@dataclass(frozen=True)
class DecisionCandidate:
    """Transcript span suspected of recording an unsaved decision."""

    text: str
    source_offset: int = 0


@dataclass
class ExtractionResult:
    """Result of one transcript scan."""

    candidates: list[DecisionCandidate] = field(default_factory=list)
    saved_topics: set[str] = field(default_factory=set)
    line_count: int = 0

    @property
    def texts(self) -> list[str]:
        return [c.text for c in self.candidates]


@dataclass
class DecisionRow:
    """One decision as returned by the store boundary."""

    id: str
    topic: str
    decision: str
    reasoning: str = ""
    outcome: str | None = None
    confidence: float = 0.5
    created_at: datetime | None = None
    similarity: float | None = None
