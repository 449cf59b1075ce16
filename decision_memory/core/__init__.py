"""Core components for Decision Memory."""

from decision_memory.core.errors import (
    ConfigurationError,
    DecisionMemoryError,
    EmbeddingError,
    InvalidInputError,
    PreconditionError,
    RecordWriteError,
    StorageError,
)
from decision_memory.core.hashing import compute_content_hash
from decision_memory.core.models import (
    CapabilityTier,
    DecisionCandidate,
    DecisionRow,
    ExtractionResult,
    SubsystemResult,
    TierReport,
    TranscriptEntry,
    WarmupResult,
)
from decision_memory.core.session_cache import SessionCache

__all__ = [
    # Errors
    "DecisionMemoryError",
    "PreconditionError",
    "InvalidInputError",
    "StorageError",
    "EmbeddingError",
    "ConfigurationError",
    "RecordWriteError",
    # Models
    "CapabilityTier",
    "TierReport",
    "SubsystemResult",
    "WarmupResult",
    "TranscriptEntry",
    "DecisionCandidate",
    "ExtractionResult",
    "DecisionRow",
    # Services
    "SessionCache",
    "compute_content_hash",
]
