"""Decision Memory - session warmup, tiering and decision capture hooks."""

__version__ = "0.1.0"

from decision_memory.config import Settings, get_settings
from decision_memory.core.errors import (
    ConfigurationError,
    DecisionMemoryError,
    EmbeddingError,
    InvalidInputError,
    PreconditionError,
    StorageError,
)
from decision_memory.core.models import CapabilityTier, TierReport, WarmupResult

__all__ = [
    "__version__",
    "Settings",
    "get_settings",
    # Errors
    "DecisionMemoryError",
    "PreconditionError",
    "InvalidInputError",
    "StorageError",
    "EmbeddingError",
    "ConfigurationError",
    # Models
    "CapabilityTier",
    "TierReport",
    "WarmupResult",
]
