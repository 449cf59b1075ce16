"""Protocol interfaces for the decision store and embedding boundaries.

The hooks consume the store through three operations only: connect, read the
most recent rows, and a semantic-similarity search.  Using typing.Protocol
keeps the services testable with plain fakes.
"""

from __future__ import annotations

from typing import Protocol

import numpy as np

from decision_memory.core.models import DecisionRow


class DecisionStoreProtocol(Protocol):
    """Protocol for the persistent decision store.

    ``LanceDBDecisionStore`` is the primary implementation.
    """

    def connect(self) -> None:
        """Open (and if needed create) the store.

        Raises:
            StorageError: If the store cannot be opened.
        """
        ...

    def recent(self, limit: int = 5) -> list[DecisionRow]:
        """Return the newest decisions, newest first.

        Raises:
            StorageError: If the query fails.
        """
        ...

    def search(
        self,
        query_vector: np.ndarray,
        limit: int = 5,
        min_similarity: float = 0.0,
    ) -> list[DecisionRow]:
        """Return decisions ranked by similarity, at or above *min_similarity*.

        Raises:
            StorageError: If the query fails.
        """
        ...


class EmbedderProtocol(Protocol):
    """Protocol for the embedding boundary."""

    def embed(self, text: str) -> np.ndarray | None:
        """Return a vector for *text*, or ``None`` when embeddings are unavailable."""
        ...

    def warm(self) -> bool:
        """Load the model eagerly.

        Raises:
            EmbeddingError: If the model cannot be loaded.
        """
        ...
