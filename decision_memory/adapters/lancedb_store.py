"""LanceDB-backed decision store.

Implements ``DecisionStoreProtocol``.  The table holds one row per saved
decision with its embedding vector; queries used by the hooks are limited to
"most recent" and cosine-similarity search.
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import numpy as np
import pyarrow as pa

from decision_memory.core.errors import StorageError
from decision_memory.core.models import DecisionRow

logger = logging.getLogger(__name__)

TABLE_NAME = "decisions"

_ROW_COLUMNS = [
    "id",
    "topic",
    "decision",
    "reasoning",
    "outcome",
    "confidence",
    "created_at",
]


def decisions_schema(embedding_dim: int) -> pa.Schema:
    """Arrow schema of the decisions table."""
    return pa.schema([
        pa.field("id", pa.string()),
        pa.field("topic", pa.string()),
        pa.field("decision", pa.string()),
        pa.field("reasoning", pa.string()),
        pa.field("outcome", pa.string()),
        pa.field("confidence", pa.float32()),
        pa.field("created_at", pa.timestamp("us")),
        pa.field("vector", pa.list_(pa.float32(), embedding_dim)),
    ])


def _table_names(db: Any) -> list[str]:
    result = db.list_tables() if hasattr(db, "list_tables") else db.table_names()
    # Handle both old (list) and new (object with .tables) LanceDB API
    if hasattr(result, "tables"):
        return list(result.tables)
    return list(result)


def _to_row(record: dict[str, Any]) -> DecisionRow:
    similarity = None
    if "_distance" in record:
        # Cosine distance to similarity, clamped to [0, 1]
        similarity = max(0.0, min(1.0, 1 - float(record["_distance"])))
    confidence = record.get("confidence")
    return DecisionRow(
        id=str(record.get("id", "")),
        topic=str(record.get("topic") or ""),
        decision=str(record.get("decision") or ""),
        reasoning=str(record.get("reasoning") or ""),
        outcome=record.get("outcome"),
        confidence=float(confidence) if confidence is not None else 0.5,
        created_at=record.get("created_at"),
        similarity=similarity,
    )


class LanceDBDecisionStore:
    """Decision store on a local LanceDB directory."""

    def __init__(self, storage_path: Path, embedding_dim: int = 384) -> None:
        self.storage_path = Path(storage_path)
        self.embedding_dim = embedding_dim
        self._db: Any = None
        self._table: Any = None

    def __enter__(self) -> LanceDBDecisionStore:
        self.connect()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    @property
    def is_connected(self) -> bool:
        return self._table is not None

    def connect(self) -> None:
        """Connect to the store, creating the decisions table if missing."""
        if self._table is not None:
            return
        try:
            import lancedb

            self.storage_path.mkdir(parents=True, exist_ok=True)
            self._db = lancedb.connect(str(self.storage_path))
            self._ensure_table()
            logger.info(f"Connected to LanceDB at {self.storage_path}")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to connect to decision store: {e}") from e

    def _ensure_table(self) -> None:
        max_retries = 3
        retry_delay = 0.1

        for attempt in range(max_retries):
            try:
                if TABLE_NAME not in _table_names(self._db):
                    try:
                        self._table = self._db.create_table(
                            TABLE_NAME, schema=decisions_schema(self.embedding_dim)
                        )
                        logger.info("Created decisions table")
                    except Exception as create_err:
                        # Table might have been created by another process
                        if "already exists" in str(create_err).lower():
                            self._table = self._db.open_table(TABLE_NAME)
                        else:
                            raise
                else:
                    self._table = self._db.open_table(TABLE_NAME)
                return
            except Exception as e:
                if attempt == max_retries - 1:
                    raise StorageError(f"Failed to open decisions table: {e}") from e
                logger.debug(f"Table open attempt {attempt + 1} failed: {e}; retrying")
                time.sleep(retry_delay)
                retry_delay *= 2

    def close(self) -> None:
        self._table = None
        self._db = None

    @property
    def table(self) -> Any:
        if self._table is None:
            raise StorageError("Decision store not connected")
        return self._table

    def add(
        self,
        topic: str,
        decision: str,
        vector: np.ndarray,
        reasoning: str = "",
        confidence: float = 0.5,
    ) -> str:
        """Insert one decision and return its ID."""
        decision_id = str(uuid.uuid4())
        record = {
            "id": decision_id,
            "topic": topic,
            "decision": decision,
            "reasoning": reasoning,
            "outcome": None,
            "confidence": float(confidence),
            "created_at": datetime.now(timezone.utc).replace(tzinfo=None),
            "vector": np.asarray(vector, dtype=np.float32).tolist(),
        }
        try:
            self.table.add([record])
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to add decision: {e}") from e
        return decision_id

    def recent(self, limit: int = 5) -> list[DecisionRow]:
        if limit <= 0:
            return []
        try:
            arrow = self.table.to_arrow().select(_ROW_COLUMNS)
            if arrow.num_rows == 0:
                return []
            ordered = arrow.sort_by([("created_at", "descending")]).slice(0, limit)
            return [_to_row(r) for r in ordered.to_pylist()]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read recent decisions: {e}") from e

    def search(
        self,
        query_vector: np.ndarray,
        limit: int = 5,
        min_similarity: float = 0.0,
    ) -> list[DecisionRow]:
        if limit <= 0:
            return []
        try:
            vector = np.asarray(query_vector, dtype=np.float32).tolist()
            # Fetch extra if filtering by similarity
            fetch_limit = limit * 3 if min_similarity > 0.0 else limit
            records: list[dict[str, Any]] = (
                self.table.search(vector)
                .distance_type("cosine")
                .select(_ROW_COLUMNS)
                .limit(fetch_limit)
                .to_list()
            )
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to search decisions: {e}") from e

        rows: list[DecisionRow] = []
        for record in records:
            row = _to_row(record)
            if (row.similarity or 0.0) >= min_similarity:
                rows.append(row)
                if len(rows) >= limit:
                    break
        return rows
