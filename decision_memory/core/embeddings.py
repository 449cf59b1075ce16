"""Embedding service for Decision Memory.

The model is loaded lazily on first use; ``warm()`` forces that load so a
session-start hook can pay the cold-start cost up front.  ``embed()`` reports
failure as ``None`` rather than raising, which callers treat as the degraded
(exact-match only) signal.
"""

import hashlib
import logging
import threading
from collections import OrderedDict
from typing import TYPE_CHECKING, Literal

import numpy as np

from decision_memory.core.errors import ConfigurationError, EmbeddingError
from decision_memory.core.logging import mask_sensitive

if TYPE_CHECKING:
    from sentence_transformers import SentenceTransformer

logger = logging.getLogger(__name__)

EmbeddingBackend = Literal["auto", "onnx", "pytorch"]

WARMUP_TEXT = "decision memory warmup initialization"


def _is_onnx_available() -> bool:
    """Check if ONNX Runtime and Optimum are available."""
    try:
        import onnxruntime  # noqa: F401
        import optimum.onnxruntime  # noqa: F401
        return True
    except ImportError:
        return False


def _detect_backend(requested: EmbeddingBackend) -> Literal["onnx", "pytorch"]:
    """Detect which backend to use."""
    if requested == "pytorch":
        return "pytorch"
    elif requested == "onnx":
        if not _is_onnx_available():
            raise ConfigurationError(
                "ONNX Runtime requested but not fully installed. "
                "Install with: pip install sentence-transformers[onnx]"
            )
        return "onnx"
    else:  # auto
        if _is_onnx_available():
            return "onnx"
        return "pytorch"


class EmbeddingService:
    """Service for generating text embeddings with a local sentence-transformers model."""

    def __init__(
        self,
        model_name: str = "all-MiniLM-L6-v2",
        backend: EmbeddingBackend = "auto",
        cache_max_size: int = 256,
    ) -> None:
        """Initialize the embedding service.

        Args:
            model_name: Sentence-transformers model name.
            backend: 'auto' uses ONNX if available, otherwise PyTorch.
            cache_max_size: Maximum number of embeddings to cache (LRU eviction).
                Set to 0 to disable caching.
        """
        self.model_name = model_name
        self._model: "SentenceTransformer | None" = None
        self._dimensions: int | None = None
        self._requested_backend = backend
        self._active_backend: Literal["onnx", "pytorch"] | None = None
        self._load_lock = threading.Lock()

        self._embed_cache: OrderedDict[str, np.ndarray] = OrderedDict()
        self._cache_max_size = cache_max_size
        self._cache_lock = threading.Lock()

    def _load_local_model(self) -> None:
        """Load the sentence-transformers model (once)."""
        with self._load_lock:
            if self._model is not None:
                return

            try:
                from sentence_transformers import SentenceTransformer

                self._active_backend = _detect_backend(self._requested_backend)
                logger.info(
                    f"Loading embedding model: {self.model_name} "
                    f"(backend: {self._active_backend})"
                )

                if self._active_backend == "onnx":
                    self._model = SentenceTransformer(self.model_name, backend="onnx")
                else:
                    self._model = SentenceTransformer(self.model_name)

                self._dimensions = self._model.get_sentence_embedding_dimension()
                logger.info(f"Loaded model with {self._dimensions} dimensions")
            except ConfigurationError:
                raise
            except Exception as e:
                raise EmbeddingError(
                    f"Failed to load embedding model: {mask_sensitive(str(e))}"
                ) from e

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    @property
    def dimensions(self) -> int:
        """Get the embedding dimensions (loads the model)."""
        if self._dimensions is None:
            self._load_local_model()
        return self._dimensions  # type: ignore

    def _get_cache_key(self, text: str) -> str:
        """MD5 for speed (not security) - collisions are acceptable for cache."""
        return hashlib.md5(text.encode(), usedforsecurity=False).hexdigest()

    def warm(self) -> bool:
        """Load the model and run one throwaway inference.

        Raises:
            EmbeddingError: If the model cannot be loaded or run.
        """
        vector = self.encode(WARMUP_TEXT)
        return vector is not None and vector.size > 0

    def encode(self, text: str) -> np.ndarray:
        """Generate an embedding, raising on failure.

        Raises:
            EmbeddingError: If the model fails to load or encode.
        """
        cache_key = self._get_cache_key(text)

        with self._cache_lock:
            if cache_key in self._embed_cache:
                self._embed_cache.move_to_end(cache_key)
                return self._embed_cache[cache_key].copy()

        self._load_local_model()
        assert self._model is not None  # _load_local_model() sets this or raises

        try:
            embedding = self._model.encode(
                [text],
                convert_to_numpy=True,
                normalize_embeddings=True,
                show_progress_bar=False,
            )[0]
        except Exception as e:
            raise EmbeddingError(
                f"Failed to generate embeddings: {mask_sensitive(str(e))}"
            ) from e

        if self._cache_max_size > 0:
            with self._cache_lock:
                if cache_key not in self._embed_cache:
                    while len(self._embed_cache) >= self._cache_max_size:
                        self._embed_cache.popitem(last=False)
                    self._embed_cache[cache_key] = embedding.copy()

        return embedding

    def embed(self, text: str) -> np.ndarray | None:
        """Generate an embedding, or ``None`` when embeddings are unavailable."""
        if not text or not text.strip():
            return None
        try:
            return self.encode(text)
        except (EmbeddingError, ConfigurationError) as e:
            logger.warning(f"Embedding unavailable: {e}")
            return None

    def clear_cache(self) -> int:
        """Clear embedding cache. Returns number of entries cleared."""
        with self._cache_lock:
            count = len(self._embed_cache)
            self._embed_cache.clear()
            return count
