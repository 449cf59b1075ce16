"""Service factory for the hook processes.

Centralizes how a hook builds its collaborators, and applies the installed
capability tier: a subsystem recorded as unavailable at install time is not
constructed at all, so the services run in their degraded paths.

Usage:
    from decision_memory.factory import ServiceFactory

    services = ServiceFactory(settings).create_all(record_path)
"""

from __future__ import annotations

import logging
import os
from collections.abc import MutableMapping
from dataclasses import dataclass

from decision_memory.adapters.lancedb_store import LanceDBDecisionStore
from decision_memory.config import Settings
from decision_memory.core.embeddings import EmbeddingService
from decision_memory.core.models import CapabilityTier
from decision_memory.core.session_cache import SessionCache
from decision_memory.ports.store import DecisionStoreProtocol, EmbedderProtocol
from decision_memory.services.extraction import DecisionExtractionPipeline
from decision_memory.services.tier_detection import load_tier_config
from decision_memory.services.warmup import WarmupOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Container for the services a hook needs.

    Attributes:
        settings: Active settings.
        tier: Installed tier, or ``None`` before ``install`` has run.
        cache: Session cache bound to the session env record.
        store: Decision store, or ``None`` when disabled for the tier.
        embedder: Embedding service, or ``None`` when disabled for the tier.
        warmup: Session warmup orchestrator.
        extraction: Pre-compaction extraction pipeline.
    """

    settings: Settings
    tier: CapabilityTier | None
    cache: SessionCache
    store: DecisionStoreProtocol | None
    embedder: EmbedderProtocol | None
    warmup: WarmupOrchestrator
    extraction: DecisionExtractionPipeline


class ServiceFactory:
    """Factory for creating and wiring hook services."""

    def __init__(
        self,
        settings: Settings,
        store: DecisionStoreProtocol | None = None,
        embedder: EmbedderProtocol | None = None,
        environ: MutableMapping[str, str] | None = None,
    ) -> None:
        """Initialize the factory.

        Args:
            settings: Application settings.
            store: Optional store override for testing.
            embedder: Optional embedder override for testing.
            environ: Environment mapping (defaults to ``os.environ``).
        """
        self._settings = settings
        self._injected_store = store
        self._injected_embedder = embedder
        self._environ = environ if environ is not None else os.environ

    def _capabilities(self) -> tuple[CapabilityTier | None, bool, bool]:
        config = load_tier_config(self._settings.tier_config_path)
        if config is None:
            return None, True, True
        try:
            tier = CapabilityTier(int(config["tier"]))
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid tier in config")
            return None, True, True
        if tier is CapabilityTier.FULL:
            return tier, True, True
        return (
            tier,
            bool(config.get("store_available", False)),
            bool(config.get("embedding_available", False)),
        )

    def create_store(self) -> DecisionStoreProtocol:
        if self._injected_store is not None:
            return self._injected_store
        return LanceDBDecisionStore(
            self._settings.data_path,
            embedding_dim=self._settings.embedding_dimensions,
        )

    def create_embedder(self) -> EmbedderProtocol:
        if self._injected_embedder is not None:
            return self._injected_embedder
        return EmbeddingService(
            model_name=self._settings.embedding_model,
            cache_max_size=self._settings.embedding_cache_size,
        )

    def create_all(self, record_path: str | None = None) -> ServiceContainer:
        """Create every hook service.

        Args:
            record_path: Session env record (``CLAUDE_ENV_FILE``), if any.
        """
        tier, store_ok, embedding_ok = self._capabilities()
        store = self.create_store() if store_ok else None
        embedder = self.create_embedder() if embedding_ok else None
        if tier is CapabilityTier.DEGRADED:
            logger.info(
                f"Degraded tier: store={'on' if store else 'off'}, "
                f"embedding={'on' if embedder else 'off'}"
            )

        cache = SessionCache(self._settings, environ=self._environ, record_path=record_path)
        return ServiceContainer(
            settings=self._settings,
            tier=tier,
            cache=cache,
            store=store,
            embedder=embedder,
            warmup=WarmupOrchestrator(self._settings, cache, store, embedder, record_path=record_path),
            extraction=DecisionExtractionPipeline(self._settings, store=store, embedder=embedder),
        )
