"""Configuration system for Decision Memory hooks."""

from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings

ALL_FEATURES: tuple[str, ...] = ("memory", "keywords", "rules", "agents", "contracts")
"""Hook features enabled when no daemon restriction applies.

Only ``memory`` gates a hook in this package; the others mirror the host's
feature names so ``DECISION_MEMORY_HOOK_FEATURES`` accepts the same list.
"""


class Settings(BaseSettings):
    """Decision Memory Configuration."""

    # Storage
    data_path: Path = Field(
        default=Path.home() / ".decision-memory" / "store",
        description="Path to the LanceDB decision store directory",
    )
    config_dir: Path = Field(
        default=Path.home() / ".decision-memory",
        description="Directory holding the persisted tier config and hook error log",
    )

    # Embedding Model
    embedding_model: str = Field(
        default="all-MiniLM-L6-v2",
        description="Sentence-transformers model name",
    )
    embedding_dimensions: int = Field(
        default=384,
        ge=1,
        description="Embedding vector dimensions of the store's vector column",
    )
    embedding_cache_size: int = Field(
        default=256,
        ge=0,
        description="Maximum embeddings kept in the in-process LRU cache",
    )

    # Logging
    log_level: str = Field(
        default="ERROR",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    log_json: bool = Field(
        default=False,
        description="Emit JSON structured logs on stderr",
    )

    # Installation preconditions
    min_python: tuple[int, int] = Field(
        default=(3, 10),
        description="Minimum supported Python version",
    )
    min_disk_mb: int = Field(
        default=100,
        ge=0,
        description="Minimum free disk space (MB) at the data directory",
    )

    # Warmup
    warmup_deadline_ms: int = Field(
        default=8000,
        ge=1,
        description="Hard deadline for the parallel session warmup",
    )
    warm_freshness_minutes: int = Field(
        default=30,
        ge=0,
        description="A ready warmup younger than this is reused instead of repeated",
    )

    # Extraction
    candidate_limit: int = Field(
        default=5,
        ge=1,
        description="Most recent unsaved decision candidates to report",
    )
    min_candidate_length: int = Field(
        default=10,
        ge=1,
        description="Discard decision captures shorter than this",
    )
    save_tool_name: str = Field(
        default="mama_save",
        description="Tool name whose use marks a topic as saved in the transcript",
    )
    store_topic_query: str = Field(
        default="recent technical decisions, architecture choices and strategies",
        description="Generic query used to pull saved topics from the store",
    )
    store_topic_limit: int = Field(
        default=20,
        ge=1,
        description="Maximum topics fetched from the store for cross-reference",
    )
    store_topic_min_similarity: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Similarity floor for the store topic lookup",
    )

    # Prompt recall
    recall_limit: int = Field(
        default=3,
        ge=1,
        description="Maximum related decisions injected per prompt",
    )
    recall_min_similarity: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Similarity floor for prompt recall",
    )
    recent_decision_limit: int = Field(
        default=5,
        ge=0,
        description="Recent decisions shown at session start",
    )

    # Session cache
    persist_seen_hashes: bool = Field(
        default=False,
        description="Persist injected-content hashes through the session env record",
    )

    # Hook feature gating
    disable_hooks: bool = Field(
        default=False,
        description="Disable every hook",
    )
    daemon: bool = Field(
        default=False,
        description="Running inside the standalone daemon (features opt-in)",
    )
    hook_features: str = Field(
        default="",
        description="Comma-separated features enabled in daemon mode",
    )

    model_config = {
        "env_prefix": "DECISION_MEMORY_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    @property
    def tier_config_path(self) -> Path:
        """Path of the persisted tier configuration record."""
        return self.config_dir / "config.json"

    @property
    def enabled_features(self) -> frozenset[str]:
        """Features the hooks may run, honoring the disable and daemon switches."""
        if self.disable_hooks:
            return frozenset()
        if not self.daemon:
            return frozenset(ALL_FEATURES)
        if not self.hook_features:
            return frozenset()
        return frozenset(
            f.strip().lower() for f in self.hook_features.split(",") if f.strip()
        )


# Settings singleton with dependency injection support
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the settings instance (lazy-loaded singleton).

    Returns:
        The Settings instance.

    Example:
        from decision_memory.config import get_settings
        settings = get_settings()
        print(settings.data_path)
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def override_settings(new_settings: Settings) -> None:
    """Override the settings instance (for testing).

    Args:
        new_settings: The new Settings instance to use.
    """
    global _settings
    _settings = new_settings


def reset_settings() -> None:
    """Reset settings to None (forces reload on next get_settings call)."""
    global _settings
    _settings = None


class _SettingsProxy:
    """Proxy object resolving attributes against the current settings."""

    def __getattr__(self, name: str) -> Any:
        return getattr(get_settings(), name)

    def __repr__(self) -> str:
        return repr(get_settings())


settings = _SettingsProxy()
