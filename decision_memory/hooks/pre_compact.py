"""PreCompact handler: emit the preservation prompt before compaction.

The prompt is emitted even when no unsaved decision is detected, so context
is not lost just because nothing looked like a decision.
"""

from __future__ import annotations

import logging
from typing import Any

from decision_memory.core.errors import StorageError
from decision_memory.core.transcript import read_transcript
from decision_memory.factory import ServiceContainer
from decision_memory.hooks.hook_helpers import context_response

logger = logging.getLogger(__name__)

EVENT_NAME = "PreCompact"


def handle(data: dict[str, object], services: ServiceContainer, record_path: str = "") -> dict[str, Any]:
    """Build the PreCompact response from the transcript on stdin."""
    transcript_path = data.get("transcript_path", "")
    transcript = read_transcript(transcript_path) if isinstance(transcript_path, str) else ""

    if services.store is not None:
        try:
            services.store.connect()
        except StorageError as e:
            logger.warning(f"Store unavailable, filtering on transcript markers only: {e}")

    pipeline = services.extraction
    unsaved = pipeline.find_unsaved(transcript)
    if unsaved:
        logger.info(f"{len(unsaved)} unsaved decision candidate(s) before compaction")

    return context_response(EVENT_NAME, pipeline.build_preservation_prompt(transcript, unsaved))
