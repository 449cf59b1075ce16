"""UserPromptSubmit handler: inject decisions related to the prompt.

Identical context blocks are injected once per session, tracked by content
hash in the session cache.
"""

from __future__ import annotations

import logging
from typing import Any

from decision_memory.core.errors import StorageError
from decision_memory.core.models import DecisionRow
from decision_memory.factory import ServiceContainer
from decision_memory.hooks.hook_helpers import context_response, continue_response

logger = logging.getLogger(__name__)

EVENT_NAME = "UserPromptSubmit"


def format_related(rows: list[DecisionRow]) -> str:
    lines = ["DECISION MEMORY: related decisions"]
    for row in rows:
        score = f" ({row.similarity:.0%})" if row.similarity is not None else ""
        lines.append(f"- {row.topic}: {row.decision}{score}")
        if row.reasoning:
            lines.append(f"  reasoning: {row.reasoning}")
    return "\n".join(lines)


def handle(data: dict[str, object], services: ServiceContainer, record_path: str = "") -> dict[str, Any]:
    prompt = data.get("prompt", "")
    if not isinstance(prompt, str) or not prompt.strip():
        return continue_response()
    if services.store is None or services.embedder is None:
        return continue_response()

    vector = services.embedder.embed(prompt)
    if vector is None:
        return continue_response()

    settings = services.settings
    try:
        services.store.connect()
        rows = services.store.search(
            vector,
            limit=settings.recall_limit,
            min_similarity=settings.recall_min_similarity,
        )
    except StorageError as e:
        logger.warning(f"Related decision lookup failed: {e}")
        return continue_response()

    if not rows:
        return continue_response()

    block = format_related(rows)
    cache = services.cache
    digest = cache.hash_of(block)
    if cache.has_seen(digest):
        logger.debug("Related decisions already injected this session")
        return continue_response()
    cache.mark_seen(digest)

    return context_response(EVENT_NAME, block)
