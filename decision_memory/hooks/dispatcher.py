"""Unified dispatcher for all hook events.

Routes hook invocations to the correct handler based on event name.
Accepts PascalCase (host canonical), camelCase and kebab-case event names.

CLI usage::

    echo '{"source":"startup"}' | python -m decision_memory hook session-start
    echo '{"transcript_path":"..."}' | python -m decision_memory hook pre-compact

Exactly one JSON document is written to stdout per invocation, including
when a handler fails. Exit code is 0, or 1 when the handler raised.
"""

from __future__ import annotations

import logging
from collections.abc import Callable as _Callable
from typing import IO, Any

from decision_memory.config import Settings, get_settings
from decision_memory.core.logging import configure_logging
from decision_memory.factory import ServiceContainer, ServiceFactory
from decision_memory.hooks import pre_compact, session_start, user_prompt_submit
from decision_memory.hooks.hook_helpers import (
    continue_response,
    get_record_path,
    log_hook_error,
    read_stdin,
    write_response,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_EVENT_ALIASES: dict[str, str] = {
    # PascalCase (canonical)
    "SessionStart": "SessionStart",
    "PreCompact": "PreCompact",
    "UserPromptSubmit": "UserPromptSubmit",
    # camelCase
    "sessionStart": "SessionStart",
    "preCompact": "PreCompact",
    "userPromptSubmit": "UserPromptSubmit",
    # kebab-case (CLI)
    "session-start": "SessionStart",
    "pre-compact": "PreCompact",
    "user-prompt-submit": "UserPromptSubmit",
}

EVENTS = ("session-start", "pre-compact", "user-prompt-submit")

_REQUIRED_FEATURE: dict[str, str] = {
    "SessionStart": "memory",
    "PreCompact": "memory",
    "UserPromptSubmit": "memory",
}


def normalize_event(raw: str) -> str | None:
    """Normalize an event name to canonical PascalCase.

    Returns ``None`` if the event is not recognized.
    """
    return _EVENT_ALIASES.get(raw)


# ---------------------------------------------------------------------------
# Handler registry
# ---------------------------------------------------------------------------

_HandlerFn = _Callable[[dict[str, object], ServiceContainer, str], dict[str, Any]]

_HANDLER_MAP: dict[str, _HandlerFn] = {
    "SessionStart": session_start.handle,
    "PreCompact": pre_compact.handle,
    "UserPromptSubmit": user_prompt_submit.handle,
}


def dispatch(
    event: str,
    data: dict[str, object],
    settings: Settings,
    factory: ServiceFactory | None = None,
) -> dict[str, Any]:
    """Dispatch a hook event to the appropriate handler.

    Args:
        event: Canonical event name (PascalCase).
        data: Parsed stdin JSON.
        settings: Active settings.
        factory: Optional service factory (tests inject fakes through it).

    Returns:
        The response document for stdout.
    """
    handler = _HANDLER_MAP.get(event)
    if handler is None:
        return continue_response()

    feature = _REQUIRED_FEATURE.get(event, "memory")
    if feature not in settings.enabled_features:
        logger.debug(f"{event} skipped: feature '{feature}' disabled")
        return continue_response()

    record_path = get_record_path(data)
    factory = factory or ServiceFactory(settings)
    services = factory.create_all(record_path or None)
    return handler(data, services, record_path)


def error_response(exc: BaseException) -> dict[str, Any]:
    """Status document emitted when a handler fails."""
    response = continue_response()
    response["systemMessage"] = f"Decision memory hook failed: {type(exc).__name__}"
    return response


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def main(
    event_name: str,
    stdin: IO[str] | None = None,
    stdout: IO[str] | None = None,
    settings: Settings | None = None,
    factory: ServiceFactory | None = None,
) -> int:
    """Run one hook invocation.

    Reads stdin, dispatches to the handler, writes the stdout response.

    Returns:
        Process exit code.
    """
    try:
        settings = settings or get_settings()
        configure_logging(
            level=settings.log_level,
            json_format=settings.log_json,
            hook_name=event_name,
        )
    except Exception as exc:
        # No usable settings: no config dir for the error log either
        logger.error(f"{event_name} hook setup failed: {exc}")
        write_response(error_response(exc), stdout)
        return 1

    event = normalize_event(event_name)
    if event is None:
        logger.warning(f"Unknown hook event: {event_name}")
        write_response(continue_response(), stdout)
        return 0

    data = read_stdin(stdin)
    try:
        response = dispatch(event, data, settings, factory)
    except Exception as exc:
        logger.error(f"{event} hook failed: {exc}", exc_info=True)
        log_hook_error(exc, f"dispatcher:{event_name}", settings.config_dir)
        write_response(error_response(exc), stdout)
        return 1

    write_response(response, stdout)
    return 0
