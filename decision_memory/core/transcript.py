"""JSONL transcript reading and per-line message parsing.

Every line is parsed independently; malformed lines are skipped, never fatal.
Both flat messages (``{"content": "..."}`` / ``{"text": "..."}``) and host
transcript entries (``{"type": "assistant", "message": {"content": [...]}}``)
are understood.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterator
from pathlib import Path

from decision_memory.core.models import TranscriptEntry

logger = logging.getLogger(__name__)

MAX_TRANSCRIPT_BYTES: int = 50 * 1_048_576
"""Transcripts larger than this are read from the tail only."""

MAX_LINE_CHARS: int = 1_048_576
"""Skip oversized lines (e.g. base64 payloads)."""


def validate_transcript_path(path: str) -> str:
    """Validate a transcript path for safe use.

    Rejects empty, relative, and traversal-containing paths.

    Returns:
        The validated path, or ``""`` if invalid.
    """
    if not path:
        return ""
    if ".." in path:
        return ""
    if not os.path.isabs(path):
        return ""
    return path


def read_transcript(transcript_path: str) -> str:
    """Read the transcript text, or ``""`` if the path is invalid or unreadable."""
    transcript_path = validate_transcript_path(transcript_path)
    if not transcript_path:
        return ""

    path = Path(transcript_path)
    try:
        size = path.stat().st_size
        with open(path, "rb") as f:
            if size > MAX_TRANSCRIPT_BYTES:
                f.seek(size - MAX_TRANSCRIPT_BYTES)
                f.readline()  # drop the partial first line
            raw = f.read()
    except OSError as e:
        logger.warning(f"Failed to read transcript {path.name}: {e}")
        return ""

    return raw.decode("utf-8", errors="replace")


def iter_entries(transcript: str, save_tool_name: str = "") -> Iterator[TranscriptEntry]:
    """Yield one ``TranscriptEntry`` per parseable transcript line."""
    for index, line in enumerate(transcript.splitlines()):
        stripped = line.strip()
        if not stripped or len(stripped) > MAX_LINE_CHARS:
            continue
        try:
            data = json.loads(stripped)
        except json.JSONDecodeError:
            continue
        if not isinstance(data, dict):
            continue
        yield parse_entry(data, index, save_tool_name)


def parse_entry(data: dict[str, object], line_index: int = 0, save_tool_name: str = "") -> TranscriptEntry:
    """Parse one decoded transcript line."""
    role = ""
    texts: list[str] = []
    topics: set[str] = set()

    for key in ("content", "text"):
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            texts.append(value)
            break

    raw_role = data.get("role") or data.get("type")
    if isinstance(raw_role, str) and raw_role in ("user", "assistant"):
        role = raw_role

    message = data.get("message")
    if isinstance(message, dict):
        msg_role = message.get("role")
        if isinstance(msg_role, str):
            role = msg_role
        content = message.get("content")
        if isinstance(content, str):
            if content.strip():
                texts.append(content)
        elif isinstance(content, list):
            for block in content:
                if not isinstance(block, dict):
                    continue
                block_type = block.get("type")
                if block_type == "text":
                    text_val = block.get("text", "")
                    if isinstance(text_val, str) and text_val.strip():
                        texts.append(text_val)
                elif block_type == "tool_use" and save_tool_name:
                    topic = _tool_use_topic(block, save_tool_name)
                    if topic:
                        topics.add(topic)

    return TranscriptEntry(
        line_index=line_index,
        role=role,
        text="\n\n".join(texts),
        saved_topics=frozenset(topics),
    )


def _tool_use_topic(block: dict[str, object], save_tool_name: str) -> str:
    name = block.get("name")
    if not isinstance(name, str) or not name.endswith(save_tool_name):
        return ""
    tool_input = block.get("input")
    if not isinstance(tool_input, dict):
        return ""
    topic = tool_input.get("topic")
    return topic.strip() if isinstance(topic, str) else ""
