"""Pre-compaction decision extraction and preservation prompt.

Scans the transcript for decision-like phrasing that was never saved, drops
candidates whose topic was already saved (in the same transcript or in the
store), and builds the prompt emitted before the host compacts the context.

Detection is a heuristic regex filter over multilingual phrasing, isolated
behind ``extract_decision_phrases`` so it can be replaced without touching the
dedup or prompt logic.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from decision_memory.config import Settings
from decision_memory.core.errors import StorageError
from decision_memory.core.models import DecisionCandidate, ExtractionResult
from decision_memory.core.transcript import iter_entries
from decision_memory.ports.store import DecisionStoreProtocol, EmbedderProtocol

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

DECISION_PATTERNS: tuple[re.Pattern[str], ...] = (
    # Declarative: "decided: ...", "we'll use ...", "선택: ..."
    re.compile(
        r"(?:decided|decision|chose|we'll use|will use|going with|선택|결정)[:：]?\s*(.{10,200})",
        re.IGNORECASE,
    ),
    # Structural: "approach: ...", "architecture: ...", "설계: ..."
    re.compile(
        r"(?:approach|architecture|strategy|설계|방식)[:：]\s*(.{10,200})",
        re.IGNORECASE,
    ),
)

SAVE_CONFIRMATION = "Decision saved"

_TOPIC_RE = re.compile(r"topic[\"':\s]+(\w+)")
_FENCED_CODE_RE = re.compile(r"```.*?```", re.DOTALL)
_INLINE_CODE_RE = re.compile(r"`[^`\n]*`")

PRESERVATION_SECTIONS: tuple[tuple[str, str], ...] = (
    ("User Requests", "Every explicit request the user made, in order, with exact wording where it matters."),
    ("Final Goal", "The overall objective this session is working toward."),
    ("Completed Work", "What has been finished, including files changed and decisions applied."),
    ("Remaining Tasks", "Open items still to be done, in priority order."),
    ("Active Context", "Files, functions, branches and state currently being worked on."),
    ("Constraints", "Requirements, conventions and limits the user stated or the code imposes."),
    ("Verification State", "What has been tested or checked, what passed, and what is unverified."),
)


def strip_code(text: str) -> str:
    """Remove fenced and inline code spans."""
    return _INLINE_CODE_RE.sub(" ", _FENCED_CODE_RE.sub(" ", text))


def extract_decision_phrases(text: str, min_length: int = 10) -> list[str]:
    """Return decision-like phrases found in *text* (code already stripped)."""
    phrases: list[str] = []
    for pattern in DECISION_PATTERNS:
        for match in pattern.finditer(text):
            phrase = match.group(1).strip()
            if len(phrase) >= min_length:
                phrases.append(phrase)
    return phrases


def saved_topics_in_text(text: str, save_tool_name: str) -> set[str]:
    """Topics named by a save marker in free text."""
    if save_tool_name not in text and SAVE_CONFIRMATION not in text:
        return set()
    match = _TOPIC_RE.search(text)
    return {match.group(1)} if match else set()


def _topic_forms(topic: str) -> set[str]:
    topic = topic.strip()
    forms = {topic}
    if "_" in topic:
        forms.add(topic.replace("_", " "))
    return {f for f in forms if f}


def _word_match(needle: str, haystack: str) -> bool:
    return re.search(rf"(?<!\w){re.escape(needle)}(?!\w)", haystack, re.IGNORECASE) is not None


def matches_topic(text: str, topic: str) -> bool:
    """Whole-word match in either direction, case-insensitive."""
    for form in _topic_forms(topic):
        if _word_match(form, text) or _word_match(text.strip(), form):
            return True
    return False


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class DecisionExtractionPipeline:
    """Finds unsaved decisions in a transcript and builds the preservation prompt."""

    def __init__(
        self,
        settings: Settings,
        store: DecisionStoreProtocol | None = None,
        embedder: EmbedderProtocol | None = None,
    ) -> None:
        self._settings = settings
        self._store = store
        self._embedder = embedder

    def extract(self, transcript: str) -> ExtractionResult:
        """Scan *transcript* (JSONL text) for decision candidates.

        A candidate restating a topic already marked saved earlier in the scan
        is suppressed.  Output is exact-text deduplicated and capped to the
        most recent ``candidate_limit`` entries.
        """
        save_tool = self._settings.save_tool_name
        saved_topics: set[str] = set()
        found: list[DecisionCandidate] = []
        line_count = 0

        for entry in iter_entries(transcript, save_tool_name=save_tool):
            line_count = entry.line_index + 1
            saved_topics.update(entry.saved_topics)
            if not entry.text:
                continue

            saved_topics.update(saved_topics_in_text(entry.text, save_tool))

            for phrase in extract_decision_phrases(
                strip_code(entry.text), self._settings.min_candidate_length
            ):
                if any(matches_topic(phrase, t) for t in saved_topics):
                    continue
                found.append(DecisionCandidate(text=phrase, source_offset=entry.line_index))

        unique: dict[str, DecisionCandidate] = {}
        for candidate in found:
            unique.setdefault(candidate.text, candidate)
        candidates = list(unique.values())[-self._settings.candidate_limit :]

        if not line_count and transcript:
            line_count = len(transcript.splitlines())
        return ExtractionResult(candidates=candidates, saved_topics=saved_topics, line_count=line_count)

    def filter_unsaved(
        self,
        candidates: Iterable[DecisionCandidate | str],
        known_topics: Iterable[str],
    ) -> list[DecisionCandidate]:
        """Drop candidates that whole-word match any known topic."""
        topics = [t for t in known_topics if t and t.strip()]
        kept: list[DecisionCandidate] = []
        for candidate in candidates:
            if isinstance(candidate, str):
                candidate = DecisionCandidate(text=candidate)
            if any(matches_topic(candidate.text, t) for t in topics):
                continue
            kept.append(candidate)
        return kept

    def store_topics(self) -> set[str]:
        """Topics already present in the store.

        Uses a semantic lookup over a fixed generic query; without embeddings
        it falls back to the most recent rows.  Store failure yields an empty
        set.
        """
        if self._store is None:
            return set()

        vector = self._embedder.embed(self._settings.store_topic_query) if self._embedder else None
        try:
            if vector is not None:
                rows = self._store.search(
                    vector,
                    limit=self._settings.store_topic_limit,
                    min_similarity=self._settings.store_topic_min_similarity,
                )
            else:
                rows = self._store.recent(limit=self._settings.store_topic_limit)
        except StorageError as e:
            logger.warning(f"Store topic lookup unavailable: {e}")
            return set()

        return {row.topic for row in rows if row.topic}

    def find_unsaved(self, transcript: str) -> list[DecisionCandidate]:
        """Extract candidates and filter them against saved and stored topics."""
        result = self.extract(transcript)
        if not result.candidates:
            return []
        known = result.saved_topics | self.store_topics()
        return self.filter_unsaved(result.candidates, known)

    def build_preservation_prompt(
        self,
        transcript: str,
        unsaved: Iterable[DecisionCandidate | str],
    ) -> str:
        """Build the pre-compaction prompt.

        The seven sections are always present, whether or not candidates were
        found.
        """
        texts = [c.text if isinstance(c, DecisionCandidate) else str(c) for c in unsaved]

        lines = [
            "[Decision Memory PreCompact]",
            "Context is about to be compacted. Before it is, write a summary with these sections:",
            "",
        ]
        for index, (header, guidance) in enumerate(PRESERVATION_SECTIONS, start=1):
            lines.append(f"## {index}. {header}")
            lines.append(guidance)
            lines.append("")

        if texts:
            lines.append(f"{len(texts)} potential unsaved decision(s) detected:")
            lines.extend(f"{i}. {text}" for i, text in enumerate(texts, start=1))
            lines.append("")
            lines.append(
                f"IMPORTANT: Use {self._settings.save_tool_name} to persist any important "
                "decisions before they are lost to compaction."
            )
            lines.append("")

        size_kb = len(transcript.encode("utf-8")) / 1024
        line_count = len(transcript.splitlines())
        lines.append(f"Transcript size: ~{size_kb:.0f} KB ({line_count} lines)")
        return "\n".join(lines)
