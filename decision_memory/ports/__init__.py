"""Ports (protocol interfaces) for Decision Memory."""

from decision_memory.ports.store import DecisionStoreProtocol, EmbedderProtocol

__all__ = ["DecisionStoreProtocol", "EmbedderProtocol"]
