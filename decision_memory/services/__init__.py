"""Service layer: tier detection, session warmup and decision extraction."""

from decision_memory.services.extraction import DecisionExtractionPipeline
from decision_memory.services.tier_detection import TierDetector
from decision_memory.services.warmup import WarmupOrchestrator

__all__ = [
    "DecisionExtractionPipeline",
    "TierDetector",
    "WarmupOrchestrator",
]
