"""Polling engine: dedup registry and cycle orchestrator."""

from superodds.engine.registry import DedupRegistry
from superodds.engine.orchestrator import CycleOrchestrator, SourceEntry, is_escalated

__all__ = [
    "DedupRegistry",
    "CycleOrchestrator",
    "SourceEntry",
    "is_escalated",
]
