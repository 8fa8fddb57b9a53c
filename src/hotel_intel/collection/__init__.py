"""Quota-aware collection of per-date market snapshots."""

from .orchestrator import (
    CollectOptions,
    CollectionProgress,
    CollectionResult,
    DateError,
    FetchOrchestrator,
    RunState,
    SnapshotSink,
)
from .quota import QuotaTracker

__all__ = [
    "CollectOptions",
    "CollectionProgress",
    "CollectionResult",
    "DateError",
    "FetchOrchestrator",
    "QuotaTracker",
    "RunState",
    "SnapshotSink",
]
