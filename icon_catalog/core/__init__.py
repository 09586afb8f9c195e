"""Core components for the Icon Catalog Pipeline."""

from .dataset_store import IconDatasetStore, IconRecord
from .metadata_generator import GeminiIconDescriber
from .batch_orchestrator import IconBatchOrchestrator
from .bulk_loader import IconBulkLoader
from .throttle import FixedDelayThrottle

__all__ = [
    "IconDatasetStore",
    "IconRecord",
    "GeminiIconDescriber",
    "IconBatchOrchestrator",
    "IconBulkLoader",
    "FixedDelayThrottle",
]
