"""Scheduling engine: assignment strategies, cleaning groups and batches."""

from .base import BaseScheduler
from .groups import GroupPartitioner
from .orchestrator import BatchOrchestrator
from .randomizer import RandomScheduler, manual_randomize
from .rotation import RotationScheduler

__all__ = [
    "BaseScheduler",
    "RotationScheduler",
    "RandomScheduler",
    "manual_randomize",
    "GroupPartitioner",
    "BatchOrchestrator",
]
