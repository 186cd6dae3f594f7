"""Run statistics persistence."""

from importer_batch.stats.base import StatsManager, StatsStore
from importer_batch.stats.memory import InMemoryStatsStore

__all__ = ["InMemoryStatsStore", "StatsManager", "StatsStore"]
