"""
Adapters layer - Schedule data sources.
"""

from .snapshot_repository import InMemoryScheduleRepository

__all__ = ["InMemoryScheduleRepository"]
