# image_cache/eviction/capacity.py

from typing import List, Sequence

from image_cache.eviction.base import EvictionRule, age_order
from image_cache.models import CacheEntry, CacheKey


class CapacityRule(EvictionRule):
    """Если записей больше max_entries - удаляем самые давно использованные."""

    name = "capacity"

    def __init__(self, max_entries: int):
        if max_entries < 0:
            raise ValueError("max_entries must be non-negative")
        self.max_entries = max_entries

    def select(self, entries: Sequence[CacheEntry], now: float) -> List[CacheKey]:
        overflow = len(entries) - self.max_entries
        if overflow <= 0:
            return []
        return [e.key for e in sorted(entries, key=age_order)[:overflow]]
