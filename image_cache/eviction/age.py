# image_cache/eviction/age.py

from typing import Dict, List, Optional, Sequence

from image_cache.eviction.base import EvictionRule
from image_cache.logger import get_logger
from image_cache.models import CacheEntry, CacheKey, PRIORITY_PROFILES, Priority

logger = get_logger(__name__)


class MaxAgeRule(EvictionRule):
    """
    Удаляет записи, к которым не обращались дольше max_age.
    Граница строгая: запись возрастом ровно max_age остаётся.
    """

    name = "max_age"

    def __init__(self, max_age: float):
        if max_age < 0:
            raise ValueError("max_age must be non-negative")
        self.max_age = max_age

    def select(self, entries: Sequence[CacheEntry], now: float) -> List[CacheKey]:
        return [e.key for e in entries if now - e.last_accessed_at > self.max_age]


class StalenessRule(EvictionRule):
    """
    Предел неиспользования по приоритету (по умолчанию только low, 30 дней).

    Если max_age короче предела приоритета, действует меньшая из границ.
    """

    name = "staleness"

    def __init__(self, max_age: float, overrides: Optional[Dict[Priority, float]] = None):
        self.bounds: Dict[Priority, float] = {}
        for priority, profile in PRIORITY_PROFILES.items():
            bound = (overrides or {}).get(priority, profile.staleness)
            if bound is not None:
                self.bounds[priority] = min(max_age, bound)
        logger.debug(f"StalenessRule bounds: {self.bounds}")

    def select(self, entries: Sequence[CacheEntry], now: float) -> List[CacheKey]:
        selected = []
        for e in entries:
            bound = self.bounds.get(e.priority)
            if bound is not None and now - e.last_accessed_at > bound:
                selected.append(e.key)
        return selected
