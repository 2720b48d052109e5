# image_cache/eviction/policy.py

from typing import List, Sequence

from image_cache.config import CacheConfig
from image_cache.eviction.age import MaxAgeRule, StalenessRule
from image_cache.eviction.base import EvictionRule
from image_cache.eviction.capacity import CapacityRule
from image_cache.logger import get_logger
from image_cache.models import CacheEntry, CacheKey, Priority

logger = get_logger(__name__)


class EvictionPolicy:
    """
    Решает, какие записи удалить, чтобы уложиться в бюджеты возраста,
    «залежалости» и количества.

    Правила применяются строго по порядку: max_age → staleness → capacity.
    Каждое следующее правило видит только записи, пережившие предыдущие.
    Сама политика ничего не удаляет: применяет план ImageCacheService.
    """

    def __init__(self, rules: Sequence[EvictionRule]):
        self.rules = list(rules)

    @classmethod
    def from_config(cls, cfg: CacheConfig) -> "EvictionPolicy":
        return cls([
            MaxAgeRule(cfg.max_age),
            StalenessRule(cfg.max_age, overrides={Priority.LOW: cfg.low_priority_staleness}),
            CapacityRule(cfg.max_entries),
        ])

    def plan(self, entries: Sequence[CacheEntry], now: float) -> List[CacheKey]:
        remaining = list(entries)
        doomed: List[CacheKey] = []
        for rule in self.rules:
            selected = set(rule.select(remaining, now))
            if not selected:
                continue
            logger.debug(f"[{rule.name}] selected {len(selected)} entries")
            doomed.extend(e.key for e in remaining if e.key in selected)
            remaining = [e for e in remaining if e.key not in selected]
        return doomed

