# image_cache/eviction/base.py

from abc import ABC, abstractmethod
from typing import List, Sequence

from image_cache.models import CacheEntry, CacheKey, priority_profile


def age_order(entry: CacheEntry):
    """Порядок «от самых старых»: last_accessed_at, приоритет, размер, url."""
    return (
        entry.last_accessed_at,
        priority_profile(entry.priority).rank,
        entry.size_estimate_bytes,
        entry.url,
    )


class EvictionRule(ABC):
    """
    Базовый абстрактный класс для правил вытеснения.
    Правило получает записи, ещё не помеченные предыдущими правилами,
    и возвращает ключи, которые нужно удалить.
    """

    name: str = "rule"

    @abstractmethod
    def select(self, entries: Sequence[CacheEntry], now: float) -> List[CacheKey]:
        """
        :param entries: кандидаты (уже без удалённых предыдущими правилами)
        :param now: текущее время часов кеша
        :return: ключи к удалению
        """
        ...
