# image_cache/metrics.py

from typing import Optional

from pydantic import BaseModel, Field

from image_cache.logger import get_logger

logger = get_logger(__name__)


class CacheStats(BaseModel):
    """Монотонные счётчики кеша. Сохраняются в снимке вместе с индексом."""
    total_preloaded: int = Field(0, ge=0)
    cache_hits: int = Field(0, ge=0)
    cache_misses: int = Field(0, ge=0)
    evictions: int = Field(0, ge=0)
    last_cleanup_at: Optional[float] = None


class StatsCollector:
    """
    Чистые счётчики попаданий/промахов/вытеснений.

    Согласованность между счётчиками приблизительная - это только
    наблюдаемость, на логику кеша они не влияют.
    """

    def __init__(self, stats: Optional[CacheStats] = None):
        self._stats = CacheStats()
        if stats is not None:
            self.restore(stats)

    # ------------------------------------------------------------------ #
    #   Методы‑регистраторы                                              #
    # ------------------------------------------------------------------ #
    def record_hit(self):
        self._stats.cache_hits += 1

    def record_miss(self):
        self._stats.cache_misses += 1

    def record_eviction(self, n: int = 1):
        if n > 0:
            self._stats.evictions += n

    def record_preloaded(self, n: int = 1):
        if n > 0:
            self._stats.total_preloaded += n

    def record_cleanup(self, now: float):
        self._stats.last_cleanup_at = now

    # ------------------------------------------------------------------ #
    def snapshot(self) -> CacheStats:
        return self._stats.model_copy()

    def restore(self, stats: CacheStats) -> None:
        self._stats = stats.model_copy()
        logger.debug(f"stats restored: {self._stats}")

    def summary(self) -> dict:
        s = self._stats
        lookups = s.cache_hits + s.cache_misses
        data = s.model_dump()
        data["lookups"] = lookups
        data["hit_rate"] = s.cache_hits / lookups if lookups else 0.0
        return data
