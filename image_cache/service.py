# image_cache/service.py

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Literal, Optional, Sequence, Union

import simpy

from image_cache.clock import ClockSource, EnvClock
from image_cache.config import CacheConfig
from image_cache.errors import InvalidInputError
from image_cache.eviction.policy import EvictionPolicy
from image_cache.fetchers.base import Fetcher
from image_cache.index import CacheIndex
from image_cache.logger import get_logger
from image_cache.metrics import CacheStats, StatsCollector
from image_cache.models import CacheEntry, CacheKey, KeyLike, Priority, as_key
from image_cache.scheduler import PreloadResult, PreloadScheduler
from image_cache.screens import collect_screen_urls
from image_cache.stores.base import PersistentStore
from image_cache.window import MemoryWindow

logger = get_logger(__name__)

MaintenanceMode = Literal["memory", "full"]


class ImageCacheService:
    """
    Фасад подсистемы кеширования изображений.

    Собирает CacheIndex, MemoryWindow, PreloadScheduler, EvictionPolicy и
    StatsCollector поверх трёх внешних зависимостей (Fetcher,
    PersistentStore, ClockSource). Экземпляр создаётся корнем композиции
    приложения и живёт до конца процесса; тесты строят свои экземпляры.

    Поток данных: schedule() → Fetcher → CacheIndex → MemoryWindow →
    EvictionPolicy (после батча) → фоновый flush в PersistentStore.
    """

    def __init__(
            self,
            env: simpy.Environment,
            fetcher: Fetcher,
            store: PersistentStore,
            config: Optional[CacheConfig] = None,
            *,
            clock: Optional[ClockSource] = None,
            policy: Optional[EvictionPolicy] = None,
    ):
        self.env = env
        self.cfg = config or CacheConfig()
        self.clock = clock or EnvClock(env)
        self.store = store

        self.index = CacheIndex()
        self.window = MemoryWindow(self.cfg.memory_capacity)
        self.stats = StatsCollector()
        self.policy = policy or EvictionPolicy.from_config(self.cfg)
        self.scheduler = PreloadScheduler(
            env, fetcher, self.index, self.window, self.stats, self.clock,
            inter_wave_pause=self.cfg.inter_wave_pause,
            validate_urls=self.cfg.validate_urls,
            on_batch_done=self._after_batch,
        )

        self._flush_pending = False
        self._maintenance_proc: Optional[simpy.Process] = None

    # ------------------------------------------------------------------ #
    #   Жизненный цикл                                                   #
    # ------------------------------------------------------------------ #
    def start(self) -> None:
        """Восстановить метаданные, провести стартовую гигиену, запустить таймер."""
        self.restore()
        self.auto_cleanup_if_needed()
        if self._maintenance_proc is None and self.cfg.cleanup_interval > 0:
            self._maintenance_proc = self.env.process(self._maintenance_loop())
        logger.info(
            f"ImageCacheService started: entries={len(self.index)}, "
            f"window={self.window.capacity}, cleanup_interval={self.cfg.cleanup_interval}"
        )

    def restore(self) -> None:
        try:
            blob = self.store.load(self.cfg.store_key)
        except Exception as exc:
            logger.error(f"cache metadata load failed, cold start: {exc!r}")
            blob = None
        stats = self.index.restore(blob)
        self.stats.restore(stats or CacheStats())
        self.window.clear()

    # ------------------------------------------------------------------ #
    #   Публичный API                                                    #
    # ------------------------------------------------------------------ #
    def schedule(
            self,
            urls: Sequence[KeyLike],
            priority: Union[Priority, str] = Priority.NORMAL,
            max_concurrency: Optional[int] = None,
    ) -> simpy.Process:
        return self.scheduler.schedule(urls, priority, max_concurrency)

    def lookup(self, url: KeyLike, **options: Any) -> Optional[CacheEntry]:
        """
        Найти запись. Попадание освежает давность и делает ключ резидентным;
        промах (если включено schedule_on_miss) ставит фоновую загрузку.
        """
        try:
            key = CacheKey.of(url, **options) if options and isinstance(url, str) else as_key(url)
        except InvalidInputError as exc:
            self.stats.record_miss()
            logger.warning(f"lookup treated as miss: {exc}")
            return None
        now = self.clock.now()

        entry = self.index.lookup(key)
        if entry is None:
            self.stats.record_miss()
            logger.debug(f"CACHE MISS {key}")
            if self.cfg.schedule_on_miss and not self.scheduler.is_pending(key):
                self.scheduler.schedule([key], Priority.NORMAL)
            return None

        entry.touch(now)
        # ключ в очереди загрузки станет резидентным по её завершении
        if not self.scheduler.is_pending(key):
            victim = self.window.touch(key, entry.priority, entry.size_estimate_bytes, now)
            if victim is not None:
                self.stats.record_eviction(1)
        self.stats.record_hit()
        logger.debug(f"CACHE HIT {key}")
        return entry

    def clear_all(self) -> None:
        """Сбросить всё: запись в хранилище, окно, индекс и очередь загрузок."""
        try:
            self.store.delete(self.cfg.store_key)
        except Exception as exc:
            logger.error(f"cache metadata delete failed: {exc!r}")
        self.window.clear()
        self.index.clear()
        self.scheduler.clear()
        self.stats.record_cleanup(self.clock.now())
        logger.info("image cache cleared")

    def get_stats(self) -> CacheStats:
        return self.stats.snapshot()

    def describe(self) -> Dict[str, Any]:
        """Сводка состояния кеша для мониторинга."""
        entries = self.index.entries()
        created = [e.created_at for e in entries]
        return {
            "total_entries": len(entries),
            "memory_entries": len(self.window),
            "total_size": self.index.total_size(),
            "oldest_entry": min(created) if created else None,
            "newest_entry": max(created) if created else None,
            "preload_queue_size": len(self.scheduler.in_flight),
            "priority_distribution": self.index.priority_distribution(),
            **self.stats.summary(),
        }

    def preload_screen(self, screen: str, items: Iterable[Dict[str, Any]]) -> Optional[simpy.Process]:
        """Предзагрузить изображения экрана; неизвестный экран - предупреждение и None."""
        collected = collect_screen_urls(screen, items)
        if collected is None:
            logger.warning(f"unsupported screen type {screen!r}")
            return None
        urls, priority = collected
        logger.info(f"screen {screen!r}: {len(urls)} image urls queued ({priority.value})")
        return self.schedule(urls, priority)

    # ------------------------------------------------------------------ #
    #   Обслуживание                                                     #
    # ------------------------------------------------------------------ #
    def run_maintenance(self, mode: MaintenanceMode = "full") -> int:
        """
        memory - ужать только MemoryWindow (индекс и хранилище не трогаем);
        full   - правила EvictionPolicy по индексу + flush.

        :return: число удалённых ключей
        """
        now = self.clock.now()
        if mode == "memory":
            removed = self.window.truncate(self.cfg.memory_trim_target)
            self.stats.record_eviction(len(removed))
            self.stats.record_cleanup(now)
            if removed:
                logger.info(f"memory cleanup: {len(removed)} keys released")
            return len(removed)

        if mode != "full":
            raise InvalidInputError(f"unknown maintenance mode {mode!r}")

        doomed = self.policy.plan(self.index.entries(), now)
        self.stats.record_cleanup(now)
        if not doomed:
            return 0
        self._evict(doomed)
        logger.info(f"cache cleanup: {len(doomed)} entries evicted, {len(self.index)} left")
        self.flush()
        return len(doomed)

    def auto_cleanup_if_needed(self) -> int:
        """Очистка памяти, если последняя очистка была давно (или не было вовсе)."""
        last = self.stats.snapshot().last_cleanup_at
        now = self.clock.now()
        if last is not None and now - last <= self.cfg.cleanup_interval:
            return 0
        logger.info("auto cleanup: releasing memory window")
        return self.run_maintenance("memory")

    def _evict(self, keys: List[CacheKey]) -> None:
        for key in keys:
            self.window.evict(key)
        removed = self.index.remove(keys)
        self.stats.record_eviction(removed)

    def _after_batch(self, result: PreloadResult) -> None:
        if result.attempted == 0:
            return
        if self.run_maintenance("full") == 0:
            # run_maintenance сам делает flush, если что-то удалил
            self.flush()

    def _maintenance_loop(self):
        """Периодическая очистка (SimPy‑процесс)."""
        while True:
            yield self.env.timeout(self.cfg.cleanup_interval)
            removed = self.run_maintenance(self.cfg.periodic_mode)
            logger.debug(f"t={self.env.now:.2f}: periodic {self.cfg.periodic_mode} cleanup removed {removed}")

    # ------------------------------------------------------------------ #
    #   Сохранение                                                       #
    # ------------------------------------------------------------------ #
    def flush(self) -> None:
        """Запланировать фоновое сохранение (несколько запросов сливаются в одно)."""
        if self._flush_pending:
            return
        self._flush_pending = True
        self.env.process(self._flush_proc())

    def _flush_proc(self):
        yield self.env.timeout(0)
        self._flush_pending = False
        self.save_now()

    def save_now(self) -> bool:
        blob = self.index.snapshot(self.stats.snapshot(), saved_at=self.clock.now())
        try:
            self.store.save(self.cfg.store_key, blob)
        except Exception as exc:
            logger.error(f"cache metadata flush skipped: {exc!r}")
            return False
        logger.debug(f"cache metadata flushed: {len(self.index)} entries")
        return True
