# image_cache/scheduler.py

"""
PreloadScheduler - пакетная предзагрузка изображений волнами.

Алгоритм
--------
1. Проверяем вход (синхронно, до запуска процесса) - единственное место,
   где наружу летит InvalidInputError.
2. Дедупликация с сохранением порядка первого вхождения.
3. Отбрасываем ключи, уже резидентные в MemoryWindow или уже в очереди
   загрузки (PreloadQueue) - молча.
4. Размер волны: явный max_concurrency, иначе по таблице приоритетов
   (high → 3, normal → 5, low → 8).
5. Волна: запускаем до cap загрузок и ждём, пока осядут все (env.all_of);
   ошибка одной загрузки соседей не отменяет. Между волнами - короткая
   пауза, чтобы не забивать сетевой стек.
6. Успех → CacheIndex, MemoryWindow, total_preloaded. Неудача →
   лог и счётчик failed, без повторов.
7. Ключ покидает PreloadQueue ровно один раз при любом исходе.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Callable, FrozenSet, List, Optional, Union

import simpy

from image_cache.clock import ClockSource
from image_cache.errors import InvalidInputError, TransientFetchError
from image_cache.fetchers.base import FetchResult, Fetcher
from image_cache.index import CacheIndex
from image_cache.logger import get_logger
from image_cache.metrics import StatsCollector
from image_cache.models import CacheKey, Priority, as_key, priority_profile
from image_cache.urls import is_valid_image_url
from image_cache.window import MemoryWindow

logger = get_logger(__name__)

_OK = "ok"
_FAILED = "failed"
_DISCARDED = "discarded"


@dataclass
class PreloadResult:
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0

    @property
    def attempted(self) -> int:
        return self.succeeded + self.failed


class PreloadScheduler:
    def __init__(
            self,
            env: simpy.Environment,
            fetcher: Fetcher,
            index: CacheIndex,
            window: MemoryWindow,
            stats: StatsCollector,
            clock: ClockSource,
            *,
            inter_wave_pause: float = 0.01,
            validate_urls: bool = False,
            on_batch_done: Optional[Callable[[PreloadResult], None]] = None,
    ):
        if inter_wave_pause < 0:
            raise ValueError("inter_wave_pause must be non-negative")
        self.env = env
        self.fetcher = fetcher
        self.index = index
        self.window = window
        self.stats = stats
        self.clock = clock
        self.inter_wave_pause = inter_wave_pause
        self.validate_urls = validate_urls
        self.on_batch_done = on_batch_done

        self._queue: set = set()
        # clear() поднимает поколение: загрузки старого поколения не записываются
        self._generation = 0

    @property
    def in_flight(self) -> FrozenSet[CacheKey]:
        return frozenset(self._queue)

    def is_pending(self, key: CacheKey) -> bool:
        return key in self._queue

    def clear(self) -> None:
        self._generation += 1
        self._queue.clear()

    # ------------------------------------------------------------------ #
    #   Публичный вход                                                   #
    # ------------------------------------------------------------------ #
    def schedule(
            self,
            urls: Sequence,
            priority: Union[Priority, str] = Priority.NORMAL,
            max_concurrency: Optional[int] = None,
    ) -> simpy.Process:
        """
        Поставить батч на предзагрузку.

        :param urls: упорядоченная последовательность url (str) или CacheKey
        :param priority: low / normal / high
        :param max_concurrency: размер волны; по умолчанию - из таблицы приоритетов
        :return: SimPy-процесс; его значение - PreloadResult
        """
        priority = Priority.coerce(priority)
        cap = self._resolve_cap(priority, max_concurrency)
        keys, skipped = self._admit(urls)

        # в очередь - сразу, чтобы параллельный schedule() в том же тике их не взял
        self._queue.update(keys)
        logger.debug(
            f"t={self.env.now:.2f}: schedule {len(keys)} keys "
            f"(skipped {skipped}), priority={priority.value}, cap={cap}"
        )
        return self.env.process(self._run(keys, priority, cap, skipped, self._generation))

    def _resolve_cap(self, priority: Priority, max_concurrency: Optional[int]) -> int:
        if max_concurrency is None:
            return priority_profile(priority).concurrency
        if isinstance(max_concurrency, bool) or not isinstance(max_concurrency, int) or max_concurrency < 1:
            raise InvalidInputError(f"max_concurrency must be a positive int, got {max_concurrency!r}")
        return max_concurrency

    def _admit(self, urls) -> tuple[List[CacheKey], int]:
        if isinstance(urls, (str, bytes)) or not isinstance(urls, Sequence):
            raise InvalidInputError(f"urls must be a sequence of urls, got {type(urls).__name__}")

        skipped = 0
        ordered: List[CacheKey] = []
        for item in urls:
            if item is None or item == "":
                skipped += 1
                continue
            key = as_key(item)  # InvalidInputError для чужих типов
            if self.validate_urls and not is_valid_image_url(key.url):
                logger.debug(f"rejected url {key.url!r}")
                skipped += 1
                continue
            ordered.append(key)

        unique = list(dict.fromkeys(ordered))
        skipped += len(ordered) - len(unique)

        admitted = [k for k in unique if k not in self.window and k not in self._queue]
        skipped += len(unique) - len(admitted)
        return admitted, skipped

    # ------------------------------------------------------------------ #
    #   SimPy-процессы                                                   #
    # ------------------------------------------------------------------ #
    def _run(self, keys: List[CacheKey], priority: Priority, cap: int, skipped: int, generation: int):
        result = PreloadResult(skipped=skipped)
        started = self.env.now

        for start in range(0, len(keys), cap):
            wave = keys[start:start + cap]
            procs = [self.env.process(self._fetch_one(k, priority, generation)) for k in wave]
            yield self.env.all_of(procs)

            for proc in procs:
                if proc.value == _OK:
                    result.succeeded += 1
                elif proc.value == _FAILED:
                    result.failed += 1
                else:
                    result.skipped += 1

            if start + cap < len(keys) and self.inter_wave_pause > 0:
                yield self.env.timeout(self.inter_wave_pause)

        if keys:
            logger.info(
                f"t={self.env.now:.2f}: preload done ({priority.value}): "
                f"ok={result.succeeded}, failed={result.failed}, skipped={result.skipped}, "
                f"took {self.env.now - started:.3f}"
            )
        if self.on_batch_done is not None:
            self.on_batch_done(result)
        return result

    def _fetch_one(self, key: CacheKey, priority: Priority, generation: int):
        try:
            try:
                outcome = yield self.fetcher.fetch(key)
            except Exception as exc:
                outcome = FetchResult.failure(f"{type(exc).__name__}: {exc}")
        finally:
            if generation == self._generation:
                self._queue.discard(key)

        if not isinstance(outcome, FetchResult):
            outcome = FetchResult.success(outcome)

        if not outcome.ok:
            err = TransientFetchError(str(key), outcome.reason)
            logger.warning(f"t={self.env.now:.2f}: {err}")
            return _FAILED

        if generation != self._generation:
            logger.debug(f"t={self.env.now:.2f}: {key} settled after clear, dropped")
            return _DISCARDED

        self._store(key, priority, outcome.size_bytes)
        return _OK

    def _store(self, key: CacheKey, priority: Priority, size: int) -> None:
        now = self.clock.now()
        self.index.record(key, size, priority, now)
        victim = self.window.touch(key, priority, size, now)
        if victim is not None:
            self.stats.record_eviction(1)
        self.stats.record_preloaded(1)
        logger.debug(f"t={self.env.now:.2f}: CACHE UPDATE key={key} size={size}")
