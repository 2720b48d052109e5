"""
Генератор пользовательской нагрузки для симуляции.

BrowsingClient - поток визитов на страницы каталога:
* визиты приходят пуассоновским потоком с интенсивностью arrival_rate;
* популярность страниц - распределение Ципфа (numpy), страница 0 - самая горячая;
* на визите каждый url страницы ищется в кеше (lookup), а следующие
  prefetch_pages страниц ставятся на фоновую предзагрузку с низким приоритетом.
"""

from __future__ import annotations

from typing import List, Optional

import numpy as np
import simpy

from image_cache.logger import get_logger
from image_cache.models import Priority
from image_cache.service import ImageCacheService

logger = get_logger(__name__)

CATALOGUE_HOST = "https://img.example.com"


def catalogue_url(i: int) -> str:
    return f"{CATALOGUE_HOST}/items/{i}.jpg"


class BrowsingClient:
    def __init__(
            self,
            env: simpy.Environment,
            service: ImageCacheService,
            *,
            arrival_rate: float,
            catalogue_size: int,
            page_size: int,
            zipf_a: float = 1.3,
            prefetch_pages: int = 1,
            rng: Optional[np.random.Generator] = None,
            start_time: float = 0.0,
            name_prefix: str = "Viewer",
    ):
        if arrival_rate <= 0:
            raise ValueError("arrival_rate must be positive")
        if page_size < 1 or catalogue_size < page_size:
            raise ValueError("need 1 <= page_size <= catalogue_size")
        if zipf_a <= 1.0:
            raise ValueError("zipf_a must be > 1")

        self.env = env
        self.service = service
        self.arrival_rate = arrival_rate
        self.page_size = page_size
        self.n_pages = catalogue_size // page_size
        self.zipf_a = zipf_a
        self.prefetch_pages = prefetch_pages
        self.rng = rng or np.random.default_rng()
        self.start_time = start_time
        self.name_prefix = name_prefix
        self._counter = 0

        logger.info(
            f"[BrowsingClient] started: λ={arrival_rate}, pages={self.n_pages}, "
            f"page_size={page_size}, zipf_a={zipf_a}"
        )
        env.process(self._generate_visits())

    def page_urls(self, page: int) -> List[str]:
        page %= self.n_pages
        first = page * self.page_size
        return [catalogue_url(i) for i in range(first, first + self.page_size)]

    def next_page(self) -> int:
        return int(self.rng.zipf(self.zipf_a) - 1) % self.n_pages

    # ------------------------------------------------------------------ #
    def _generate_visits(self):
        yield self.env.timeout(self.start_time)
        logger.info(f"[BrowsingClient] generation begins at t={self.env.now:.2f}")
        while True:
            self._counter += 1
            visit_id = f"{self.name_prefix}-{self._counter}"
            self.env.process(self._handle_visit(visit_id, self.next_page()))
            yield self.env.timeout(self.rng.exponential(1.0 / self.arrival_rate))

    def _handle_visit(self, visit_id: str, page: int):
        start = self.env.now
        hits = sum(1 for url in self.page_urls(page) if self.service.lookup(url) is not None)
        logger.debug(f"t={start:.2f}: {visit_id} → page {page}, hits {hits}/{self.page_size}")

        upcoming = []
        for offset in range(1, self.prefetch_pages + 1):
            upcoming.extend(self.page_urls(page + offset))
        if upcoming:
            result = yield self.service.schedule(upcoming, Priority.LOW)
            logger.debug(
                f"t={self.env.now:.2f}: {visit_id} prefetch ok={result.succeeded} "
                f"failed={result.failed} (wait {self.env.now - start:.3f})"
            )
