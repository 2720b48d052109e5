# image_cache/fetchers/simulated.py

import random
from typing import Any, Dict, List

import simpy

from image_cache.fetchers.base import FetchResult, Fetcher
from image_cache.logger import get_logger
from image_cache.models import CacheKey

logger = get_logger(__name__)


class SimulatedImageSource(Fetcher):
    """
    Сетевой источник изображений для DES-симуляции.

    * ограниченное число соединений (общая очередь simpy.Resource);
    * время обслуживания ~ U(min_latency, max_latency);
    * каждая загрузка с вероятностью failure_rate заканчивается ошибкой;
    * размер изображения детерминирован url-ом.
    """

    def __init__(
            self,
            env: simpy.Environment,
            min_latency: float,
            max_latency: float,
            *,
            failure_rate: float = 0.0,
            connections: int = 6,
            min_size: int = 8 * 1024,
            max_size: int = 512 * 1024,
    ):
        if min_latency < 0 or max_latency < min_latency:
            raise ValueError("latency bounds must satisfy 0 <= min_latency <= max_latency")
        if not (0.0 <= failure_rate <= 1.0):
            raise ValueError("failure_rate must be within [0, 1]")
        self.env = env
        self.min_latency = min_latency
        self.max_latency = max_latency
        self.failure_rate = failure_rate
        self.min_size = min_size
        self.max_size = max_size
        self.server = simpy.Resource(env, capacity=connections)
        self.calls: List[Dict[str, Any]] = []

    def fetch(self, key: CacheKey) -> simpy.Event:
        return self.env.process(self._fetch_proc(key))

    def size_of(self, key: CacheKey) -> int:
        return random.Random(str(key)).randint(self.min_size, self.max_size)

    def _fetch_proc(self, key: CacheKey):
        arr = self.env.now
        # общая очередь соединений
        with self.server.request() as req:
            yield req
            yield self.env.timeout(random.uniform(self.min_latency, self.max_latency))

        finish = self.env.now
        ok = random.random() >= self.failure_rate
        self.calls.append({"key": str(key), "start": arr, "finish": finish, "ok": ok})

        if not ok:
            logger.debug(f"t={finish:.2f}: source failed {key}")
            return FetchResult.failure("simulated network error")

        size = self.size_of(key)
        logger.debug(f"t={finish:.2f}: served {key}, {size}B, wait={finish - arr:.3f}")
        return FetchResult.success(handle=f"image:{key}", size_bytes=size)
