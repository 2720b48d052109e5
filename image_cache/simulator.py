# image_cache/simulator.py

import json
import random
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

import numpy as np
import simpy

from image_cache.client import BrowsingClient
from image_cache.clock import EnvClock
from image_cache.config import Settings, StoreConfig
from image_cache.fetchers.simulated import SimulatedImageSource
from image_cache.logger import get_logger
from image_cache.service import ImageCacheService
from image_cache.stores.base import PersistentStore
from image_cache.stores.json_file import JsonFileStore
from image_cache.stores.memory import MemoryStore

logger = get_logger(__name__)


def build_store(cfg: StoreConfig) -> PersistentStore:
    if cfg.backend == "memory":
        return MemoryStore()
    if cfg.backend == "json_file":
        return JsonFileStore(cfg.path)
    raise ValueError(f"Unknown store.backend «{cfg.backend}» in config")


class Simulator:
    """
    Фасад симулятора: строит окружение, источник изображений, хранилище,
    ImageCacheService, генератор визитов и периодический сэмплер метрик.
    """

    def __init__(self, settings: Settings, store: PersistentStore = None):
        if settings.simulator is None:
            raise ValueError("simulator section is required to run a simulation")
        self.cfg = settings
        self.env = simpy.Environment()
        scfg = settings.simulator

        # фиксируем seed для воспроизводимости
        random.seed(scfg.random_seed)
        self.rng = np.random.default_rng(scfg.random_seed)

        # 1) Источник изображений
        src = settings.source
        self.source = SimulatedImageSource(
            self.env,
            src.min_latency,
            src.max_latency,
            failure_rate=src.failure_rate,
            connections=src.connections,
            min_size=src.min_size,
            max_size=src.max_size,
        )

        # 2) Хранилище и часы
        self.store = store or build_store(settings.store)
        origin = scfg.clock_origin if scfg.clock_origin is not None else time.time()
        self.clock = EnvClock(self.env, origin)

        # 3) Кеш
        self.service = ImageCacheService(
            self.env, self.source, self.store, settings.cache, clock=self.clock,
        )
        self.service.start()

        # 4) Нагрузка
        self.client = BrowsingClient(
            self.env,
            self.service,
            arrival_rate=scfg.arrival_rate,
            catalogue_size=scfg.catalogue_size,
            page_size=scfg.page_size,
            zipf_a=scfg.zipf_a,
            prefetch_pages=scfg.prefetch_pages,
            rng=self.rng,
            start_time=scfg.start_time,
            name_prefix=scfg.client_prefix,
        )

        # 5) Сэмплер метрик
        self.samples: List[Dict[str, Any]] = []
        if scfg.sample_interval > 0:
            self.env.process(self._sample_loop(scfg.sample_interval))

    def _sample_loop(self, interval: float):
        while True:
            yield self.env.timeout(interval)
            state = self.service.describe()
            state.pop("priority_distribution", None)
            self.samples.append({"time": self.env.now, **state})

    def run(self) -> Dict[str, Any]:
        t_end = self.cfg.simulator.sim_time
        logger.info(f"=== Simulation start until t={t_end} ===")

        self.env.run(until=t_end)
        self.service.save_now()

        payload = {
            "settings": self.cfg.model_dump(),
            "summary": self.service.describe(),
            "source_calls": len(self.source.calls),
            "samples": self.samples,
        }
        if self.cfg.output and self.cfg.output.path:
            fn = Path(self.cfg.output.path).with_suffix("")
            fn = fn.with_name(f"{fn.stem}_{datetime.now():%Y%m%d_%H%M%S}.json")
            fn.parent.mkdir(parents=True, exist_ok=True)
            with open(fn, "w", encoding="utf-8") as out:
                json.dump(payload, out, indent=2, ensure_ascii=False)
            logger.info(f"[Simulator] Metrics exported to {fn}")
            payload["export_path"] = str(fn)
        return payload
