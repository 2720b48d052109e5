import pytest
import simpy

from image_cache.clock import FixedClock
from image_cache.config import CacheConfig
from image_cache.errors import PersistenceReadError, PersistenceWriteError
from image_cache.fetchers.base import FetchResult, Fetcher
from image_cache.service import ImageCacheService
from image_cache.stores.memory import MemoryStore

T0 = 1_700_000_000.0


class FakeFetcher(Fetcher):
    """Считает вызовы и одновременные загрузки; исход задаётся наборами url."""

    def __init__(self, env, latency=0.1, fail=(), raise_on=()):
        self.env = env
        self.latency = latency
        self.fail = set(fail)
        self.raise_on = set(raise_on)
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    def fetch(self, key):
        self.calls.append(key.url)
        return self.env.process(self._proc(key))

    def _proc(self, key):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            delay = self.latency(key) if callable(self.latency) else self.latency
            yield self.env.timeout(delay)
        finally:
            self.in_flight -= 1
        if key.url in self.raise_on:
            raise RuntimeError("connection reset")
        if key.url in self.fail:
            return FetchResult.failure("404")
        return FetchResult.success(handle=f"img:{key.url}", size_bytes=100 * len(key.url))


class FailingStore(MemoryStore):
    def save(self, key, blob):
        raise PersistenceWriteError("disk full")


class UnreadableStore(MemoryStore):
    def load(self, key):
        raise PersistenceReadError("permission denied")


class BrokenBackendStore(MemoryStore):
    """Хранилище, падающее с «сырым» OSError вместо ошибок Persistence*."""

    def load(self, key):
        raise OSError("device not ready")

    def save(self, key, blob):
        raise OSError("disk full")

    def delete(self, key):
        raise OSError("read-only file system")


@pytest.fixture
def env():
    return simpy.Environment()


@pytest.fixture
def clock():
    return FixedClock(T0)


@pytest.fixture
def fetcher(env):
    return FakeFetcher(env)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def make_service(env, fetcher, store, clock):
    def factory(fetcher=fetcher, store=store, clock=clock, **overrides):
        service = ImageCacheService(env, fetcher, store, CacheConfig(**overrides), clock=clock)
        service.start()
        return service
    return factory


@pytest.fixture
def service(make_service):
    return make_service()


def run(env, proc):
    """Прогнать окружение до завершения процесса и вернуть его значение."""
    env.run(until=proc)
    return proc.value
