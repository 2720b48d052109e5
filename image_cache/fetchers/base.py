# image_cache/fetchers/base.py

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import simpy

from image_cache.models import CacheKey


@dataclass(frozen=True)
class FetchResult:
    """Исход загрузки: только успех (с непрозрачным handle) или неудача."""
    ok: bool
    handle: Any = None
    size_bytes: int = 0
    reason: str = ""

    @classmethod
    def success(cls, handle: Any, size_bytes: int = 0) -> "FetchResult":
        return cls(True, handle, max(0, size_bytes))

    @classmethod
    def failure(cls, reason: str) -> "FetchResult":
        return cls(False, reason=reason)


class Fetcher(ABC):
    """
    Примитив «загрузить и декодировать изображение».

    fetch() возвращает SimPy-событие, которое завершается FetchResult.
    Если событие упало с исключением, планировщик трактует это как неудачу.
    """

    @abstractmethod
    def fetch(self, key: CacheKey) -> simpy.Event:
        ...
