# image_cache/clock.py

from abc import ABC, abstractmethod
from typing import Optional

import simpy


class ClockSource(ABC):
    """Источник времени (секунды). Только чтение."""

    @abstractmethod
    def now(self) -> float:
        ...


class EnvClock(ClockSource):
    """
    Время SimPy-окружения, сдвинутое на origin.

    Сдвиг нужен, чтобы метки в снимке оставались сравнимыми между запусками:
    env.now при каждом старте начинается с нуля.
    """

    def __init__(self, env: simpy.Environment, origin: Optional[float] = None):
        self.env = env
        self.origin = 0.0 if origin is None else origin

    def now(self) -> float:
        return self.origin + self.env.now


class FixedClock(ClockSource):
    """Ручные часы для тестов и воспроизводимых прогонов."""

    def __init__(self, start: float = 0.0):
        self._now = start

    def now(self) -> float:
        return self._now

    def set(self, value: float) -> None:
        self._now = value

    def advance(self, delta: float) -> float:
        self._now += delta
        return self._now
