# image_cache/stores/base.py

from abc import ABC, abstractmethod
from typing import Optional


class PersistentStore(ABC):
    """
    Долговременное key/value-хранилище сериализованных снимков.

    Реализации сообщают о сбоях через PersistenceReadError /
    PersistenceWriteError; решение, что с ними делать, принимает сервис.
    """

    @abstractmethod
    def load(self, key: str) -> Optional[str]:
        """Вернуть blob или None, если ключа нет."""
        ...

    @abstractmethod
    def save(self, key: str, blob: str) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Удалить ключ; отсутствие ключа - не ошибка."""
        ...
