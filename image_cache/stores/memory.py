# image_cache/stores/memory.py

from typing import Dict, Optional

from image_cache.stores.base import PersistentStore


class MemoryStore(PersistentStore):
    """Хранилище в словаре процесса: для тестов и симуляций «с перезапуском»."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})
        self.saves = 0

    def load(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def save(self, key: str, blob: str) -> None:
        self.data[key] = blob
        self.saves += 1

    def delete(self, key: str) -> None:
        self.data.pop(key, None)
