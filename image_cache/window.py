# image_cache/window.py

from __future__ import annotations

from collections import OrderedDict
from typing import List, Optional

from image_cache.logger import get_logger
from image_cache.models import CacheKey, Priority, priority_profile

logger = get_logger(__name__)


class _Slot:
    __slots__ = ("touched_at", "rank", "size", "seq")

    def __init__(self, touched_at: float, rank: int, size: int, seq: int):
        self.touched_at = touched_at
        self.rank = rank
        self.size = size
        self.seq = seq


class MemoryWindow:
    """
    Ограниченное множество ключей, «резидентных» в памяти, упорядоченное
    по давности обращения (LRU).

    Жертва вытеснения - ключ с самым старым обращением. При равенстве меток
    времени: сначала меньший приоритет, затем меньший размер, затем более
    раннее обращение (вставка или повторный touch).
    """

    def __init__(self, capacity: int = 50):
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._slots: "OrderedDict[CacheKey, _Slot]" = OrderedDict()
        self._seq = 0

    def __len__(self) -> int:
        return len(self._slots)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._slots

    def contains(self, key: CacheKey) -> bool:
        return key in self._slots

    def keys(self) -> List[CacheKey]:
        """Ключи от наименее к наиболее недавно использованному."""
        return sorted(self._slots, key=lambda k: self._order(self._slots[k]))

    def touch(self, key: CacheKey, priority: Priority, size: int, now: float) -> Optional[CacheKey]:
        """
        Отметить ключ как самый свежий (вставить при отсутствии).

        :return: вытесненный из-за переполнения ключ или None
        """
        rank = priority_profile(priority).rank
        slot = self._slots.get(key)
        if slot is not None:
            slot.touched_at = max(slot.touched_at, now)
            slot.rank = rank
            slot.size = size
            self._seq += 1
            slot.seq = self._seq
            self._slots.move_to_end(key)
            return None

        self._seq += 1
        self._slots[key] = _Slot(now, rank, size, self._seq)
        if len(self._slots) <= self.capacity:
            return None

        victim = self._select_victim(exclude=key)
        del self._slots[victim]
        logger.debug(f"WINDOW OVERFLOW evicted {victim} (capacity={self.capacity})")
        return victim

    def evict(self, key: CacheKey) -> bool:
        return self._slots.pop(key, None) is not None

    def truncate(self, target: int) -> List[CacheKey]:
        """Ужать окно до target ключей, вытесняя по тому же порядку."""
        target = max(0, target)
        removed: List[CacheKey] = []
        while len(self._slots) > target:
            victim = self._select_victim()
            del self._slots[victim]
            removed.append(victim)
        return removed

    def clear(self) -> None:
        self._slots.clear()

    # ------------------------------------------------------------------ #
    @staticmethod
    def _order(slot: _Slot):
        return slot.touched_at, slot.rank, slot.size, slot.seq

    def _select_victim(self, exclude: Optional[CacheKey] = None) -> CacheKey:
        candidates = ((k, s) for k, s in self._slots.items() if k != exclude)
        key, _ = min(candidates, key=lambda item: self._order(item[1]))
        return key
