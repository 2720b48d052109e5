# image_cache/index.py

"""
CacheIndex - таблица метаданных CacheEntry.

Индекс восстанавливается из PersistentStore при старте, меняется каждой
операцией и периодически сбрасывается обратно. Формат снимка:

    {"version": 3,
     "entries": [[url, {"options": {...}, "created_at": ..., ...}], ...],
     "stats": {...CacheStats...},
     "saved_at": ...}

Снимок другой версии или повреждённый снимок считается отсутствующим
(холодный старт), исключение наружу не выходит.
"""

from __future__ import annotations

import json
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError

from image_cache.errors import PersistenceReadError
from image_cache.logger import get_logger
from image_cache.metrics import CacheStats
from image_cache.models import CacheEntry, CacheKey, Priority

logger = get_logger(__name__)

SNAPSHOT_VERSION = 3


class EntryRecord(BaseModel):
    options: Dict[str, Any] = Field(default_factory=dict)
    created_at: float
    last_accessed_at: float
    priority: Priority = Priority.NORMAL
    size_estimate_bytes: int = Field(0, ge=0)


class CacheSnapshot(BaseModel):
    version: int
    entries: List[Tuple[str, EntryRecord]] = Field(default_factory=list)
    stats: CacheStats = Field(default_factory=CacheStats)
    saved_at: float = 0.0


class CacheIndex:
    def __init__(self):
        self._entries: Dict[CacheKey, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries

    def lookup(self, key: CacheKey) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def record(self, key: CacheKey, size_estimate: int, priority: Priority, now: float) -> CacheEntry:
        """Создать запись или освежить last_accessed_at у существующей."""
        entry = self._entries.get(key)
        if entry is None:
            entry = CacheEntry(key, created_at=now, priority=priority,
                               size_estimate_bytes=max(0, size_estimate))
            self._entries[key] = entry
            logger.debug(f"INDEX NEW {key} ({entry.size_estimate_bytes}B, {entry.priority.value})")
        else:
            entry.touch(now)
            entry.priority = Priority.coerce(priority)
            entry.size_estimate_bytes = max(0, size_estimate)
            logger.debug(f"INDEX REFRESH {key}")
        return entry

    def touch(self, key: CacheKey, now: float) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is not None:
            entry.touch(now)
        return entry

    def remove(self, keys: Iterable[CacheKey]) -> int:
        removed = 0
        for key in keys:
            if self._entries.pop(key, None) is not None:
                removed += 1
        return removed

    def clear(self) -> None:
        self._entries.clear()

    def entries(self) -> List[CacheEntry]:
        return list(self._entries.values())

    def total_size(self) -> int:
        return sum(e.size_estimate_bytes for e in self._entries.values())

    def priority_distribution(self) -> Dict[str, int]:
        dist = {p.value: 0 for p in Priority}
        dist.update(Counter(e.priority.value for e in self._entries.values()))
        return dist

    # ------------------------------------------------------------------ #
    #   Снимок                                                           #
    # ------------------------------------------------------------------ #
    def snapshot(self, stats: Optional[CacheStats] = None, saved_at: float = 0.0) -> str:
        snap = CacheSnapshot(
            version=SNAPSHOT_VERSION,
            entries=[
                (e.url, EntryRecord(
                    options=e.key.options_dict(),
                    created_at=e.created_at,
                    last_accessed_at=e.last_accessed_at,
                    priority=e.priority,
                    size_estimate_bytes=e.size_estimate_bytes,
                ))
                for e in self._entries.values()
            ],
            stats=stats or CacheStats(),
            saved_at=saved_at,
        )
        return snap.model_dump_json()

    def restore(self, blob: Optional[str]) -> Optional[CacheStats]:
        """
        Заменить содержимое индекса снимком.

        :return: сохранённые счётчики, либо None, если снимок пришлось
                 отбросить (индекс при этом пуст).
        """
        self._entries.clear()
        if blob is None:
            return None
        try:
            snap = self._decode(blob)
        except PersistenceReadError as exc:
            logger.warning(f"cache snapshot ignored, cold start: {exc}")
            return None

        for url, rec in snap.entries:
            key = CacheKey.from_record(url, rec.options)
            self._entries[key] = CacheEntry(
                key,
                created_at=rec.created_at,
                priority=rec.priority,
                size_estimate_bytes=rec.size_estimate_bytes,
                last_accessed_at=rec.last_accessed_at,
            )
        logger.info(f"cache snapshot restored: {len(self._entries)} entries (saved_at={snap.saved_at:.0f})")
        return snap.stats

    @staticmethod
    def _decode(blob: str) -> CacheSnapshot:
        try:
            data = json.loads(blob)
        except (TypeError, ValueError) as exc:
            raise PersistenceReadError(f"corrupt snapshot: {exc}") from exc

        if not isinstance(data, dict):
            raise PersistenceReadError("snapshot is not an object")
        version = data.get("version")
        if version != SNAPSHOT_VERSION:
            raise PersistenceReadError(f"snapshot version {version!r} != {SNAPSHOT_VERSION}")

        try:
            return CacheSnapshot.model_validate(data)
        except ValidationError as exc:
            raise PersistenceReadError(f"invalid snapshot: {exc.error_count()} errors") from exc
