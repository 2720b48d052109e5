# image_cache/models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from image_cache.errors import InvalidInputError

DAY = 86_400.0


class Priority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"

    @classmethod
    def coerce(cls, value: Union["Priority", str]) -> "Priority":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise InvalidInputError(f"unknown priority {value!r}") from None


@dataclass(frozen=True)
class PriorityProfile:
    """
    rank        - порядок при выборе жертвы (меньше - вытесняется раньше);
    concurrency - размер волны по умолчанию;
    staleness   - предел «неиспользования» для приоритета (None - только max_age).
    """
    rank: int
    concurrency: int
    staleness: Optional[float]


# Высокий приоритет - маленькие волны (чувствительны к задержке),
# низкий - широкие фоновые прогревы.
PRIORITY_PROFILES: Dict[Priority, PriorityProfile] = {
    Priority.LOW: PriorityProfile(rank=0, concurrency=8, staleness=30 * DAY),
    Priority.NORMAL: PriorityProfile(rank=1, concurrency=5, staleness=None),
    Priority.HIGH: PriorityProfile(rank=2, concurrency=3, staleness=None),
}


def priority_profile(priority: Union[Priority, str]) -> PriorityProfile:
    return PRIORITY_PROFILES[Priority.coerce(priority)]


@dataclass(frozen=True)
class CacheKey:
    """
    Составной ключ кеша: url + опции трансформации (ширина, формат, ...).
    Сравнивается структурно, в строку для идентичности не склеивается.
    """
    url: str
    options: Tuple[Tuple[str, Any], ...] = ()

    @classmethod
    def of(cls, url: str, **options: Any) -> "CacheKey":
        return cls(url, tuple(sorted(options.items())))

    @classmethod
    def from_record(cls, url: str, options: Optional[Dict[str, Any]]) -> "CacheKey":
        return cls.of(url, **(options or {}))

    def options_dict(self) -> Dict[str, Any]:
        return dict(self.options)

    def __str__(self):
        if not self.options:
            return self.url
        opts = ",".join(f"{k}={v}" for k, v in self.options)
        return f"{self.url}[{opts}]"


KeyLike = Union[str, CacheKey]


def as_key(value: KeyLike) -> CacheKey:
    if isinstance(value, CacheKey):
        return value
    if isinstance(value, str):
        return CacheKey(value)
    raise InvalidInputError(f"expected url string or CacheKey, got {type(value).__name__}")


class CacheEntry:
    """
    Метаданные ранее загруженного изображения.
    Attributes:
        key: составной ключ (уникален в индексе).
        created_at: момент первой успешной загрузки.
        last_accessed_at: момент последнего обращения (>= created_at).
        priority: приоритет, с которым запись попала в кеш.
        size_estimate_bytes: оценка размера, >= 0.
    """
    __slots__ = ("key", "created_at", "last_accessed_at", "priority", "size_estimate_bytes")

    def __init__(
            self,
            key: CacheKey,
            created_at: float,
            priority: Priority = Priority.NORMAL,
            size_estimate_bytes: int = 0,
            last_accessed_at: Optional[float] = None,
    ):
        if size_estimate_bytes < 0:
            raise ValueError("size_estimate_bytes must be non-negative")
        self.key = key
        self.created_at = created_at
        self.last_accessed_at = max(created_at, last_accessed_at if last_accessed_at is not None else created_at)
        self.priority = Priority.coerce(priority)
        self.size_estimate_bytes = size_estimate_bytes

    @property
    def url(self) -> str:
        return self.key.url

    def touch(self, now: float) -> None:
        self.last_accessed_at = max(self.created_at, now)

    def __repr__(self):
        return (
            f"CacheEntry({self.key}, created={self.created_at:.2f}, "
            f"accessed={self.last_accessed_at:.2f}, {self.priority.value}, "
            f"{self.size_estimate_bytes}B)"
        )
