"""
Pydantic-конфиг проекта.

Все разделы, кроме logging/simulator/output, имеют значения по умолчанию,
поэтому ImageCacheService можно собрать и без YAML-файла (тесты, встраивание).
"""

import os
from typing import Optional, Literal

import yaml
from pydantic import BaseModel, Field

DAY = 86_400.0


# ---------- логирование ----------
class FileLogConfig(BaseModel):
    path: str
    max_bytes: int = Field(..., alias="max_bytes")
    backup_count: int
    level: str
    fmt: str = Field(..., alias="format")


class ConsoleLogConfig(BaseModel):
    level: str
    fmt: str = Field(..., alias="format")


class LoggingConfig(BaseModel):
    file: FileLogConfig
    console: ConsoleLogConfig
    date_format: str


# ---------- кеш ----------
class CacheConfig(BaseModel):
    memory_capacity: int = Field(50, ge=1)  # N для MemoryWindow
    max_age: float = 7 * DAY
    low_priority_staleness: float = 30 * DAY
    max_entries: int = Field(1000, ge=0)
    cleanup_interval: float = DAY  # период фоновой очистки
    periodic_mode: Literal["memory", "full"] = "full"
    memory_trim_target: int = Field(0, ge=0)
    inter_wave_pause: float = 0.01  # пауза между волнами, сек
    schedule_on_miss: bool = True
    validate_urls: bool = False
    store_key: str = "image_cache_metadata"


# ---------- хранилище ----------
class StoreConfig(BaseModel):
    backend: Literal["memory", "json_file"] = "memory"
    path: str = "data/cache_store"


# ---------- симулированный источник изображений ----------
class SourceConfig(BaseModel):
    min_latency: float = 0.05
    max_latency: float = 0.4
    failure_rate: float = Field(0.02, ge=0.0, le=1.0)
    connections: int = Field(6, ge=1)
    min_size: int = 8 * 1024
    max_size: int = 512 * 1024


# ---------- симулятор ----------
class SimulatorConfig(BaseModel):
    random_seed: int
    sim_time: float
    arrival_rate: float  # визиты экранов в секунду
    catalogue_size: int = 2_000
    page_size: int = 12
    zipf_a: float = 1.3
    prefetch_pages: int = 1
    sample_interval: float = 60.0
    start_time: float = 0.0
    clock_origin: Optional[float] = None  # None - текущее время при старте
    client_prefix: str = "Viewer"


# ---------- вывод ----------
class OutputConfig(BaseModel):
    path: str
    plot: bool = False


class Settings(BaseModel):
    logging: Optional[LoggingConfig] = None
    cache: CacheConfig = Field(default_factory=CacheConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    source: SourceConfig = Field(default_factory=SourceConfig)
    simulator: Optional[SimulatorConfig] = None
    output: Optional[OutputConfig] = None

    # загрузка из YAML
    @classmethod
    def load(cls, path: str | None = None) -> "Settings":
        yaml_path = path or os.getenv("CONFIG_PATH", "config/default.yaml")
        with open(yaml_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return cls.model_validate(data)
