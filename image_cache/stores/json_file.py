# image_cache/stores/json_file.py

import os
import re
from pathlib import Path
from typing import Optional

from image_cache.errors import PersistenceReadError, PersistenceWriteError
from image_cache.logger import get_logger
from image_cache.stores.base import PersistentStore

logger = get_logger(__name__)

_SAFE_KEY = re.compile(r"[^A-Za-z0-9_.-]")


class JsonFileStore(PersistentStore):
    """
    Один ключ - один файл <directory>/<key>.json.

    Запись идёт во временный файл с последующим os.replace, чтобы сбой
    посреди записи не оставлял обрезанный снимок.
    """

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{_SAFE_KEY.sub('_', key)}.json"

    def load(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            with open(path, "r", encoding="utf-8") as f:
                return f.read()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise PersistenceReadError(f"cannot read {path}: {exc}") from exc

    def save(self, key: str, blob: str) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                f.write(blob)
            os.replace(tmp, path)
        except OSError as exc:
            raise PersistenceWriteError(f"cannot write {path}: {exc}") from exc
        logger.debug(f"snapshot written to {path} ({len(blob)} chars)")

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise PersistenceWriteError(f"cannot delete {path}: {exc}") from exc
