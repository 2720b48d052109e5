# image_cache/errors.py

"""
Классы ошибок подсистемы кеширования изображений.

Наружу (синхронно) поднимается только InvalidInputError - это ошибка
программиста. Остальные ловятся внутри сервиса, логируются и деградируют
в «медленнее, но корректно».
"""


class ImageCacheError(Exception):
    """Базовая ошибка подсистемы."""


class TransientFetchError(ImageCacheError):
    """Не удалось загрузить один url. Повтора в рамках батча нет."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"fetch failed for {url}: {reason}")
        self.url = url
        self.reason = reason


class PersistenceReadError(ImageCacheError):
    """Снимок отсутствует, повреждён или другой версии."""


class PersistenceWriteError(ImageCacheError):
    """Не удалось сохранить снимок; повторим при следующем flush."""


class InvalidInputError(ImageCacheError, ValueError):
    """Структурно некорректный запрос (например, urls - не последовательность)."""
