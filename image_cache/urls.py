# image_cache/urls.py

import re

_SCHEME = re.compile(r"^https?://", re.IGNORECASE)
_IMAGE_EXT = re.compile(r"\.(jpg|jpeg|png|gif|webp|svg|bmp|avif)(\?.*)?$", re.IGNORECASE)


def is_valid_image_url(url) -> bool:
    """http(s)-адрес с расширением изображения (query-строка допускается)."""
    if not url or not isinstance(url, str):
        return False
    return bool(_SCHEME.match(url)) and bool(_IMAGE_EXT.search(url))
