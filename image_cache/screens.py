# image_cache/screens.py

"""
Предзагрузка по типу экрана: какие поля элементов содержат url
изображений и с каким приоритетом их грузить.

Путь поля - точки между ключами словаря, «[]» раскрывает список:
"menu_items[].profile_image".
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple

from image_cache.models import Priority

SCREEN_PROFILES: Dict[str, Tuple[Priority, Tuple[str, ...]]] = {
    # часто открываемые экраны - высокий приоритет
    "favorites": (Priority.HIGH, ("store.image_url", "profile_image")),
    "checkout": (Priority.HIGH, ("menu_item.profile_image",)),
    "coupon": (Priority.NORMAL, ("image_url", "store.image_url")),
    "menu": (Priority.NORMAL, ("profile_image", "store.image_url")),
    "store": (Priority.NORMAL, ("image_url", "cover_image", "menu_items[].profile_image")),
}


def _resolve(item: Any, parts: List[str]) -> List[Any]:
    if not parts:
        return [item]
    head, rest = parts[0], parts[1:]
    expand = head.endswith("[]")
    name = head[:-2] if expand else head
    if not isinstance(item, dict):
        return []
    value = item.get(name)
    if value is None:
        return []
    if expand:
        if not isinstance(value, (list, tuple)):
            return []
        out = []
        for sub in value:
            out.extend(_resolve(sub, rest))
        return out
    return _resolve(value, rest)


def extract_urls(items: Iterable[Dict[str, Any]], paths: Iterable[str]) -> List[str]:
    paths = [p.split(".") for p in paths]
    urls = []
    for item in items or ():
        for parts in paths:
            urls.extend(v for v in _resolve(item, parts) if isinstance(v, str) and v)
    return urls


def collect_screen_urls(screen: str, items: Iterable[Dict[str, Any]]) -> Optional[Tuple[List[str], Priority]]:
    """url изображений экрана и приоритет; None для неизвестного экрана."""
    profile = SCREEN_PROFILES.get(screen)
    if profile is None:
        return None
    priority, paths = profile
    return extract_urls(items, paths), priority
