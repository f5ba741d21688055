"""
Menu category fallback.

When a restaurant has menu items but never created category records, the
menu still needs tabs. `derive_categories` rebuilds them from the items.
"""

import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    item_count: int


def _slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def derive_categories(items: Iterable[Mapping[str, Any]]) -> list[Category]:
    """
    Build categories from the `category` field of menu items.

    Names are compared case-insensitively after trimming; the first spelling
    seen wins and categories keep the order of their first appearance.
    Items without a category are skipped.
    """
    names: dict[str, str] = {}
    counts: dict[str, int] = {}

    for item in items:
        raw = item.get("category")
        if not raw or not str(raw).strip():
            continue
        name = str(raw).strip()
        key = name.lower()
        names.setdefault(key, name)
        counts[key] = counts.get(key, 0) + 1

    return [
        Category(id=_slugify(name), name=name, item_count=counts[key])
        for key, name in names.items()
    ]
