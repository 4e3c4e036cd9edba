"""Menu document store and input normalization.

Admins upload menus in a few historical shapes. Every accepted shape is
normalized into one canonical ``MenuDocument`` before validation; the store
only ever holds canonical documents.
"""

import threading
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from flavourhub.common.errors import ValidationError


class MenuItem(BaseModel):
    """One dish. ``price`` is in minor units."""

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    price: int = Field(ge=0, strict=True)
    description: str | None = None
    image: str | None = None
    available: bool = True


class MenuCategory(BaseModel):
    name: str = Field(min_length=1)
    items: list[MenuItem] = []


class MenuDocument(BaseModel):
    """Canonical menu representation."""

    model_config = ConfigDict(populate_by_name=True)

    categories: list[MenuCategory]
    updated_at: str | None = Field(default=None, alias="updatedAt")


def _from_flat_items(items: Any) -> dict[str, Any]:
    if not isinstance(items, list):
        raise ValidationError("Menu items must be a list.")
    grouped: dict[str, list[dict[str, Any]]] = {}
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError("Each menu item must be an object.")
        item = dict(item)
        category = item.pop("category", None) or "Uncategorized"
        grouped.setdefault(str(category), []).append(item)
    return {"categories": [{"name": name, "items": entries} for name, entries in grouped.items()]}


def normalize_menu_document(payload: Any, _depth: int = 0) -> MenuDocument:
    """Turn any accepted upload shape into a validated ``MenuDocument``.

    Accepted: ``{"categories": [...]}``, ``{"menu": <shape>}``, a bare list of
    categories, or ``{"items": [...]}`` with a ``category`` on each item.
    """

    if _depth > 1:
        raise ValidationError("Menu document is nested too deeply.")
    if isinstance(payload, list):
        raw: Any = {"categories": payload}
    elif isinstance(payload, dict) and "categories" in payload:
        raw = {"categories": payload["categories"]}
    elif isinstance(payload, dict) and "menu" in payload:
        return normalize_menu_document(payload["menu"], _depth + 1)
    elif isinstance(payload, dict) and "items" in payload:
        raw = _from_flat_items(payload["items"])
    else:
        raise ValidationError("Unrecognized menu document shape.")

    try:
        document = MenuDocument.model_validate(raw)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid menu document: {exc.error_count()} problem(s).") from exc

    seen: set[str] = set()
    for category in document.categories:
        for item in category.items:
            if item.id in seen:
                raise ValidationError(f"Duplicate menu item id {item.id}.")
            seen.add(item.id)
    return document


class InMemoryMenuStore:
    """Holds the current menu; writes replace the whole document under a lock."""

    def __init__(self, initial: MenuDocument | None = None) -> None:
        self._document = initial or MenuDocument(categories=[])
        self._lock = threading.Lock()

    def get(self) -> MenuDocument:
        with self._lock:
            return self._document.model_copy(deep=True)

    def save(self, payload: Any) -> MenuDocument:
        document = normalize_menu_document(payload)
        document.updated_at = datetime.now(timezone.utc).isoformat()
        with self._lock:
            self._document = document
            return document.model_copy(deep=True)
