# listsync/schemas/items.py
# Shopping list items and the change events exchanged with the sync engine

from __future__ import annotations

from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class ShoppingItem(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    name: str
    category: str = "other"
    is_checked: bool = False
    quantity: int = 1
    unit: str = "pc"


class ChangeKind(str, Enum):
    ADD = "add"
    REMOVE = "remove"
    TOGGLE = "toggle"
    CLEAR_CHECKED = "clearChecked"
    REPLACE_ALL = "replaceAll"


class ListChange(BaseModel):
    """One mutation of the list. Which payload field is set depends on `kind`."""
    kind: ChangeKind
    item: Optional[ShoppingItem] = None
    item_id: Optional[UUID] = None
    items: Optional[list[ShoppingItem]] = None

    @classmethod
    def add(cls, item: ShoppingItem) -> "ListChange":
        return cls(kind=ChangeKind.ADD, item=item)

    @classmethod
    def remove(cls, item_id: UUID) -> "ListChange":
        return cls(kind=ChangeKind.REMOVE, item_id=item_id)

    @classmethod
    def toggle(cls, item_id: UUID) -> "ListChange":
        return cls(kind=ChangeKind.TOGGLE, item_id=item_id)

    @classmethod
    def clear_checked(cls) -> "ListChange":
        return cls(kind=ChangeKind.CLEAR_CHECKED)

    @classmethod
    def replace_all(cls, items: list[ShoppingItem]) -> "ListChange":
        return cls(kind=ChangeKind.REPLACE_ALL, items=list(items))
