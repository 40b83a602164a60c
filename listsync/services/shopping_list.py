# listsync/services/shopping_list.py
# Local, ordered shopping list with optional JSON file persistence

from __future__ import annotations

import json
import logging
import os
from typing import Callable, Optional
from uuid import UUID

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from listsync.schemas.items import ChangeKind, ListChange, ShoppingItem
from listsync.utils.logger import log_exception

logger = logging.getLogger(__name__)

ChangeListener = Callable[[ListChange], None]

_items_adapter = TypeAdapter(list[ShoppingItem])


class ShoppingListStore:
    """
    Owns the item collection of one device.

    User entry points (add_item, remove_item, ...) mutate, persist and notify
    listeners with the ListChange that happened. apply_external_change performs
    the same mutation for changes that came from the record store and never
    notifies, so replicated state does not echo back out.
    """

    def __init__(self, storage_path: Optional[str] = None):
        self.storage_path = storage_path
        self._items: list[ShoppingItem] = []
        self._listeners: list[ChangeListener] = []
        if storage_path:
            self._load()

    # ---------- reads ----------

    @property
    def items(self) -> list[ShoppingItem]:
        return [item.model_copy() for item in self._items]

    def get(self, item_id: UUID) -> Optional[ShoppingItem]:
        index = self._index_of(item_id)
        return self._items[index].model_copy() if index is not None else None

    def __len__(self) -> int:
        return len(self._items)

    # ---------- listeners ----------

    def add_listener(self, listener: ChangeListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ---------- user entry points ----------

    def add_item(
        self,
        name: str,
        category: str = "other",
        quantity: int = 1,
        unit: str = "pc",
    ) -> ShoppingItem:
        item = ShoppingItem(name=name.strip(), category=category, quantity=quantity, unit=unit)
        self._commit(ListChange.add(item))
        return item.model_copy()

    def remove_item(self, item_id: UUID) -> None:
        self._commit(ListChange.remove(item_id))

    def toggle_item(self, item_id: UUID) -> None:
        """Flip is_checked. Unknown ids are ignored and emit nothing."""
        if self.get(item_id) is None:
            return
        self._commit(ListChange.toggle(item_id))

    def clear_checked(self) -> None:
        self._commit(ListChange.clear_checked())

    def replace_all(self, items: list[ShoppingItem]) -> None:
        self._commit(ListChange.replace_all(items))

    # ---------- replicated changes ----------

    def apply_external_change(self, change: ListChange) -> None:
        """Apply a change that originated elsewhere. Listeners are not notified."""
        self._apply(change)
        self._save()

    # ---------- internals ----------

    def _commit(self, change: ListChange) -> None:
        self._apply(change)
        self._save()
        self._emit(change)

    def _apply(self, change: ListChange) -> None:
        if change.kind == ChangeKind.ADD and change.item is not None:
            index = self._index_of(change.item.id)
            if index is None:
                self._items.append(change.item.model_copy())
            else:
                self._items[index] = change.item.model_copy()
        elif change.kind == ChangeKind.REMOVE and change.item_id is not None:
            self._items = [item for item in self._items if item.id != change.item_id]
        elif change.kind == ChangeKind.TOGGLE and change.item_id is not None:
            index = self._index_of(change.item_id)
            if index is not None:
                current = self._items[index]
                self._items[index] = current.model_copy(update={"is_checked": not current.is_checked})
        elif change.kind == ChangeKind.CLEAR_CHECKED:
            self._items = [item for item in self._items if not item.is_checked]
        elif change.kind == ChangeKind.REPLACE_ALL:
            self._items = [item.model_copy() for item in change.items or []]

    def _emit(self, change: ListChange) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception as e:
                log_exception(e, "ShoppingListStore listener")

    def _index_of(self, item_id: UUID) -> Optional[int]:
        for index, item in enumerate(self._items):
            if item.id == item_id:
                return index
        return None

    # ---------- persistence ----------

    def _load(self) -> None:
        if not os.path.exists(self.storage_path):
            return
        try:
            with open(self.storage_path, "r", encoding="utf-8") as fh:
                self._items = _items_adapter.validate_python(json.load(fh))
        except (OSError, ValueError, PydanticValidationError) as e:
            logger.warning(f"Ignoring unreadable list file {self.storage_path}: {e}")
            self._items = []

    def _save(self) -> None:
        if not self.storage_path:
            return
        directory = os.path.dirname(self.storage_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.storage_path}.tmp"
        with open(tmp_path, "wb") as fh:
            fh.write(_items_adapter.dump_json(self._items, indent=2))
        os.replace(tmp_path, self.storage_path)
