# tests/unit/test_shopping_list.py

import json

from listsync.schemas.items import ChangeKind, ListChange, ShoppingItem
from listsync.services.shopping_list import ShoppingListStore


def _collect(store: ShoppingListStore) -> list[ListChange]:
    seen: list[ListChange] = []
    store.add_listener(seen.append)
    return seen


class TestUserEntryPoints:

    def test_add_emits_change_with_item(self):
        store = ShoppingListStore()
        seen = _collect(store)

        item = store.add_item("Milk", category="dairy", quantity=2, unit="l")

        assert [i.name for i in store.items] == ["Milk"]
        assert len(seen) == 1
        assert seen[0].kind == ChangeKind.ADD
        assert seen[0].item.id == item.id
        assert seen[0].item.quantity == 2

    def test_toggle_flips_checked(self):
        store = ShoppingListStore()
        item = store.add_item("Bread")
        seen = _collect(store)

        store.toggle_item(item.id)
        assert store.get(item.id).is_checked is True
        store.toggle_item(item.id)
        assert store.get(item.id).is_checked is False
        assert [c.kind for c in seen] == [ChangeKind.TOGGLE, ChangeKind.TOGGLE]

    def test_toggle_of_unknown_id_emits_nothing(self):
        store = ShoppingListStore()
        store.add_item("Bread")
        seen = _collect(store)

        store.toggle_item(ShoppingItem(name="ghost").id)
        assert seen == []
        assert [i.is_checked for i in store.items] == [False]

    def test_remove_and_clear_checked(self):
        store = ShoppingListStore()
        a = store.add_item("A")
        b = store.add_item("B")
        c = store.add_item("C")
        store.toggle_item(b.id)

        store.clear_checked()
        assert [i.id for i in store.items] == [a.id, c.id]

        store.remove_item(a.id)
        assert [i.id for i in store.items] == [c.id]

    def test_replace_all_keeps_given_order(self):
        store = ShoppingListStore()
        store.add_item("old")
        fresh = [ShoppingItem(name="x"), ShoppingItem(name="y")]

        store.replace_all(fresh)
        assert [i.name for i in store.items] == ["x", "y"]

    def test_items_are_copies(self):
        store = ShoppingListStore()
        item = store.add_item("Eggs")
        snapshot = store.items
        snapshot[0].name = "changed"
        assert store.get(item.id).name == "Eggs"

    def test_removed_listener_is_not_called(self):
        store = ShoppingListStore()
        seen: list[ListChange] = []
        store.add_listener(seen.append)
        store.remove_listener(seen.append)
        store.add_item("x")
        assert seen == []

    def test_failing_listener_does_not_block_others(self):
        store = ShoppingListStore()
        seen: list[ListChange] = []

        def broken(change):
            raise RuntimeError("boom")

        store.add_listener(broken)
        store.add_listener(seen.append)
        store.add_item("x")
        assert len(seen) == 1


class TestExternalChanges:

    def test_external_change_never_emits(self):
        store = ShoppingListStore()
        seen = _collect(store)

        store.apply_external_change(ListChange.replace_all([ShoppingItem(name="remote")]))
        store.apply_external_change(ListChange.add(ShoppingItem(name="other")))

        assert [i.name for i in store.items] == ["remote", "other"]
        assert seen == []

    def test_external_add_of_known_id_overwrites(self):
        store = ShoppingListStore()
        item = store.add_item("Milk")
        store.apply_external_change(ListChange.add(item.model_copy(update={"name": "Oat milk"})))
        assert [i.name for i in store.items] == ["Oat milk"]

    def test_toggle_of_unknown_id_is_ignored(self):
        store = ShoppingListStore()
        store.add_item("x")
        store.apply_external_change(ListChange.toggle(ShoppingItem(name="ghost").id))
        assert [i.is_checked for i in store.items] == [False]


class TestPersistence:

    def test_items_survive_a_restart(self, tmp_path):
        path = str(tmp_path / "list.json")
        store = ShoppingListStore(path)
        milk = store.add_item("Milk")
        store.toggle_item(milk.id)

        reopened = ShoppingListStore(path)
        assert [(i.id, i.name, i.is_checked) for i in reopened.items] == [(milk.id, "Milk", True)]

    def test_file_holds_a_json_array(self, tmp_path):
        path = tmp_path / "list.json"
        store = ShoppingListStore(str(path))
        store.add_item("Milk")

        data = json.loads(path.read_text(encoding="utf-8"))
        assert isinstance(data, list)
        assert data[0]["name"] == "Milk"

    def test_unreadable_file_is_ignored(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("{not json", encoding="utf-8")

        store = ShoppingListStore(str(path))
        assert store.items == []
        store.add_item("fresh")
        assert [i.name for i in ShoppingListStore(str(path)).items] == ["fresh"]
