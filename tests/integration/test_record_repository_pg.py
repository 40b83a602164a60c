# tests/integration/test_record_repository_pg.py
# RecordRepository against containerized PostgreSQL.

from datetime import timedelta

import pytest

from listsync.clients.local_store import LocalRecordStore
from listsync.constants import PUBLIC_ZONE
from listsync.errors import (
    AccountUnavailableError,
    PermissionDeniedError,
    RecordNotFoundError,
    ShareNotFoundError,
    SubscriptionExistsError,
    ZoneConflictError,
    ZoneNotFoundError,
)
from listsync.repositories.record_repository import RecordRepository
from listsync.schemas.records import DatabaseScope, Predicate, Record, RecordID, SortDescriptor, Subscription
from listsync.services.chat_replicator import ChatLog, ChatReplicator
from listsync.services.code_exchange import CodeExchange
from listsync.services.list_replicator import ListReplicator
from listsync.services.shopping_list import ShoppingListStore
from listsync.utils.timestamps import utcnow

pytestmark = pytest.mark.integration


def _record(name: str, zone: str = "lb-1", record_type: str = "ListItem", **data) -> Record:
    return Record(record_type=record_type, record_id=RecordID(record_name=name, zone_name=zone), data=data)


@pytest.mark.asyncio
async def test_zone_ownership_and_access(clean_db):
    repo = RecordRepository()
    zone = await repo.create_zone("alice", "lb-1")
    assert zone.owner == "alice"
    assert await repo.create_zone("alice", "lb-1") == zone

    with pytest.raises(ZoneConflictError):
        await repo.create_zone("bob", "lb-1")
    with pytest.raises(PermissionDeniedError):
        await repo.query("bob", "lb-1", "ListItem")
    with pytest.raises(ZoneNotFoundError):
        await repo.fetch("alice", RecordID(record_name="x", zone_name="lb-404"))
    with pytest.raises(AccountUnavailableError):
        await repo.check_account("")


@pytest.mark.asyncio
async def test_upsert_keeps_creation_time_and_order(clean_db):
    repo = RecordRepository()
    await repo.create_zone("alice", "lb-1")
    first = await repo.save("alice", _record("b", n=1))
    await repo.save("alice", _record("a", n=1))
    again = await repo.save("alice", _record("b", n=2))

    assert again.created_at == first.created_at
    assert again.get("n") == 2
    found = await repo.query("alice", "lb-1", "ListItem")
    assert [r.record_id.record_name for r in found] == ["b", "a"]

    await repo.delete("alice", RecordID(record_name="b", zone_name="lb-1"))
    await repo.delete("alice", RecordID(record_name="b", zone_name="lb-1"))
    with pytest.raises(RecordNotFoundError):
        await repo.fetch("alice", RecordID(record_name="b", zone_name="lb-1"))

    # One modify batch shares a timestamp; new records still come back in batch
    # order and "a", saved earlier, keeps its place
    await repo.modify("alice", [_record(n, n=0) for n in ("m", "c", "x", "a")], [])
    await repo.modify("alice", [_record("c", n=9)], [])
    found = await repo.query("alice", "lb-1", "ListItem")
    assert [r.record_id.record_name for r in found] == ["a", "m", "c", "x"]
    assert found[2].get("n") == 9


@pytest.mark.asyncio
async def test_jsonb_predicate_and_sort(clean_db):
    repo = RecordRepository()
    await repo.create_zone("alice", "lb-1")
    for name, stamp in (
        ("x", "2024-01-01T00:00:03.000000+00:00"),
        ("y", "2024-01-01T00:00:01.000000+00:00"),
        ("z", "2024-01-01T00:00:02.000000+00:00"),
    ):
        await repo.save("alice", _record(name, record_type="ChatMessage", timestamp=stamp))

    found = await repo.query(
        "alice", "lb-1", "ChatMessage",
        predicate=Predicate(field="timestamp", op="gt", value="2024-01-01T00:00:01.000000+00:00"),
        sort=[SortDescriptor(field="timestamp", ascending=True)],
    )
    assert [r.record_id.record_name for r in found] == ["z", "x"]

    descending = await repo.query(
        "alice", "lb-1", "ChatMessage", sort=[SortDescriptor(field="timestamp", ascending=False)],
    )
    assert [r.record_id.record_name for r in descending] == ["x", "z", "y"]


@pytest.mark.asyncio
async def test_modify_and_purge(clean_db):
    repo = RecordRepository()
    await repo.create_zone("alice", "lb-1")
    await repo.save("alice", _record("old"))

    saved, deleted = await repo.modify("alice", [_record("new")], [RecordID(record_name="old", zone_name="lb-1")])
    assert [r.record_id.record_name for r in saved] == ["new"]
    assert [d.record_name for d in deleted] == ["old"]

    await repo.save("alice", _record("123456", PUBLIC_ZONE, "ShareCode", locator="l"))
    assert await repo.purge_records(PUBLIC_ZONE, "ShareCode", utcnow() - timedelta(hours=1)) == 0
    assert await repo.purge_records(PUBLIC_ZONE, "ShareCode", utcnow() + timedelta(seconds=1)) == 1


@pytest.mark.asyncio
async def test_shares_and_subscriptions(clean_db):
    repo = RecordRepository()
    await repo.create_zone("alice", "lb-1")
    root = _record("list", record_type="ListRoot", code="1")
    locator = await repo.create_share("alice", root)
    assert await repo.create_share("alice", root) == locator

    metadata = await repo.fetch_share_metadata("bob", locator)
    assert (await repo.accept_share("bob", metadata)).scope == DatabaseScope.SHARED
    assert (await repo.accept_share("bob", metadata)).scope == DatabaseScope.SHARED
    assert (await repo.accept_share("alice", metadata)).scope == DatabaseScope.PRIVATE
    assert await repo.list_participants("bob", "lb-1") == ["alice", "bob"]

    with pytest.raises(ShareNotFoundError):
        await repo.fetch_share_metadata("bob", "listsync://share/lb-1/unknown")

    sub = Subscription(subscription_id="lb-chat-lb-1", zone_name="lb-1", record_type="ChatMessage")
    await repo.save_subscription("bob", sub)
    with pytest.raises(SubscriptionExistsError):
        await repo.save_subscription("bob", sub)
    await repo.delete_subscription("bob", "lb-chat-lb-1")


@pytest.mark.asyncio
async def test_replication_end_to_end(clean_db):
    repo = RecordRepository()
    alice = LocalRecordStore(repo, "alice")
    bob = LocalRecordStore(repo, "bob")

    await CodeExchange(alice).publish("482913")
    zone = await CodeExchange(bob).resolve("482913")

    host_list = ShoppingListStore()
    host_list.add_item("Milk")
    host_errors: list[str] = []
    await ListReplicator(alice, zone, host_list, on_error=host_errors.append).push_snapshot()

    joiner_list = ShoppingListStore()
    await ListReplicator(bob, zone, joiner_list, on_error=host_errors.append).pull()
    assert [i.name for i in joiner_list.items] == ["Milk"]

    host_chat = ChatReplicator(alice, zone, "Alice's phone", ChatLog(), on_error=host_errors.append)
    await host_chat.publish(host_chat.compose("Milk?"))
    joiner_chat = ChatReplicator(bob, zone, "Bob's phone", ChatLog(), on_error=host_errors.append)
    assert await joiner_chat.pull() == 1
    assert await joiner_chat.pull() == 0
    assert host_errors == []
