# tests/conftest.py
# Shared fixtures: an in-memory record store, per-user clients and a
# transport that only pulls when the test says so.

from typing import Optional

import pytest

from listsync.clients.local_store import LocalRecordStore
from listsync.repositories.memory_repository import MemoryRecordRepository
from listsync.services.session_manager import SyncSession
from listsync.services.shopping_list import ShoppingListStore
from listsync.services.transport import SyncTransport


class RecordingStore(LocalRecordStore):
    """LocalRecordStore that remembers every call and can be told to fail."""

    def __init__(self, repository, user_id):
        super().__init__(repository, user_id)
        self.calls: list[str] = []
        self.failures: dict[str, Exception] = {}

    def _track(self, name: str) -> None:
        self.calls.append(name)
        error = self.failures.get(name)
        if error is not None:
            raise error

    def reset_calls(self) -> None:
        self.calls.clear()

    async def account_status(self):
        self._track("account_status")
        return await super().account_status()

    async def fetch(self, record_id):
        self._track("fetch")
        return await super().fetch(record_id)

    async def save(self, record):
        self._track("save")
        return await super().save(record)

    async def delete(self, record_id):
        self._track("delete")
        return await super().delete(record_id)

    async def modify(self, save, delete_ids):
        self._track("modify")
        return await super().modify(save, delete_ids)

    async def query(self, record_type, zone_name, predicate=None, sort=None):
        self._track("query")
        return await super().query(record_type, zone_name, predicate, sort)

    async def create_zone(self, zone_name):
        self._track("create_zone")
        return await super().create_zone(zone_name)

    async def list_participants(self, zone_name):
        self._track("list_participants")
        return await super().list_participants(zone_name)

    async def create_share(self, root):
        self._track("create_share")
        return await super().create_share(root)

    async def fetch_share_metadata(self, locator):
        self._track("fetch_share_metadata")
        return await super().fetch_share_metadata(locator)

    async def accept_share(self, metadata):
        self._track("accept_share")
        return await super().accept_share(metadata)

    async def save_subscription(self, subscription):
        self._track("save_subscription")
        return await super().save_subscription(subscription)

    async def delete_subscription(self, subscription_id):
        self._track("delete_subscription")
        return await super().delete_subscription(subscription_id)


class ManualTransport(SyncTransport):
    """Never fires by itself; tests call tick() to run one pull of each kind."""

    def __init__(self):
        self.pull_list = None
        self.pull_chat = None
        self.starts = 0
        self.stops = 0

    @property
    def running(self) -> bool:
        return self.pull_list is not None

    def start(self, pull_list, pull_chat) -> None:
        self.starts += 1
        self.pull_list = pull_list
        self.pull_chat = pull_chat

    def stop(self) -> None:
        self.stops += 1
        self.pull_list = None
        self.pull_chat = None

    async def tick(self) -> None:
        if self.pull_list is not None:
            await self.pull_list()
        if self.pull_chat is not None:
            await self.pull_chat()


@pytest.fixture
def repository() -> MemoryRecordRepository:
    return MemoryRecordRepository()


@pytest.fixture
def host_store(repository) -> RecordingStore:
    return RecordingStore(repository, "alice")


@pytest.fixture
def joiner_store(repository) -> RecordingStore:
    return RecordingStore(repository, "bob")


def make_session(store, device_name: str, storage_path: Optional[str] = None):
    """Session wired to a fresh list and a ManualTransport."""
    shopping_list = ShoppingListStore(storage_path)
    transport = ManualTransport()
    session = SyncSession(store, shopping_list, device_name=device_name, transport=transport)
    return session, shopping_list, transport


@pytest.fixture
def session_factory():
    return make_session


@pytest.fixture
def host(host_store):
    return make_session(host_store, "Alice's phone")


@pytest.fixture
def joiner(joiner_store):
    return make_session(joiner_store, "Bob's phone")
