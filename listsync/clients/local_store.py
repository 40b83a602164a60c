# listsync/clients/local_store.py
# In-process RecordStore: binds one account to a repository object

from __future__ import annotations

from typing import Optional

from listsync.clients.base import RecordStore
from listsync.repositories.memory_repository import MemoryRecordRepository
from listsync.schemas.records import (
    Predicate,
    Record,
    RecordID,
    ShareMetadata,
    SortDescriptor,
    Subscription,
    ZoneHandle,
)


class LocalRecordStore(RecordStore):
    """
    Calls a repository directly instead of going over HTTP.

    Several stores built on the same MemoryRecordRepository behave like several
    devices talking to one record store service.
    """

    def __init__(self, repository: Optional[MemoryRecordRepository] = None, user_id: str = ""):
        self.repository = repository if repository is not None else MemoryRecordRepository()
        self.user_id = user_id

    async def account_status(self) -> None:
        await self.repository.check_account(self.user_id)

    async def fetch(self, record_id: RecordID) -> Record:
        return await self.repository.fetch(self.user_id, record_id)

    async def save(self, record: Record) -> Record:
        return await self.repository.save(self.user_id, record)

    async def delete(self, record_id: RecordID) -> RecordID:
        return await self.repository.delete(self.user_id, record_id)

    async def modify(
        self,
        save: list[Record],
        delete_ids: list[RecordID],
    ) -> tuple[list[Record], list[RecordID]]:
        return await self.repository.modify(self.user_id, save, delete_ids)

    async def query(
        self,
        record_type: str,
        zone_name: str,
        predicate: Optional[Predicate] = None,
        sort: Optional[list[SortDescriptor]] = None,
    ) -> list[Record]:
        return await self.repository.query(self.user_id, zone_name, record_type, predicate, sort)

    async def create_zone(self, zone_name: str) -> ZoneHandle:
        return await self.repository.create_zone(self.user_id, zone_name)

    async def list_participants(self, zone_name: str) -> list[str]:
        return await self.repository.list_participants(self.user_id, zone_name)

    async def create_share(self, root: Record) -> str:
        return await self.repository.create_share(self.user_id, root)

    async def fetch_share_metadata(self, locator: str) -> ShareMetadata:
        return await self.repository.fetch_share_metadata(self.user_id, locator)

    async def accept_share(self, metadata: ShareMetadata) -> ZoneHandle:
        return await self.repository.accept_share(self.user_id, metadata)

    async def save_subscription(self, subscription: Subscription) -> Subscription:
        return await self.repository.save_subscription(self.user_id, subscription)

    async def delete_subscription(self, subscription_id: str) -> None:
        await self.repository.delete_subscription(self.user_id, subscription_id)
