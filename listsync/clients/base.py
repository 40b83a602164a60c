# listsync/clients/base.py
"""
Record store contract consumed by the sync engine.

A RecordStore is bound to one account (the device's user). Implementations
raise the classes from listsync.errors; the engine never sees transport
exceptions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from listsync.errors import RecordNotFoundError
from listsync.schemas.records import (
    Predicate,
    Record,
    RecordID,
    ShareMetadata,
    SortDescriptor,
    Subscription,
    ZoneHandle,
)


class RecordStore(ABC):

    user_id: str

    @abstractmethod
    async def account_status(self) -> None:
        """Raise AccountUnavailableError unless the account can use the store."""

    @abstractmethod
    async def fetch(self, record_id: RecordID) -> Record:
        """Return the record or raise RecordNotFoundError."""

    async def fetch_if_exists(self, record_id: RecordID) -> Optional[Record]:
        try:
            return await self.fetch(record_id)
        except RecordNotFoundError:
            return None

    @abstractmethod
    async def save(self, record: Record) -> Record:
        """Create or overwrite a record."""

    @abstractmethod
    async def delete(self, record_id: RecordID) -> RecordID:
        """Delete a record. Deleting a missing record is not an error."""

    @abstractmethod
    async def modify(
        self,
        save: list[Record],
        delete_ids: list[RecordID],
    ) -> tuple[list[Record], list[RecordID]]:
        """Save and delete records in one batch."""

    @abstractmethod
    async def query(
        self,
        record_type: str,
        zone_name: str,
        predicate: Optional[Predicate] = None,
        sort: Optional[list[SortDescriptor]] = None,
    ) -> list[Record]:
        """Records of a type inside a zone, in creation order unless sorted."""

    @abstractmethod
    async def create_zone(self, zone_name: str) -> ZoneHandle:
        """Create a zone owned by this account. Idempotent for the same owner."""

    @abstractmethod
    async def list_participants(self, zone_name: str) -> list[str]:
        """Owner first, then every account that accepted the zone's share."""

    @abstractmethod
    async def create_share(self, root: Record) -> str:
        """Save the root record and return the locator of the zone's share."""

    @abstractmethod
    async def fetch_share_metadata(self, locator: str) -> ShareMetadata:
        """Resolve a locator or raise ShareNotFoundError."""

    @abstractmethod
    async def accept_share(self, metadata: ShareMetadata) -> ZoneHandle:
        """Join the shared zone. Accepting twice is not an error."""

    @abstractmethod
    async def save_subscription(self, subscription: Subscription) -> Subscription:
        """Register a subscription or raise SubscriptionExistsError."""

    @abstractmethod
    async def delete_subscription(self, subscription_id: str) -> None:
        ...

    async def close(self) -> None:
        """Release transport resources. Nothing to do by default."""
