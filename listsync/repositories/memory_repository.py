# listsync/repositories/memory_repository.py
# Dict-backed record repository with the same semantics as RecordRepository.
# Used for local development and tests; state lives only as long as the object.

from __future__ import annotations

from datetime import datetime
from typing import Optional

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
from listsync.schemas.records import (
    DatabaseScope,
    Predicate,
    Record,
    RecordID,
    ShareMetadata,
    SortDescriptor,
    Subscription,
    ZoneHandle,
)
from listsync.utils.codes import generate_share_token, make_locator, parse_locator
from listsync.utils.timestamps import utcnow


class MemoryRecordRepository:
    """In-process record store shared by every user that holds a reference to it."""

    def __init__(self):
        # zone_name -> owner
        self._zones: dict[str, str] = {}
        # zone_name -> set of accepted participants
        self._participants: dict[str, set[str]] = {}
        # token -> ShareMetadata; zone_name -> token
        self._shares: dict[str, ShareMetadata] = {}
        self._share_by_zone: dict[str, str] = {}
        # (zone_name, record_name) -> Record, insertion ordered
        self._records: dict[tuple[str, str], Record] = {}
        # (user_id, subscription_id) -> Subscription
        self._subscriptions: dict[tuple[str, str], Subscription] = {}

    # ---------- access ----------

    async def check_account(self, user_id: str) -> str:
        return self._require_user(user_id)

    @staticmethod
    def _require_user(user_id: str) -> str:
        if not user_id or not user_id.strip():
            raise AccountUnavailableError()
        return user_id

    def _ensure_access(self, user_id: str, zone_name: str) -> None:
        self._require_user(user_id)
        if zone_name == PUBLIC_ZONE:
            return
        owner = self._zones.get(zone_name)
        if owner is None:
            raise ZoneNotFoundError(details={"zone_name": zone_name})
        if owner != user_id and user_id not in self._participants.get(zone_name, set()):
            raise PermissionDeniedError(details={"zone_name": zone_name})

    # ---------- zones ----------

    async def create_zone(self, user_id: str, zone_name: str) -> ZoneHandle:
        self._require_user(user_id)
        owner = self._zones.get(zone_name)
        if owner is not None and owner != user_id:
            raise ZoneConflictError(details={"zone_name": zone_name})
        self._zones[zone_name] = user_id
        self._participants.setdefault(zone_name, set())
        return ZoneHandle(zone_name=zone_name, owner=user_id, scope=DatabaseScope.PRIVATE)

    async def list_participants(self, user_id: str, zone_name: str) -> list[str]:
        self._ensure_access(user_id, zone_name)
        if zone_name == PUBLIC_ZONE:
            return []
        return [self._zones[zone_name]] + sorted(self._participants.get(zone_name, set()))

    # ---------- records ----------

    async def fetch(self, user_id: str, record_id: RecordID) -> Record:
        self._ensure_access(user_id, record_id.zone_name)
        record = self._records.get((record_id.zone_name, record_id.record_name))
        if record is None:
            raise RecordNotFoundError(details={"record_name": record_id.record_name})
        return record.model_copy(deep=True)

    async def save(self, user_id: str, record: Record) -> Record:
        self._ensure_access(user_id, record.record_id.zone_name)
        return self._store(record).model_copy(deep=True)

    def _store(self, record: Record) -> Record:
        key = (record.record_id.zone_name, record.record_id.record_name)
        now = utcnow()
        existing = self._records.get(key)
        stored = record.model_copy(
            deep=True,
            update={
                "created_at": existing.created_at if existing else now,
                "modified_at": now,
            },
        )
        self._records[key] = stored
        return stored

    async def delete(self, user_id: str, record_id: RecordID) -> RecordID:
        self._ensure_access(user_id, record_id.zone_name)
        self._records.pop((record_id.zone_name, record_id.record_name), None)
        return record_id

    async def modify(
        self,
        user_id: str,
        save: list[Record],
        delete_ids: list[RecordID],
    ) -> tuple[list[Record], list[RecordID]]:
        # Validate everything first so a rejected batch changes nothing
        for record in save:
            self._ensure_access(user_id, record.record_id.zone_name)
        for record_id in delete_ids:
            self._ensure_access(user_id, record_id.zone_name)

        saved = [self._store(record).model_copy(deep=True) for record in save]
        for record_id in delete_ids:
            self._records.pop((record_id.zone_name, record_id.record_name), None)
        return saved, list(delete_ids)

    async def query(
        self,
        user_id: str,
        zone_name: str,
        record_type: str,
        predicate: Optional[Predicate] = None,
        sort: Optional[list[SortDescriptor]] = None,
    ) -> list[Record]:
        self._ensure_access(user_id, zone_name)
        matches = [
            record for (zone, _), record in self._records.items()
            if zone == zone_name
            and record.record_type == record_type
            and (predicate is None or predicate.matches(record.data))
        ]
        # Stable sorts applied last-key-first give a multi-key ordering
        for descriptor in reversed(sort or []):
            matches.sort(
                key=lambda r: (r.data.get(descriptor.field) is None, str(r.data.get(descriptor.field, ""))),
                reverse=not descriptor.ascending,
            )
        return [record.model_copy(deep=True) for record in matches]

    async def purge_records(self, zone_name: str, record_type: str, older_than: datetime) -> int:
        doomed = [
            key for key, record in self._records.items()
            if key[0] == zone_name
            and record.record_type == record_type
            and record.modified_at is not None
            and record.modified_at < older_than
        ]
        for key in doomed:
            del self._records[key]
        return len(doomed)

    # ---------- shares ----------

    async def create_share(self, user_id: str, root: Record) -> str:
        zone_name = root.record_id.zone_name
        self._ensure_access(user_id, zone_name)
        if zone_name == PUBLIC_ZONE or self._zones[zone_name] != user_id:
            raise PermissionDeniedError("Only the zone owner can share it", details={"zone_name": zone_name})
        self._store(root)

        token = self._share_by_zone.get(zone_name)
        if token is None:
            token = generate_share_token()
            self._share_by_zone[zone_name] = token
            self._shares[token] = ShareMetadata(
                locator=make_locator(zone_name, token),
                zone_name=zone_name,
                owner=user_id,
                root_record_name=root.record_id.record_name,
            )
        return self._shares[token].locator

    async def fetch_share_metadata(self, user_id: str, locator: str) -> ShareMetadata:
        self._require_user(user_id)
        zone_name, token = parse_locator(locator)
        metadata = self._shares.get(token)
        if metadata is None or metadata.zone_name != zone_name:
            raise ShareNotFoundError(details={"locator": locator})
        return metadata.model_copy()

    async def accept_share(self, user_id: str, metadata: ShareMetadata) -> ZoneHandle:
        known = await self.fetch_share_metadata(user_id, metadata.locator)
        owner = self._zones.get(known.zone_name)
        if owner is None:
            raise ZoneNotFoundError(details={"zone_name": known.zone_name})
        if owner == user_id:
            return ZoneHandle(zone_name=known.zone_name, owner=owner, scope=DatabaseScope.PRIVATE)
        self._participants.setdefault(known.zone_name, set()).add(user_id)
        return ZoneHandle(zone_name=known.zone_name, owner=owner, scope=DatabaseScope.SHARED)

    # ---------- subscriptions ----------

    async def save_subscription(self, user_id: str, subscription: Subscription) -> Subscription:
        self._ensure_access(user_id, subscription.zone_name)
        key = (user_id, subscription.subscription_id)
        if key in self._subscriptions:
            raise SubscriptionExistsError(details={"subscription_id": subscription.subscription_id})
        self._subscriptions[key] = subscription.model_copy()
        return subscription

    async def delete_subscription(self, user_id: str, subscription_id: str) -> None:
        self._require_user(user_id)
        self._subscriptions.pop((user_id, subscription_id), None)
