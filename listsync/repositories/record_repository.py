# listsync/repositories/record_repository.py
# PostgreSQL-backed record store: zones, records, shares, participants, subscriptions

from __future__ import annotations

import operator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Iterable, Mapping, Optional

from sqlalchemy import and_, delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from listsync.constants import PUBLIC_ZONE
from listsync.db.base import get_session
from listsync.errors import (
    AccountUnavailableError,
    DatabaseError,
    PermissionDeniedError,
    RecordNotFoundError,
    ShareNotFoundError,
    SubscriptionExistsError,
    ZoneConflictError,
    ZoneNotFoundError,
)
from listsync.models.records_table import records
from listsync.models.subscriptions_table import subscriptions
from listsync.models.zones_table import zone_participants, zone_shares, zones
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
from listsync.utils.logger import log_exception
from listsync.utils.timestamps import utcnow


_SQL_COMPARATORS = {
    "eq": operator.eq,
    "gt": operator.gt,
    "ge": operator.ge,
    "lt": operator.lt,
    "le": operator.le,
}


def _require_user(user_id: str) -> str:
    if not user_id or not user_id.strip():
        raise AccountUnavailableError()
    return user_id


def _to_record(row: Mapping[str, Any]) -> Record:
    return Record(
        record_type=row["record_type"],
        record_id=RecordID(record_name=row["record_name"], zone_name=row["zone_name"]),
        data=dict(row["data"] or {}),
        created_at=row["created_at"],
        modified_at=row["modified_at"],
    )


def _predicate_clause(predicate: Predicate):
    """Translate a Predicate into a JSONB comparison on records.data."""
    field = records.c.data[predicate.field]
    value = predicate.value
    if isinstance(value, bool):
        column, operand = field.as_boolean(), value
    elif isinstance(value, (int, float)):
        column, operand = field.as_float(), float(value)
    else:
        column, operand = field.as_string(), "" if value is None else str(value)
    return and_(
        records.c.data.has_key(predicate.field),
        _SQL_COMPARATORS[predicate.op](column, operand),
    )


@asynccontextmanager
async def _transaction() -> AsyncIterator[AsyncSession]:
    """Session scope that reports driver failures as DatabaseError."""
    try:
        async with get_session() as session:
            yield session
    except (SQLAlchemyError, OSError) as e:
        log_exception(e, "RecordRepository")
        raise DatabaseError() from e


class RecordRepository:
    """Record store persistence. Every call runs on behalf of `user_id`."""

    # ---------- access ----------

    async def check_account(self, user_id: str) -> str:
        return _require_user(user_id)

    async def _ensure_access(self, session: AsyncSession, user_id: str, zone_names: Iterable[str]) -> None:
        _require_user(user_id)
        for zone_name in set(zone_names):
            if zone_name == PUBLIC_ZONE:
                continue
            owner = await self._zone_owner(session, zone_name)
            if owner is None:
                raise ZoneNotFoundError(details={"zone_name": zone_name})
            if owner == user_id:
                continue
            result = await session.execute(
                select(zone_participants.c.user_id).where(
                    zone_participants.c.zone_name == zone_name,
                    zone_participants.c.user_id == user_id,
                )
            )
            if result.first() is None:
                raise PermissionDeniedError(details={"zone_name": zone_name})

    @staticmethod
    async def _zone_owner(session: AsyncSession, zone_name: str) -> Optional[str]:
        result = await session.execute(select(zones.c.owner).where(zones.c.zone_name == zone_name))
        return result.scalar_one_or_none()

    # ---------- zones ----------

    async def create_zone(self, user_id: str, zone_name: str) -> ZoneHandle:
        _require_user(user_id)
        async with _transaction() as session:
            await session.execute(
                pg_insert(zones)
                .values(zone_name=zone_name, owner=user_id, created_at=utcnow())
                .on_conflict_do_nothing(index_elements=[zones.c.zone_name])
            )
            owner = await self._zone_owner(session, zone_name)
            if owner != user_id:
                await session.rollback()
                raise ZoneConflictError(details={"zone_name": zone_name})
            await session.commit()
        return ZoneHandle(zone_name=zone_name, owner=user_id, scope=DatabaseScope.PRIVATE)

    async def list_participants(self, user_id: str, zone_name: str) -> list[str]:
        async with _transaction() as session:
            await self._ensure_access(session, user_id, [zone_name])
            if zone_name == PUBLIC_ZONE:
                return []
            owner = await self._zone_owner(session, zone_name)
            result = await session.execute(
                select(zone_participants.c.user_id)
                .where(zone_participants.c.zone_name == zone_name)
                .order_by(zone_participants.c.user_id)
            )
            return [owner] + [row[0] for row in result.fetchall()]

    # ---------- records ----------

    async def fetch(self, user_id: str, record_id: RecordID) -> Record:
        async with _transaction() as session:
            await self._ensure_access(session, user_id, [record_id.zone_name])
            result = await session.execute(
                select(records).where(
                    records.c.zone_name == record_id.zone_name,
                    records.c.record_name == record_id.record_name,
                )
            )
            row = result.mappings().first()
        if row is None:
            raise RecordNotFoundError(details={"record_name": record_id.record_name})
        return _to_record(row)

    @staticmethod
    async def _upsert(session: AsyncSession, record: Record, now: datetime) -> Record:
        stmt = pg_insert(records).values(
            zone_name=record.record_id.zone_name,
            record_name=record.record_id.record_name,
            record_type=record.record_type,
            data=record.data,
            created_at=now,
            modified_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[records.c.zone_name, records.c.record_name],
            set_={
                "record_type": stmt.excluded.record_type,
                "data": stmt.excluded.data,
                "modified_at": stmt.excluded.modified_at,
            },
        ).returning(*records.c)
        result = await session.execute(stmt)
        return _to_record(result.mappings().one())

    async def save(self, user_id: str, record: Record) -> Record:
        async with _transaction() as session:
            await self._ensure_access(session, user_id, [record.record_id.zone_name])
            saved = await self._upsert(session, record, utcnow())
            await session.commit()
        return saved

    async def delete(self, user_id: str, record_id: RecordID) -> RecordID:
        async with _transaction() as session:
            await self._ensure_access(session, user_id, [record_id.zone_name])
            await session.execute(
                delete(records).where(
                    records.c.zone_name == record_id.zone_name,
                    records.c.record_name == record_id.record_name,
                )
            )
            await session.commit()
        return record_id

    async def modify(
        self,
        user_id: str,
        save: list[Record],
        delete_ids: list[RecordID],
    ) -> tuple[list[Record], list[RecordID]]:
        """Save and delete in one transaction."""
        zone_names = [r.record_id.zone_name for r in save] + [rid.zone_name for rid in delete_ids]
        now = utcnow()
        async with _transaction() as session:
            await self._ensure_access(session, user_id, zone_names)
            saved = [await self._upsert(session, record, now) for record in save]
            for record_id in delete_ids:
                await session.execute(
                    delete(records).where(
                        records.c.zone_name == record_id.zone_name,
                        records.c.record_name == record_id.record_name,
                    )
                )
            await session.commit()
        return saved, list(delete_ids)

    async def query(
        self,
        user_id: str,
        zone_name: str,
        record_type: str,
        predicate: Optional[Predicate] = None,
        sort: Optional[list[SortDescriptor]] = None,
    ) -> list[Record]:
        stmt = select(records).where(
            records.c.zone_name == zone_name,
            records.c.record_type == record_type,
        )
        if predicate is not None:
            stmt = stmt.where(_predicate_clause(predicate))

        order = []
        for descriptor in sort or []:
            col = records.c.data[descriptor.field].as_string()
            order.append(col.asc() if descriptor.ascending else col.desc())
        # Insertion order is the default display order of list items;
        # records saved in one modify batch share a timestamp, so order by seq
        order.append(records.c.seq.asc())
        stmt = stmt.order_by(*order)

        async with _transaction() as session:
            await self._ensure_access(session, user_id, [zone_name])
            result = await session.execute(stmt)
            return [_to_record(row) for row in result.mappings().all()]

    async def purge_records(self, zone_name: str, record_type: str, older_than: datetime) -> int:
        """Delete records of a type not modified since `older_than`. Maintenance only."""
        async with _transaction() as session:
            result = await session.execute(
                delete(records).where(
                    records.c.zone_name == zone_name,
                    records.c.record_type == record_type,
                    records.c.modified_at < older_than,
                )
            )
            await session.commit()
        return result.rowcount or 0

    # ---------- shares ----------

    async def create_share(self, user_id: str, root: Record) -> str:
        zone_name = root.record_id.zone_name
        async with _transaction() as session:
            await self._ensure_access(session, user_id, [zone_name])
            if zone_name == PUBLIC_ZONE or await self._zone_owner(session, zone_name) != user_id:
                raise PermissionDeniedError("Only the zone owner can share it", details={"zone_name": zone_name})

            now = utcnow()
            await self._upsert(session, root, now)
            await session.execute(
                pg_insert(zone_shares)
                .values(
                    token=generate_share_token(),
                    zone_name=zone_name,
                    owner=user_id,
                    root_record_name=root.record_id.record_name,
                    created_at=now,
                )
                .on_conflict_do_nothing(index_elements=[zone_shares.c.zone_name])
            )
            result = await session.execute(
                select(zone_shares.c.token).where(zone_shares.c.zone_name == zone_name)
            )
            token = result.scalar_one()
            await session.commit()
        return make_locator(zone_name, token)

    async def fetch_share_metadata(self, user_id: str, locator: str) -> ShareMetadata:
        _require_user(user_id)
        zone_name, token = parse_locator(locator)
        async with _transaction() as session:
            result = await session.execute(select(zone_shares).where(zone_shares.c.token == token))
            row = result.mappings().first()
        if row is None or row["zone_name"] != zone_name:
            raise ShareNotFoundError(details={"locator": locator})
        return ShareMetadata(
            locator=make_locator(row["zone_name"], row["token"]),
            zone_name=row["zone_name"],
            owner=row["owner"],
            root_record_name=row["root_record_name"],
        )

    async def accept_share(self, user_id: str, metadata: ShareMetadata) -> ZoneHandle:
        known = await self.fetch_share_metadata(user_id, metadata.locator)
        async with _transaction() as session:
            owner = await self._zone_owner(session, known.zone_name)
            if owner is None:
                raise ZoneNotFoundError(details={"zone_name": known.zone_name})
            if owner == user_id:
                return ZoneHandle(zone_name=known.zone_name, owner=owner, scope=DatabaseScope.PRIVATE)
            # Accepting twice is not an error
            await session.execute(
                pg_insert(zone_participants)
                .values(zone_name=known.zone_name, user_id=user_id, accepted_at=utcnow())
                .on_conflict_do_nothing()
            )
            await session.commit()
        return ZoneHandle(zone_name=known.zone_name, owner=owner, scope=DatabaseScope.SHARED)

    # ---------- subscriptions ----------

    async def save_subscription(self, user_id: str, subscription: Subscription) -> Subscription:
        async with _transaction() as session:
            await self._ensure_access(session, user_id, [subscription.zone_name])
            result = await session.execute(
                pg_insert(subscriptions)
                .values(
                    user_id=user_id,
                    subscription_id=subscription.subscription_id,
                    zone_name=subscription.zone_name,
                    record_type=subscription.record_type,
                    alert_field=subscription.alert_field,
                    created_at=utcnow(),
                )
                .on_conflict_do_nothing()
                .returning(subscriptions.c.subscription_id)
            )
            inserted = result.first()
            await session.commit()
        if inserted is None:
            raise SubscriptionExistsError(details={"subscription_id": subscription.subscription_id})
        return subscription

    async def delete_subscription(self, user_id: str, subscription_id: str) -> None:
        _require_user(user_id)
        async with _transaction() as session:
            await session.execute(
                delete(subscriptions).where(
                    subscriptions.c.user_id == user_id,
                    subscriptions.c.subscription_id == subscription_id,
                )
            )
            await session.commit()
