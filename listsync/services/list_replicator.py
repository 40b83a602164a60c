# listsync/services/list_replicator.py
# Moves list changes between the local ShoppingListStore and one shared zone.
# Last writer wins per item record; the remote zone is re-read after every push.

from __future__ import annotations

import logging
from typing import Callable, Optional
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from listsync.clients.base import RecordStore
from listsync.constants import ITEM_PAYLOAD_FIELD, ITEM_UPDATED_AT_FIELD, LIST_ITEM_TYPE
from listsync.errors import user_facing
from listsync.schemas.items import ChangeKind, ListChange, ShoppingItem
from listsync.schemas.records import Record, RecordID, ZoneHandle
from listsync.services.shopping_list import ShoppingListStore
from listsync.utils.logger import log_exception
from listsync.utils.timestamps import encode_timestamp, utcnow

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[str], None]
PeersCallback = Callable[[list[str]], None]


def encode_item(item: ShoppingItem) -> str:
    return item.model_dump_json()


def decode_item(payload: object) -> ShoppingItem:
    """Raises ValueError for payloads that are not a valid item snapshot."""
    if isinstance(payload, (str, bytes)):
        return ShoppingItem.model_validate_json(payload)
    if isinstance(payload, dict):
        return ShoppingItem.model_validate(payload)
    raise ValueError(f"Unsupported payload type {type(payload).__name__}")


class ListReplicator:
    """Replicates one device's list into a connected zone and back."""

    def __init__(
        self,
        store: RecordStore,
        zone: ZoneHandle,
        shopping_list: ShoppingListStore,
        on_error: ErrorCallback,
        on_peers: Optional[PeersCallback] = None,
    ):
        self.store = store
        self.zone = zone
        self.shopping_list = shopping_list
        self.on_error = on_error
        self.on_peers = on_peers
        self._pulling = False

    @property
    def pulling(self) -> bool:
        return self._pulling

    def _record_id(self, item_id: UUID) -> RecordID:
        return RecordID(record_name=str(item_id), zone_name=self.zone.zone_name)

    # ---------- push ----------

    async def push(self, change: ListChange) -> bool:
        """Write one local change. Returns False when it failed (error already reported)."""
        if change.kind in (ChangeKind.CLEAR_CHECKED, ChangeKind.REPLACE_ALL):
            return await self.push_snapshot()

        try:
            if change.kind == ChangeKind.ADD and change.item is not None:
                await self._upsert(change.item)
            elif change.kind == ChangeKind.TOGGLE and change.item_id is not None:
                # Toggle events carry no item; push the current state
                item = self.shopping_list.get(change.item_id)
                if item is not None:
                    await self._upsert(item)
            elif change.kind == ChangeKind.REMOVE and change.item_id is not None:
                await self.store.delete(self._record_id(change.item_id))
        except Exception as e:
            log_exception(e, f"ListReplicator.push {change.kind.value}")
            self.on_error(f"Sync failed: {user_facing(e)}")
            return False

        await self.pull()
        return True

    async def _upsert(self, item: ShoppingItem) -> None:
        record = await self.store.fetch_if_exists(self._record_id(item.id))
        if record is None:
            record = Record(record_type=LIST_ITEM_TYPE, record_id=self._record_id(item.id))
        record.data[ITEM_PAYLOAD_FIELD] = encode_item(item)
        record.data[ITEM_UPDATED_AT_FIELD] = encode_timestamp(utcnow())
        await self.store.save(record)

    async def push_snapshot(self) -> bool:
        """Make the zone hold exactly the local items, in one modify batch."""
        try:
            remote = await self.store.query(LIST_ITEM_TYPE, self.zone.zone_name)
            now = encode_timestamp(utcnow())
            local = self.shopping_list.items
            local_names = {str(item.id) for item in local}

            to_save = [
                Record(
                    record_type=LIST_ITEM_TYPE,
                    record_id=self._record_id(item.id),
                    data={ITEM_PAYLOAD_FIELD: encode_item(item), ITEM_UPDATED_AT_FIELD: now},
                )
                for item in local
            ]
            to_delete = [
                record.record_id for record in remote
                if record.record_id.record_name not in local_names
            ]
            await self.store.modify(to_save, to_delete)
        except Exception as e:
            log_exception(e, "ListReplicator.push_snapshot")
            self.on_error(f"Snapshot sync failed: {user_facing(e)}")
            # Re-read anyway so the local list does not drift further from the zone
            await self.pull()
            return False

        logger.info(f"Snapshot pushed to {self.zone.zone_name}: {len(to_save)} saved, {len(to_delete)} deleted")
        await self.pull()
        return True

    # ---------- pull ----------

    async def pull(self) -> bool:
        """Replace the local list with the zone's items. Dropped if a pull is running."""
        if self._pulling:
            return False
        self._pulling = True
        try:
            records = await self.store.query(LIST_ITEM_TYPE, self.zone.zone_name)
            items = self._decode_records(records)
            self.shopping_list.apply_external_change(ListChange.replace_all(items))
            await self._refresh_peers()
            return True
        except Exception as e:
            log_exception(e, "ListReplicator.pull")
            self.on_error(f"Sync pull failed: {user_facing(e)}")
            return False
        finally:
            self._pulling = False

    def _decode_records(self, records: list[Record]) -> list[ShoppingItem]:
        items: list[ShoppingItem] = []
        for record in records:
            try:
                items.append(decode_item(record.get(ITEM_PAYLOAD_FIELD)))
            except (ValueError, PydanticValidationError) as e:
                logger.warning(f"Skipping undecodable item record {record.record_id.record_name}: {e}")
        return items

    async def _refresh_peers(self) -> None:
        if self.on_peers is None:
            return
        try:
            self.on_peers(await self.store.list_participants(self.zone.zone_name))
        except Exception as e:
            logger.warning(f"Could not refresh participants of {self.zone.zone_name}: {e}")
