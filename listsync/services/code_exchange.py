# listsync/services/code_exchange.py
# Turns a short numeric code into a shared zone, without devices ever talking
# to each other. Host: zone + share + public code record. Joiner: the reverse.

from __future__ import annotations

import logging

from listsync.clients.base import RecordStore
from listsync.constants import (
    LIST_CODE_FIELD,
    LIST_CREATED_AT_FIELD,
    LIST_ROOT_RECORD_NAME,
    LIST_ROOT_TYPE,
    PUBLIC_ZONE,
    SHARE_CODE_TYPE,
    SHARE_LOCATOR_FIELD,
)
from listsync.errors import InvalidCodeError, ShareNotFoundError
from listsync.schemas.records import Record, RecordID, ZoneHandle
from listsync.utils.codes import zone_name_for
from listsync.utils.timestamps import encode_timestamp, utcnow

logger = logging.getLogger(__name__)


class CodeExchange:

    def __init__(self, store: RecordStore):
        self.store = store

    async def publish(self, code: str) -> ZoneHandle:
        """Host side. Every step is idempotent, so retrying the same code is safe."""
        await self.store.account_status()

        zone = await self.store.create_zone(zone_name_for(code))

        root = Record(
            record_type=LIST_ROOT_TYPE,
            record_id=RecordID(record_name=LIST_ROOT_RECORD_NAME, zone_name=zone.zone_name),
            data={
                LIST_CODE_FIELD: code,
                LIST_CREATED_AT_FIELD: encode_timestamp(utcnow()),
            },
        )
        locator = await self.store.create_share(root)
        if not locator:
            raise ShareNotFoundError("Share link missing.", details={"zone_name": zone.zone_name})

        await self.store.save(self.share_code_record(code, locator))
        logger.info(f"Published code {code} for zone {zone.zone_name}")
        return zone

    async def resolve(self, code: str) -> ZoneHandle:
        """Joiner side: code -> locator -> share metadata -> accepted zone."""
        await self.store.account_status()

        locator = await self.lookup_locator(code)
        metadata = await self.store.fetch_share_metadata(locator)
        zone = await self.store.accept_share(metadata)
        logger.info(f"Joined zone {zone.zone_name} with code {code}")
        return zone

    async def lookup_locator(self, code: str) -> str:
        record = await self.store.fetch_if_exists(RecordID(record_name=code, zone_name=PUBLIC_ZONE))
        if record is None or record.record_type != SHARE_CODE_TYPE:
            raise InvalidCodeError(details={"code": code})
        locator = record.get(SHARE_LOCATOR_FIELD)
        if not isinstance(locator, str) or not locator:
            raise InvalidCodeError(details={"code": code})
        return locator

    @staticmethod
    def share_code_record(code: str, locator: str) -> Record:
        return Record(
            record_type=SHARE_CODE_TYPE,
            record_id=RecordID(record_name=code, zone_name=PUBLIC_ZONE),
            data={SHARE_LOCATOR_FIELD: locator},
        )
