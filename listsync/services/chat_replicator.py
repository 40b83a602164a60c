# listsync/services/chat_replicator.py
# Append-only chat attached to a shared zone: local echo on send,
# incremental pulls keyed on the newest timestamp seen so far.

from __future__ import annotations

import logging
from typing import Callable, Optional
from uuid import UUID, uuid4

from listsync.clients.base import RecordStore
from listsync.constants import CHAT_MESSAGE_TYPE, CHAT_SENDER_FIELD, CHAT_TEXT_FIELD, CHAT_TIMESTAMP_FIELD
from listsync.errors import user_facing
from listsync.schemas.chat import ChatMessage
from listsync.schemas.records import Predicate, Record, RecordID, SortDescriptor, Subscription, ZoneHandle
from listsync.utils.codes import chat_subscription_id
from listsync.utils.logger import log_exception
from listsync.utils.timestamps import decode_timestamp, encode_timestamp, utcnow

logger = logging.getLogger(__name__)


class ChatLog:
    """Messages in timestamp order; a message id is only ever stored once."""

    def __init__(self):
        self._messages: list[ChatMessage] = []
        self._ids: set[UUID] = set()

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, message_id: UUID) -> bool:
        return message_id in self._ids

    def append(self, message: ChatMessage) -> bool:
        if message.id in self._ids:
            return False
        self._ids.add(message.id)
        self._messages.append(message)
        if len(self._messages) > 1 and self._messages[-2].timestamp > message.timestamp:
            self._messages.sort(key=lambda m: m.timestamp)
        return True

    def clear(self) -> None:
        self._messages.clear()
        self._ids.clear()


def message_to_record(message: ChatMessage, zone_name: str) -> Record:
    return Record(
        record_type=CHAT_MESSAGE_TYPE,
        record_id=RecordID(record_name=str(message.id), zone_name=zone_name),
        data={
            CHAT_SENDER_FIELD: message.sender,
            CHAT_TEXT_FIELD: message.text,
            CHAT_TIMESTAMP_FIELD: encode_timestamp(message.timestamp),
        },
    )


def record_to_message(record: Record) -> Optional[ChatMessage]:
    """None when the record lacks a field or its name is not a UUID."""
    sender = record.get(CHAT_SENDER_FIELD)
    text = record.get(CHAT_TEXT_FIELD)
    timestamp = decode_timestamp(record.get(CHAT_TIMESTAMP_FIELD))
    if not isinstance(sender, str) or not isinstance(text, str) or timestamp is None:
        return None
    try:
        message_id = UUID(record.record_id.record_name)
    except ValueError:
        return None
    return ChatMessage(id=message_id, sender=sender, text=text, timestamp=timestamp)


class ChatReplicator:

    def __init__(
        self,
        store: RecordStore,
        zone: ZoneHandle,
        sender: str,
        log: ChatLog,
        on_error: Callable[[str], None],
    ):
        self.store = store
        self.zone = zone
        self.sender = sender
        self.log = log
        self.on_error = on_error
        self.last_seen: Optional[str] = None

    def compose(self, text: str) -> Optional[ChatMessage]:
        """Build a message and echo it into the local log. None for blank text."""
        trimmed = (text or "").strip()
        if not trimmed:
            return None
        message = ChatMessage(id=uuid4(), sender=self.sender, text=trimmed, timestamp=utcnow())
        self.log.append(message)
        return message

    async def publish(self, message: ChatMessage) -> bool:
        # The local echo stays even if this fails
        try:
            await self.store.save(message_to_record(message, self.zone.zone_name))
            return True
        except Exception as e:
            log_exception(e, "ChatReplicator.publish")
            self.on_error(f"Sending chat failed: {user_facing(e)}")
            return False

    async def pull(self) -> int:
        """Fetch messages newer than last_seen. Returns how many were new locally."""
        predicate = None
        if self.last_seen is not None:
            predicate = Predicate(field=CHAT_TIMESTAMP_FIELD, op="gt", value=self.last_seen)
        try:
            records = await self.store.query(
                CHAT_MESSAGE_TYPE,
                self.zone.zone_name,
                predicate=predicate,
                sort=[SortDescriptor(field=CHAT_TIMESTAMP_FIELD, ascending=True)],
            )
        except Exception as e:
            logger.warning(f"Chat pull failed for {self.zone.zone_name}: {user_facing(e)}")
            return 0

        added = 0
        for record in records:
            message = record_to_message(record)
            if message is None:
                continue
            stamp = encode_timestamp(message.timestamp)
            if self.last_seen is None or stamp > self.last_seen:
                self.last_seen = stamp
            if self.log.append(message):
                added += 1
        return added

    async def subscribe(self) -> None:
        subscription = Subscription(
            subscription_id=chat_subscription_id(self.zone.zone_name),
            zone_name=self.zone.zone_name,
            record_type=CHAT_MESSAGE_TYPE,
            alert_field=CHAT_SENDER_FIELD,
        )
        try:
            await self.store.save_subscription(subscription)
        except Exception as e:
            logger.warning(f"Chat subscription {subscription.subscription_id} not registered: {user_facing(e)}")
