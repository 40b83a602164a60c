# listsync/services/session_manager.py
"""
Shared list session of one device.

SyncSession is the only writer of connection state. Public methods are plain
(non-async) calls made from the event loop thread; network work runs in
background tasks tracked by the session, and failures end up in
`last_error` instead of being raised.

A connect flow remembers the session epoch it started in. leave() bumps the
epoch, so a flow that finishes after a newer teardown is thrown away.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional

from listsync.clients.base import RecordStore
from listsync.clients.record_store_client import HttpRecordStore
from listsync.config import Settings
from listsync.errors import user_facing
from listsync.schemas.chat import ChatMessage
from listsync.schemas.items import ListChange
from listsync.schemas.records import ZoneHandle
from listsync.services.chat_replicator import ChatLog, ChatReplicator
from listsync.services.code_exchange import CodeExchange
from listsync.services.list_replicator import ListReplicator
from listsync.services.shopping_list import ShoppingListStore
from listsync.services.transport import PollingTransport, SyncTransport
from listsync.utils.codes import generate_code, normalize_code
from listsync.utils.logger import log_exception, log_info

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    HOSTING = "hosting"
    JOINING = "joining"
    CONNECTED = "connected"


class Role(str, Enum):
    HOST = "host"
    JOINER = "joiner"


@dataclass
class SessionState:
    code: Optional[str] = None
    connection_state: ConnectionState = ConnectionState.DISCONNECTED
    role: Optional[Role] = None
    zone: Optional[ZoneHandle] = None
    last_error: Optional[str] = None
    connected_peers: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SessionSnapshot:
    """What observers get after every change."""
    code: Optional[str]
    connection_state: ConnectionState
    role: Optional[Role]
    zone: Optional[ZoneHandle]
    last_error: Optional[str]
    connected_peers: tuple[str, ...]
    chat_messages: tuple[ChatMessage, ...]

    @property
    def is_connected(self) -> bool:
        return self.connection_state == ConnectionState.CONNECTED


SessionObserver = Callable[[SessionSnapshot], None]


class SyncSession:

    def __init__(
        self,
        store: RecordStore,
        shopping_list: ShoppingListStore,
        device_name: str,
        transport: Optional[SyncTransport] = None,
        code_length: int = 6,
    ):
        self.store = store
        self.device_name = device_name
        self.transport = transport or PollingTransport()
        self.code_length = code_length
        self.exchange = CodeExchange(store)
        self.chat_log = ChatLog()

        self._state = SessionState()
        self._epoch = 0
        self._tasks: set[asyncio.Task] = set()
        self._observers: list[SessionObserver] = []
        self._list_replicator: Optional[ListReplicator] = None
        self._chat_replicator: Optional[ChatReplicator] = None
        self.shopping_list: Optional[ShoppingListStore] = None
        self.bind(shopping_list)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: Optional[RecordStore] = None,
        shopping_list: Optional[ShoppingListStore] = None,
    ) -> "SyncSession":
        """Device setup from config: HTTP record store, persisted list, polling transport."""
        if store is None:
            store = HttpRecordStore(settings.STORE_URL, settings.USER_ID, settings.REQUEST_TIMEOUT_SECONDS)
        if shopping_list is None:
            shopping_list = ShoppingListStore(settings.LIST_STORAGE_PATH)
        transport = PollingTransport(settings.LIST_POLL_SECONDS, settings.CHAT_POLL_SECONDS)
        return cls(
            store,
            shopping_list,
            device_name=settings.DEVICE_NAME,
            transport=transport,
            code_length=settings.CODE_LENGTH,
        )

    # ---------- state ----------

    @property
    def state(self) -> SessionSnapshot:
        return SessionSnapshot(
            code=self._state.code,
            connection_state=self._state.connection_state,
            role=self._state.role,
            zone=self._state.zone,
            last_error=self._state.last_error,
            connected_peers=tuple(self._state.connected_peers),
            chat_messages=tuple(self.chat_log.messages),
        )

    @property
    def connection_state(self) -> ConnectionState:
        return self._state.connection_state

    @property
    def code(self) -> Optional[str]:
        return self._state.code

    @property
    def role(self) -> Optional[Role]:
        return self._state.role

    @property
    def zone(self) -> Optional[ZoneHandle]:
        return self._state.zone

    @property
    def last_error(self) -> Optional[str]:
        return self._state.last_error

    @property
    def connected_peers(self) -> list[str]:
        return list(self._state.connected_peers)

    @property
    def chat_messages(self) -> list[ChatMessage]:
        return self.chat_log.messages

    @property
    def is_connected(self) -> bool:
        return self._state.connection_state == ConnectionState.CONNECTED

    # ---------- observers ----------

    def subscribe(self, callback: SessionObserver) -> Callable[[], None]:
        """Register an observer; call the returned function to unregister it."""
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.state
        for observer in list(self._observers):
            try:
                observer(snapshot)
            except Exception as e:
                log_exception(e, "SyncSession observer")

    def _set_error(self, message: str) -> None:
        self._state.last_error = message
        logger.warning(message)
        self._notify()

    def _set_peers(self, peers: list[str]) -> None:
        if peers != self._state.connected_peers:
            self._state.connected_peers = list(peers)
            self._notify()

    # ---------- list binding ----------

    def bind(self, shopping_list: ShoppingListStore) -> None:
        """Route user changes of `shopping_list` into the session."""
        if self.shopping_list is not None:
            self.shopping_list.remove_listener(self._on_list_change)
        self.shopping_list = shopping_list
        shopping_list.add_listener(self._on_list_change)

    def _on_list_change(self, change: ListChange) -> None:
        replicator = self._list_replicator
        if not self.is_connected or replicator is None:
            return
        self._spawn(replicator.push(change), f"push-{change.kind.value}")

    # ---------- tasks ----------

    def _spawn(self, coro: Awaitable, name: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Session task {task.get_name()} failed: {exc!r}")

    async def wait_for_pending(self) -> None:
        """Wait until every task the session started has finished."""
        current = asyncio.current_task()
        while True:
            pending = [task for task in self._tasks if task is not current and not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # ---------- public operations ----------

    def generate_code(self) -> asyncio.Task:
        """Start hosting under a fresh code."""
        self.leave()
        code = generate_code(self.code_length)
        self._state.code = code
        self._state.connection_state = ConnectionState.HOSTING
        self._state.role = Role.HOST
        self._notify()
        log_info(f"Hosting with code {code}")
        return self._spawn(self._host_flow(code, self._epoch), f"host-{code}")

    def join(self, code: str) -> Optional[asyncio.Task]:
        """Join the list behind `code`. Blank codes are ignored."""
        cleaned = normalize_code(code)
        if not cleaned:
            return None
        self.leave()
        self._state.code = cleaned
        self._state.connection_state = ConnectionState.JOINING
        self._state.role = Role.JOINER
        self._notify()
        log_info(f"Joining with code {cleaned}")
        return self._spawn(self._join_flow(cleaned, self._epoch), f"join-{cleaned}")

    def leave(self) -> None:
        """Back to disconnected. Timers are stopped before this returns."""
        self._epoch += 1
        self.transport.stop()

        # Tracked tasks only exist while a loop is running
        current = asyncio.current_task() if self._tasks else None
        for task in list(self._tasks):
            if task is not current and not task.done():
                task.cancel()

        self._list_replicator = None
        self._chat_replicator = None
        self.chat_log.clear()
        was_idle = self._state == SessionState()
        self._state = SessionState()
        if not was_idle:
            self._notify()

    def send_chat(self, text: str) -> Optional[asyncio.Task]:
        """Echo locally and publish. None when the text is blank or not connected."""
        replicator = self._chat_replicator
        if not self.is_connected or replicator is None:
            return None
        message = replicator.compose(text)
        if message is None:
            return None
        self._notify()
        return self._spawn(replicator.publish(message), f"chat-{message.id}")

    def reconcile_list_now(self) -> Optional[asyncio.Task]:
        if not self.is_connected:
            return None
        return self._spawn(self._pull_list(), "pull-list")

    def reconcile_chat_now(self) -> Optional[asyncio.Task]:
        if not self.is_connected:
            return None
        return self._spawn(self._pull_chat(), "pull-chat")

    # ---------- connect flows ----------

    async def _host_flow(self, code: str, epoch: int) -> None:
        try:
            zone = await self.exchange.publish(code)
        except Exception as e:
            self._connect_failed(epoch, f"Hosting failed: {user_facing(e)}", e)
            return
        if not self._connected(zone, Role.HOST, epoch):
            return

        await self._list_replicator.push_snapshot()
        await self._after_connect(epoch)

    async def _join_flow(self, code: str, epoch: int) -> None:
        try:
            zone = await self.exchange.resolve(code)
        except Exception as e:
            self._connect_failed(epoch, f"Join failed: {user_facing(e)}", e)
            return
        if not self._connected(zone, Role.JOINER, epoch):
            return

        await self._after_connect(epoch)

    async def _after_connect(self, epoch: int) -> None:
        if epoch != self._epoch:
            return
        await self._pull_list()
        if epoch != self._epoch:
            return
        await self._pull_chat()
        if epoch != self._epoch:
            return
        await self._chat_replicator.subscribe()

    def _connected(self, zone: ZoneHandle, role: Role, epoch: int) -> bool:
        if epoch != self._epoch:
            logger.info(f"Discarding stale connect to {zone.zone_name}")
            return False

        self._list_replicator = ListReplicator(
            self.store, zone, self.shopping_list, on_error=self._set_error, on_peers=self._set_peers,
        )
        self._chat_replicator = ChatReplicator(
            self.store, zone, self.device_name, self.chat_log, on_error=self._set_error,
        )
        self._state.zone = zone
        self._state.role = role
        self._state.connection_state = ConnectionState.CONNECTED
        self.transport.start(self._pull_list, self._pull_chat)
        self._notify()
        log_info(f"Connected to {zone.zone_name} as {role.value}")
        return True

    def _connect_failed(self, epoch: int, message: str, exc: Exception) -> None:
        if epoch != self._epoch:
            return
        log_exception(exc, "SyncSession connect")
        self.leave()
        self._set_error(message)

    # ---------- pulls ----------

    async def _pull_list(self) -> None:
        replicator = self._list_replicator
        if replicator is None:
            return
        await replicator.pull()

    async def _pull_chat(self) -> None:
        replicator = self._chat_replicator
        if replicator is None:
            return
        if await replicator.pull():
            self._notify()
