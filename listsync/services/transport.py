# listsync/services/transport.py
# How remote state gets pulled back in. Polling is the default; a push-driven
# transport only has to call the same two callbacks.

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional

from listsync.utils.logger import log_exception

logger = logging.getLogger(__name__)

PullCallback = Callable[[], Awaitable[None]]


class SyncTransport(ABC):

    @abstractmethod
    def start(self, pull_list: PullCallback, pull_chat: PullCallback) -> None:
        """Begin triggering pulls. Starting twice restarts."""

    @abstractmethod
    def stop(self) -> None:
        """Stop triggering pulls. No callback runs after this returns."""

    @property
    @abstractmethod
    def running(self) -> bool:
        ...


class PeriodicTask:
    """Runs an async callback every `interval` seconds until stopped."""

    def __init__(self, name: str, interval: float, callback: PullCallback):
        self.name = name
        self.interval = interval
        self.callback = callback
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        self.stop()
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)

    def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.callback()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # A failed tick must not end the schedule
                log_exception(e, f"periodic task {self.name}")


class PollingTransport(SyncTransport):
    """Two independent timers: one for the list, one for the chat log."""

    def __init__(self, list_interval: float = 6.0, chat_interval: float = 4.0):
        self.list_interval = list_interval
        self.chat_interval = chat_interval
        self._list_task: Optional[PeriodicTask] = None
        self._chat_task: Optional[PeriodicTask] = None

    @property
    def running(self) -> bool:
        return any(task is not None and task.running for task in (self._list_task, self._chat_task))

    def start(self, pull_list: PullCallback, pull_chat: PullCallback) -> None:
        self.stop()
        self._list_task = PeriodicTask("list-poll", self.list_interval, pull_list)
        self._chat_task = PeriodicTask("chat-poll", self.chat_interval, pull_chat)
        self._list_task.start()
        self._chat_task.start()
        logger.info(f"Polling started (list every {self.list_interval}s, chat every {self.chat_interval}s)")

    def stop(self) -> None:
        was_running = self.running
        for task in (self._list_task, self._chat_task):
            if task is not None:
                task.stop()
        self._list_task = None
        self._chat_task = None
        if was_running:
            logger.info("Polling stopped")
