# tests/api/conftest.py
# Runs the record store on a free local port with the in-memory repository
# injected, so HttpRecordStore is exercised over real HTTP.

import asyncio
import socket

import pytest_asyncio
import uvicorn

from listsync.clients.record_store_client import HttpRecordStore
from listsync.main_fastapi import create_app
from listsync.routers.deps import get_repository


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest_asyncio.fixture
async def base_url(repository):
    app = create_app(telemetry=False)
    app.dependency_overrides[get_repository] = lambda: repository

    port = _free_port()
    server = uvicorn.Server(uvicorn.Config(
        app, host="127.0.0.1", port=port, lifespan="off", log_level="warning",
    ))
    serve_task = asyncio.create_task(server.serve())
    while not server.started:
        if serve_task.done():
            serve_task.result()
        await asyncio.sleep(0.01)

    yield f"http://127.0.0.1:{port}"

    server.should_exit = True
    await serve_task


@pytest_asyncio.fixture
async def http_store_factory(base_url):
    opened: list[HttpRecordStore] = []

    def factory(user_id: str) -> HttpRecordStore:
        store = HttpRecordStore(base_url, user_id, timeout=5.0)
        opened.append(store)
        return store

    yield factory

    for store in opened:
        await store.close()
