# tests/integration/conftest.py
# Pytest fixtures to start PostgreSQL via TestContainers.
# - Points DB_URL at the container and rebinds the engine in listsync.db.base.
# - Creates the schema from the table metadata; each test starts from empty tables.

import os
from typing import Iterator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from testcontainers.postgres import PostgresContainer

from listsync.db import base
from listsync.models.records_table import records


@pytest.fixture(scope="session")
def postgres_url() -> Iterator[str]:
    # // start test containers (PostgreSQL)
    with PostgresContainer("postgres:16-alpine") as pg:
        yield pg.get_connection_url()
        # // clean up after tests (container stops via context manager)


@pytest.fixture(scope="session", autouse=True)
def inject_env(postgres_url: str):
    """Send every repository call to the container instead of the configured DB_URL."""
    old_db = os.environ.get("DB_URL")
    old_engine, old_factory = base.async_engine, base.AsyncSessionFactory
    os.environ["DB_URL"] = postgres_url

    # get_session() looks these up at call time
    base.async_engine = create_async_engine(base._to_asyncpg_url(postgres_url), pool_pre_ping=True)
    base.AsyncSessionFactory = async_sessionmaker(bind=base.async_engine, expire_on_commit=False, autoflush=False)

    yield

    base.async_engine, base.AsyncSessionFactory = old_engine, old_factory
    if old_db is None:
        os.environ.pop("DB_URL", None)
    else:
        os.environ["DB_URL"] = old_db


@pytest_asyncio.fixture
async def clean_db():
    """Fresh tables for every test; pooled connections are released with the test's loop."""
    # every table module registers on the same MetaData
    metadata = records.metadata

    async with base.async_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    yield

    await base.async_engine.dispose()
