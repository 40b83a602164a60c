# listsync/routers/deps.py
# Shared dependencies: which repository serves the request and who is asking

from __future__ import annotations

from functools import lru_cache

from fastapi import Header

from listsync.repositories.record_repository import RecordRepository

USER_HEADER = "X-User-ID"


@lru_cache()
def get_repository() -> RecordRepository:
    """Provide the repository with DI; tests override this with MemoryRecordRepository."""
    return RecordRepository()


async def get_user_id(user_id: str = Header(default="", alias=USER_HEADER)) -> str:
    """
    Caller identity, taken from the X-User-ID header as sent.

    The header is trusted without any authentication, so anyone who can reach
    the service can act as any user and zone access control is only as good as
    the network boundary. Development and trusted-network use only; put an
    authenticating proxy in front before exposing the service.
    """
    # Blank identities are rejected by the repository as NOT_AUTHENTICATED
    return user_id.strip()
