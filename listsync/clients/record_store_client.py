# listsync/clients/record_store_client.py
# HTTP adapter for the record store service, used by devices.
# Network failures and unexpected 5xx answers become StoreUnavailableError;
# the service's JSON error bodies are mapped back to the matching AppError.

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional
from urllib.parse import quote

import aiohttp

from listsync.clients.base import RecordStore
from listsync.errors import StoreUnavailableError, ValidationError, error_from_payload
from listsync.middleware.circuit_breaker import CircuitBreakerError, get_circuit_breaker, retry_with_backoff
from listsync.schemas.records import (
    AccountResponse,
    ModifyResponse,
    ParticipantsResponse,
    Predicate,
    QueryRequest,
    QueryResponse,
    Record,
    RecordID,
    ShareMetadata,
    ShareResponse,
    SortDescriptor,
    Subscription,
    ZoneHandle,
)

logger = logging.getLogger(__name__)

USER_HEADER = "X-User-ID"


def _segment(value: str) -> str:
    return quote(value, safe="")


class HttpRecordStore(RecordStore):
    """Talks to the FastAPI record store on behalf of one user."""

    def __init__(self, base_url: str, user_id: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None
        self._breaker = get_circuit_breaker(
            f"record-store:{self.base_url}",
            failure_threshold=5,
            recovery_timeout=30.0,
            failure_exceptions=(StoreUnavailableError,),
        )

    async def __aenter__(self) -> "HttpRecordStore":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    # ---------- transport ----------

    async def _send(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: Optional[dict] = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        headers = {USER_HEADER: self.user_id}
        try:
            async with self._get_session().request(
                method, url, json=json, params=params, headers=headers,
            ) as response:
                if response.status == 204:
                    return None
                try:
                    payload = await response.json(content_type=None)
                except ValueError:
                    payload = None
                if response.status >= 400:
                    raise error_from_payload(response.status, payload)
                return payload
        except aiohttp.ClientError as err:
            logger.warning(f"Record store request {method} {path} failed: {err}")
            raise StoreUnavailableError(f"Error connecting to record store: {err}") from err
        except asyncio.TimeoutError as err:
            logger.warning(f"Record store request {method} {path} timed out")
            raise StoreUnavailableError("Record store request timed out") from err

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            return await self._breaker.call(self._send, method, path, **kwargs)
        except CircuitBreakerError as err:
            raise StoreUnavailableError(str(err)) from err

    @retry_with_backoff(max_retries=2, base_delay=0.25, max_delay=2.0, exceptions=(StoreUnavailableError,))
    async def _read(self, method: str, path: str, **kwargs) -> Any:
        return await self._request(method, path, **kwargs)

    # ---------- RecordStore ----------

    async def account_status(self) -> None:
        AccountResponse.model_validate(await self._read("GET", "/api/account"))

    async def fetch(self, record_id: RecordID) -> Record:
        path = f"/api/zones/{_segment(record_id.zone_name)}/records/{_segment(record_id.record_name)}"
        return Record.model_validate(await self._read("GET", path))

    async def save(self, record: Record) -> Record:
        path = (
            f"/api/zones/{_segment(record.record_id.zone_name)}"
            f"/records/{_segment(record.record_id.record_name)}"
        )
        payload = await self._request("PUT", path, json=record.model_dump(mode="json"))
        return Record.model_validate(payload)

    async def delete(self, record_id: RecordID) -> RecordID:
        path = f"/api/zones/{_segment(record_id.zone_name)}/records/{_segment(record_id.record_name)}"
        return RecordID.model_validate(await self._request("DELETE", path))

    async def modify(
        self,
        save: list[Record],
        delete_ids: list[RecordID],
    ) -> tuple[list[Record], list[RecordID]]:
        zones = {record.record_id.zone_name for record in save} | {rid.zone_name for rid in delete_ids}
        if not zones:
            return [], []
        if len(zones) > 1:
            raise ValidationError("A modify batch must target a single zone", details={"zones": sorted(zones)})

        body = {
            "save": [record.model_dump(mode="json") for record in save],
            "delete": [record_id.model_dump(mode="json") for record_id in delete_ids],
        }
        payload = await self._request("POST", f"/api/zones/{_segment(zones.pop())}/records/modify", json=body)
        result = ModifyResponse.model_validate(payload)
        return result.saved, result.deleted

    async def query(
        self,
        record_type: str,
        zone_name: str,
        predicate: Optional[Predicate] = None,
        sort: Optional[list[SortDescriptor]] = None,
    ) -> list[Record]:
        body = QueryRequest(record_type=record_type, predicate=predicate, sort=sort or [])
        payload = await self._read(
            "POST", f"/api/zones/{_segment(zone_name)}/records/query", json=body.model_dump(mode="json"),
        )
        return QueryResponse.model_validate(payload).records

    async def create_zone(self, zone_name: str) -> ZoneHandle:
        return ZoneHandle.model_validate(await self._request("PUT", f"/api/zones/{_segment(zone_name)}"))

    async def list_participants(self, zone_name: str) -> list[str]:
        payload = await self._read("GET", f"/api/zones/{_segment(zone_name)}/participants")
        return ParticipantsResponse.model_validate(payload).participants

    async def create_share(self, root: Record) -> str:
        payload = await self._request("POST", "/api/shares", json={"root": root.model_dump(mode="json")})
        return ShareResponse.model_validate(payload).locator

    async def fetch_share_metadata(self, locator: str) -> ShareMetadata:
        payload = await self._read("GET", "/api/shares/metadata", params={"locator": locator})
        return ShareMetadata.model_validate(payload)

    async def accept_share(self, metadata: ShareMetadata) -> ZoneHandle:
        payload = await self._request("POST", "/api/shares/accept", json=metadata.model_dump(mode="json"))
        return ZoneHandle.model_validate(payload)

    async def save_subscription(self, subscription: Subscription) -> Subscription:
        payload = await self._request(
            "PUT",
            f"/api/subscriptions/{_segment(subscription.subscription_id)}",
            json=subscription.model_dump(mode="json"),
        )
        return Subscription.model_validate(payload)

    async def delete_subscription(self, subscription_id: str) -> None:
        await self._request("DELETE", f"/api/subscriptions/{_segment(subscription_id)}")
