# listsync/routers/records.py
# Zones and records. Every route acts on behalf of the X-User-ID caller.

from __future__ import annotations

from fastapi import APIRouter, Depends, Path

from listsync.errors import ValidationError
from listsync.repositories.record_repository import RecordRepository
from listsync.routers.deps import get_repository, get_user_id
from listsync.schemas.records import (
    AccountResponse,
    ModifyRequest,
    ModifyResponse,
    ParticipantsResponse,
    QueryRequest,
    QueryResponse,
    Record,
    RecordID,
    ZoneHandle,
)

router = APIRouter(tags=["Records"])


def _require_zone(zone_name: str, record_ids: list[RecordID]) -> None:
    for record_id in record_ids:
        if record_id.zone_name != zone_name:
            raise ValidationError(
                "Record does not belong to the zone in the path",
                details={"zone_name": zone_name, "record_zone": record_id.zone_name},
            )


@router.get("/account", response_model=AccountResponse)
async def account_status(
    user_id: str = Depends(get_user_id),
    repo: RecordRepository = Depends(get_repository),
) -> AccountResponse:
    return AccountResponse(user_id=await repo.check_account(user_id))


@router.put("/zones/{zone_name}", response_model=ZoneHandle)
async def create_zone(
    zone_name: str = Path(..., min_length=1),
    user_id: str = Depends(get_user_id),
    repo: RecordRepository = Depends(get_repository),
) -> ZoneHandle:
    return await repo.create_zone(user_id, zone_name)


@router.get("/zones/{zone_name}/participants", response_model=ParticipantsResponse)
async def list_participants(
    zone_name: str,
    user_id: str = Depends(get_user_id),
    repo: RecordRepository = Depends(get_repository),
) -> ParticipantsResponse:
    return ParticipantsResponse(participants=await repo.list_participants(user_id, zone_name))


@router.post("/zones/{zone_name}/records/query", response_model=QueryResponse)
async def query_records(
    zone_name: str,
    payload: QueryRequest,
    user_id: str = Depends(get_user_id),
    repo: RecordRepository = Depends(get_repository),
) -> QueryResponse:
    found = await repo.query(user_id, zone_name, payload.record_type, payload.predicate, payload.sort)
    return QueryResponse(records=found)


@router.post("/zones/{zone_name}/records/modify", response_model=ModifyResponse)
async def modify_records(
    zone_name: str,
    payload: ModifyRequest,
    user_id: str = Depends(get_user_id),
    repo: RecordRepository = Depends(get_repository),
) -> ModifyResponse:
    _require_zone(zone_name, [record.record_id for record in payload.save] + payload.delete)
    saved, deleted = await repo.modify(user_id, payload.save, payload.delete)
    return ModifyResponse(saved=saved, deleted=deleted)


@router.get("/zones/{zone_name}/records/{record_name}", response_model=Record)
async def fetch_record(
    zone_name: str,
    record_name: str,
    user_id: str = Depends(get_user_id),
    repo: RecordRepository = Depends(get_repository),
) -> Record:
    return await repo.fetch(user_id, RecordID(record_name=record_name, zone_name=zone_name))


@router.put("/zones/{zone_name}/records/{record_name}", response_model=Record)
async def save_record(
    zone_name: str,
    record_name: str,
    payload: Record,
    user_id: str = Depends(get_user_id),
    repo: RecordRepository = Depends(get_repository),
) -> Record:
    if payload.record_id != RecordID(record_name=record_name, zone_name=zone_name):
        raise ValidationError("Record id does not match the path", details={"record_name": record_name})
    return await repo.save(user_id, payload)


@router.delete("/zones/{zone_name}/records/{record_name}", response_model=RecordID)
async def delete_record(
    zone_name: str,
    record_name: str,
    user_id: str = Depends(get_user_id),
    repo: RecordRepository = Depends(get_repository),
) -> RecordID:
    return await repo.delete(user_id, RecordID(record_name=record_name, zone_name=zone_name))
