# listsync/routers/shares.py
# Shares and subscriptions

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status

from listsync.errors import ValidationError
from listsync.repositories.record_repository import RecordRepository
from listsync.routers.deps import get_repository, get_user_id
from listsync.schemas.records import ShareMetadata, ShareRequest, ShareResponse, Subscription, ZoneHandle

router = APIRouter(tags=["Shares"])


@router.post("/shares", response_model=ShareResponse)
async def create_share(
    payload: ShareRequest,
    user_id: str = Depends(get_user_id),
    repo: RecordRepository = Depends(get_repository),
) -> ShareResponse:
    return ShareResponse(locator=await repo.create_share(user_id, payload.root))


@router.get("/shares/metadata", response_model=ShareMetadata)
async def fetch_share_metadata(
    locator: str = Query(..., min_length=1),
    user_id: str = Depends(get_user_id),
    repo: RecordRepository = Depends(get_repository),
) -> ShareMetadata:
    return await repo.fetch_share_metadata(user_id, locator)


@router.post("/shares/accept", response_model=ZoneHandle)
async def accept_share(
    payload: ShareMetadata,
    user_id: str = Depends(get_user_id),
    repo: RecordRepository = Depends(get_repository),
) -> ZoneHandle:
    return await repo.accept_share(user_id, payload)


@router.put("/subscriptions/{subscription_id}", response_model=Subscription)
async def save_subscription(
    subscription_id: str,
    payload: Subscription,
    user_id: str = Depends(get_user_id),
    repo: RecordRepository = Depends(get_repository),
) -> Subscription:
    if payload.subscription_id != subscription_id:
        raise ValidationError("Subscription id does not match the path", details={"subscription_id": subscription_id})
    return await repo.save_subscription(user_id, payload)


@router.delete("/subscriptions/{subscription_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_subscription(
    subscription_id: str,
    user_id: str = Depends(get_user_id),
    repo: RecordRepository = Depends(get_repository),
) -> Response:
    await repo.delete_subscription(user_id, subscription_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
