"""
Notifications Router
"""

from typing import List
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from readtrack import crud, schemas
from readtrack.core.config import Settings, get_settings
from readtrack.core.db import get_db
from readtrack.dependencies import get_current_user_id, track_activity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["notifications"], dependencies=[Depends(track_activity)])


@router.get("", response_model=List[schemas.Notification])
async def list_notifications(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    """Newest first"""
    return await crud.get_notifications(db, user_id, limit=settings.NOTIFICATIONS_LIMIT)


@router.get("/unread-count", response_model=schemas.CountResponse)
async def unread_count(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    count = await crud.get_unread_notification_count(db, user_id)
    return schemas.CountResponse(count=count)


@router.post("/read-all", response_model=schemas.SuccessResponse)
async def mark_all_read(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    await crud.mark_all_notifications_read(db, user_id)
    return schemas.SuccessResponse()


@router.post("/{notification_id}/read", response_model=schemas.SuccessResponse)
async def mark_read(
    notification_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Marks the notification read if it belongs to the caller"""
    await crud.mark_notification_read(db, user_id, notification_id)
    return schemas.SuccessResponse()
