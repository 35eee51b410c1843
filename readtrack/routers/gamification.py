"""
Gamification Router

Stats, earned badges, the tier table and progress towards the next tiers.
"""

from typing import List
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from readtrack import crud, schemas
from readtrack.core.db import get_db
from readtrack.dependencies import get_current_user_id, track_activity
from readtrack.logic import badge_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["gamification"], dependencies=[Depends(track_activity)])


@router.get("/user/stats", response_model=schemas.UserStats)
async def get_user_stats(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Caller's counters and streak, zero state if nothing was recorded yet"""
    return await crud.get_or_create_user_stats(db, user_id)


@router.get("/badges", response_model=List[schemas.Badge])
async def get_badges(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    badges = await crud.get_badges(db, user_id)
    logger.info(f"Retrieved {len(badges)} badges for user {user_id}")
    return badges


@router.get("/badges/tiers", response_model=List[schemas.BadgeCategoryInfo])
async def get_badge_tiers():
    """Tier table shared by every user"""
    return badge_service.get_tier_table()


@router.get("/badges/progress", response_model=List[schemas.BadgeProgress])
async def get_badge_progress(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    return await badge_service.get_badge_progress(db, user_id)
