"""
FastAPI dependencies for request identity and activity tracking.

Identity comes from the X-User-ID header set by the upstream auth layer.
Both dependencies leave what they resolved on request.state (user_id,
daily_streak) for the request log.
"""
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncSession

from readtrack.core.db import get_db
from readtrack.logic import streak_service


async def get_current_user_id(
    request: Request,
    x_user_id: Optional[str] = Header(None, alias="X-User-ID"),
) -> str:
    """
    Authenticated user id for the request.

    Raises:
        HTTPException 401: If the header is missing or blank

    Example:
        @router.get("/api/books")
        async def list_books(user_id: str = Depends(get_current_user_id)):
            ...
    """
    if x_user_id is None or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    user_id = x_user_id.strip()
    request.state.user_id = user_id
    return user_id


async def track_activity(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Update the daily streak once per authenticated request, never failing it"""
    stats = await streak_service.record_activity(db, user_id)
    if stats is not None:
        # Loaded value only, a failed badge pass rolls back and expires the row
        request.state.daily_streak = inspect(stats).dict.get("daily_streak")
