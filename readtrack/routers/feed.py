"""
Feed Router

Home feed: the latest notifications plus refresher quiz prompts for books
finished a while ago. Suggestions and new-author books need an external
recommender and are always empty lists.
"""

from datetime import datetime, timedelta
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from readtrack import crud, schemas
from readtrack.core.config import Settings, get_settings
from readtrack.core.db import get_db
from readtrack.dependencies import get_current_user_id, track_activity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/feed", tags=["feed"], dependencies=[Depends(track_activity)])


@router.get("", response_model=schemas.Feed)
async def get_feed(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    notifications = await crud.get_notifications(db, user_id, limit=settings.FEED_NOTIFICATIONS_LIMIT)

    cutoff = datetime.utcnow() - timedelta(days=settings.REFRESHER_AFTER_DAYS)
    books = await crud.get_books_read_before(db, user_id, cutoff, limit=settings.REFRESHER_LIMIT)
    refreshers = [
        schemas.FeedRefresherQuiz(book_id=b.id, book_title=b.title, last_quiz_date=b.date_read)
        for b in books
    ]

    logger.debug(f"Feed for user {user_id}: {len(notifications)} notifications, {len(refreshers)} refreshers")
    return {
        "notifications": notifications,
        "suggested_books": [],
        "refresher_quizzes": refreshers,
        "new_author_books": [],
    }
