"""
Streak Service - daily activity streak

Handles:
- Streak state calculation (consecutive days, same-day re-entry, resets)
- Persisting the streak on the user's stats row
- Badge evaluation when the streak value changes

Days are server-local calendar dates. A request on the day after the last
active day extends the streak, a request on the same day keeps it, anything
else starts over at 1.
"""
from datetime import date, timedelta
from typing import Optional, Tuple
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from readtrack import crud, models
from readtrack.logic import badge_service

logger = logging.getLogger(__name__)


def calculate_streak_state(
    current_streak: int,
    longest_streak: int,
    last_active_date: Optional[date],
    today: date
) -> Tuple[int, int]:
    """
    Calculate (daily_streak, longest_streak) for an activity on `today`.

    Examples:
        >>> calculate_streak_state(4, 9, date(2025, 3, 1), date(2025, 3, 2))
        (5, 9)
        >>> calculate_streak_state(4, 9, date(2025, 3, 2), date(2025, 3, 2))
        (4, 9)
        >>> calculate_streak_state(4, 9, date(2025, 2, 27), date(2025, 3, 2))
        (1, 9)
    """
    current_streak = current_streak or 0
    longest_streak = longest_streak or 0
    yesterday = today - timedelta(days=1)

    if last_active_date == yesterday:
        new_streak = current_streak + 1
    elif last_active_date == today:
        new_streak = current_streak
    else:
        # No prior activity, a gap of 2+ days, or a date in the future
        new_streak = 1

    return new_streak, max(longest_streak, new_streak)


async def update_streak(
    db: AsyncSession,
    user_id: str,
    today: Optional[date] = None
) -> models.UserStats:
    """
    Record activity for today and update the streak (MAIN ENTRY POINT)

    Runs once per authenticated request. Same-day calls leave the streak
    value unchanged. Read-modify-write without locking, last writer wins.
    """
    today = today or date.today()

    stats = await crud.get_user_stats(db, user_id)
    if stats is None:
        created = await crud.create_user_stats(
            db,
            user_id,
            daily_streak=1,
            longest_streak=1,
            last_active_date=today,
        )
        if created:
            logger.info(f"First activity for user {user_id}, starting streak at 1")
            return created
        stats = await crud.get_user_stats(db, user_id)

    new_streak, new_longest = calculate_streak_state(
        current_streak=stats.daily_streak,
        longest_streak=stats.longest_streak,
        last_active_date=stats.last_active_date,
        today=today,
    )

    if new_streak != stats.daily_streak:
        logger.info(f"Streak for user {user_id}: {stats.daily_streak} -> {new_streak}")

    return await crud.save_streak(
        db,
        user_id,
        daily_streak=new_streak,
        longest_streak=new_longest,
        last_active_date=today,
    )


async def record_activity(
    db: AsyncSession,
    user_id: str,
    today: Optional[date] = None
) -> Optional[models.UserStats]:
    """
    Best-effort streak tracking for a request.

    Updates the streak and, when the streak value moved, runs a badge pass
    so streak milestones are awarded without waiting for another action.
    Errors are logged and swallowed; they must not fail the request.
    """
    try:
        previous = await crud.get_user_stats(db, user_id)
        previous_streak = previous.daily_streak if previous else 0

        stats = await update_streak(db, user_id, today=today)
    except Exception as e:
        await db.rollback()
        logger.error(f"Error updating streak for user {user_id}: {str(e)}", exc_info=True)
        return None

    if stats.daily_streak != previous_streak:
        await badge_service.evaluate_badges_safely(db, user_id)

    return stats
