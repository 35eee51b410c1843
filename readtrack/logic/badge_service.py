"""
Badge Service - business logic

Evaluates a user's stats against the tier table and awards badges.

PRINCIPLES:
1. The tier table lives in badge_tiers, nothing here hardcodes thresholds
2. Tiers are cumulative: every reached tier is awarded, not only the highest
3. The (user, type, tier) unique constraint is the guard of record; the
   has_badge check only saves an INSERT
4. Badge evaluation never fails the action that triggered it
"""
from typing import List, Dict, Any, Optional
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from readtrack import crud, models
from readtrack.logic.badge_tiers import BADGE_CATEGORIES, TIER_ORDER, get_category, tier_index

logger = logging.getLogger(__name__)


def evaluate_condition(current_value: int, threshold: int) -> bool:
    """A tier is reached when the stat is at or above its threshold"""
    return (current_value or 0) >= threshold


async def award_badge(
    db: AsyncSession,
    user_id: str,
    badge_type: str,
    tier: str,
    threshold: int
) -> Optional[models.Badge]:
    """
    Insert one badge and emit its notification.

    Returns None when the badge already exists (insert conflict).
    """
    category = get_category(badge_type)
    if category is None:
        raise ValueError(f"Unknown badge type: {badge_type}")

    badge = await crud.create_badge(db, user_id, badge_type, tier, threshold)
    if badge is None:
        return None

    await crud.create_notification(
        db,
        user_id=user_id,
        notification_type=category.notification_type,
        title=category.notification_title,
        message=category.format_message(tier, threshold),
        extra_data={
            'badgeId': badge.id,
            'badgeType': badge_type,
            'tier': tier,
            'milestone': threshold,
        },
    )
    logger.info(f"🏆 Badge earned: {badge_type}/{tier} ({threshold}) by user {user_id}")
    return badge


async def check_and_award_badges(db: AsyncSession, user_id: str) -> List[models.Badge]:
    """
    Check every category and tier and award newly earned badges.

    This is the MAIN function called after stats change.

    Returns:
        List of newly created badges (empty when nothing new was earned)

    WORKFLOW:
    1. Get user stats (no row -> nothing to award)
    2. For each category, walk tiers in ascending order
    3. Skip tiers not reached or already held
    4. Insert badge + notification; conflicts are skipped
    """
    stats = await crud.get_user_stats(db, user_id)
    if stats is None:
        logger.debug(f"No stats for user {user_id}, no badges to check")
        return []

    # Snapshot the counters: a rolled back insert expires loaded rows
    values = {
        badge_type: getattr(stats, category.stat_field) or 0
        for badge_type, category in BADGE_CATEGORIES.items()
    }

    newly_earned = []
    for badge_type, category in BADGE_CATEGORIES.items():
        current_value = values[badge_type]

        for tier, threshold in category.tiers():
            if not evaluate_condition(current_value, threshold):
                # Thresholds ascend, higher tiers are out of reach too
                break

            if await crud.has_badge(db, user_id, badge_type, tier):
                continue

            badge = await award_badge(db, user_id, badge_type, tier, threshold)
            if badge is not None:
                newly_earned.append(badge)

    if newly_earned:
        logger.info(f"✅ {len(newly_earned)} new badges earned by user {user_id}")
    else:
        logger.debug(f"No new badges for user {user_id}")

    return newly_earned


async def evaluate_badges_safely(db: AsyncSession, user_id: str) -> List[models.Badge]:
    """
    Run check_and_award_badges without letting failures escape.

    The triggering action has already been committed; a failure here is
    logged and the session rolled back so the request can still respond.
    """
    try:
        return await check_and_award_badges(db, user_id)
    except Exception as e:
        await db.rollback()
        logger.error(f"Error evaluating badges for user {user_id}: {str(e)}", exc_info=True)
        return []


async def record_action(db: AsyncSession, user_id: str, *stat_fields: str) -> List[models.Badge]:
    """
    Count a committed action and re-check badges.

    Called after the primary write; failures are logged and rolled back so
    the action still succeeds.
    """
    try:
        for field in stat_fields:
            await crud.increment_stat(db, user_id, field)
    except Exception as e:
        await db.rollback()
        logger.error(f"Error updating stats for user {user_id}: {str(e)}", exc_info=True)
        return []

    return await evaluate_badges_safely(db, user_id)


def get_tier_table() -> List[Dict[str, Any]]:
    """Tier table in API shape, category order as defined in badge_tiers"""
    return [
        {
            'type': category.type,
            'name': category.name,
            'description': category.description,
            'stat_field': category.stat_field,
            'tiers': [
                {'tier': tier, 'threshold': threshold}
                for tier, threshold in category.tiers()
            ],
        }
        for category in BADGE_CATEGORIES.values()
    ]


async def get_badge_progress(db: AsyncSession, user_id: str) -> List[Dict[str, Any]]:
    """
    Progress towards the next tier of every category.

    progress is the percentage of the way from the highest earned tier's
    threshold to the next one, 100 once every tier is earned.
    """
    stats = await crud.get_user_stats(db, user_id)
    badges = await crud.get_badges(db, user_id)

    earned_by_type: Dict[str, List[str]] = {}
    for badge in badges:
        earned_by_type.setdefault(badge.type, []).append(badge.tier)

    report = []
    for badge_type, category in BADGE_CATEGORIES.items():
        current = (getattr(stats, category.stat_field) or 0) if stats else 0
        earned_tiers = sorted(earned_by_type.get(badge_type, []), key=tier_index)

        highest = max((tier_index(t) for t in earned_tiers), default=-1)
        next_index = highest + 1

        if next_index < len(TIER_ORDER):
            next_tier = TIER_ORDER[next_index]
            next_threshold = category.thresholds[next_index]
            previous_threshold = category.thresholds[next_index - 1] if next_index > 0 else 0
            span = next_threshold - previous_threshold
            progress = (current - previous_threshold) / span * 100 if span > 0 else 100.0
            progress = min(100.0, max(0.0, progress))
        else:
            next_tier = None
            next_threshold = None
            progress = 100.0

        report.append({
            'type': badge_type,
            'name': category.name,
            'current': current,
            'earned_tiers': earned_tiers,
            'next_tier': next_tier,
            'next_threshold': next_threshold,
            'progress': round(progress, 1),
        })

    return report
