"""
Badge tier table

Single source for badge categories, thresholds and notification templates.
Read by the badge evaluator, the progress report and the /api/badges/tiers
endpoint, so clients never keep their own copy of the thresholds.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from readtrack.models import BadgeTier, BadgeType, NotificationType

# Ascending order, bronze < silver < gold < platinum < diamond
TIER_ORDER: Tuple[str, ...] = tuple(tier.value for tier in BadgeTier)


@dataclass(frozen=True)
class BadgeCategory:
    type: str
    name: str
    description: str
    stat_field: str
    thresholds: Tuple[int, ...]
    notification_type: str
    notification_title: str
    message_template: str

    def tiers(self) -> List[Tuple[str, int]]:
        """(tier, threshold) pairs in ascending tier order"""
        return list(zip(TIER_ORDER, self.thresholds))

    def format_message(self, tier: str, threshold: int) -> str:
        return self.message_template.format(tier=tier, threshold=threshold)


BADGE_CATEGORIES: Dict[str, BadgeCategory] = {
    BadgeType.QUIZZES.value: BadgeCategory(
        type=BadgeType.QUIZZES.value,
        name="Quiz Master",
        description="Complete quizzes to test your knowledge",
        stat_field="total_quizzes_completed",
        thresholds=(1, 5, 10, 20, 50),
        notification_type=NotificationType.BADGE_EARNED.value,
        notification_title="New Badge Earned!",
        message_template="You earned the {tier} Quiz Master badge for completing {threshold} quizzes!",
    ),
    BadgeType.BOOKS_ADDED.value: BadgeCategory(
        type=BadgeType.BOOKS_ADDED.value,
        name="Collector",
        description="Add books to your library",
        stat_field="total_books_added",
        thresholds=(1, 5, 10, 20, 50),
        notification_type=NotificationType.BADGE_EARNED.value,
        notification_title="New Badge Earned!",
        message_template="You earned the {tier} Collector badge for adding {threshold} books!",
    ),
    BadgeType.BOOKS_READ.value: BadgeCategory(
        type=BadgeType.BOOKS_READ.value,
        name="Bookworm",
        description="Read and complete books",
        stat_field="total_books_read",
        thresholds=(1, 5, 10, 20, 50),
        notification_type=NotificationType.BADGE_EARNED.value,
        notification_title="New Badge Earned!",
        message_template="You earned the {tier} Bookworm badge for reading {threshold} books!",
    ),
    BadgeType.DAILY_STREAK.value: BadgeCategory(
        type=BadgeType.DAILY_STREAK.value,
        name="Dedicated Reader",
        description="Maintain a daily reading streak",
        stat_field="daily_streak",
        thresholds=(3, 7, 14, 30, 100),
        notification_type=NotificationType.STREAK_MILESTONE.value,
        notification_title="Streak Milestone!",
        message_template="You earned the {tier} Dedicated Reader badge for a {threshold} day streak!",
    ),
}


def get_category(badge_type: str) -> Optional[BadgeCategory]:
    return BADGE_CATEGORIES.get(badge_type)


def tier_index(tier: str) -> int:
    """Position of a tier in TIER_ORDER, -1 for unknown tiers"""
    try:
        return TIER_ORDER.index(tier)
    except ValueError:
        return -1
