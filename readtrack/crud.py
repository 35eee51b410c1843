"""
CRUD operations for the reading tracker.
All functions are async and take an SQLAlchemy AsyncSession.
"""
from datetime import date, datetime
from typing import List, Optional
import logging
import secrets
import string

from sqlalchemy import select, update, delete, and_, or_, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from readtrack import models, schemas

logger = logging.getLogger(__name__)

# Counters that increment_stat may touch
STAT_FIELDS = ("total_quizzes_completed", "total_books_added", "total_books_read")

INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits
INVITE_CODE_LENGTH = 8


# ==================== BOOKS ====================

async def get_books(
    db: AsyncSession,
    user_id: str,
    status: Optional[str] = None,
    search: Optional[str] = None
) -> List[models.Book]:
    """List a user's books, newest first, optionally filtered by status or title/author text"""
    query = select(models.Book).where(models.Book.user_id == user_id)

    if status:
        query = query.where(models.Book.status == status)

    if search:
        pattern = f"%{search.lower()}%"
        query = query.where(or_(
            func.lower(models.Book.title).like(pattern),
            func.lower(models.Book.author).like(pattern)
        ))

    query = query.order_by(models.Book.created_at.desc(), models.Book.id.desc())
    result = await db.execute(query)
    return result.scalars().all()


async def get_book(db: AsyncSession, book_id: int) -> Optional[models.Book]:
    result = await db.execute(select(models.Book).where(models.Book.id == book_id))
    return result.scalar_one_or_none()


async def create_book(db: AsyncSession, user_id: str, book: schemas.BookCreate) -> models.Book:
    db_book = models.Book(user_id=user_id, **book.model_dump())
    db.add(db_book)
    await db.commit()
    await db.refresh(db_book)
    return db_book


async def update_book(db: AsyncSession, db_book: models.Book, updates: schemas.BookUpdate, **extra) -> models.Book:
    """Apply only the fields present in the request, plus any server-side values"""
    values = updates.model_dump(exclude_unset=True)
    values.update(extra)
    for key, value in values.items():
        setattr(db_book, key, value)
    await db.commit()
    await db.refresh(db_book)
    return db_book


async def delete_book(db: AsyncSession, book_id: int) -> None:
    """Delete a book and its quizzes"""
    await db.execute(delete(models.Quiz).where(models.Quiz.book_id == book_id))
    await db.execute(delete(models.Book).where(models.Book.id == book_id))
    await db.commit()


async def get_books_read_before(
    db: AsyncSession,
    user_id: str,
    cutoff: datetime,
    limit: int = 5
) -> List[models.Book]:
    """Read books finished before cutoff, newest added first"""
    result = await db.execute(
        select(models.Book)
        .where(and_(
            models.Book.user_id == user_id,
            models.Book.status == models.BookStatus.READ.value,
            models.Book.date_read.is_not(None),
            models.Book.date_read < cutoff
        ))
        .order_by(models.Book.created_at.desc(), models.Book.id.desc())
        .limit(limit)
    )
    return result.scalars().all()


# ==================== QUIZZES ====================

async def get_quiz(db: AsyncSession, quiz_id: int) -> Optional[models.Quiz]:
    result = await db.execute(select(models.Quiz).where(models.Quiz.id == quiz_id))
    return result.scalar_one_or_none()


async def get_latest_quiz_for_book(db: AsyncSession, book_id: int) -> Optional[models.Quiz]:
    result = await db.execute(
        select(models.Quiz)
        .where(models.Quiz.book_id == book_id)
        .order_by(models.Quiz.created_at.desc(), models.Quiz.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def create_quiz(
    db: AsyncSession,
    book_id: int,
    difficulty: str,
    questions: List[dict]
) -> models.Quiz:
    db_quiz = models.Quiz(
        book_id=book_id,
        difficulty=difficulty,
        questions=questions,
        user_answers=None,
        score=None,
    )
    db.add(db_quiz)
    await db.commit()
    await db.refresh(db_quiz)
    return db_quiz


async def update_quiz_score(
    db: AsyncSession,
    db_quiz: models.Quiz,
    score: int,
    user_answers: list
) -> models.Quiz:
    db_quiz.score = score
    db_quiz.user_answers = user_answers
    await db.commit()
    await db.refresh(db_quiz)
    return db_quiz


async def get_user_quiz_history(db: AsyncSession, user_id: str) -> List[tuple]:
    """(Quiz, book title) rows for every quiz on the user's books, newest first"""
    result = await db.execute(
        select(models.Quiz, models.Book.title)
        .join(models.Book, models.Quiz.book_id == models.Book.id)
        .where(models.Book.user_id == user_id)
        .order_by(models.Quiz.created_at.desc(), models.Quiz.id.desc())
    )
    return result.all()


# ==================== USER STATS ====================

async def get_user_stats(db: AsyncSession, user_id: str) -> Optional[models.UserStats]:
    # populate_existing: counters may have been changed by UPDATE statements
    result = await db.execute(
        select(models.UserStats)
        .where(models.UserStats.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def create_user_stats(db: AsyncSession, user_id: str, **values) -> Optional[models.UserStats]:
    """
    Insert the stats row for a user.

    Returns None when another request created the row first (unique user_id).
    """
    db_stats = models.UserStats(user_id=user_id, **values)
    db.add(db_stats)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.info(f"Stats row for {user_id} already created by a concurrent request")
        return None
    await db.refresh(db_stats)
    return db_stats


async def get_or_create_user_stats(db: AsyncSession, user_id: str) -> models.UserStats:
    """Zero-state stats row, created lazily"""
    stats = await get_user_stats(db, user_id)
    if stats:
        return stats
    created = await create_user_stats(db, user_id)
    return created or await get_user_stats(db, user_id)


async def increment_stat(db: AsyncSession, user_id: str, field: str) -> models.UserStats:
    """
    Atomically add 1 to one of the stats counters.

    The increment runs in the database (SET field = field + 1). A missing row
    is created with the field at 1.
    """
    if field not in STAT_FIELDS:
        raise ValueError(f"Unknown stat field: {field}")

    column = getattr(models.UserStats, field)
    statement = (
        update(models.UserStats)
        .where(models.UserStats.user_id == user_id)
        .values({field: column + 1})
    )

    result = await db.execute(statement)
    if result.rowcount == 0:
        created = await create_user_stats(db, user_id, **{field: 1})
        if created:
            logger.info(f"Created stats for user {user_id} with {field}=1")
            return created
        # Lost the creation race, the row exists now
        await db.execute(statement)

    await db.commit()
    return await get_user_stats(db, user_id)


async def save_streak(
    db: AsyncSession,
    user_id: str,
    daily_streak: int,
    longest_streak: int,
    last_active_date: date
) -> models.UserStats:
    await db.execute(
        update(models.UserStats)
        .where(models.UserStats.user_id == user_id)
        .values(
            daily_streak=daily_streak,
            longest_streak=longest_streak,
            last_active_date=last_active_date,
        )
    )
    await db.commit()
    return await get_user_stats(db, user_id)


# ==================== BADGES ====================

async def get_badges(db: AsyncSession, user_id: str) -> List[models.Badge]:
    result = await db.execute(
        select(models.Badge)
        .where(models.Badge.user_id == user_id)
        .order_by(models.Badge.earned_at.desc(), models.Badge.id.desc())
    )
    return result.scalars().all()


async def has_badge(db: AsyncSession, user_id: str, badge_type: str, tier: str) -> bool:
    result = await db.execute(
        select(models.Badge.id).where(and_(
            models.Badge.user_id == user_id,
            models.Badge.type == badge_type,
            models.Badge.tier == tier
        ))
    )
    return result.first() is not None


async def create_badge(
    db: AsyncSession,
    user_id: str,
    badge_type: str,
    tier: str,
    milestone: int
) -> Optional[models.Badge]:
    """
    Insert a badge.

    Returns None if the (user, type, tier) badge already exists; the unique
    constraint decides, not the caller's pre-check.
    """
    db_badge = models.Badge(user_id=user_id, type=badge_type, tier=tier, milestone=milestone)
    db.add(db_badge)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.info(f"Badge {badge_type}/{tier} already awarded to {user_id}, skipping")
        return None
    await db.refresh(db_badge)
    return db_badge


# ==================== NOTIFICATIONS ====================

async def get_notifications(db: AsyncSession, user_id: str, limit: int = 50) -> List[models.Notification]:
    result = await db.execute(
        select(models.Notification)
        .where(models.Notification.user_id == user_id)
        .order_by(models.Notification.created_at.desc(), models.Notification.id.desc())
        .limit(limit)
    )
    return result.scalars().all()


async def get_unread_notification_count(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        select(func.count(models.Notification.id)).where(and_(
            models.Notification.user_id == user_id,
            models.Notification.is_read.is_(False)
        ))
    )
    return result.scalar() or 0


async def create_notification(
    db: AsyncSession,
    user_id: str,
    notification_type: str,
    title: str,
    message: str,
    related_book_id: Optional[int] = None,
    related_club_id: Optional[int] = None,
    extra_data: Optional[dict] = None
) -> models.Notification:
    db_notification = models.Notification(
        user_id=user_id,
        type=notification_type,
        title=title,
        message=message,
        is_read=False,
        related_book_id=related_book_id,
        related_club_id=related_club_id,
        extra_data=extra_data,
    )
    db.add(db_notification)
    await db.commit()
    await db.refresh(db_notification)
    return db_notification


async def mark_notification_read(db: AsyncSession, user_id: str, notification_id: int) -> None:
    await db.execute(
        update(models.Notification)
        .where(and_(
            models.Notification.id == notification_id,
            models.Notification.user_id == user_id
        ))
        .values(is_read=True)
    )
    await db.commit()


async def mark_all_notifications_read(db: AsyncSession, user_id: str) -> None:
    await db.execute(
        update(models.Notification)
        .where(models.Notification.user_id == user_id)
        .values(is_read=True)
    )
    await db.commit()


# ==================== BOOK CLUBS ====================

def generate_invite_code() -> str:
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))


async def get_book_club(db: AsyncSession, club_id: int) -> Optional[models.BookClub]:
    result = await db.execute(select(models.BookClub).where(models.BookClub.id == club_id))
    return result.scalar_one_or_none()


async def get_book_club_by_invite_code(db: AsyncSession, code: str) -> Optional[models.BookClub]:
    result = await db.execute(select(models.BookClub).where(models.BookClub.invite_code == code))
    return result.scalar_one_or_none()


async def get_user_book_clubs(db: AsyncSession, user_id: str) -> List[models.BookClub]:
    """Clubs the user owns or belongs to, each once"""
    member_club_ids = select(models.BookClubMember.club_id).where(models.BookClubMember.user_id == user_id)
    result = await db.execute(
        select(models.BookClub)
        .where(or_(
            models.BookClub.owner_id == user_id,
            models.BookClub.id.in_(member_club_ids)
        ))
        .order_by(models.BookClub.created_at.desc(), models.BookClub.id.desc())
    )
    return result.scalars().all()


async def create_book_club(db: AsyncSession, owner_id: str, club: schemas.BookClubCreate) -> models.BookClub:
    """Create a club with a fresh invite code and add the owner as a member"""
    invite_code = generate_invite_code()
    while await get_book_club_by_invite_code(db, invite_code):
        invite_code = generate_invite_code()

    db_club = models.BookClub(
        name=club.name,
        description=club.description,
        owner_id=owner_id,
        invite_code=invite_code,
        current_book_id=None,
    )
    db.add(db_club)
    await db.flush()

    db.add(models.BookClubMember(
        club_id=db_club.id,
        user_id=owner_id,
        role=models.ClubRole.OWNER.value,
    ))
    await db.commit()
    await db.refresh(db_club)
    return db_club


async def set_club_current_book(db: AsyncSession, db_club: models.BookClub, book_id: Optional[int]) -> models.BookClub:
    db_club.current_book_id = book_id
    await db.commit()
    await db.refresh(db_club)
    return db_club


async def get_book_club_members(db: AsyncSession, club_id: int) -> List[models.BookClubMember]:
    result = await db.execute(
        select(models.BookClubMember)
        .where(models.BookClubMember.club_id == club_id)
        .order_by(models.BookClubMember.joined_at, models.BookClubMember.id)
    )
    return result.scalars().all()


async def get_book_club_member(db: AsyncSession, club_id: int, user_id: str) -> Optional[models.BookClubMember]:
    result = await db.execute(
        select(models.BookClubMember).where(and_(
            models.BookClubMember.club_id == club_id,
            models.BookClubMember.user_id == user_id
        ))
    )
    return result.scalar_one_or_none()


async def add_book_club_member(db: AsyncSession, club_id: int, user_id: str) -> Optional[models.BookClubMember]:
    """Returns None if the user is already a member"""
    db_member = models.BookClubMember(club_id=club_id, user_id=user_id, role=models.ClubRole.MEMBER.value)
    db.add(db_member)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        return None
    await db.refresh(db_member)
    return db_member


async def remove_book_club_member(db: AsyncSession, club_id: int, user_id: str) -> None:
    await db.execute(
        delete(models.BookClubMember).where(and_(
            models.BookClubMember.club_id == club_id,
            models.BookClubMember.user_id == user_id
        ))
    )
    await db.commit()


async def get_book_club_messages(db: AsyncSession, club_id: int, limit: int = 100) -> List[models.BookClubMessage]:
    result = await db.execute(
        select(models.BookClubMessage)
        .where(models.BookClubMessage.club_id == club_id)
        .order_by(models.BookClubMessage.created_at.desc(), models.BookClubMessage.id.desc())
        .limit(limit)
    )
    return result.scalars().all()


async def create_book_club_message(db: AsyncSession, club_id: int, user_id: str, content: str) -> models.BookClubMessage:
    db_message = models.BookClubMessage(club_id=club_id, user_id=user_id, content=content)
    db.add(db_message)
    await db.commit()
    await db.refresh(db_message)
    return db_message
