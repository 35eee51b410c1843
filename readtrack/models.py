from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, Date, ForeignKey, Boolean, Index, JSON, UniqueConstraint, CheckConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
import enum
from readtrack.core.db import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class BookStatus(str, enum.Enum):
    """Reading status of a book"""
    READ = "read"
    READING = "reading"
    WANT_TO_READ = "want_to_read"


class QuizDifficulty(str, enum.Enum):
    BEGINNER = "beginner"
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    EXPERT = "expert"


class QuestionType(str, enum.Enum):
    TRUE_FALSE = "true_false"
    MULTIPLE_CHOICE = "multiple_choice"
    MULTIPLE_SELECT = "multiple_select"


class BadgeType(str, enum.Enum):
    """Badge categories, each an independent achievement track"""
    QUIZZES = "quizzes"
    BOOKS_ADDED = "books_added"
    BOOKS_READ = "books_read"
    DAILY_STREAK = "daily_streak"


class BadgeTier(str, enum.Enum):
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"
    DIAMOND = "diamond"


class NotificationType(str, enum.Enum):
    SUGGESTED_READING = "suggested_reading"
    REFRESHER_QUIZ = "refresher_quiz"
    NEW_AUTHOR_BOOK = "new_author_book"
    BADGE_EARNED = "badge_earned"
    STREAK_MILESTONE = "streak_milestone"
    BOOK_CLUB_ACTIVITY = "book_club_activity"


class ClubRole(str, enum.Enum):
    OWNER = "owner"
    MEMBER = "member"


class Book(Base):
    """A book in a user's library"""
    __tablename__ = "books"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    google_books_id = Column(String(100), nullable=True)
    title = Column(Text, nullable=False)
    author = Column(Text, nullable=False)
    cover_url = Column(Text, nullable=True)
    # Stored as plain strings, values from BookStatus
    status = Column(String(20), nullable=False, default=BookStatus.WANT_TO_READ.value)
    user_notes = Column(Text, nullable=True)
    rating = Column(Integer, nullable=True)
    date_read = Column(DateTime, nullable=True)
    is_favorite = Column(Boolean, default=False, nullable=False)
    genre = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    quizzes = relationship("Quiz", back_populates="book", cascade="all, delete-orphan")

    __table_args__ = (
        Index('ix_books_user_created', 'user_id', 'created_at'),
    )


class Quiz(Base):
    """
    AI-generated quiz for a book.

    questions: [{type, question, options, correctAnswer | correctAnswers}]
    user_answers / score stay NULL until the quiz is graded.
    """
    __tablename__ = "quizzes"

    id = Column(Integer, primary_key=True, index=True)
    book_id = Column(Integer, ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True)
    difficulty = Column(String(20), nullable=False, default=QuizDifficulty.MEDIUM.value)
    questions = Column(JSONType, nullable=False)
    user_answers = Column(JSONType, nullable=True)
    score = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    book = relationship("Book", back_populates="quizzes")

    @property
    def is_graded(self) -> bool:
        return self.score is not None


class UserStats(Base):
    """Per-user gamification counters and daily streak (one row per user)"""
    __tablename__ = "user_stats"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), nullable=False, unique=True, index=True)
    daily_streak = Column(Integer, default=0, nullable=False)
    longest_streak = Column(Integer, default=0, nullable=False)
    last_active_date = Column(Date, nullable=True)
    total_quizzes_completed = Column(Integer, default=0, nullable=False)
    total_books_added = Column(Integer, default=0, nullable=False)
    total_books_read = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint('longest_streak >= daily_streak', name='ck_user_stats_longest_streak'),
    )


class Badge(Base):
    """Earned badge. Immutable, at most one per (user_id, type, tier)."""
    __tablename__ = "badges"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    type = Column(String(30), nullable=False)
    tier = Column(String(20), nullable=False)
    milestone = Column(Integer, nullable=False)
    earned_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('user_id', 'type', 'tier', name='uq_badges_user_type_tier'),
    )


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    type = Column(String(30), nullable=False)
    title = Column(Text, nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    related_book_id = Column(Integer, nullable=True)
    related_club_id = Column(Integer, nullable=True)
    # "metadata" is reserved on declarative classes
    extra_data = Column("metadata", JSONType, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('ix_notifications_user_read', 'user_id', 'is_read'),
    )


class BookClub(Base):
    __tablename__ = "book_clubs"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    owner_id = Column(String(255), nullable=False, index=True)
    invite_code = Column(String(20), nullable=False, unique=True, index=True)
    current_book_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    members = relationship("BookClubMember", back_populates="club", cascade="all, delete-orphan")
    messages = relationship("BookClubMessage", back_populates="club", cascade="all, delete-orphan")


class BookClubMember(Base):
    __tablename__ = "book_club_members"

    id = Column(Integer, primary_key=True, index=True)
    club_id = Column(Integer, ForeignKey("book_clubs.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    role = Column(String(20), nullable=False, default=ClubRole.MEMBER.value)
    joined_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    club = relationship("BookClub", back_populates="members")

    __table_args__ = (
        UniqueConstraint('club_id', 'user_id', name='uq_book_club_members_club_user'),
    )


class BookClubMessage(Base):
    __tablename__ = "book_club_messages"

    id = Column(Integer, primary_key=True, index=True)
    club_id = Column(Integer, ForeignKey("book_clubs.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    club = relationship("BookClub", back_populates="messages")
