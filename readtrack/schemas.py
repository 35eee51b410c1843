from datetime import datetime, date
from typing import Optional, List, Dict, Any, Union
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from pydantic.alias_generators import to_camel
from readtrack.models import BookStatus, QuizDifficulty, QuestionType


class CamelModel(BaseModel):
    """
    Base for every API schema.

    JSON uses camelCase (userId, dailyStreak, ...); requests also accept
    the snake_case attribute names.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ============================================================================
# Books
# ============================================================================

class BookBase(CamelModel):
    title: str = Field(..., min_length=1, description="Book title")
    author: str = Field(..., min_length=1, description="Book author")
    google_books_id: Optional[str] = Field(None, max_length=100)
    cover_url: Optional[str] = None
    status: BookStatus = BookStatus.WANT_TO_READ
    user_notes: Optional[str] = None
    rating: Optional[int] = Field(None, ge=1, le=5)
    date_read: Optional[datetime] = None
    is_favorite: bool = False
    genre: Optional[str] = Field(None, max_length=100)


class BookCreate(BookBase):
    pass


class BookUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1)
    author: Optional[str] = Field(None, min_length=1)
    google_books_id: Optional[str] = Field(None, max_length=100)
    cover_url: Optional[str] = None
    status: Optional[BookStatus] = None
    user_notes: Optional[str] = None
    rating: Optional[int] = Field(None, ge=1, le=5)
    date_read: Optional[datetime] = None
    is_favorite: Optional[bool] = None
    genre: Optional[str] = Field(None, max_length=100)

    @model_validator(mode='after')
    def reject_null_required_fields(self):
        # Omitted means "leave unchanged"; an explicit null cannot be stored
        for name in ('title', 'author', 'status', 'is_favorite'):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} cannot be null")
        return self


class Book(BookBase):
    id: int
    user_id: str
    created_at: datetime


# ============================================================================
# Quizzes
# ============================================================================

class QuizQuestion(CamelModel):
    """
    A single quiz question as produced by the generator.

    Single-answer types carry correctAnswer, multiple_select carries
    correctAnswers. Unknown types are kept and graded as single-answer.
    """
    type: str = QuestionType.MULTIPLE_CHOICE.value
    question: str = Field(..., min_length=1)
    options: List[str] = Field(..., min_length=2)
    correct_answer: Optional[int] = None
    correct_answers: Optional[List[int]] = None

    @model_validator(mode='after')
    def validate_answer_key(self):
        if self.type == QuestionType.MULTIPLE_SELECT.value:
            if self.correct_answers is None:
                raise ValueError("multiple_select questions need correctAnswers")
            indices = self.correct_answers
        else:
            if self.correct_answer is None:
                raise ValueError(f"{self.type} questions need correctAnswer")
            indices = [self.correct_answer]

        for index in indices:
            if index < 0 or index >= len(self.options):
                raise ValueError(f"answer index {index} out of range for {len(self.options)} options")
        return self


class QuizGenerateRequest(CamelModel):
    difficulty: QuizDifficulty = QuizDifficulty.MEDIUM


class QuizSubmitRequest(CamelModel):
    """Positional answers: an index, a list of indices, or null for skipped"""
    answers: List[Optional[Union[int, List[int]]]]


class Quiz(CamelModel):
    id: int
    book_id: int
    difficulty: str
    questions: List[Dict[str, Any]]
    user_answers: Optional[List[Any]] = None
    score: Optional[int] = None
    created_at: datetime


class QuizHistoryItem(CamelModel):
    id: int
    score: Optional[int] = None
    percentage: Optional[int] = None
    difficulty: str
    created_at: datetime
    book_title: str


class QuizStatsSummary(CamelModel):
    total: int
    average_score: int
    difficulty_breakdown: Dict[str, int]


class QuizStats(CamelModel):
    history: List[QuizHistoryItem]
    stats: QuizStatsSummary


# ============================================================================
# Gamification
# ============================================================================

class UserStats(CamelModel):
    user_id: str
    daily_streak: int = 0
    longest_streak: int = 0
    last_active_date: Optional[date] = None
    total_quizzes_completed: int = 0
    total_books_added: int = 0
    total_books_read: int = 0


class Badge(CamelModel):
    id: int
    user_id: str
    type: str
    tier: str
    milestone: int
    earned_at: datetime


class BadgeTierInfo(CamelModel):
    tier: str
    threshold: int


class BadgeCategoryInfo(CamelModel):
    type: str
    name: str
    description: str
    stat_field: str
    tiers: List[BadgeTierInfo]


class BadgeProgress(CamelModel):
    type: str
    name: str
    current: int
    earned_tiers: List[str]
    next_tier: Optional[str] = None
    next_threshold: Optional[int] = None
    progress: float = Field(..., ge=0.0, le=100.0)


# ============================================================================
# Notifications
# ============================================================================

class Notification(CamelModel):
    id: int
    user_id: str
    type: str
    title: str
    message: str
    is_read: bool
    related_book_id: Optional[int] = None
    related_club_id: Optional[int] = None
    extra_data: Optional[Dict[str, Any]] = Field(
        None, validation_alias="extra_data", serialization_alias="metadata"
    )
    created_at: datetime


class CountResponse(CamelModel):
    count: int


class SuccessResponse(CamelModel):
    success: bool = True


# ============================================================================
# Feed
# ============================================================================

class FeedBookSuggestion(CamelModel):
    title: str
    author: str
    reason: Optional[str] = None


class FeedRefresherQuiz(CamelModel):
    """A book read long enough ago to deserve a refresher quiz"""
    book_id: int
    book_title: str
    last_quiz_date: Optional[datetime] = None


class Feed(CamelModel):
    notifications: List[Notification]
    suggested_books: List[FeedBookSuggestion] = []
    refresher_quizzes: List[FeedRefresherQuiz] = []
    new_author_books: List[FeedBookSuggestion] = []


# ============================================================================
# Book clubs
# ============================================================================

class BookClubCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None


class BookClubJoinRequest(CamelModel):
    invite_code: str = Field(..., min_length=1, max_length=20)

    @field_validator('invite_code')
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()


class CurrentBookRequest(CamelModel):
    book_id: Optional[int] = None


class BookClubMessageCreate(CamelModel):
    content: str = Field(..., min_length=1, max_length=4000)


class BookClub(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    owner_id: str
    invite_code: str
    current_book_id: Optional[int] = None
    created_at: datetime


class BookClubMember(CamelModel):
    id: int
    club_id: int
    user_id: str
    role: str
    joined_at: datetime


class BookClubMessage(CamelModel):
    id: int
    club_id: int
    user_id: str
    content: str
    created_at: datetime


class BookClubDetail(CamelModel):
    club: BookClub
    members: List[BookClubMember]
    messages: List[BookClubMessage]


class BookClubJoinResponse(CamelModel):
    message: str
    club: BookClub
