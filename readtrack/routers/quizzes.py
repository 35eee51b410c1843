"""
Quizzes Router

Quiz retrieval, submission and grading, plus the caller's quiz history.
"""

from typing import List
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from readtrack import crud, models, schemas
from readtrack.core.config import Settings, get_settings
from readtrack.core.db import get_db
from readtrack.dependencies import get_current_user_id, track_activity
from readtrack.logic import badge_service
from readtrack.logic.quiz_grader import score_quiz, score_percentage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["quizzes"], dependencies=[Depends(track_activity)])

# Difficulties reported in the history breakdown
BREAKDOWN_DIFFICULTIES = ("easy", "medium", "hard")


async def get_owned_quiz(db: AsyncSession, quiz_id: int, user_id: str) -> models.Quiz:
    """Quiz on one of the caller's books, 404 otherwise"""
    quiz = await crud.get_quiz(db, quiz_id)
    if quiz is not None:
        book = await crud.get_book(db, quiz.book_id)
        if book is not None and book.user_id == user_id:
            return quiz
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quiz not found")


@router.get("/quizzes/{quiz_id}", response_model=schemas.Quiz)
async def get_quiz(
    quiz_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    return await get_owned_quiz(db, quiz_id, user_id)


@router.post("/quizzes/{quiz_id}/submit", response_model=schemas.Quiz)
async def submit_quiz(
    quiz_id: int,
    submission: schemas.QuizSubmitRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    """
    Grade a quiz.

    A quiz is graded once; resubmitting returns 409 unless
    ALLOW_QUIZ_RESUBMISSION is set, in which case the new grade replaces
    the old one and counts again.
    """
    quiz = await get_owned_quiz(db, quiz_id, user_id)

    if quiz.is_graded and not settings.ALLOW_QUIZ_RESUBMISSION:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Quiz already submitted")

    score = score_quiz(quiz.questions, submission.answers)
    quiz = await crud.update_quiz_score(db, quiz, score, submission.answers)
    result = schemas.Quiz.model_validate(quiz)
    logger.info(f"Quiz {quiz_id} graded for user {user_id}: {score}/{len(quiz.questions)}")

    await badge_service.record_action(db, user_id, "total_quizzes_completed")

    return result


@router.get("/stats/quizzes", response_model=schemas.QuizStats)
async def get_quiz_stats(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    Quiz history with totals.

    total counts every quiz, averageScore is the mean percentage of graded
    quizzes only.
    """
    rows = await crud.get_user_quiz_history(db, user_id)

    history: List[schemas.QuizHistoryItem] = []
    percentages = []
    breakdown = {difficulty: 0 for difficulty in BREAKDOWN_DIFFICULTIES}

    for quiz, book_title in rows:
        percentage = None
        if quiz.score is not None:
            percentage = score_percentage(quiz.score, len(quiz.questions or []))
            percentages.append(percentage)
        if quiz.difficulty in breakdown:
            breakdown[quiz.difficulty] += 1

        history.append(schemas.QuizHistoryItem(
            id=quiz.id,
            score=quiz.score,
            percentage=percentage,
            difficulty=quiz.difficulty,
            created_at=quiz.created_at,
            book_title=book_title,
        ))

    average_score = round(sum(percentages) / len(percentages)) if percentages else 0

    return schemas.QuizStats(
        history=history,
        stats=schemas.QuizStatsSummary(
            total=len(history),
            average_score=average_score,
            difficulty_breakdown=breakdown,
        ),
    )
