"""
Books Router

Library CRUD plus quiz generation for a book. Adding a book and marking it
read feed the stats counters and the badge evaluator.
"""

from datetime import datetime
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from readtrack import crud, models, schemas
from readtrack.ai_client import QuizGenerationError, QuizGenerator, get_quiz_generator
from readtrack.core.config import Settings, get_settings
from readtrack.core.db import get_db
from readtrack.dependencies import get_current_user_id, track_activity
from readtrack.logic import badge_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/books", tags=["books"], dependencies=[Depends(track_activity)])


async def get_owned_book(db: AsyncSession, book_id: int, user_id: str) -> models.Book:
    """The caller's book, 404 when it does not exist or belongs to someone else"""
    book = await crud.get_book(db, book_id)
    if book is None or book.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")
    return book


@router.get("", response_model=List[schemas.Book])
async def list_books(
    status_filter: Optional[models.BookStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, description="Matches title or author"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Caller's books, newest first"""
    books = await crud.get_books(
        db,
        user_id,
        status=status_filter.value if status_filter else None,
        search=search.strip() if search else None,
    )
    logger.info(f"Retrieved {len(books)} books for user {user_id}")
    return books


@router.post("", response_model=schemas.Book, status_code=status.HTTP_201_CREATED)
async def create_book(
    book: schemas.BookCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    Add a book to the library.

    Counts towards books_added, and towards books_read too when the book is
    added as already read.
    """
    db_book = await crud.create_book(db, user_id, book)
    result = schemas.Book.model_validate(db_book)
    logger.info(f"Book {db_book.id} added by user {user_id}")

    stat_fields = ["total_books_added"]
    if book.status == models.BookStatus.READ:
        stat_fields.append("total_books_read")
    await badge_service.record_action(db, user_id, *stat_fields)

    return result


@router.get("/{book_id}", response_model=schemas.Book)
async def get_book(
    book_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    return await get_owned_book(db, book_id, user_id)


@router.patch("/{book_id}", response_model=schemas.Book)
async def update_book(
    book_id: int,
    updates: schemas.BookUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    Partial update.

    Moving a book to "read" from any other status stamps date_read (unless
    given) and counts towards books_read.
    """
    db_book = await get_owned_book(db, book_id, user_id)

    was_read = db_book.status == models.BookStatus.READ.value
    marked_read = not was_read and updates.status == models.BookStatus.READ

    extra = {}
    if marked_read and updates.date_read is None and db_book.date_read is None:
        extra["date_read"] = datetime.utcnow()

    db_book = await crud.update_book(db, db_book, updates, **extra)
    result = schemas.Book.model_validate(db_book)

    if marked_read:
        logger.info(f"Book {book_id} marked as read by user {user_id}")
        await badge_service.record_action(db, user_id, "total_books_read")

    return result


@router.delete("/{book_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_book(
    book_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    await get_owned_book(db, book_id, user_id)
    await crud.delete_book(db, book_id)
    logger.info(f"Book {book_id} deleted by user {user_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{book_id}/quiz", response_model=schemas.Quiz, status_code=status.HTTP_201_CREATED)
async def generate_quiz(
    book_id: int,
    request: Optional[schemas.QuizGenerateRequest] = None,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    generator: QuizGenerator = Depends(get_quiz_generator),
    settings: Settings = Depends(get_settings)
):
    """Generate and store a new, ungraded quiz for the book"""
    db_book = await get_owned_book(db, book_id, user_id)
    difficulty = (request or schemas.QuizGenerateRequest()).difficulty.value

    try:
        questions = await generator.generate_quiz(
            title=db_book.title,
            author=db_book.author,
            difficulty=difficulty,
            question_count=settings.QUIZ_LENGTH,
        )
    except QuizGenerationError as e:
        logger.error(f"Quiz generation failed for book {book_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to generate quiz"
        )

    quiz = await crud.create_quiz(db, book_id, difficulty, questions)
    logger.info(f"Quiz {quiz.id} ({difficulty}, {len(questions)} questions) created for book {book_id}")
    return quiz


@router.get("/{book_id}/quiz", response_model=schemas.Quiz)
async def get_latest_quiz(
    book_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Most recent quiz for the book"""
    await get_owned_book(db, book_id, user_id)
    quiz = await crud.get_latest_quiz_for_book(db, book_id)
    if quiz is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No quiz for this book")
    return quiz
