"""
Book Clubs Router

Clubs are joined with an invite code. Only members see a club's members and
messages; only the owner picks the current book.
"""

from typing import List
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from readtrack import crud, models, schemas
from readtrack.core.config import Settings, get_settings
from readtrack.core.db import get_db
from readtrack.dependencies import get_current_user_id, track_activity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/book-clubs", tags=["book-clubs"], dependencies=[Depends(track_activity)])


async def get_club_or_404(db: AsyncSession, club_id: int) -> models.BookClub:
    club = await crud.get_book_club(db, club_id)
    if club is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Club not found")
    return club


async def require_member(db: AsyncSession, club_id: int, user_id: str) -> models.BookClub:
    """The club if the caller belongs to it: 404 unknown club, 403 non-member"""
    club = await get_club_or_404(db, club_id)
    member = await crud.get_book_club_member(db, club_id, user_id)
    if member is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a member")
    return club


@router.get("", response_model=List[schemas.BookClub])
async def list_book_clubs(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Clubs the caller owns or belongs to"""
    return await crud.get_user_book_clubs(db, user_id)


@router.post("", response_model=schemas.BookClub, status_code=status.HTTP_201_CREATED)
async def create_book_club(
    club: schemas.BookClubCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    db_club = await crud.create_book_club(db, user_id, club)
    logger.info(f"Book club {db_club.id} created by user {user_id} (code {db_club.invite_code})")
    return db_club


@router.post("/join", response_model=schemas.BookClubJoinResponse)
async def join_book_club(
    request: schemas.BookClubJoinRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    club = await crud.get_book_club_by_invite_code(db, request.invite_code)
    if club is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Club not found")

    result = schemas.BookClub.model_validate(club)
    member = await crud.add_book_club_member(db, club.id, user_id)
    if member is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Already a member")

    logger.info(f"User {user_id} joined book club {result.id}")
    return schemas.BookClubJoinResponse(message="Joined successfully", club=result)


@router.get("/{club_id}", response_model=schemas.BookClubDetail)
async def get_book_club(
    club_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    club = await require_member(db, club_id, user_id)
    members = await crud.get_book_club_members(db, club_id)
    messages = await crud.get_book_club_messages(db, club_id, limit=settings.CLUB_MESSAGES_LIMIT)
    return schemas.BookClubDetail(
        club=schemas.BookClub.model_validate(club),
        members=[schemas.BookClubMember.model_validate(m) for m in members],
        messages=[schemas.BookClubMessage.model_validate(m) for m in messages],
    )


@router.post("/{club_id}/leave", response_model=schemas.SuccessResponse)
async def leave_book_club(
    club_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    Leave a club.

    The owner cannot leave: without a membership row they would lose access
    to the club they still own.
    """
    club = await get_club_or_404(db, club_id)
    if club.owner_id == user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="The owner cannot leave the club")

    await crud.remove_book_club_member(db, club_id, user_id)
    logger.info(f"User {user_id} left book club {club_id}")
    return schemas.SuccessResponse()


@router.post("/{club_id}/current-book", response_model=schemas.BookClub)
async def set_current_book(
    club_id: int,
    request: schemas.CurrentBookRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    club = await get_club_or_404(db, club_id)
    if club.owner_id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the owner can change the current book")
    return await crud.set_club_current_book(db, club, request.book_id)


@router.get("/{club_id}/members", response_model=List[schemas.BookClubMember])
async def list_members(
    club_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    await require_member(db, club_id, user_id)
    return await crud.get_book_club_members(db, club_id)


@router.get("/{club_id}/messages", response_model=List[schemas.BookClubMessage])
async def list_messages(
    club_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    """Newest first"""
    await require_member(db, club_id, user_id)
    return await crud.get_book_club_messages(db, club_id, limit=settings.CLUB_MESSAGES_LIMIT)


@router.post("/{club_id}/messages", response_model=schemas.BookClubMessage, status_code=status.HTTP_201_CREATED)
async def post_message(
    club_id: int,
    request: schemas.BookClubMessageCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Post to the club and notify the other members"""
    club = await require_member(db, club_id, user_id)
    club_name = club.name

    message = await crud.create_book_club_message(db, club_id, user_id, request.content)
    result = schemas.BookClubMessage.model_validate(message)

    try:
        members = await crud.get_book_club_members(db, club_id)
        recipients = [m.user_id for m in members if m.user_id != user_id]
        for recipient in recipients:
            await crud.create_notification(
                db,
                user_id=recipient,
                notification_type=models.NotificationType.BOOK_CLUB_ACTIVITY.value,
                title="New Book Club Message",
                message=f"New message in {club_name}",
                related_club_id=club_id,
                extra_data={'messageId': result.id},
            )
    except Exception as e:
        await db.rollback()
        logger.error(f"Error notifying members of club {club_id}: {str(e)}", exc_info=True)

    return result
