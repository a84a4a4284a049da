"""
Moderation endpoints, restricted to administrators.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.auth import require_admin
from api.dependencies import get_moderation_service
from api.models import BookResponse, StatusUpdateRequest
from library.errors import InvalidInputError
from library.models import BookPage, BookStatus
from library.moderation import ModerationService
from library.security import TokenPayload

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.get("/books", response_model=BookPage)
async def list_books_for_review(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: TokenPayload = Depends(require_admin),
    moderation: ModerationService = Depends(get_moderation_service)
):
    """
    List books by moderation status, newest first.

    - **status**: pending (default), approved or rejected
    """
    try:
        book_status = BookStatus(status or BookStatus.PENDING.value)
    except ValueError:
        raise InvalidInputError("Invalid status")
    return await moderation.list_for_review(book_status, page=page, limit=limit)


@router.put("/books/{book_id}/status", response_model=BookResponse)
async def set_book_status(
    book_id: str,
    payload: StatusUpdateRequest,
    admin: TokenPayload = Depends(require_admin),
    moderation: ModerationService = Depends(get_moderation_service)
):
    """Approve or reject a pending book."""
    book = await moderation.set_status(book_id, payload.status, reviewer_id=admin.user_id)
    return BookResponse(message=f"Book {book.status.value} successfully", book=book)
