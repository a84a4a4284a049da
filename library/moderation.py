"""
Moderation workflow for uploaded books.

    pending --approve--> approved
    pending --reject---> rejected

``approved`` and ``rejected`` are final. Only approved books are public.
"""

from datetime import datetime
from typing import Dict, Optional, Set, Union

import structlog
from pymongo import DESCENDING, ReturnDocument

from .catalog import load_books
from .database import LibraryDatabase, parse_object_id
from .errors import InvalidInputError, NotFoundError
from .models import Book, BookPage, BookStatus, Pagination

logger = structlog.get_logger(__name__)

ALLOWED_TRANSITIONS: Dict[BookStatus, Set[BookStatus]] = {
    BookStatus.PENDING: {BookStatus.APPROVED, BookStatus.REJECTED},
    BookStatus.APPROVED: set(),
    BookStatus.REJECTED: set(),
}

REVIEW_TARGETS = {BookStatus.APPROVED, BookStatus.REJECTED}


def can_transition(current: BookStatus, target: BookStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


def parse_review_target(value: Union[str, BookStatus, None]) -> BookStatus:
    """Validate a requested review outcome."""
    try:
        target = BookStatus(value)
    except ValueError:
        raise InvalidInputError("Invalid status")
    if target not in REVIEW_TARGETS:
        raise InvalidInputError("Invalid status")
    return target


class ModerationService:
    """Admin review of uploaded books."""

    def __init__(self, db: LibraryDatabase):
        self.db = db

    async def list_for_review(
        self,
        status: BookStatus = BookStatus.PENDING,
        page: int = 1,
        limit: int = 20
    ) -> BookPage:
        """List books of one status, newest first, with uploader name and email."""
        query = {"status": status.value}
        skip = Pagination.skip(page, limit)

        total = await self.db.books.count_documents(query)
        cursor = (
            self.db.books.find(query)
            .sort([("created_at", DESCENDING), ("_id", DESCENDING)])
            .skip(skip)
            .limit(limit)
        )
        docs = await cursor.to_list(length=limit)

        return BookPage(
            books=await load_books(self.db, docs, include_email=True),
            pagination=Pagination.build(total, page, limit),
        )

    async def set_status(
        self,
        book_id: str,
        target: Union[str, BookStatus, None],
        reviewer_id: Optional[str] = None
    ) -> Book:
        """
        Approve or reject a pending book.

        The status check and the update are a single conditional write, so
        two reviewers cannot both decide the same book.

        Raises:
            InvalidInputError: Target is not approved/rejected, or the book was already reviewed
            NotFoundError: Unknown book
        """
        target_status = parse_review_target(target)
        oid = parse_object_id(book_id)
        sources = [
            current.value for current in ALLOWED_TRANSITIONS
            if can_transition(current, target_status)
        ]

        doc = await self.db.books.find_one_and_update(
            {"_id": oid, "status": {"$in": sources}},
            {"$set": {"status": target_status.value, "updated_at": datetime.utcnow()}},
            return_document=ReturnDocument.AFTER,
        )

        if doc is None:
            existing = await self.db.books.find_one({"_id": oid}, {"status": 1})
            if existing is None:
                raise NotFoundError("Book not found")
            raise InvalidInputError(f"Book has already been {existing.get('status')}")

        logger.info(
            "Book reviewed",
            book_id=book_id,
            status=target_status.value,
            reviewer_id=reviewer_id
        )
        books = await load_books(self.db, [doc], include_email=True)
        return books[0]
