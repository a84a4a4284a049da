"""
Comments and rating aggregation.

Adding a comment recomputes the book's rating summary from all of its
comments. The comment insert and the summary update are separate writes;
if the second one is lost, the next comment repairs the summary.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from bson import ObjectId
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError

from .database import LibraryDatabase, parse_object_id
from .errors import InvalidInputError, NotFoundError
from .models import Comment, CommentPage, Pagination, RatingSummary, UserSummary

logger = structlog.get_logger(__name__)

MIN_RATING = 1
MAX_RATING = 5


def validate_comment(comment: Optional[str], rating: Any) -> tuple:
    """Return the trimmed comment and integer rating, or raise InvalidInputError."""
    text = (comment or "").strip()
    if not text or rating is None:
        raise InvalidInputError("Comment and rating are required")
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise InvalidInputError("Rating must be between 1 and 5")
    if rating < MIN_RATING or rating > MAX_RATING:
        raise InvalidInputError("Rating must be between 1 and 5")
    return text, rating


class RatingAggregator:
    """Creates comments and keeps each book's rating summary consistent."""

    def __init__(self, db: LibraryDatabase):
        self.db = db

    async def add_comment(
        self,
        book_id: str,
        user_id: str,
        comment: Optional[str],
        rating: Any
    ) -> Comment:
        """
        Add a user's single comment on a book and refresh the rating summary.

        Raises:
            InvalidInputError: Missing fields, rating out of range, or a second comment
            NotFoundError: Unknown book
        """
        text, rating = validate_comment(comment, rating)
        book_oid = parse_object_id(book_id)
        user_oid = parse_object_id(user_id, "User")

        if not await self.db.books.count_documents({"_id": book_oid}, limit=1):
            raise NotFoundError("Book not found")

        doc = {
            "book_id": book_oid,
            "user_id": user_oid,
            "comment": text,
            "rating": rating,
            "created_at": datetime.utcnow(),
        }
        try:
            result = await self.db.comments.insert_one(doc)
        except DuplicateKeyError:
            raise InvalidInputError("You have already commented on this book")
        doc["_id"] = result.inserted_id

        summary = await self.recompute(book_oid)
        logger.info(
            "Comment added",
            book_id=book_id,
            user_id=user_id,
            rating=rating,
            average=summary.average,
            count=summary.count
        )

        user_doc = await self.db.users.find_one({"_id": user_oid}, {"name": 1, "avatar": 1})
        user = UserSummary.from_document(user_doc) if user_doc else None
        return Comment.from_document(doc, user)

    async def recompute(self, book_oid: ObjectId) -> RatingSummary:
        """Rebuild a book's rating summary from all of its comments."""
        cursor = self.db.comments.find({"book_id": book_oid}, {"rating": 1})
        ratings = [doc["rating"] for doc in await cursor.to_list(length=None) if doc.get("rating") is not None]
        summary = RatingSummary.from_ratings(ratings)

        await self.db.books.update_one(
            {"_id": book_oid},
            {"$set": {"rating": summary.dict()}},
        )
        return summary

    async def list_comments(self, book_id: str, page: int = 1, limit: int = 10) -> CommentPage:
        """Comments on a book, newest first, with author name and avatar."""
        book_oid = parse_object_id(book_id)
        query = {"book_id": book_oid}

        total = await self.db.comments.count_documents(query)
        cursor = (
            self.db.comments.find(query)
            .sort([("created_at", DESCENDING), ("_id", DESCENDING)])
            .skip(Pagination.skip(page, limit))
            .limit(limit)
        )
        docs = await cursor.to_list(length=limit)

        return CommentPage(
            comments=await self._attach_authors(docs),
            pagination=Pagination.build(total, page, limit),
        )

    async def _attach_authors(self, docs: List[Dict[str, Any]]) -> List[Comment]:
        user_ids = list({doc["user_id"] for doc in docs})
        authors: Dict[Any, UserSummary] = {}
        if user_ids:
            cursor = self.db.users.find({"_id": {"$in": user_ids}}, {"name": 1, "avatar": 1})
            for user_doc in await cursor.to_list(length=None):
                authors[user_doc["_id"]] = UserSummary.from_document(user_doc)
        return [Comment.from_document(doc, authors.get(doc["user_id"])) for doc in docs]
