"""
Accounts, sessions, favorites and reading progress.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError
from starlette.concurrency import run_in_threadpool

from .catalog import load_books
from .database import LibraryDatabase, parse_object_id
from .errors import InvalidInputError, NotFoundError
from .models import (
    Book, LoginResult, ReadingHistoryEntry, UserProfile, UserProfileDetail, UserRole
)
from .security import TokenManager, TokenPayload, hash_password, verify_password

logger = structlog.get_logger(__name__)

MIN_PASSWORD_LENGTH = 6


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


class AccountService:
    """User accounts and their per-book state."""

    def __init__(self, db: LibraryDatabase, tokens: TokenManager):
        self.db = db
        self.tokens = tokens

    async def register(
        self,
        name: Optional[str],
        email: Optional[str],
        password: Optional[str],
        confirm_password: Optional[str]
    ) -> UserProfile:
        """
        Create a user account.

        Raises:
            InvalidInputError: Missing field, password mismatch, short password
                or email already registered
        """
        name = (name or "").strip()
        email = normalize_email(email)
        if not name or not email or not password or not confirm_password:
            raise InvalidInputError("All fields are required")
        if password != confirm_password:
            raise InvalidInputError("Passwords do not match")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise InvalidInputError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        if await self.db.users.find_one({"email": email}, {"_id": 1}):
            raise InvalidInputError("User already exists")

        doc = {
            "name": name,
            "email": email,
            "password": await run_in_threadpool(hash_password, password),
            "role": UserRole.USER.value,
            "avatar": None,
            "created_at": datetime.utcnow(),
        }
        try:
            result = await self.db.users.insert_one(doc)
        except DuplicateKeyError:
            raise InvalidInputError("User already exists")
        doc["_id"] = result.inserted_id

        logger.info("User registered", user_id=str(result.inserted_id), email=email)
        return UserProfile.from_document(doc)

    async def login(self, email: Optional[str], password: Optional[str]) -> LoginResult:
        """
        Check credentials and issue an access token.

        Unknown email and wrong password produce the same error.
        """
        email = normalize_email(email)
        if not email or not password:
            raise InvalidInputError("Email and password are required")

        user = await self.db.users.find_one({"email": email})
        if user is None or not await run_in_threadpool(verify_password, password, user["password"]):
            logger.info("Login failed", email=email)
            raise InvalidInputError("Invalid credentials")

        profile = UserProfile.from_document(user)
        token = self.tokens.create_access_token(
            TokenPayload(user_id=profile.id, email=profile.email, role=profile.role)
        )
        logger.info("User logged in", user_id=profile.id)
        return LoginResult(token=token, user=profile)

    async def get_profile(self, user_id: str) -> UserProfileDetail:
        """Profile with uploaded and favorited books."""
        user_oid = parse_object_id(user_id, "User")
        user = await self.db.users.find_one({"_id": user_oid}, {"password": 0})
        if user is None:
            raise NotFoundError("User not found")

        cursor = self.db.books.find({"uploaded_by": user_oid}).sort([("created_at", DESCENDING)])
        uploaded = await load_books(self.db, await cursor.to_list(length=None))

        profile = UserProfile.from_document(user)
        return UserProfileDetail(
            **profile.dict(),
            uploaded_books=uploaded,
            favorites=await self.list_favorites(user_id),
        )

    async def update_profile(
        self,
        user_id: str,
        name: Optional[str] = None,
        email: Optional[str] = None
    ) -> UserProfile:
        """
        Change name and/or email. A new email must not belong to another user.
        """
        user_oid = parse_object_id(user_id, "User")
        updates: Dict[str, Any] = {}

        if name is not None:
            name = name.strip()
            if not name:
                raise InvalidInputError("Name cannot be empty")
            updates["name"] = name

        if email is not None:
            email = normalize_email(email)
            if not email:
                raise InvalidInputError("Email cannot be empty")
            taken = await self.db.users.find_one({"email": email, "_id": {"$ne": user_oid}}, {"_id": 1})
            if taken:
                raise InvalidInputError("Email already taken")
            updates["email"] = email

        if updates:
            try:
                user = await self.db.users.find_one_and_update(
                    {"_id": user_oid},
                    {"$set": updates},
                    projection={"password": 0},
                    return_document=ReturnDocument.AFTER,
                )
            except DuplicateKeyError:
                raise InvalidInputError("Email already taken")
        else:
            user = await self.db.users.find_one({"_id": user_oid}, {"password": 0})

        if user is None:
            raise NotFoundError("User not found")

        logger.info("Profile updated", user_id=user_id, fields=sorted(updates))
        return UserProfile.from_document(user)

    async def toggle_favorite(self, user_id: str, book_id: str) -> bool:
        """
        Flip the favorite state of a book for a user.

        Returns:
            True if the book is now a favorite, False if it was removed
        """
        user_oid = parse_object_id(user_id, "User")
        book_oid = parse_object_id(book_id)
        key = {"user_id": user_oid, "book_id": book_oid}

        removed = await self.db.favorites.delete_one(key)
        if removed.deleted_count:
            logger.info("Favorite removed", user_id=user_id, book_id=book_id)
            return False

        if not await self.db.books.count_documents({"_id": book_oid}, limit=1):
            raise NotFoundError("Book not found")

        try:
            await self.db.favorites.insert_one({**key, "created_at": datetime.utcnow()})
        except DuplicateKeyError:
            # a concurrent toggle added it first
            pass
        logger.info("Favorite added", user_id=user_id, book_id=book_id)
        return True

    async def list_favorites(self, user_id: str) -> List[Book]:
        """Favorited books, most recently favorited first."""
        user_oid = parse_object_id(user_id, "User")
        cursor = self.db.favorites.find({"user_id": user_oid}).sort([("created_at", DESCENDING)])
        book_ids = [doc["book_id"] for doc in await cursor.to_list(length=None)]
        return await self._books_in_order(book_ids)

    async def update_reading_progress(self, user_id: str, book_id: str, progress: Any) -> float:
        """
        Record how far a user has read a book.

        A single upsert keyed on (user, book) creates or refreshes the entry.
        """
        if isinstance(progress, bool) or not isinstance(progress, (int, float)):
            raise InvalidInputError("Progress must be a number between 0 and 100")
        if progress < 0 or progress > 100:
            raise InvalidInputError("Progress must be a number between 0 and 100")

        user_oid = parse_object_id(user_id, "User")
        book_oid = parse_object_id(book_id)
        if not await self.db.books.count_documents({"_id": book_oid}, limit=1):
            raise NotFoundError("Book not found")

        key = {"user_id": user_oid, "book_id": book_oid}
        update = {"$set": {"progress": progress, "last_read": datetime.utcnow()}}
        try:
            await self.db.reading_progress.update_one(key, update, upsert=True)
        except DuplicateKeyError:
            # lost an upsert race; the entry exists now
            await self.db.reading_progress.update_one(key, update)

        logger.debug("Reading progress updated", user_id=user_id, book_id=book_id, progress=progress)
        return progress

    async def reading_history(self, user_id: str) -> List[ReadingHistoryEntry]:
        """Reading progress entries, most recently read first."""
        user_oid = parse_object_id(user_id, "User")
        cursor = self.db.reading_progress.find({"user_id": user_oid}).sort([("last_read", DESCENDING)])
        entries = await cursor.to_list(length=None)

        books = {
            book.id: book
            for book in await self._books_in_order([entry["book_id"] for entry in entries])
        }
        history = []
        for entry in entries:
            book = books.get(str(entry["book_id"]))
            if book is None:
                continue
            history.append(
                ReadingHistoryEntry(book=book, progress=entry["progress"], last_read=entry["last_read"])
            )
        return history

    async def _books_in_order(self, book_ids: List[Any]) -> List[Book]:
        if not book_ids:
            return []
        cursor = self.db.books.find({"_id": {"$in": book_ids}})
        docs = {doc["_id"]: doc for doc in await cursor.to_list(length=None)}
        ordered = [docs[book_id] for book_id in book_ids if book_id in docs]
        return await load_books(self.db, ordered)
