"""
Catalog service: listing, search, book detail, upload, download and stats.
"""

import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import structlog
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from starlette.concurrency import run_in_threadpool

from .database import LibraryDatabase, parse_object_id
from .errors import InvalidInputError, NotFoundError
from .models import (
    Book, BookFilters, BookMetadata, BookPage, BookSort, BookStatus, BookSuggestion,
    CategoryCount, DownloadRecord, LanguageCount, LibraryStats, Pagination,
    RatingSummary, StatsOverview, UserSummary
)
from .storage import FileStorage

logger = structlog.get_logger(__name__)

SORT_SPECS = {
    BookSort.RECENT: [("created_at", DESCENDING)],
    BookSort.RATING: [("rating.average", DESCENDING)],
    BookSort.TITLE: [("title", ASCENDING)],
    BookSort.DOWNLOADS: [("downloads", DESCENDING)],
    BookSort.POPULAR: [("views", DESCENDING), ("rating.average", DESCENDING)],
}

SEARCH_FIELDS = ("title", "author", "description")
SUGGESTION_FIELDS = ("title", "author")
MIN_SUGGESTION_LENGTH = 2
SUGGESTION_LIMIT = 5
HIGHLIGHT_LIMIT = 5


def sort_spec(sort: BookSort) -> List[Tuple[str, int]]:
    """Sort keys for ``sort``, with ``_id`` as tie-breaker so pages never overlap."""
    return SORT_SPECS[sort] + [("_id", ASCENDING)]


def substring_filter(term: str, fields: Tuple[str, ...]) -> Dict[str, Any]:
    """Case-insensitive literal substring match on any of ``fields``."""
    pattern = re.escape(term)
    return {"$or": [{field: {"$regex": pattern, "$options": "i"}} for field in fields]}


async def load_books(
    db: LibraryDatabase,
    docs: List[Dict[str, Any]],
    include_email: bool = False
) -> List[Book]:
    """Convert book documents to models with their uploaders attached."""
    uploader_ids = list({doc["uploaded_by"] for doc in docs if doc.get("uploaded_by")})
    uploaders: Dict[Any, UserSummary] = {}
    if uploader_ids:
        cursor = db.users.find({"_id": {"$in": uploader_ids}}, {"name": 1, "email": 1, "avatar": 1})
        for user_doc in await cursor.to_list(length=None):
            uploaders[user_doc["_id"]] = UserSummary.from_document(user_doc, include_email)
    return [Book.from_document(doc, uploaders.get(doc.get("uploaded_by"))) for doc in docs]


class CatalogService:
    """Book catalog operations backed by the ``books`` collection."""

    def __init__(self, db: LibraryDatabase, storage: FileStorage):
        self.db = db
        self.storage = storage

    def build_query(self, filters: BookFilters, privileged: bool = False) -> Dict[str, Any]:
        """
        Build the MongoDB filter for a listing request.

        Only admins may list books that are not approved; everyone else
        gets approved books whatever status they ask for.
        """
        status = filters.status if privileged else BookStatus.APPROVED
        query: Dict[str, Any] = {"status": status.value}

        if filters.search:
            query.update(substring_filter(filters.search, SEARCH_FIELDS))
        if filters.language:
            query["language"] = filters.language.value
        if filters.category:
            query["category"] = filters.category.value

        return query

    async def list_books(self, filters: BookFilters, privileged: bool = False) -> BookPage:
        """
        Get books with filtering, sorting and pagination.

        Args:
            filters: Search, filter, sort and page parameters
            privileged: Whether the caller may list non-approved books

        Returns:
            BookPage with the requested page and pagination metadata
        """
        query = self.build_query(filters, privileged)
        skip = Pagination.skip(filters.page, filters.limit)

        total = await self.db.books.count_documents(query)
        cursor = (
            self.db.books.find(query)
            .sort(sort_spec(filters.sort))
            .skip(skip)
            .limit(filters.limit)
        )
        docs = await cursor.to_list(length=filters.limit)

        return BookPage(
            books=await load_books(self.db, docs),
            pagination=Pagination.build(total, filters.page, filters.limit),
        )

    async def get_book(
        self,
        book_id: str,
        viewer_id: Optional[str] = None,
        privileged: bool = False
    ) -> Book:
        """
        Get a single book and count the view.

        Books that are not approved are only visible to admins and to
        their uploader; for anyone else they do not exist. Every
        successful read increments ``views`` by one.

        Args:
            book_id: Book identifier
            viewer_id: Signed-in caller, if any
            privileged: Whether the caller is an admin
        """
        oid = parse_object_id(book_id)
        query: Dict[str, Any] = {"_id": oid}
        if not privileged:
            visible = [{"status": BookStatus.APPROVED.value}]
            if viewer_id:
                visible.append({"uploaded_by": parse_object_id(viewer_id, "User")})
            query["$or"] = visible

        doc = await self.db.books.find_one_and_update(
            query,
            {"$inc": {"views": 1}},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            raise NotFoundError("Book not found")

        books = await load_books(self.db, [doc], include_email=True)
        return books[0]

    async def upload_book(self, owner_id: str, metadata: BookMetadata, upload) -> Book:
        """
        Store an uploaded file and create its catalog entry.

        The new book always starts in ``pending``. If the entry cannot be
        written, the stored file is removed again.

        Args:
            owner_id: Uploading user
            metadata: Validated book fields
            upload: FastAPI ``UploadFile``

        Returns:
            The created Book
        """
        if upload is None or not getattr(upload, "filename", None):
            raise InvalidInputError("File is required")

        owner_oid = parse_object_id(owner_id, "User")
        file_info = await self.storage.save(upload)

        try:
            now = datetime.utcnow()
            doc = {
                "title": metadata.title,
                "author": metadata.author,
                "description": metadata.description,
                "language": metadata.language.value,
                "category": metadata.category.value,
                "license": metadata.license.value,
                "file": file_info.dict(),
                "cover_image": None,
                "uploaded_by": owner_oid,
                "status": BookStatus.PENDING.value,
                "views": 0,
                "downloads": 0,
                "rating": RatingSummary().dict(),
                "tags": metadata.tags,
                "created_at": now,
                "updated_at": now,
            }
            result = await self.db.books.insert_one(doc)
            doc["_id"] = result.inserted_id
        except BaseException as e:
            logger.error(
                "Failed to save uploaded book, removing stored file",
                path=file_info.path,
                error=str(e)
            )
            await run_in_threadpool(self.storage.delete, file_info.path)
            raise

        logger.info(
            "Book uploaded",
            book_id=str(doc["_id"]),
            owner_id=owner_id,
            title=metadata.title,
            size=file_info.size
        )
        return Book.from_document(doc)

    async def download_book(
        self,
        book_id: str,
        requester_id: Optional[str] = None,
        ip_address: Optional[str] = None
    ) -> Tuple[Path, str]:
        """
        Resolve an approved book's file and record the download.

        Returns:
            Tuple of (absolute file path, original file name)

        Raises:
            NotFoundError: Book missing, not approved, or file absent on disk
        """
        oid = parse_object_id(book_id)
        doc = await self.db.books.find_one({"_id": oid})
        if doc is None or doc.get("status") != BookStatus.APPROVED.value:
            raise NotFoundError("Book not found or not approved")

        file_doc = doc.get("file") or {}
        path = self.storage.resolve(file_doc.get("path"))
        if path is None:
            logger.warning("Book file missing on disk", book_id=book_id, path=file_doc.get("path"))
            raise NotFoundError("File not found")

        await self.db.books.update_one({"_id": oid}, {"$inc": {"downloads": 1}})

        record = DownloadRecord(
            book_id=oid,
            user_id=parse_object_id(requester_id, "User") if requester_id else None,
            ip_address=ip_address,
        )
        await self.db.downloads.insert_one(record.dict())

        logger.info("Book downloaded", book_id=book_id, user_id=requester_id, ip_address=ip_address)
        return path, file_doc.get("name") or path.name

    async def get_stats(self) -> LibraryStats:
        """Aggregate counts and highlights over approved books."""
        approved = {"status": BookStatus.APPROVED.value}

        total_books = await self.db.books.count_documents(approved)
        total_users = await self.db.users.count_documents({})
        total_downloads = await self.db.downloads.count_documents({})

        language_stats = [
            LanguageCount(language=row["_id"], count=row["count"])
            for row in await self._count_by(approved, "language")
        ]
        category_stats = [
            CategoryCount(category=row["_id"], count=row["count"])
            for row in await self._count_by(approved, "category")
        ]

        recent_cursor = self.db.books.find(approved).sort([("created_at", DESCENDING)]).limit(HIGHLIGHT_LIMIT)
        popular_cursor = (
            self.db.books.find(approved)
            .sort([("downloads", DESCENDING), ("views", DESCENDING)])
            .limit(HIGHLIGHT_LIMIT)
        )

        return LibraryStats(
            overview=StatsOverview(
                total_books=total_books,
                total_users=total_users,
                total_downloads=total_downloads,
                total_languages=len(language_stats),
            ),
            language_stats=language_stats,
            category_stats=category_stats,
            recent_books=await load_books(self.db, await recent_cursor.to_list(length=HIGHLIGHT_LIMIT)),
            popular_books=await load_books(self.db, await popular_cursor.to_list(length=HIGHLIGHT_LIMIT)),
        )

    async def _count_by(self, match: Dict[str, Any], field: str) -> List[Dict[str, Any]]:
        pipeline = [
            {"$match": match},
            {"$group": {"_id": f"${field}", "count": {"$sum": 1}}},
            {"$sort": {"count": -1}},
        ]
        return await self.db.books.aggregate(pipeline).to_list(length=None)

    async def search_suggestions(self, q: Optional[str]) -> List[BookSuggestion]:
        """Up to five approved books whose title or author contains ``q``."""
        term = (q or "").strip()
        if len(term) < MIN_SUGGESTION_LENGTH:
            return []

        query = {"status": BookStatus.APPROVED.value}
        query.update(substring_filter(term, SUGGESTION_FIELDS))
        cursor = self.db.books.find(query, {"title": 1, "author": 1}).limit(SUGGESTION_LIMIT)

        return [
            BookSuggestion(id=str(doc["_id"]), title=doc["title"], author=doc["author"])
            for doc in await cursor.to_list(length=SUGGESTION_LIMIT)
        ]
