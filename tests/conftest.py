"""
Pytest configuration and shared fixtures.
"""

from datetime import datetime

import pytest
from bson import ObjectId
from unittest.mock import AsyncMock, MagicMock

from library.database import LibraryDatabase

COLLECTIONS = ("users", "books", "comments", "downloads", "favorites", "reading_progress")


def make_cursor(docs=None):
    """Mock motor cursor whose chain methods return itself."""
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.skip.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.to_list = AsyncMock(return_value=list(docs or []))
    return cursor


def make_collection():
    """Mock motor collection with async write and lookup methods."""
    collection = MagicMock()
    for name in (
        "find_one", "find_one_and_update", "insert_one", "insert_many",
        "update_one", "delete_one", "delete_many", "count_documents",
        "estimated_document_count", "create_index",
    ):
        setattr(collection, name, AsyncMock())
    collection.find.return_value = make_cursor()
    collection.aggregate.return_value = make_cursor()
    collection.find_one.return_value = None
    collection.count_documents.return_value = 0
    return collection


@pytest.fixture
def mock_db():
    """LibraryDatabase wrapping mocked collections."""
    database = MagicMock()
    database.name = "perpustakaan_test"
    for name in COLLECTIONS:
        setattr(database, name, make_collection())
    database.command = AsyncMock(return_value={"ok": 1})
    return LibraryDatabase.from_database(database)


@pytest.fixture
def user_id():
    return ObjectId()


@pytest.fixture
def sample_user_doc(user_id):
    """Stored user document."""
    return {
        "_id": user_id,
        "name": "Ahmad Pratama",
        "email": "ahmad@perpustakaan.id",
        "password": "$2b$12$notarealhashbutlongenoughtolooklikeone0000000000000",
        "role": "user",
        "avatar": None,
        "created_at": datetime(2024, 1, 10, 8, 0, 0),
    }


@pytest.fixture
def sample_book_doc(user_id):
    """Stored, approved book document."""
    created = datetime(2024, 1, 15, 9, 30, 0)
    return {
        "_id": ObjectId(),
        "title": "Laskar Pelangi",
        "author": "Andrea Hirata",
        "description": "Novel tentang perjuangan sepuluh anak di Belitung.",
        "language": "id",
        "category": "fiction",
        "license": "cc-by",
        "file": {
            "path": "uploads/books/1705311000000-abc123def456.pdf",
            "name": "laskar-pelangi.pdf",
            "size": 2048,
            "extension": ".pdf",
        },
        "cover_image": None,
        "uploaded_by": user_id,
        "status": "approved",
        "views": 10,
        "downloads": 3,
        "rating": {"average": 4.5, "count": 2},
        "tags": ["indonesia", "inspirasi"],
        "created_at": created,
        "updated_at": created,
    }


class FakeUpload:
    """Minimal stand-in for FastAPI's UploadFile."""

    def __init__(self, filename, content: bytes):
        self.filename = filename
        self._content = content
        self._position = 0

    async def read(self, size: int = -1) -> bytes:
        if size < 0:
            size = len(self._content) - self._position
        chunk = self._content[self._position:self._position + size]
        self._position += len(chunk)
        return chunk


@pytest.fixture
def fake_upload():
    return FakeUpload


@pytest.fixture
def cursor_factory():
    return make_cursor
