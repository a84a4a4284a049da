"""
Sample data generator for development and demos.

Wipes the library collections and fills them with a fixed roster of users
and books plus randomized comments, favorites and reading progress.
"""

import random
import re
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from .database import LibraryDatabase
from .models import RatingSummary, UserRole
from .ratings import RatingAggregator
from .security import hash_password

logger = structlog.get_logger(__name__)

SAMPLE_USERS: List[Dict[str, str]] = [
    {"name": "Admin Perpustakaan", "email": "admin@perpustakaan.com", "password": "admin123", "role": "admin"},
    {"name": "Ahmad Pratama", "email": "ahmad@example.com", "password": "password123", "role": "user"},
    {"name": "Sari Dewi", "email": "sari@example.com", "password": "password123", "role": "user"},
    {"name": "Budi Santoso", "email": "budi@example.com", "password": "password123", "role": "user"},
]

SAMPLE_BOOKS: List[Dict[str, Any]] = [
    {
        "title": "Laskar Pelangi",
        "author": "Andrea Hirata",
        "description": "Novel yang mengisahkan tentang perjuangan sepuluh anak dari keluarga miskin "
                       "untuk bersekolah dan menggapai cita-cita mereka di Pulau Belitung.",
        "language": "id", "category": "fiction", "license": "cc-by", "status": "approved",
        "tags": ["indonesia", "inspirasi", "pendidikan"], "downloads": 2340, "views": 5670,
    },
    {
        "title": "Bumi Manusia",
        "author": "Pramoedya Ananta Toer",
        "description": "Novel pertama dari Tetralogi Buru yang mengisahkan kehidupan di Hindia Belanda "
                       "pada awal abad ke-20.",
        "language": "id", "category": "fiction", "license": "cc-by", "status": "approved",
        "tags": ["sejarah", "indonesia", "kolonial"], "downloads": 3450, "views": 7890,
    },
    {
        "title": "The Art of War",
        "author": "Sun Tzu",
        "description": "Ancient Chinese military treatise dating from the Late Spring and Autumn Period.",
        "language": "en", "category": "philosophy", "license": "cc0", "status": "approved",
        "tags": ["strategy", "philosophy", "ancient"], "downloads": 1890, "views": 4560,
    },
    {
        "title": "Pride and Prejudice",
        "author": "Jane Austen",
        "description": "A romantic novel of manners written by Jane Austen in 1813.",
        "language": "en", "category": "fiction", "license": "cc0", "status": "approved",
        "tags": ["romance", "classic", "british"], "downloads": 2780, "views": 6540,
    },
    {
        "title": "Don Quixote",
        "author": "Miguel de Cervantes",
        "description": "La historia del ingenioso hidalgo Don Quijote de La Mancha.",
        "language": "es", "category": "fiction", "license": "cc0", "status": "approved",
        "tags": ["classic", "spanish", "adventure"], "downloads": 1560, "views": 3420,
    },
    {
        "title": "Les Misérables",
        "author": "Victor Hugo",
        "description": "Un roman historique français du 19e siècle.",
        "language": "fr", "category": "fiction", "license": "cc0", "status": "approved",
        "tags": ["french", "historical", "classic"], "downloads": 2100, "views": 4890,
    },
    {
        "title": "Siddhartha",
        "author": "Hermann Hesse",
        "description": "Die Geschichte von Siddhartha auf der Suche nach Erleuchtung.",
        "language": "de", "category": "philosophy", "license": "cc-by", "status": "approved",
        "tags": ["philosophy", "spirituality", "german"], "downloads": 1340, "views": 3210,
    },
    {
        "title": "三国演义",
        "author": "罗贯中",
        "description": "中国古典四大名著之一，描述了从东汉末年到西晋初年的历史风云。",
        "language": "zh", "category": "history", "license": "cc0", "status": "approved",
        "tags": ["chinese", "history", "classic"], "downloads": 890, "views": 2100,
    },
    {
        "title": "源氏物語",
        "author": "紫式部",
        "description": "平安時代中期に成立した日本の長編物語。",
        "language": "ja", "category": "fiction", "license": "cc0", "status": "approved",
        "tags": ["japanese", "classical", "literature"], "downloads": 567, "views": 1450,
    },
    {
        "title": "ألف ليلة وليلة",
        "author": "مجهول",
        "description": "مجموعة من الحكايات الشعبية من الشرق الأوسط.",
        "language": "ar", "category": "folklore", "license": "cc0", "status": "approved",
        "tags": ["arabic", "folklore", "tales"], "downloads": 456, "views": 1230,
    },
    {
        "title": "Introduction to Computer Science",
        "author": "Dr. John Smith",
        "description": "A comprehensive guide to computer science fundamentals.",
        "language": "en", "category": "academic", "license": "cc-by-sa", "status": "pending",
        "tags": ["computer-science", "programming", "education"], "downloads": 0, "views": 45,
    },
    {
        "title": "Petualangan Si Kancil",
        "author": "Penulis Anonim",
        "description": "Kumpulan cerita rakyat Indonesia tentang kancil yang cerdik.",
        "language": "id", "category": "children", "license": "cc0", "status": "approved",
        "tags": ["anak-anak", "cerita-rakyat", "indonesia"], "downloads": 1890, "views": 3450,
    },
]

SAMPLE_COMMENTS: List[Dict[str, Any]] = [
    {"comment": "Buku yang sangat menarik! Penjelasannya mudah dipahami dan memberikan wawasan baru.", "rating": 5},
    {"comment": "Kualitas terjemahan sangat baik. Cocok untuk pembelajaran bahasa.", "rating": 4},
    {"comment": "Cerita yang menginspirasi. Sangat direkomendasikan!", "rating": 5},
    {"comment": "Classic yang tidak pernah bosan untuk dibaca ulang.", "rating": 4},
    {"comment": "Buku ini mengubah cara pandang saya terhadap hidup.", "rating": 5},
]


class SeedSummary(BaseModel):
    """Counts of inserted sample records."""
    users: int
    books: int
    comments: int
    favorites: int
    reading_entries: int


def sample_file_path(upload_dir: str, title: str) -> str:
    slug = re.sub(r"\s+", "-", title).lower()
    return str(Path(upload_dir) / "books" / f"sample-{slug}.pdf")


class FixtureGenerator:
    """
    Populates the library collections with sample data.

    Args:
        db: Data store handle
        rng: Random source; pass a seeded ``random.Random`` for repeatable output
        upload_dir: Root of the upload tree used for sample file paths
    """

    def __init__(self, db: LibraryDatabase, rng: Optional[random.Random] = None, upload_dir: str = "uploads"):
        self.db = db
        self.rng = rng or random.Random()
        self.upload_dir = upload_dir
        self.now = datetime.utcnow()

    async def run(self) -> SeedSummary:
        """Wipe the collections and insert a fresh sample data set."""
        await self.clear()

        users = await self._create_users()
        books = await self._create_books(users)
        comments = await self._create_comments(books, users)
        aggregator = RatingAggregator(self.db)
        for book in books:
            await aggregator.recompute(book["_id"])
        favorites, reading_entries = await self._create_reader_activity(books, users)

        summary = SeedSummary(
            users=len(users),
            books=len(books),
            comments=comments,
            favorites=favorites,
            reading_entries=reading_entries,
        )
        logger.info("Database seeded", **summary.dict())
        return summary

    async def clear(self) -> None:
        for collection in (
            self.db.users, self.db.books, self.db.comments,
            self.db.downloads, self.db.favorites, self.db.reading_progress,
        ):
            await collection.delete_many({})
        logger.info("Cleared existing data")

    async def _create_users(self) -> List[Dict[str, Any]]:
        docs = []
        for user in SAMPLE_USERS:
            docs.append({
                "name": user["name"],
                "email": user["email"],
                "password": await run_in_threadpool(hash_password, user["password"]),
                "role": user["role"],
                "avatar": None,
                "created_at": self.now,
            })
        result = await self.db.users.insert_many(docs)
        for doc, inserted_id in zip(docs, result.inserted_ids):
            doc["_id"] = inserted_id
        return docs

    async def _create_books(self, users: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        docs = []
        for index, book in enumerate(SAMPLE_BOOKS):
            created_at = self.now - timedelta(days=len(SAMPLE_BOOKS) - index)
            docs.append({
                **book,
                "file": {
                    "path": sample_file_path(self.upload_dir, book["title"]),
                    "name": f"{book['title']}.pdf",
                    "size": self.rng.randint(1_000_000, 10_999_999),
                    "extension": ".pdf",
                },
                "cover_image": None,
                "uploaded_by": users[index % len(users)]["_id"],
                "rating": RatingSummary().dict(),
                "tags": list(book["tags"]),
                "created_at": created_at,
                "updated_at": created_at,
            })
        result = await self.db.books.insert_many(docs)
        for doc, inserted_id in zip(docs, result.inserted_ids):
            doc["_id"] = inserted_id
        return docs

    def _readers(self, users: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [user for user in users if user["role"] != UserRole.ADMIN.value]

    async def _create_comments(self, books: List[Dict[str, Any]], users: List[Dict[str, Any]]) -> int:
        readers = self._readers(users)
        docs = []
        for book in books:
            count = min(self.rng.randint(2, 3), len(readers))
            for reader in self.rng.sample(readers, count):
                template = self.rng.choice(SAMPLE_COMMENTS)
                docs.append({
                    "book_id": book["_id"],
                    "user_id": reader["_id"],
                    "comment": template["comment"],
                    "rating": template["rating"],
                    "created_at": self.now - timedelta(seconds=self.rng.uniform(0, 30 * 24 * 3600)),
                })
        if docs:
            await self.db.comments.insert_many(docs)
        return len(docs)

    async def _create_reader_activity(self, books: List[Dict[str, Any]], users: List[Dict[str, Any]]) -> tuple:
        favorites = []
        progress = []
        for reader in self._readers(users):
            for book in books[:self.rng.randint(1, 3)]:
                favorites.append({
                    "user_id": reader["_id"],
                    "book_id": book["_id"],
                    "created_at": self.now,
                })
            for book in books[:self.rng.randint(2, 6)]:
                progress.append({
                    "user_id": reader["_id"],
                    "book_id": book["_id"],
                    "progress": self.rng.randint(0, 99),
                    "last_read": self.now - timedelta(seconds=self.rng.uniform(0, 7 * 24 * 3600)),
                })
        if favorites:
            await self.db.favorites.insert_many(favorites)
        if progress:
            await self.db.reading_progress.insert_many(progress)
        return len(favorites), len(progress)


