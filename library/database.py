"""
MongoDB data store handle for async operations.
Handles connection, indexing and collection access for the library.
"""

from typing import Any, Dict, Optional
from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase, AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import ConnectionFailure
import structlog

from .errors import NotFoundError

logger = structlog.get_logger(__name__)


def parse_object_id(value: Any, entity: str = "Book") -> ObjectId:
    """
    Convert a path parameter to an ObjectId.

    Malformed identifiers cannot match any document, so they are reported
    the same way as unknown ones.
    """
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        raise NotFoundError(f"{entity} not found")


class LibraryDatabase:
    """
    Async MongoDB handle for the library collections.
    Constructed explicitly and passed to every service.
    """

    def __init__(self, connection_url: str, database_name: str):
        """
        Initialize the data store handle.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None

    @classmethod
    def from_database(cls, database: AsyncIOMotorDatabase) -> "LibraryDatabase":
        """Wrap an already opened database, e.g. a test double."""
        handle = cls(connection_url="", database_name=getattr(database, "name", ""))
        handle.database = database
        return handle

    async def connect(self) -> None:
        """Establish connection to MongoDB and ensure indexes."""
        try:
            self.client = AsyncIOMotorClient(self.connection_url)
            self.database = self.client[self.database_name]

            await self.client.admin.command('ping')
            logger.info("Successfully connected to MongoDB", database=self.database_name)

            await self._create_indexes()

        except ConnectionFailure as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            self.client = None
            logger.info("Disconnected from MongoDB")

    @property
    def users(self) -> AsyncIOMotorCollection:
        return self.database.users

    @property
    def books(self) -> AsyncIOMotorCollection:
        return self.database.books

    @property
    def comments(self) -> AsyncIOMotorCollection:
        return self.database.comments

    @property
    def downloads(self) -> AsyncIOMotorCollection:
        return self.database.downloads

    @property
    def favorites(self) -> AsyncIOMotorCollection:
        return self.database.favorites

    @property
    def reading_progress(self) -> AsyncIOMotorCollection:
        return self.database.reading_progress

    async def _create_indexes(self) -> None:
        """
        Create indexes for the catalog queries and the uniqueness rules.
        The unique indexes are what make comment, favorite and progress
        writes safe without a read beforehand.
        """
        try:
            await self.users.create_index("email", unique=True)

            await self.books.create_index("status")
            await self.books.create_index("language")
            await self.books.create_index("category")
            await self.books.create_index("uploaded_by")
            await self.books.create_index([("status", ASCENDING), ("created_at", DESCENDING)])
            await self.books.create_index([("status", ASCENDING), ("views", DESCENDING)])

            await self.comments.create_index(
                [("book_id", ASCENDING), ("user_id", ASCENDING)], unique=True
            )
            await self.comments.create_index([("book_id", ASCENDING), ("created_at", DESCENDING)])

            await self.downloads.create_index("book_id")

            await self.favorites.create_index(
                [("user_id", ASCENDING), ("book_id", ASCENDING)], unique=True
            )
            await self.reading_progress.create_index(
                [("user_id", ASCENDING), ("book_id", ASCENDING)], unique=True
            )

            logger.info("Successfully created MongoDB indexes")

        except Exception as e:
            logger.error("Failed to create indexes", error=str(e))
            raise

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            await self.database.command("ping")
            return {
                "status": "healthy",
                "books_count": await self.books.estimated_document_count(),
                "users_count": await self.users.estimated_document_count(),
            }
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e)
            }
