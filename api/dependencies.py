"""
FastAPI dependencies that build the library services for a request.

The data store handle lives on ``app.state`` (opened in the lifespan);
tests replace these providers through ``app.dependency_overrides``.
"""

from fastapi import Depends, Request

from library.accounts import AccountService
from library.catalog import CatalogService
from library.database import LibraryDatabase
from library.errors import LibraryError
from library.moderation import ModerationService
from library.ratings import RatingAggregator
from library.storage import FileStorage


def get_database(request: Request) -> LibraryDatabase:
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise LibraryError("Database service not available")
    return db


def get_storage(request: Request) -> FileStorage:
    return request.app.state.storage


def get_catalog_service(
    db: LibraryDatabase = Depends(get_database),
    storage: FileStorage = Depends(get_storage)
) -> CatalogService:
    return CatalogService(db, storage)


def get_moderation_service(db: LibraryDatabase = Depends(get_database)) -> ModerationService:
    return ModerationService(db)


def get_rating_aggregator(db: LibraryDatabase = Depends(get_database)) -> RatingAggregator:
    return RatingAggregator(db)


def get_account_service(
    request: Request,
    db: LibraryDatabase = Depends(get_database)
) -> AccountService:
    return AccountService(db, request.app.state.tokens)
