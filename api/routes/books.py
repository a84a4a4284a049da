"""
Book catalog, upload, download, comment, favorite and reading progress endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from fastapi.responses import FileResponse
from pydantic import ValidationError

from api.auth import client_address, get_current_user, get_optional_user
from api.dependencies import get_account_service, get_catalog_service, get_rating_aggregator
from api.models import (
    BookResponse, CommentCreateRequest, CommentResponse, FavoriteResponse,
    ReadingProgressRequest, ReadingProgressResponse, format_validation_errors
)
from library.accounts import AccountService
from library.catalog import CatalogService
from library.errors import InvalidInputError
from library.models import Book, BookFilters, BookLicense, BookMetadata, BookPage, CommentPage
from library.ratings import RatingAggregator
from library.security import TokenPayload

router = APIRouter(prefix="/api/books", tags=["Books"])


@router.get("", response_model=BookPage)
async def list_books(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    search: Optional[str] = None,
    language: Optional[str] = None,
    category: Optional[str] = None,
    sort: Optional[str] = None,
    status: Optional[str] = None,
    user: Optional[TokenPayload] = Depends(get_optional_user),
    catalog: CatalogService = Depends(get_catalog_service)
):
    """
    Get books with filtering, sorting, and pagination.

    - **search**: Substring of title, author or description
    - **language** / **category**: Exact filters
    - **sort**: popular (default), recent, rating, title, downloads
    - **status**: Moderation status; only honoured for admins
    """
    try:
        filters = BookFilters(
            search=search,
            language=language or None,
            category=category or None,
            sort=sort or "popular",
            status=status or "approved",
            page=page,
            limit=limit,
        )
    except ValidationError as e:
        raise InvalidInputError("Invalid query parameters", error=format_validation_errors(e.errors()))

    return await catalog.list_books(filters, privileged=bool(user and user.is_admin))


@router.post("/upload", response_model=BookResponse, status_code=status.HTTP_201_CREATED)
async def upload_book(
    file: Optional[UploadFile] = File(None),
    title: Optional[str] = Form(None),
    author: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    language: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    license: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    user: TokenPayload = Depends(get_current_user),
    catalog: CatalogService = Depends(get_catalog_service)
):
    """Upload a book file (PDF, EPUB, MOBI or TXT, up to 50MB). New books await review."""
    if file is None or not file.filename:
        raise InvalidInputError("File is required")

    if not all([title, author, description, language, category]):
        raise InvalidInputError("All required fields must be filled")

    try:
        metadata = BookMetadata(
            title=title,
            author=author,
            description=description,
            language=language,
            category=category,
            license=license or BookLicense.CC_BY.value,
            tags=tags,
        )
    except ValidationError as e:
        raise InvalidInputError("Invalid book metadata", error=format_validation_errors(e.errors()))

    book = await catalog.upload_book(user.user_id, metadata, file)
    return BookResponse(message="Book uploaded successfully", book=book)


@router.get("/{book_id}", response_model=Book)
async def get_book(
    book_id: str,
    user: Optional[TokenPayload] = Depends(get_optional_user),
    catalog: CatalogService = Depends(get_catalog_service)
):
    """
    Get a single book. Each call counts as one view.

    Pending and rejected books are only shown to admins and their uploader.
    """
    return await catalog.get_book(
        book_id,
        viewer_id=user.user_id if user else None,
        privileged=bool(user and user.is_admin),
    )


@router.get("/{book_id}/download")
async def download_book(
    book_id: str,
    request: Request,
    user: Optional[TokenPayload] = Depends(get_optional_user),
    catalog: CatalogService = Depends(get_catalog_service)
):
    """Download the file of an approved book."""
    path, filename = await catalog.download_book(
        book_id,
        requester_id=user.user_id if user else None,
        ip_address=client_address(request),
    )
    return FileResponse(path, filename=filename, media_type="application/octet-stream")


@router.get("/{book_id}/comments", response_model=CommentPage)
async def list_comments(
    book_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    ratings: RatingAggregator = Depends(get_rating_aggregator)
):
    """Comments on a book, newest first."""
    return await ratings.list_comments(book_id, page=page, limit=limit)


@router.post("/{book_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def add_comment(
    book_id: str,
    payload: CommentCreateRequest,
    user: TokenPayload = Depends(get_current_user),
    ratings: RatingAggregator = Depends(get_rating_aggregator)
):
    """Comment on and rate a book. One comment per user per book."""
    comment = await ratings.add_comment(book_id, user.user_id, payload.comment, payload.rating)
    return CommentResponse(message="Comment added successfully", comment=comment)


@router.post("/{book_id}/favorite", response_model=FavoriteResponse)
async def toggle_favorite(
    book_id: str,
    user: TokenPayload = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service)
):
    """Add the book to favorites, or remove it if it already is one."""
    favorited = await accounts.toggle_favorite(user.user_id, book_id)
    message = "Added to favorites" if favorited else "Removed from favorites"
    return FavoriteResponse(message=message, favorited=favorited)


@router.post("/{book_id}/reading-progress", response_model=ReadingProgressResponse)
async def update_reading_progress(
    book_id: str,
    payload: ReadingProgressRequest,
    user: TokenPayload = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service)
):
    """Store how far the user has read the book."""
    progress = await accounts.update_reading_progress(user.user_id, book_id, payload.progress)
    return ReadingProgressResponse(message="Reading progress updated", progress=progress)
