"""
Pydantic models for library documents.
Implements the User, Book, Comment and Download schemas and the
enumerations shared by the services and the API.
"""

import math
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, validator


class UserRole(str, Enum):
    """Enum for account roles."""
    USER = "user"
    ADMIN = "admin"


class BookStatus(str, Enum):
    """Enum for book moderation status."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class BookLanguage(str, Enum):
    """Enum for supported book languages."""
    INDONESIAN = "id"
    ENGLISH = "en"
    SPANISH = "es"
    FRENCH = "fr"
    GERMAN = "de"
    CHINESE = "zh"
    JAPANESE = "ja"
    ARABIC = "ar"


class BookCategory(str, Enum):
    """Enum for book categories."""
    FICTION = "fiction"
    NON_FICTION = "non-fiction"
    ACADEMIC = "academic"
    CHILDREN = "children"
    POETRY = "poetry"
    BIOGRAPHY = "biography"
    SCIENCE = "science"
    HISTORY = "history"
    PHILOSOPHY = "philosophy"
    FOLKLORE = "folklore"


class BookLicense(str, Enum):
    """Enum for content licenses."""
    CC0 = "cc0"
    CC_BY = "cc-by"
    CC_BY_SA = "cc-by-sa"
    CC_BY_NC = "cc-by-nc"


class BookSort(str, Enum):
    """Sort options for book listings."""
    POPULAR = "popular"
    RECENT = "recent"
    RATING = "rating"
    TITLE = "title"
    DOWNLOADS = "downloads"


def _stringify_ids(doc: Dict[str, Any], *fields: str) -> Dict[str, Any]:
    """Copy a MongoDB document, exposing ``_id`` as ``id`` and ObjectIds as strings."""
    data = dict(doc)
    if "_id" in data:
        data["id"] = str(data.pop("_id"))
    for field in fields:
        if data.get(field) is not None:
            data[field] = str(data[field])
    return data


class UserSummary(BaseModel):
    """Public identity attached to books and comments."""
    id: str = Field(..., description="User identifier")
    name: str = Field(..., description="Display name")
    email: Optional[str] = Field(None, description="Email address")
    avatar: Optional[str] = Field(None, description="Avatar URL")

    @classmethod
    def from_document(cls, doc: Dict[str, Any], include_email: bool = False) -> "UserSummary":
        data = _stringify_ids(doc)
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            email=data.get("email") if include_email else None,
            avatar=data.get("avatar"),
        )


class UserProfile(BaseModel):
    """User account without credentials."""
    id: str = Field(..., description="User identifier")
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Email address (lowercase)")
    role: UserRole = Field(UserRole.USER, description="Account role")
    avatar: Optional[str] = Field(None, description="Avatar URL")
    created_at: Optional[datetime] = Field(None, description="Registration time")

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "UserProfile":
        data = _stringify_ids(doc)
        data.pop("password", None)
        return cls(**data)


class FileInfo(BaseModel):
    """Descriptor of a stored book file."""
    path: str = Field(..., description="Path of the stored file")
    name: str = Field(..., description="Original file name")
    size: int = Field(..., ge=0, description="File size in bytes")
    extension: str = Field(..., description="Lowercase file extension including the dot")


class RatingSummary(BaseModel):
    """Average and number of comment ratings for a book."""
    average: float = Field(0.0, ge=0, le=5, description="Mean comment rating")
    count: int = Field(0, ge=0, description="Number of comments")

    @classmethod
    def from_ratings(cls, ratings: List[int]) -> "RatingSummary":
        """Recompute the summary from every rating of a book."""
        if not ratings:
            return cls(average=0.0, count=0)
        return cls(average=sum(ratings) / len(ratings), count=len(ratings))


class Book(BaseModel):
    """
    Catalog entry as stored in the ``books`` collection.
    """
    id: str = Field(..., description="Book identifier")
    title: str = Field(..., description="Book title")
    author: str = Field(..., description="Book author")
    description: str = Field(..., description="Book description")
    language: BookLanguage = Field(..., description="Language code")
    category: BookCategory = Field(..., description="Book category")
    license: BookLicense = Field(BookLicense.CC_BY, description="Content license")
    file: Optional[FileInfo] = Field(None, description="Stored file descriptor")
    cover_image: Optional[str] = Field(None, description="Cover image URL")
    uploaded_by: str = Field(..., description="Uploader user identifier")
    uploader: Optional[UserSummary] = Field(None, description="Uploader details")
    status: BookStatus = Field(BookStatus.PENDING, description="Moderation status")
    views: int = Field(0, ge=0, description="Number of detail views")
    downloads: int = Field(0, ge=0, description="Number of downloads")
    rating: RatingSummary = Field(default_factory=RatingSummary, description="Rating summary")
    tags: List[str] = Field(default_factory=list, description="Free-form tags")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")

    class Config:
        """Pydantic configuration."""
        json_schema_extra = {
            "example": {
                "id": "665f1c2b9a1e4b0012345678",
                "title": "Laskar Pelangi",
                "author": "Andrea Hirata",
                "description": "Novel tentang perjuangan sepuluh anak di Belitung.",
                "language": "id",
                "category": "fiction",
                "license": "cc-by",
                "uploaded_by": "665f1c2b9a1e4b0012345600",
                "status": "approved",
                "views": 5670,
                "downloads": 2340,
                "rating": {"average": 4.8, "count": 156},
                "tags": ["indonesia", "inspirasi"]
            }
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any], uploader: Optional[UserSummary] = None) -> "Book":
        data = _stringify_ids(doc, "uploaded_by")
        data["uploader"] = uploader
        return cls(**data)


class Comment(BaseModel):
    """Comment with rating left by a user on a book."""
    id: str = Field(..., description="Comment identifier")
    book_id: str = Field(..., description="Book identifier")
    user_id: str = Field(..., description="Author user identifier")
    user: Optional[UserSummary] = Field(None, description="Author details")
    comment: str = Field(..., description="Comment text")
    rating: int = Field(..., ge=1, le=5, description="Rating between 1 and 5")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")

    @classmethod
    def from_document(cls, doc: Dict[str, Any], user: Optional[UserSummary] = None) -> "Comment":
        data = _stringify_ids(doc, "book_id", "user_id")
        data["user"] = user
        return cls(**data)


class DownloadRecord(BaseModel):
    """Append-only audit entry for a book download."""
    book_id: Any = Field(..., description="Downloaded book")
    user_id: Optional[Any] = Field(None, description="Requesting user, if authenticated")
    ip_address: Optional[str] = Field(None, description="Requester IP address")
    downloaded_at: datetime = Field(default_factory=datetime.utcnow, description="Download time")


class ReadingHistoryEntry(BaseModel):
    """Reading progress of a user on one book."""
    book: Book = Field(..., description="Book being read")
    progress: float = Field(..., ge=0, le=100, description="Progress percentage")
    last_read: datetime = Field(..., description="Last progress update")


class Pagination(BaseModel):
    """Offset pagination metadata."""
    current: int = Field(..., ge=1, description="Current page number")
    pages: int = Field(..., ge=0, description="Total number of pages")
    total: int = Field(..., ge=0, description="Total number of items")
    limit: int = Field(..., ge=1, description="Items per page")

    @classmethod
    def build(cls, total: int, page: int, limit: int) -> "Pagination":
        return cls(current=page, pages=math.ceil(total / limit), total=total, limit=limit)

    @staticmethod
    def skip(page: int, limit: int) -> int:
        """Number of items preceding ``page``."""
        return (page - 1) * limit


class BookPage(BaseModel):
    """One page of books."""
    books: List[Book] = Field(..., description="Books on this page")
    pagination: Pagination = Field(..., description="Pagination metadata")


class CommentPage(BaseModel):
    """One page of comments."""
    comments: List[Comment] = Field(..., description="Comments on this page")
    pagination: Pagination = Field(..., description="Pagination metadata")


class BookFilters(BaseModel):
    """Query parameters for catalog listing."""
    search: Optional[str] = Field(None, description="Substring of title, author or description")
    language: Optional[BookLanguage] = Field(None, description="Filter by language")
    category: Optional[BookCategory] = Field(None, description="Filter by category")
    status: BookStatus = Field(BookStatus.APPROVED, description="Moderation status")
    sort: BookSort = Field(BookSort.POPULAR, description="Sort order")
    page: int = Field(1, ge=1, description="Page number")
    limit: int = Field(12, ge=1, le=100, description="Items per page")

    @validator('search')
    def validate_search(cls, v):
        """Treat blank search terms as absent."""
        if v is not None and not v.strip():
            return None
        return v.strip() if v else v


class BookMetadata(BaseModel):
    """Fields supplied alongside an uploaded book file."""
    title: str = Field(..., min_length=1, description="Book title")
    author: str = Field(..., min_length=1, description="Book author")
    description: str = Field(..., min_length=1, description="Book description")
    language: BookLanguage = Field(..., description="Language code")
    category: BookCategory = Field(..., description="Book category")
    license: BookLicense = Field(BookLicense.CC_BY, description="Content license")
    tags: List[str] = Field(default_factory=list, description="Free-form tags")

    @validator('title', 'author', 'description')
    def strip_text(cls, v):
        """Trim surrounding whitespace and reject blank values."""
        v = v.strip()
        if not v:
            raise ValueError('must not be blank')
        return v

    @validator('tags', pre=True)
    def split_tags(cls, v):
        """Accept tags as a comma-separated string."""
        if v is None:
            return []
        if isinstance(v, str):
            v = v.split(",")
        return [tag.strip() for tag in v if tag and tag.strip()]


class UserProfileDetail(UserProfile):
    """Profile with the user's uploaded and favorited books."""
    uploaded_books: List[Book] = Field(default_factory=list, description="Books uploaded by the user")
    favorites: List[Book] = Field(default_factory=list, description="Books favorited by the user")


class LoginResult(BaseModel):
    """Issued access token with the authenticated profile."""
    token: str = Field(..., description="Signed access token")
    user: UserProfile = Field(..., description="Authenticated user")


class BookSuggestion(BaseModel):
    """Search suggestion entry."""
    id: str = Field(..., description="Book identifier")
    title: str = Field(..., description="Book title")
    author: str = Field(..., description="Book author")


class LanguageCount(BaseModel):
    language: str
    count: int


class CategoryCount(BaseModel):
    category: str
    count: int


class StatsOverview(BaseModel):
    """Headline numbers of the library."""
    total_books: int = Field(..., description="Approved books")
    total_users: int = Field(..., description="Registered users")
    total_downloads: int = Field(..., description="Logged downloads")
    total_languages: int = Field(..., description="Languages with at least one approved book")


class LibraryStats(BaseModel):
    """Aggregate catalog statistics."""
    overview: StatsOverview
    language_stats: List[LanguageCount]
    category_stats: List[CategoryCount]
    recent_books: List[Book]
    popular_books: List[Book]
