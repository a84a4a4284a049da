"""
API request and response schemas for the FastAPI application.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from library.models import Book, Comment, UserProfile


class RegisterRequest(BaseModel):
    """Registration form. Presence is checked by the account service."""
    name: Optional[str] = Field(None, description="Display name")
    email: Optional[EmailStr] = Field(None, description="Email address")
    password: Optional[str] = Field(None, description="Password (min 6 characters)")
    confirm_password: Optional[str] = Field(None, alias="confirmPassword", description="Password confirmation")

    model_config = {"populate_by_name": True}


class LoginRequest(BaseModel):
    """Login form."""
    email: Optional[str] = Field(None, description="Email address")
    password: Optional[str] = Field(None, description="Password")


class ProfileUpdateRequest(BaseModel):
    """Profile changes; omitted fields stay unchanged."""
    name: Optional[str] = Field(None, description="New display name")
    email: Optional[EmailStr] = Field(None, description="New email address")


class CommentCreateRequest(BaseModel):
    """New comment on a book."""
    comment: Optional[str] = Field(None, description="Comment text")
    rating: Optional[int] = Field(None, description="Rating between 1 and 5")


class ReadingProgressRequest(BaseModel):
    """Reading progress update."""
    progress: Optional[float] = Field(None, description="Progress percentage (0-100)")


class StatusUpdateRequest(BaseModel):
    """Moderation decision."""
    status: Optional[str] = Field(None, description="approved or rejected")


class MessageResponse(BaseModel):
    message: str = Field(..., description="Human-readable result")


class UserResponse(MessageResponse):
    user: UserProfile


class LoginResponse(UserResponse):
    token: str = Field(..., description="Bearer token, valid for 7 days")


class BookResponse(MessageResponse):
    book: Book


class CommentResponse(MessageResponse):
    comment: Comment


class FavoriteResponse(MessageResponse):
    favorited: bool = Field(..., description="Favorite state after the toggle")


class ReadingProgressResponse(MessageResponse):
    progress: float = Field(..., description="Stored progress percentage")


class ErrorResponse(BaseModel):
    """Error response model."""
    message: str = Field(..., description="Error message")
    error: Optional[str] = Field(None, description="Additional error details")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")


def format_validation_errors(errors) -> str:
    """Flatten pydantic error entries into one readable line."""
    parts = []
    for err in errors:
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        parts.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return "; ".join(parts)
