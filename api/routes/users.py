"""
Endpoints for the authenticated user's own data.
"""

from typing import List

from fastapi import APIRouter, Depends

from api.auth import get_current_user
from api.dependencies import get_account_service
from api.models import ProfileUpdateRequest, UserResponse
from library.accounts import AccountService
from library.models import Book, ReadingHistoryEntry, UserProfileDetail
from library.security import TokenPayload

router = APIRouter(prefix="/api/user", tags=["User"])


@router.get("/favorites", response_model=List[Book])
async def list_favorites(
    user: TokenPayload = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service)
):
    return await accounts.list_favorites(user.user_id)


@router.get("/profile", response_model=UserProfileDetail)
async def get_profile(
    user: TokenPayload = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service)
):
    """Profile with uploaded and favorited books."""
    return await accounts.get_profile(user.user_id)


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    payload: ProfileUpdateRequest,
    user: TokenPayload = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service)
):
    updated = await accounts.update_profile(user.user_id, name=payload.name, email=payload.email)
    return UserResponse(message="Profile updated successfully", user=updated)


@router.get("/reading-history", response_model=List[ReadingHistoryEntry])
async def reading_history(
    user: TokenPayload = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service)
):
    return await accounts.reading_history(user.user_id)
