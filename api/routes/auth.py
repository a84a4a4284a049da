"""
Registration and login endpoints.
"""

from fastapi import APIRouter, Depends, status

from api.dependencies import get_account_service
from api.models import LoginRequest, LoginResponse, RegisterRequest, UserResponse
from library.accounts import AccountService

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest,
    accounts: AccountService = Depends(get_account_service)
):
    """Create an account. Returns the public profile only."""
    user = await accounts.register(
        name=payload.name,
        email=payload.email,
        password=payload.password,
        confirm_password=payload.confirm_password,
    )
    return UserResponse(message="User registered successfully", user=user)


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    accounts: AccountService = Depends(get_account_service)
):
    """Exchange email and password for a 7-day bearer token."""
    result = await accounts.login(payload.email, payload.password)
    return LoginResponse(message="Login successful", token=result.token, user=result.user)
