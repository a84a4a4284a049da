"""
Password hashing and access token handling.
"""

from datetime import datetime, timedelta
from typing import Optional

import jwt
from passlib.context import CryptContext
from pydantic import BaseModel

from .errors import PermissionDeniedError
from .models import UserRole

DEFAULT_BCRYPT_ROUNDS = 12

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=DEFAULT_BCRYPT_ROUNDS)


def set_bcrypt_rounds(rounds: int) -> None:
    """Change the work factor used for new password hashes."""
    pwd_context.update(bcrypt__rounds=rounds)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


class TokenPayload(BaseModel):
    """Claims carried by an access token."""
    user_id: str
    email: str
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class TokenManager:
    """Issues and verifies signed, time-limited access tokens."""

    def __init__(self, secret_key: str, algorithm: str = "HS256", expire_days: int = 7):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire_days = expire_days

    def create_access_token(
        self,
        payload: TokenPayload,
        expires_delta: Optional[timedelta] = None
    ) -> str:
        """Create a JWT access token for ``payload``."""
        now = datetime.utcnow()
        expire = now + (expires_delta or timedelta(days=self.expire_days))
        claims = payload.dict()
        claims["role"] = payload.role.value
        claims.update({"exp": expire, "iat": now})
        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    def decode_access_token(self, token: str) -> TokenPayload:
        """
        Verify a token and return its claims.

        Raises:
            PermissionDeniedError: Signature invalid, token expired or claims missing
        """
        try:
            claims = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
            return TokenPayload(
                user_id=claims["user_id"],
                email=claims["email"],
                role=claims.get("role", UserRole.USER.value),
            )
        except (jwt.PyJWTError, KeyError, ValueError) as e:
            raise PermissionDeniedError("Invalid token", error=str(e))
