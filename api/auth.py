"""
Authentication and rate limiting for the FastAPI API.
"""

import time
from typing import Dict, List, Optional

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from library.errors import AuthenticationError, LibraryError, PermissionDeniedError
from library.security import TokenManager, TokenPayload

logger = structlog.get_logger(__name__)

# Security scheme; a missing header is reported by get_current_user itself
security = HTTPBearer(auto_error=False)


class RateLimiter:
    """Sliding-window request limiter keyed by client address."""

    def __init__(self, max_requests: int = 100, window_seconds: int = 900, sweep_interval: int = 1000):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.sweep_interval = sweep_interval
        self._requests: Dict[str, List[float]] = {}
        self._checks = 0

    def _prune(self, key: str, now: float) -> List[float]:
        recent = [
            req_time for req_time in self._requests.get(key, [])
            if now - req_time < self.window_seconds
        ]
        if recent:
            self._requests[key] = recent
        else:
            self._requests.pop(key, None)
        return recent

    def _sweep(self, now: float) -> None:
        """Forget clients whose newest request has left the window."""
        stale = [
            key for key, times in self._requests.items()
            if not times or now - times[-1] >= self.window_seconds
        ]
        for key in stale:
            del self._requests[key]

    def tracked_clients(self) -> int:
        return len(self._requests)

    def check_rate_limit(self, key: str, now: Optional[float] = None) -> bool:
        """
        Count a request for ``key``.

        Every ``sweep_interval`` checks, clients that went quiet are dropped.

        Args:
            key: Client identifier (IP address)
            now: Current time, for tests

        Returns:
            True if within limit, False if exceeded
        """
        now = time.time() if now is None else now
        self._checks += 1
        if self._checks % self.sweep_interval == 0:
            self._sweep(now)
        recent = self._prune(key, now)

        if len(recent) < self.max_requests:
            self._requests.setdefault(key, []).append(now)
            return True

        return False

    def get_rate_limit_info(self, key: str, now: Optional[float] = None) -> Dict:
        """
        Get rate limit information for a client.

        Returns:
            Dictionary with rate limit information
        """
        now = time.time() if now is None else now
        recent = self._prune(key, now)
        oldest = recent[0] if recent else now

        return {
            "requests_used": len(recent),
            "requests_remaining": max(0, self.max_requests - len(recent)),
            "rate_limit": self.max_requests,
            "reset_time": oldest + self.window_seconds,
        }

    def get_headers(self, key: str) -> Dict[str, str]:
        """Rate limit headers for a response to ``key``."""
        rate_info = self.get_rate_limit_info(key)
        return {
            "X-RateLimit-Limit": str(rate_info['rate_limit']),
            "X-RateLimit-Remaining": str(rate_info['requests_remaining']),
            "X-RateLimit-Reset": str(int(rate_info['reset_time']))
        }

    def reset(self) -> None:
        self._requests.clear()
        self._checks = 0


def client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def get_token_manager(request: Request) -> TokenManager:
    return request.app.state.tokens


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    tokens: TokenManager = Depends(get_token_manager)
) -> TokenPayload:
    """
    Verify the bearer token of a request.

    Raises:
        AuthenticationError: No token supplied (401)
        PermissionDeniedError: Token invalid or expired (403)
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Access token required")

    try:
        return tokens.decode_access_token(credentials.credentials)
    except PermissionDeniedError as e:
        logger.warning("Invalid token presented", error=e.error)
        raise


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    tokens: TokenManager = Depends(get_token_manager)
) -> Optional[TokenPayload]:
    """Token claims if a valid token was sent, otherwise None."""
    if credentials is None or not credentials.credentials:
        return None
    try:
        return tokens.decode_access_token(credentials.credentials)
    except LibraryError:
        return None


async def require_admin(user: TokenPayload = Depends(get_current_user)) -> TokenPayload:
    """Allow only administrators."""
    if not user.is_admin:
        logger.warning("Admin access denied", user_id=user.user_id)
        raise PermissionDeniedError("Admin access required")
    return user
