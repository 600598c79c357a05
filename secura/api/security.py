"""
Authentication, role checks and rate limiting for the API.
"""

import time
from typing import Dict, List, Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from secura.config import settings
from secura.database import get_db
from secura.services.auth_service import has_role, resolve_user
from secura.utils.logging_config import StructuredLogger, user_id_var

logger = StructuredLogger(__name__)


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


async def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> str:
    """
    Resolve the bearer token to a user id.

    Missing header -> 401 "Authorization required".
    Unknown, revoked or expired token -> 401 "Invalid token".
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = resolve_user(db, _bearer_token(authorization))
    if user_id is None:
        client_host = request.client.host if request.client else "unknown"
        logger.warning("Invalid bearer token", client=client_host)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id_var.set(user_id)
    return user_id


async def get_optional_user(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> Optional[str]:
    """Same lookup as get_current_user, but anonymous requests pass through."""
    user_id = resolve_user(db, _bearer_token(authorization))
    if user_id:
        user_id_var.set(user_id)
    return user_id


def require_role(role: str):
    """Dependency factory: the caller must hold `role`."""

    async def checker(
        user_id: str = Depends(get_current_user),
        db: Session = Depends(get_db),
    ) -> str:
        if not has_role(db, user_id, role):
            logger.warning("Role check failed", user_id=user_id, role=role)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"{role.capitalize()} privileges required",
            )
        return user_id

    return checker


class RateLimiter:
    """
    Simple in-memory sliding-window rate limiter.
    State is per process; multiple workers each keep their own window.
    """

    def __init__(self):
        self._requests: Dict[str, List[float]] = {}
        self._last_sweep = time.time()

    def _clean_old_requests(self, key: str, window: int):
        now = time.time()
        recent = [ts for ts in self._requests.get(key, []) if now - ts < window]
        if recent:
            self._requests[key] = recent
        else:
            self._requests.pop(key, None)

    def _sweep(self, window: int):
        """Drop every key whose window has emptied, at most once per window."""
        if time.time() - self._last_sweep < window:
            return
        self._last_sweep = time.time()
        for key in list(self._requests):
            self._clean_old_requests(key, window)

    def tracked_keys(self) -> int:
        return len(self._requests)

    def is_allowed(self, key: str, limit: int, window: int) -> tuple[bool, int]:
        """
        Check if a request is allowed.

        Returns:
            (allowed: bool, remaining: int)
        """
        self._sweep(window)
        self._clean_old_requests(key, window)

        timestamps = self._requests.get(key, [])
        current_count = len(timestamps)
        if current_count >= limit:
            return False, 0

        self._requests[key] = timestamps + [time.time()]
        return True, limit - current_count - 1

    def get_retry_after(self, key: str, window: int) -> int:
        """Seconds until the oldest request expires."""
        timestamps = self._requests.get(key)
        if not timestamps:
            return 0
        oldest = min(timestamps)
        return max(0, int(window - (time.time() - oldest)))

    def reset(self):
        self._requests.clear()


rate_limiter = RateLimiter()


async def check_rate_limit(request: Request):
    """Per-IP limit on the upload endpoints."""
    if not settings.rate_limit_requests:
        return  # Rate limiting disabled

    client_ip = request.client.host if request.client else "unknown"

    allowed, remaining = rate_limiter.is_allowed(
        key=client_ip,
        limit=settings.rate_limit_requests,
        window=settings.rate_limit_window,
    )

    request.state.rate_limit_remaining = remaining
    request.state.rate_limit_limit = settings.rate_limit_requests

    if not allowed:
        retry_after = rate_limiter.get_retry_after(client_ip, settings.rate_limit_window)
        logger.warning("Rate limit exceeded", client=client_ip)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Rate limit exceeded. Try again in {retry_after} seconds.",
            headers={
                "Retry-After": str(retry_after),
                "X-RateLimit-Limit": str(settings.rate_limit_requests),
                "X-RateLimit-Remaining": "0",
            },
        )
