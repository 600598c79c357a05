"""
Bearer tokens and user roles.
"""

import hashlib
import secrets
from datetime import timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from secura.config import settings
from secura.database import utcnow
from secura.models.user import AccessToken, AppRole, UserRole

VALID_ROLES = tuple(r.value for r in AppRole)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def issue_token(db: Session, user_id: str, ttl_days: Optional[int] = None) -> str:
    """
    Create a bearer token for user_id and return it. Only its hash is stored,
    so the returned value cannot be recovered later.
    """
    ttl = settings.token_ttl_days if ttl_days is None else ttl_days
    token = secrets.token_urlsafe(32)
    db.add(
        AccessToken(
            user_id=user_id,
            token_hash=hash_token(token),
            expires_at=utcnow() + timedelta(days=ttl) if ttl else None,
        )
    )
    db.commit()
    return token


def revoke_token(db: Session, token: str) -> bool:
    record = db.query(AccessToken).filter(AccessToken.token_hash == hash_token(token)).first()
    if record is None:
        return False
    record.revoked = True
    db.commit()
    return True


def resolve_user(db: Session, token: str) -> Optional[str]:
    """User id for a live token, or None for unknown, revoked or expired tokens."""
    if not token:
        return None
    record = db.query(AccessToken).filter(AccessToken.token_hash == hash_token(token)).first()
    if record is None or record.revoked:
        return None
    if record.expires_at is not None and record.expires_at <= utcnow():
        return None
    return record.user_id


def grant_role(db: Session, user_id: str, role: str) -> UserRole:
    if role not in VALID_ROLES:
        raise ValueError(f"Invalid role '{role}'. Must be one of {VALID_ROLES}.")

    existing = (
        db.query(UserRole)
        .filter(UserRole.user_id == user_id, UserRole.role == role)
        .first()
    )
    if existing:
        return existing

    user_role = UserRole(user_id=user_id, role=role)
    db.add(user_role)
    db.commit()
    db.refresh(user_role)
    return user_role


def get_roles(db: Session, user_id: str) -> List[str]:
    rows = db.query(UserRole.role).filter(UserRole.user_id == user_id).all()
    return sorted(r.role for r in rows)


def has_role(db: Session, user_id: str, role: str) -> bool:
    return (
        db.query(UserRole)
        .filter(UserRole.user_id == user_id, UserRole.role == role)
        .count()
        > 0
    )
