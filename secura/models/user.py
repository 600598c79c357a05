"""
User roles and bearer access tokens.
"""

import enum

from sqlalchemy import Column, Integer, String, DateTime, Boolean, UniqueConstraint

from secura.database import Base, utcnow


class AppRole(str, enum.Enum):
    ADMIN = "admin"
    MODERATOR = "moderator"
    USER = "user"


class UserRole(Base):
    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    role = Column(String(16), nullable=False)
    created_at = Column(DateTime, default=utcnow)


class AccessToken(Base):
    """Bearer token issued to a user. Only the sha256 of the token is stored."""
    __tablename__ = "access_tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    created_at = Column(DateTime, default=utcnow)
    expires_at = Column(DateTime, nullable=True)
    revoked = Column(Boolean, default=False, nullable=False)
