"""User model"""

import uuid

from sqlalchemy import Column, String, DateTime, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from blogauth.core.database import Base

DEFAULT_AVATAR = "https://cdn-icons-png.flaticon.com/512/2650/2650869.png"


def _new_identity_id() -> str:
    return uuid.uuid4().hex


class User(Base):
    """Identity record for authentication and authorization"""

    __tablename__ = "users"

    id = Column(String(32), primary_key=True, default=_new_identity_id)
    username = Column(String(20), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), default="user", nullable=False, index=True)
    avatar = Column(String(500), default=DEFAULT_AVATAR, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    last_login = Column(DateTime)

    # Refresh session: both set or both NULL, at most one per identity
    refresh_token_hash = Column(String(64), nullable=True)
    refresh_expires_at = Column(DateTime, nullable=True)

    # Relationships
    following_edges = relationship(
        "Follow",
        foreign_keys="Follow.follower_id",
        back_populates="follower",
        cascade="all, delete-orphan",
    )
    follower_edges = relationship(
        "Follow",
        foreign_keys="Follow.followee_id",
        back_populates="followee",
        cascade="all, delete-orphan",
    )
    article_marks = relationship("ArticleMark", cascade="all, delete-orphan")
    audit_events = relationship("AuditEvent", back_populates="user")

    __table_args__ = (
        Index('idx_users_role_created', 'role', 'created_at'),
    )

    @property
    def has_refresh_session(self) -> bool:
        return self.refresh_token_hash is not None

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}', role='{self.role}')>"

