"""Social graph and article engagement edges owned by an identity."""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, UniqueConstraint, CheckConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from blogauth.core.database import Base

MARK_KINDS = ("favorite", "like", "collect")


class Follow(Base):
    """One row means follower follows followee (and followee has follower)."""

    __tablename__ = "follows"

    id = Column(Integer, primary_key=True, index=True)
    follower_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    followee_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    follower = relationship("User", foreign_keys=[follower_id], back_populates="following_edges")
    followee = relationship("User", foreign_keys=[followee_id], back_populates="follower_edges")

    __table_args__ = (
        UniqueConstraint("follower_id", "followee_id", name="uq_follows_pair"),
        CheckConstraint("follower_id <> followee_id", name="chk_follows_not_self"),
        Index("idx_follows_followee", "followee_id"),
    )


class ArticleMark(Base):
    """Favorite/like/collect reference from an identity to an external article id."""

    __tablename__ = "article_marks"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    article_id = Column(String(64), nullable=False)
    kind = Column(String(16), nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "article_id", "kind", name="uq_article_marks"),
        CheckConstraint("kind IN ('favorite', 'like', 'collect')", name="chk_article_mark_kind"),
        Index("idx_article_marks_user_kind", "user_id", "kind"),
    )
