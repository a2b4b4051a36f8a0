"""User service - identity records, follow graph and article marks"""

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional
from blogauth.models.user import User
from blogauth.models.social import ArticleMark, Follow, MARK_KINDS
from blogauth.schemas.user import UserRole, UserStats
from blogauth.core.security import get_password_hash
from blogauth.core.exceptions import (
    BusinessLogicError,
    UsernameTakenError,
    ResourceNotFoundError,
    ValidationError,
)
from blogauth.services.content_store import AuthoredContentStore
import logging

logger = logging.getLogger(__name__)


class UserService:
    """Service for identity records"""

    @staticmethod
    def create_user(db: Session, username: str, password: str, role: UserRole = UserRole.USER) -> User:
        """
        Create new identity

        Args:
            db: Database session
            username: Unique username
            password: Plain text password, hashed before storage
            role: Role flag

        Returns:
            Created user

        Raises:
            UsernameTakenError: If the username is in use
        """
        if UserService.get_user_by_username(db, username):
            raise UsernameTakenError(username)

        user = User(
            username=username,
            password_hash=get_password_hash(password),
            role=role.value
        )

        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration for the same name
            db.rollback()
            raise UsernameTakenError(username)
        db.refresh(user)

        logger.info(f"Created user: {user.username} (role: {user.role})")
        return user

    @staticmethod
    def get_user_by_id(db: Session, user_id: str) -> Optional[User]:
        """Get user by ID"""
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_user_by_username(db: Session, username: str) -> Optional[User]:
        """Get user by username"""
        return db.query(User).filter(User.username == username).first()

    @staticmethod
    def get_all_users(db: Session, role: Optional[str] = None) -> List[User]:
        """
        Get all users, optionally filtered by role

        Args:
            db: Database session
            role: Optional role filter

        Returns:
            List of users
        """
        query = db.query(User)

        if role:
            query = query.filter(User.role == role)

        return query.order_by(User.created_at).all()

    @staticmethod
    def update_username(db: Session, user: User, new_username: str) -> User:
        """Rename a user, re-checking uniqueness"""
        if new_username == user.username:
            return user
        if UserService.get_user_by_username(db, new_username):
            raise UsernameTakenError(new_username)

        old = user.username
        user.username = new_username
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise UsernameTakenError(new_username)

        logger.info(f"Renamed user {user.id}: {old} -> {new_username}")
        return user

    @staticmethod
    def set_password(db: Session, user: User, new_password: str, *, commit: bool = True) -> None:
        """Replace the password hash"""
        user.password_hash = get_password_hash(new_password)
        if commit:
            db.commit()

    @staticmethod
    def delete_user(db: Session, user: User, content: AuthoredContentStore, *, commit: bool = True) -> int:
        """
        Delete a user and everything it owns

        Follow edges and article marks cascade through the ORM; authored
        articles and comments are removed through the content store.

        Args:
            db: Database session
            user: User to delete
            content: Content store owning authored articles/comments

        Returns:
            Number of content items removed
        """
        removed = content.delete_by_author(user.id)
        db.delete(user)
        if commit:
            db.commit()

        logger.info(f"Deleted user: {user.username} ({removed} authored items removed)")
        return removed

    # Follow graph

    @staticmethod
    def follow(db: Session, user: User, target_id: str) -> None:
        if target_id == user.id:
            raise BusinessLogicError("You cannot follow yourself")
        if not UserService.get_user_by_id(db, target_id):
            raise ResourceNotFoundError("User")
        if UserService.is_following(db, user, target_id):
            raise BusinessLogicError("Already following this author")

        db.add(Follow(follower_id=user.id, followee_id=target_id))
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise BusinessLogicError("Already following this author")

    @staticmethod
    def unfollow(db: Session, user: User, target_id: str) -> None:
        edge = (
            db.query(Follow)
            .filter(Follow.follower_id == user.id, Follow.followee_id == target_id)
            .first()
        )
        if not edge:
            raise BusinessLogicError("Not following this author")
        db.delete(edge)
        db.commit()

    @staticmethod
    def is_following(db: Session, user: User, target_id: str) -> bool:
        return (
            db.query(Follow.id)
            .filter(Follow.follower_id == user.id, Follow.followee_id == target_id)
            .first()
            is not None
        )

    @staticmethod
    def list_following(db: Session, user: User) -> List[User]:
        return (
            db.query(User)
            .join(Follow, Follow.followee_id == User.id)
            .filter(Follow.follower_id == user.id)
            .order_by(Follow.created_at.desc())
            .all()
        )

    @staticmethod
    def list_followers(db: Session, user: User) -> List[User]:
        return (
            db.query(User)
            .join(Follow, Follow.follower_id == User.id)
            .filter(Follow.followee_id == user.id)
            .order_by(Follow.created_at.desc())
            .all()
        )

    # Article marks

    @staticmethod
    def _check_kind(kind: str) -> None:
        if kind not in MARK_KINDS:
            raise ValidationError(
                f"Unknown mark kind '{kind}'", details={"allowed": list(MARK_KINDS)}
            )

    @staticmethod
    def add_mark(db: Session, user: User, kind: str, article_id: str) -> bool:
        """Record a favorite/like/collect. Returns False if it already existed."""
        UserService._check_kind(kind)
        exists = (
            db.query(ArticleMark.id)
            .filter(
                ArticleMark.user_id == user.id,
                ArticleMark.kind == kind,
                ArticleMark.article_id == article_id,
            )
            .first()
        )
        if exists:
            return False
        db.add(ArticleMark(user_id=user.id, kind=kind, article_id=article_id))
        db.commit()
        return True

    @staticmethod
    def remove_mark(db: Session, user: User, kind: str, article_id: str) -> bool:
        UserService._check_kind(kind)
        count = (
            db.query(ArticleMark)
            .filter(
                ArticleMark.user_id == user.id,
                ArticleMark.kind == kind,
                ArticleMark.article_id == article_id,
            )
            .delete()
        )
        db.commit()
        return count > 0

    @staticmethod
    def marked_article_ids(db: Session, user: User, kind: str) -> List[str]:
        UserService._check_kind(kind)
        rows = (
            db.query(ArticleMark.article_id)
            .filter(ArticleMark.user_id == user.id, ArticleMark.kind == kind)
            .order_by(ArticleMark.created_at)
            .all()
        )
        return [row[0] for row in rows]

    @staticmethod
    def get_stats(db: Session, user: User, content: AuthoredContentStore) -> UserStats:
        """Profile counters"""
        followers = db.query(func.count(Follow.id)).filter(Follow.followee_id == user.id).scalar()
        following = db.query(func.count(Follow.id)).filter(Follow.follower_id == user.id).scalar()
        marks = dict(
            db.query(ArticleMark.kind, func.count(ArticleMark.id))
            .filter(ArticleMark.user_id == user.id)
            .group_by(ArticleMark.kind)
            .all()
        )
        return UserStats(
            followers=followers or 0,
            following=following or 0,
            collections=marks.get("collect", 0),
            favorites=marks.get("favorite", 0),
            likes=marks.get("like", 0),
            posts=content.count_by_author(user.id),
        )


# Singleton instance
user_service = UserService()
