"""Social graph and engagement routes"""

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.orm import Session
from typing import List

from blogauth.core.database import get_db
from blogauth.schemas.user import UserSummary
from blogauth.schemas.response import FollowStatusResponse
from blogauth.services.user_service import user_service
from blogauth.api.deps import get_current_user
from blogauth.models.user import User

router = APIRouter()


@router.post("/follow/{user_id}", status_code=status.HTTP_200_OK)
def follow(
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Follow an author

    Args:
        user_id: Identity to follow
        current_user: Current authenticated user

    Returns:
        Success message
    """
    user_service.follow(db, current_user, user_id)
    return {"success": True, "message": "Followed"}


@router.post("/unfollow/{user_id}", status_code=status.HTTP_200_OK)
def unfollow(
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Stop following an author"""
    user_service.unfollow(db, current_user, user_id)
    return {"success": True, "message": "Unfollowed"}


@router.get("/check-following/{user_id}", response_model=FollowStatusResponse)
def check_following(
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return FollowStatusResponse(is_following=user_service.is_following(db, current_user, user_id))


@router.get("/following", response_model=List[UserSummary])
def list_following(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Authors the caller follows, most recent first"""
    return [UserSummary.from_user(u) for u in user_service.list_following(db, current_user)]


@router.get("/followers", response_model=List[UserSummary])
def list_followers(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return [UserSummary.from_user(u) for u in user_service.list_followers(db, current_user)]


@router.get("/me/marks/{kind}", response_model=List[str])
def list_marks(
    kind: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Article ids the caller has favorited, liked or collected"""
    return user_service.marked_article_ids(db, current_user, kind)


@router.put("/me/marks/{kind}/{article_id}", status_code=status.HTTP_200_OK)
def add_mark(
    kind: str,
    article_id: str = Path(..., min_length=1, max_length=64),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    created = user_service.add_mark(db, current_user, kind, article_id)
    return {"success": True, "created": created}


@router.delete("/me/marks/{kind}/{article_id}", status_code=status.HTTP_200_OK)
def remove_mark(
    kind: str,
    article_id: str = Path(..., min_length=1, max_length=64),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    removed = user_service.remove_mark(db, current_user, kind, article_id)
    return {"success": True, "removed": removed}
