"""Admin routes - identity oversight, session revocation and audit trail"""

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session
from typing import List, Optional

from blogauth.core.database import get_db
from blogauth.core.exceptions import ResourceNotFoundError
from blogauth.schemas.user import AdminUserResponse
from blogauth.schemas.audit import AuditEventResponse
from blogauth.services.audit_service import AuditAction, MAX_EVENTS, audit_service
from blogauth.services.auth_service import AuthService
from blogauth.services.user_service import user_service
from blogauth.api.deps import client_ip, get_auth_service, get_current_admin_user
from blogauth.models.user import User

router = APIRouter()


@router.get("/users", response_model=List[AdminUserResponse])
def list_users(
    role: Optional[str] = None,
    current_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """
    Get all users (admin only)

    Args:
        role: Optional role filter
        current_user: Current admin user
        db: Database session

    Returns:
        List of users
    """
    return [AdminUserResponse.from_user(u) for u in user_service.get_all_users(db, role)]


@router.post("/users/{user_id}/revoke-session", status_code=status.HTTP_200_OK)
def revoke_session(
    user_id: str,
    request: Request,
    current_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    """
    Invalidate a user's refresh session (admin only)

    Access tokens already handed out keep working until they expire.
    """
    target = user_service.get_user_by_id(db, user_id)
    if not target:
        raise ResourceNotFoundError("User")

    revoked = auth.revoke_session(db, current_user, target, ip_address=client_ip(request))
    return {
        "success": True,
        "message": f"Session of user {target.username} revoked",
        "hadSession": revoked,
    }


@router.get("/audit-events", response_model=List[AuditEventResponse])
def get_audit_events(
    limit: int = Query(100, ge=1, le=MAX_EVENTS),
    action: Optional[AuditAction] = None,
    target_id: Optional[str] = Query(None, alias="targetId"),
    current_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db),
):
    """List recent audit trail entries, newest first."""
    events = audit_service.recent_events(
        db, action=action.value if action else None, target_id=target_id, limit=limit
    )
    return [AuditEventResponse.from_event(ev) for ev in events]
