"""Audit trail for account and session events."""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from blogauth.models.audit import AuditEvent

logger = logging.getLogger(__name__)

# Upper bound on rows returned by one listing
MAX_EVENTS = 500


class AuditAction(str, Enum):
    REGISTER = "register"
    LOGIN = "login"
    LOGOUT = "logout"
    CHANGE_PASSWORD = "change_password"
    DELETE_ACCOUNT = "delete_account"
    REVOKE_SESSION = "revoke_session"


class AuditService:
    """Append-only audit entries; never updated once written."""

    @staticmethod
    def log_event(
        db: Session,
        *,
        user_id: Optional[str],
        action: Union[AuditAction, str],
        target_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        commit: bool = True,
    ) -> AuditEvent:
        """
        Record an event against a user account

        Args:
            db: Database session
            user_id: Acting identity; None once the actor no longer exists
            action: What happened
            target_id: Identity the action applied to
            metadata: Extra JSON-serialisable context; never credentials
            commit: Commit now, or leave it to the caller's unit of work

        Returns:
            The pending or persisted event
        """
        action = AuditAction(action)
        event = AuditEvent(
            user_id=user_id,
            action=action.value,
            target_type="user",
            target_id=target_id,
            ip_address=ip_address,
            metadata_json=json.dumps(metadata or {}, ensure_ascii=False, default=str),
        )
        db.add(event)
        if commit:
            db.commit()
            db.refresh(event)
        logger.debug("Audit %s by %s on %s from %s", action.value, user_id, target_id, ip_address)
        return event

    @staticmethod
    def recent_events(
        db: Session,
        *,
        action: Optional[str] = None,
        target_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[AuditEvent]:
        """Newest first, optionally narrowed to one action or one target identity."""
        query = db.query(AuditEvent)
        if action:
            query = query.filter(AuditEvent.action == action)
        if target_id:
            query = query.filter(AuditEvent.target_id == target_id)
        return (
            query.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc())
            .limit(max(1, min(limit, MAX_EVENTS)))
            .all()
        )


audit_service = AuditService()
