"""Audit trail response schema"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import Field

from blogauth.schemas.user import ResponseModel


class AuditEventResponse(ResponseModel):
    id: int
    user_id: Optional[str] = Field(None, serialization_alias="userId")
    username: Optional[str] = None
    action: str
    target_id: Optional[str] = Field(None, serialization_alias="targetId")
    ip_address: Optional[str] = Field(None, serialization_alias="ipAddress")
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = Field(None, serialization_alias="createdAt")

    @classmethod
    def from_event(cls, event) -> "AuditEventResponse":
        return cls(
            id=event.id,
            user_id=event.user_id,
            username=event.user.username if event.user else None,
            action=event.action,
            target_id=event.target_id,
            ip_address=event.ip_address,
            metadata=event.details,
            created_at=event.created_at,
        )
