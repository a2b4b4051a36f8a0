"""Audit trail rows."""

import json
from typing import Any, Dict

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from blogauth.core.database import Base


class AuditEvent(Base):
    """One account or session event. The actor link survives as NULL when the actor is deleted."""

    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(32), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = Column(String(64), nullable=False, index=True)
    target_type = Column(String(64), nullable=True, index=True)
    target_id = Column(String(128), nullable=True, index=True)
    ip_address = Column(String(64), nullable=True)
    metadata_json = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="audit_events")

    __table_args__ = (
        Index("idx_audit_events_created_at", "created_at"),
    )

    @property
    def details(self) -> Dict[str, Any]:
        if not self.metadata_json:
            return {}
        try:
            value = json.loads(self.metadata_json)
        except ValueError:
            return {"raw": self.metadata_json}
        return value if isinstance(value, dict) else {"value": value}

    def __repr__(self):
        return f"<AuditEvent(id={self.id}, action='{self.action}', target='{self.target_id}')>"
