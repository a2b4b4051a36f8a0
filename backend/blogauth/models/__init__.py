"""Database models"""

from blogauth.models.user import User
from blogauth.models.social import Follow, ArticleMark
from blogauth.models.audit import AuditEvent

__all__ = ["User", "Follow", "ArticleMark", "AuditEvent"]
