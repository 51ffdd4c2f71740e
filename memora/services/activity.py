"""
Activity log - the persisted audit trail.

Every mutating operation records who did what to which entity. This is
separate from application logging (memora.config.configure_logging), which
is for operators, not users.
"""

from __future__ import annotations

import json
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from memora.storage.models import ActivityLog, LogAction

logger = logging.getLogger(__name__)


class ActivityLogService:
    """Write and query activity log entries."""

    def __init__(self, db: Session):
        self.db = db

    def log(
        self,
        action: LogAction,
        entity_type: str,
        entity_id: str,
        user_id: str | None = None,
        details: str | None = None,
    ) -> ActivityLog:
        entry = ActivityLog(
            action=action.value,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            details=details,
        )
        self.db.add(entry)
        self.db.commit()
        return entry

    def log_error(self, source: str, error: Exception, **context: str) -> ActivityLog:
        """Persist an error as a system entry; `context` is stored with it."""
        logger.error("Error in %s: %s", source, error)
        return self.log(
            LogAction.CREATE,
            entity_type=f"ERROR:{source}",
            entity_id="system",
            details=json.dumps({"type": type(error).__name__, "message": str(error), **context}),
        )

    def get_by_entity(self, entity_type: str, entity_id: str, limit: int = 50) -> list[ActivityLog]:
        stmt = (
            select(ActivityLog)
            .where(ActivityLog.entity_type == entity_type, ActivityLog.entity_id == entity_id)
            .order_by(ActivityLog.created_at.desc())
            .limit(limit)
        )
        return list(self.db.scalars(stmt))

    def get_by_user(self, user_id: str, limit: int = 50) -> list[ActivityLog]:
        stmt = (
            select(ActivityLog)
            .where(ActivityLog.user_id == user_id)
            .order_by(ActivityLog.created_at.desc())
            .limit(limit)
        )
        return list(self.db.scalars(stmt))

    def get_recent(self, limit: int = 50) -> list[ActivityLog]:
        stmt = select(ActivityLog).order_by(ActivityLog.created_at.desc()).limit(limit)
        return list(self.db.scalars(stmt))
