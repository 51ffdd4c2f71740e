"""Activity log endpoint (admin panel)."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from memora.api.deps import get_activity_service
from memora.auth.capabilities import Capability
from memora.auth.context import AuthContext
from memora.auth.policies import require_global
from memora.services.activity import ActivityLogService

router = APIRouter(prefix="/api/logs", tags=["logs"])


class ActivityLogResponse(BaseModel):
    id: str
    action: str
    entity_type: str
    entity_id: str
    user_id: str | None
    details: str | None
    created_at: datetime | None


@router.get("", response_model=list[ActivityLogResponse])
def list_logs(
    limit: int = Query(50, ge=1, le=500),
    user_id: str | None = None,
    entity_type: str | None = None,
    entity_id: str | None = None,
    ctx: AuthContext = Depends(require_global(Capability.ADMIN_PANEL)),
    activity: ActivityLogService = Depends(get_activity_service),
):
    """Most recent entries first, optionally for one user or one entity."""
    if entity_type and entity_id:
        entries = activity.get_by_entity(entity_type, entity_id, limit)
    elif user_id:
        entries = activity.get_by_user(user_id, limit)
    else:
        entries = activity.get_recent(limit)
    return [
        ActivityLogResponse(
            id=e.id,
            action=e.action,
            entity_type=e.entity_type,
            entity_id=e.entity_id,
            user_id=e.user_id,
            details=e.details,
            created_at=e.created_at,
        )
        for e in entries
    ]
