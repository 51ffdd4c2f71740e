"""
Domain services.

Each service wraps one ORM session and records its writes in the activity
log. Authorization is the caller's job.
"""

from memora.services.activity import ActivityLogService
from memora.services.groups import GroupService, MembershipExistsError
from memora.services.projects import ProjectService
from memora.services.tasks import TaskService

__all__ = [
    "ActivityLogService",
    "GroupService",
    "MembershipExistsError",
    "ProjectService",
    "TaskService",
]
