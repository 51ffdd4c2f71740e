"""Project CRUD, always scoped to a group."""

from __future__ import annotations

from datetime import date

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from memora.services.activity import ActivityLogService
from memora.storage.models import LogAction, Project, ProjectStatus

UPDATABLE_FIELDS = ("name", "description", "status", "start_date", "end_date")


class ProjectService:
    def __init__(self, db: Session, activity: ActivityLogService | None = None):
        self.db = db
        self.activity = activity or ActivityLogService(db)

    def get(self, group_id: str, project_id: str) -> Project | None:
        """A project, only if it belongs to `group_id`."""
        project = self.db.get(Project, project_id)
        if project is None or project.group_id != group_id:
            return None
        return project

    def list_by_group(self, group_id: str, page: int = 1, page_size: int = 20) -> tuple[list[Project], int]:
        total = self.db.scalar(
            select(func.count()).select_from(Project).where(Project.group_id == group_id)
        ) or 0
        stmt = (
            select(Project)
            .where(Project.group_id == group_id)
            .order_by(Project.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(self.db.scalars(stmt)), total

    def create(
        self,
        group_id: str,
        created_by_id: str,
        name: str,
        description: str | None = None,
        status: ProjectStatus = ProjectStatus.TODO,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> Project:
        project = Project(
            group_id=group_id,
            created_by_id=created_by_id,
            name=name,
            description=description,
            status=status.value,
            start_date=start_date,
            end_date=end_date,
        )
        self.db.add(project)
        self.db.commit()

        self.activity.log(LogAction.CREATE, "project", project.id, created_by_id)
        return project

    def update(self, group_id: str, project_id: str, performed_by: str | None = None, **fields) -> Project | None:
        project = self.get(group_id, project_id)
        if project is None:
            return None
        for name in UPDATABLE_FIELDS:
            value = fields.get(name)
            if value is None:
                continue
            setattr(project, name, value.value if isinstance(value, ProjectStatus) else value)
        self.db.commit()

        self.activity.log(LogAction.UPDATE, "project", project_id, performed_by)
        return project

    def delete(self, group_id: str, project_id: str, performed_by: str | None = None) -> bool:
        project = self.get(group_id, project_id)
        if project is None:
            return False
        self.db.delete(project)
        self.db.commit()

        self.activity.log(LogAction.DELETE, "project", project_id, performed_by)
        return True
