"""
Task and subtask CRUD.

A task belongs to a project, and through it to a group. Every lookup takes
the group id and treats a task from another group as missing.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from memora.services.activity import ActivityLogService
from memora.storage.models import LogAction, Project, Subtask, Task, TaskPriority, TaskStatus

EDITABLE_FIELDS = ("title", "description", "priority", "due_date")


class TaskService:
    """Tasks of one group's projects."""

    def __init__(self, db: Session, activity: ActivityLogService | None = None):
        self.db = db
        self.activity = activity or ActivityLogService(db)

    # -------------------------------------------------------------------------
    # Tasks
    # -------------------------------------------------------------------------

    def get(self, group_id: str, task_id: str) -> Task | None:
        task = self.db.get(Task, task_id)
        if task is None or task.project.group_id != group_id:
            return None
        return task

    def list_for_group(
        self,
        group_id: str,
        project_id: str | None = None,
        assignee_id: str | None = None,
        status: TaskStatus | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Task], int]:
        """Tasks of the group, newest first, plus the total count."""
        base = select(Task).join(Project).where(Project.group_id == group_id)
        if project_id:
            base = base.where(Task.project_id == project_id)
        if assignee_id:
            base = base.where(Task.assignee_id == assignee_id)
        if status:
            base = base.where(Task.status == status.value)

        total = self.db.scalar(select(func.count()).select_from(base.subquery())) or 0
        stmt = base.order_by(Task.created_at.desc()).offset((page - 1) * page_size).limit(page_size)
        return list(self.db.scalars(stmt)), total

    def create(
        self,
        project: Project,
        created_by_id: str,
        title: str,
        description: str | None = None,
        status: TaskStatus = TaskStatus.TODO,
        priority: TaskPriority = TaskPriority.MEDIUM,
        assignee_id: str | None = None,
        due_date: date | None = None,
    ) -> Task:
        task = Task(
            project_id=project.id,
            created_by_id=created_by_id,
            title=title,
            description=description,
            status=status.value,
            priority=priority.value,
            assignee_id=assignee_id,
            due_date=due_date,
        )
        self.db.add(task)
        self.db.commit()

        self.activity.log(LogAction.CREATE, "task", task.id, created_by_id)
        return task

    def update(self, group_id: str, task_id: str, performed_by: str | None = None, **fields) -> Task | None:
        task = self.get(group_id, task_id)
        if task is None:
            return None
        for name in EDITABLE_FIELDS:
            value = fields.get(name)
            if value is None:
                continue
            setattr(task, name, value.value if isinstance(value, TaskPriority) else value)
        self.db.commit()

        self.activity.log(LogAction.UPDATE, "task", task_id, performed_by)
        return task

    def update_status(
        self, group_id: str, task_id: str, status: TaskStatus, performed_by: str | None = None
    ) -> Task | None:
        task = self.get(group_id, task_id)
        if task is None:
            return None
        task.status = status.value
        self.db.commit()

        self.activity.log(LogAction.UPDATE, "task", task_id, performed_by, f"status:{status.value}")
        return task

    def assign(
        self, group_id: str, task_id: str, assignee_id: str | None, performed_by: str | None = None
    ) -> Task | None:
        """Set or clear the assignee."""
        task = self.get(group_id, task_id)
        if task is None:
            return None
        task.assignee_id = assignee_id
        self.db.commit()

        self.activity.log(LogAction.UPDATE, "task", task_id, performed_by, f"assignee:{assignee_id}")
        return task

    def delete(self, group_id: str, task_id: str, performed_by: str | None = None) -> bool:
        task = self.get(group_id, task_id)
        if task is None:
            return False
        self.db.delete(task)
        self.db.commit()

        self.activity.log(LogAction.DELETE, "task", task_id, performed_by)
        return True

    # -------------------------------------------------------------------------
    # Subtasks
    # -------------------------------------------------------------------------

    def get_subtask(self, task: Task, subtask_id: str) -> Subtask | None:
        subtask = self.db.get(Subtask, subtask_id)
        if subtask is None or subtask.task_id != task.id:
            return None
        return subtask

    def add_subtask(self, task: Task, title: str) -> Subtask:
        subtask = Subtask(title=title)
        task.subtasks.append(subtask)
        self.db.commit()
        return subtask

    def update_subtask(
        self, task: Task, subtask_id: str, title: str | None = None, done: bool | None = None
    ) -> Subtask | None:
        subtask = self.get_subtask(task, subtask_id)
        if subtask is None:
            return None
        if title is not None:
            subtask.title = title
        if done is not None:
            subtask.done = done
        self.db.commit()
        return subtask

    def delete_subtask(self, task: Task, subtask_id: str) -> bool:
        subtask = self.get_subtask(task, subtask_id)
        if subtask is None:
            return False
        task.subtasks.remove(subtask)
        self.db.commit()
        return True
