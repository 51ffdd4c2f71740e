"""
Task endpoints, nested under a group.

The route policy decides who may call an endpoint at all. A few finer rules
depend on the request body or on the task itself and are checked in the
handler:

- assigning someone other than yourself needs tasks:assign
- setting a priority needs tasks:change_priority
- listing someone else's tasks needs tasks:view_all
- the assignee may edit their own task without tasks:edit
"""

from __future__ import annotations

from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from memora.api.deps import get_group_service, get_project_service, get_task_service
from memora.auth.capabilities import Capability
from memora.auth.context import AuthContext
from memora.auth.policies import require
from memora.services.groups import GroupService
from memora.services.projects import ProjectService
from memora.services.tasks import TaskService
from memora.storage.models import Subtask, Task, TaskPriority, TaskStatus

router = APIRouter(prefix="/api/groups/{group_id}/tasks", tags=["tasks"])


# =============================================================================
# Request/Response Models
# =============================================================================


class CreateTaskRequest(BaseModel):
    project_id: str
    title: str = Field(min_length=2, max_length=200)
    description: str | None = None
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    assignee_id: str | None = None
    due_date: date | None = None


class UpdateTaskRequest(BaseModel):
    title: str | None = Field(default=None, min_length=2, max_length=200)
    description: str | None = None
    priority: TaskPriority | None = None
    due_date: date | None = None


class TaskStatusRequest(BaseModel):
    status: TaskStatus


class AssignTaskRequest(BaseModel):
    assignee_id: str | None = None


class CreateSubtaskRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)


class UpdateSubtaskRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    done: bool | None = None


class SubtaskResponse(BaseModel):
    id: str
    title: str
    done: bool

    @classmethod
    def from_model(cls, subtask: Subtask) -> SubtaskResponse:
        return cls(id=subtask.id, title=subtask.title, done=subtask.done)


class TaskResponse(BaseModel):
    id: str
    project_id: str
    title: str
    description: str | None
    status: str
    priority: str
    assignee_id: str | None
    due_date: date | None
    created_by_id: str | None
    created_at: datetime | None
    subtasks: list[SubtaskResponse] = []

    @classmethod
    def from_model(cls, task: Task) -> TaskResponse:
        return cls(
            id=task.id,
            project_id=task.project_id,
            title=task.title,
            description=task.description,
            status=task.status,
            priority=task.priority,
            assignee_id=task.assignee_id,
            due_date=task.due_date,
            created_by_id=task.created_by_id,
            created_at=task.created_at,
            subtasks=[SubtaskResponse.from_model(s) for s in task.subtasks],
        )


class TaskListResponse(BaseModel):
    items: list[TaskResponse]
    total: int
    page: int
    page_size: int


def _get_task(tasks: TaskService, group_id: str, task_id: str) -> Task:
    task = tasks.get(group_id, task_id)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


def _check_assignee(groups: GroupService, group_id: str, assignee_id: str | None) -> None:
    """Tasks can only be assigned to members of the group."""
    if assignee_id and groups.get_member(group_id, assignee_id) is None:
        raise HTTPException(status_code=400, detail="Assignee is not a member of this group")


# =============================================================================
# Tasks
# =============================================================================


@router.get("", response_model=TaskListResponse)
def list_tasks(
    group_id: str,
    project_id: str | None = None,
    assignee_id: str | None = None,
    status: TaskStatus | None = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    ctx: AuthContext = Depends(require(Capability.TASKS_VIEW)),
    tasks: TaskService = Depends(get_task_service),
):
    """
    Tasks of the group.

    Without a filter, callers lacking tasks:view_all only see their own tasks.
    """
    if assignee_id and assignee_id != ctx.user_id:
        ctx.require(Capability.TASKS_VIEW_ALL)
    if not project_id and not assignee_id and not ctx.can(Capability.TASKS_VIEW_ALL):
        assignee_id = ctx.user_id

    items, total = tasks.list_for_group(group_id, project_id, assignee_id, status, page, page_size)
    return TaskListResponse(
        items=[TaskResponse.from_model(t) for t in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("", response_model=TaskResponse, status_code=201)
def create_task(
    group_id: str,
    data: CreateTaskRequest,
    ctx: AuthContext = Depends(require(Capability.TASKS_CREATE)),
    tasks: TaskService = Depends(get_task_service),
    projects: ProjectService = Depends(get_project_service),
    groups: GroupService = Depends(get_group_service),
):
    if data.assignee_id and data.assignee_id != ctx.user_id:
        ctx.require(Capability.TASKS_ASSIGN)
    if data.priority != TaskPriority.MEDIUM:
        ctx.require(Capability.TASKS_CHANGE_PRIORITY)

    project = projects.get(group_id, data.project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    _check_assignee(groups, group_id, data.assignee_id)

    task = tasks.create(
        project,
        created_by_id=ctx.user_id,
        title=data.title,
        description=data.description,
        status=data.status,
        priority=data.priority,
        assignee_id=data.assignee_id,
        due_date=data.due_date,
    )
    return TaskResponse.from_model(task)


@router.get("/{task_id}", response_model=TaskResponse)
def get_task(
    group_id: str,
    task_id: str,
    ctx: AuthContext = Depends(require(Capability.TASKS_VIEW)),
    tasks: TaskService = Depends(get_task_service),
):
    return TaskResponse.from_model(_get_task(tasks, group_id, task_id))


@router.patch("/{task_id}", response_model=TaskResponse)
def update_task(
    group_id: str,
    task_id: str,
    data: UpdateTaskRequest,
    ctx: AuthContext = Depends(require(Capability.TASKS_VIEW)),
    tasks: TaskService = Depends(get_task_service),
):
    task = _get_task(tasks, group_id, task_id)
    if task.assignee_id != ctx.user_id:
        ctx.require(Capability.TASKS_EDIT)
    if data.priority is not None:
        ctx.require(Capability.TASKS_CHANGE_PRIORITY)

    updated = tasks.update(group_id, task_id, performed_by=ctx.user_id, **data.model_dump(exclude_none=True))
    return TaskResponse.from_model(updated)


@router.patch("/{task_id}/status", response_model=TaskResponse)
def change_task_status(
    group_id: str,
    task_id: str,
    data: TaskStatusRequest,
    ctx: AuthContext = Depends(require(Capability.TASKS_CHANGE_STATUS)),
    tasks: TaskService = Depends(get_task_service),
):
    task = tasks.update_status(group_id, task_id, data.status, performed_by=ctx.user_id)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return TaskResponse.from_model(task)


@router.put("/{task_id}/assign", response_model=TaskResponse)
def assign_task(
    group_id: str,
    task_id: str,
    data: AssignTaskRequest,
    ctx: AuthContext = Depends(require(Capability.TASKS_ASSIGN)),
    tasks: TaskService = Depends(get_task_service),
    groups: GroupService = Depends(get_group_service),
):
    """Set the assignee; `null` unassigns."""
    _get_task(tasks, group_id, task_id)
    _check_assignee(groups, group_id, data.assignee_id)
    task = tasks.assign(group_id, task_id, data.assignee_id, performed_by=ctx.user_id)
    return TaskResponse.from_model(task)


@router.delete("/{task_id}", status_code=204)
def delete_task(
    group_id: str,
    task_id: str,
    ctx: AuthContext = Depends(require(Capability.TASKS_DELETE)),
    tasks: TaskService = Depends(get_task_service),
):
    if not tasks.delete(group_id, task_id, performed_by=ctx.user_id):
        raise HTTPException(status_code=404, detail="Task not found")


# =============================================================================
# Subtasks
# =============================================================================


@router.get("/{task_id}/subtasks", response_model=list[SubtaskResponse])
def list_subtasks(
    group_id: str,
    task_id: str,
    ctx: AuthContext = Depends(require(Capability.TASKS_VIEW)),
    tasks: TaskService = Depends(get_task_service),
):
    task = _get_task(tasks, group_id, task_id)
    return [SubtaskResponse.from_model(s) for s in task.subtasks]


@router.post("/{task_id}/subtasks", response_model=SubtaskResponse, status_code=201)
def add_subtask(
    group_id: str,
    task_id: str,
    data: CreateSubtaskRequest,
    ctx: AuthContext = Depends(require(Capability.TASKS_MANAGE_SUBTASKS)),
    tasks: TaskService = Depends(get_task_service),
):
    task = _get_task(tasks, group_id, task_id)
    return SubtaskResponse.from_model(tasks.add_subtask(task, data.title))


@router.patch("/{task_id}/subtasks/{subtask_id}", response_model=SubtaskResponse)
def update_subtask(
    group_id: str,
    task_id: str,
    subtask_id: str,
    data: UpdateSubtaskRequest,
    ctx: AuthContext = Depends(require(Capability.TASKS_MANAGE_SUBTASKS)),
    tasks: TaskService = Depends(get_task_service),
):
    task = _get_task(tasks, group_id, task_id)
    subtask = tasks.update_subtask(task, subtask_id, title=data.title, done=data.done)
    if subtask is None:
        raise HTTPException(status_code=404, detail="Subtask not found")
    return SubtaskResponse.from_model(subtask)


@router.delete("/{task_id}/subtasks/{subtask_id}", status_code=204)
def delete_subtask(
    group_id: str,
    task_id: str,
    subtask_id: str,
    ctx: AuthContext = Depends(require(Capability.TASKS_MANAGE_SUBTASKS)),
    tasks: TaskService = Depends(get_task_service),
):
    task = _get_task(tasks, group_id, task_id)
    if not tasks.delete_subtask(task, subtask_id):
        raise HTTPException(status_code=404, detail="Subtask not found")
