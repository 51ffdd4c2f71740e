"""Project endpoints, nested under a group."""

from __future__ import annotations

from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, model_validator

from memora.api.deps import get_project_service
from memora.auth.capabilities import Capability
from memora.auth.context import AuthContext
from memora.auth.policies import require
from memora.services.projects import ProjectService
from memora.storage.models import Project, ProjectStatus

router = APIRouter(prefix="/api/groups/{group_id}/projects", tags=["projects"])


class CreateProjectRequest(BaseModel):
    name: str = Field(min_length=2, max_length=200)
    description: str | None = None
    status: ProjectStatus = ProjectStatus.TODO
    start_date: date | None = None
    end_date: date | None = None

    @model_validator(mode="after")
    def check_dates(self) -> CreateProjectRequest:
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class UpdateProjectRequest(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=200)
    description: str | None = None
    status: ProjectStatus | None = None
    start_date: date | None = None
    end_date: date | None = None


class ProjectResponse(BaseModel):
    id: str
    group_id: str
    name: str
    description: str | None
    status: str
    start_date: date | None
    end_date: date | None
    created_by_id: str | None
    created_at: datetime | None

    @classmethod
    def from_model(cls, project: Project) -> ProjectResponse:
        return cls(
            id=project.id,
            group_id=project.group_id,
            name=project.name,
            description=project.description,
            status=project.status,
            start_date=project.start_date,
            end_date=project.end_date,
            created_by_id=project.created_by_id,
            created_at=project.created_at,
        )


class ProjectListResponse(BaseModel):
    items: list[ProjectResponse]
    total: int
    page: int
    page_size: int


@router.get("", response_model=ProjectListResponse)
def list_projects(
    group_id: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    ctx: AuthContext = Depends(require(Capability.PROJECTS_VIEW)),
    projects: ProjectService = Depends(get_project_service),
):
    items, total = projects.list_by_group(group_id, page, page_size)
    return ProjectListResponse(
        items=[ProjectResponse.from_model(p) for p in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("", response_model=ProjectResponse, status_code=201)
def create_project(
    group_id: str,
    data: CreateProjectRequest,
    ctx: AuthContext = Depends(require(Capability.PROJECTS_CREATE)),
    projects: ProjectService = Depends(get_project_service),
):
    project = projects.create(
        group_id=group_id,
        created_by_id=ctx.user_id,
        name=data.name,
        description=data.description,
        status=data.status,
        start_date=data.start_date,
        end_date=data.end_date,
    )
    return ProjectResponse.from_model(project)


@router.get("/{project_id}", response_model=ProjectResponse)
def get_project(
    group_id: str,
    project_id: str,
    ctx: AuthContext = Depends(require(Capability.PROJECTS_VIEW)),
    projects: ProjectService = Depends(get_project_service),
):
    project = projects.get(group_id, project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return ProjectResponse.from_model(project)


@router.patch("/{project_id}", response_model=ProjectResponse)
def update_project(
    group_id: str,
    project_id: str,
    data: UpdateProjectRequest,
    ctx: AuthContext = Depends(require(Capability.PROJECTS_EDIT)),
    projects: ProjectService = Depends(get_project_service),
):
    project = projects.update(
        group_id, project_id, performed_by=ctx.user_id, **data.model_dump(exclude_none=True)
    )
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return ProjectResponse.from_model(project)


@router.delete("/{project_id}", status_code=204)
def delete_project(
    group_id: str,
    project_id: str,
    ctx: AuthContext = Depends(require(Capability.PROJECTS_DELETE)),
    projects: ProjectService = Depends(get_project_service),
):
    if not projects.delete(group_id, project_id, performed_by=ctx.user_id):
        raise HTTPException(status_code=404, detail="Project not found")
