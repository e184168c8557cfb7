"""Pydantic schemas for the tracked entities: issues, projects, milestones."""
from __future__ import annotations
from datetime import date, datetime
from typing import Any, Optional
from pydantic import BaseModel, Field


class ProjectCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    status: str = "active"
    owner_id: Optional[str] = None


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    status: Optional[str] = None


class ProjectOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    status: str
    owner_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class MilestoneCreate(BaseModel):
    project_id: int
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    due_date: Optional[date] = None
    status: str = "active"


class MilestoneUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    due_date: Optional[date] = None
    status: Optional[str] = None


class MilestoneOut(BaseModel):
    id: int
    project_id: int
    name: str
    description: Optional[str] = None
    due_date: Optional[date] = None
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class IssueCreate(BaseModel):
    project_id: int
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    status: str = "backlog"
    priority: int = Field(default=3, ge=1, le=5)
    assignee_id: Optional[str] = None
    milestone_id: Optional[int] = None
    reporter_id: Optional[str] = None
    due_date: Optional[date] = None
    estimate_hours: Optional[float] = None


class IssueUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[int] = Field(default=None, ge=1, le=5)
    assignee_id: Optional[str] = None
    milestone_id: Optional[int] = None
    due_date: Optional[date] = None
    estimate_hours: Optional[float] = None


class IssueOut(BaseModel):
    id: int
    project_id: int
    milestone_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    status: str
    priority: int
    assignee_id: Optional[str] = None
    reporter_id: Optional[str] = None
    due_date: Optional[date] = None
    estimate_hours: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class MutationOut(BaseModel):
    """Response for every tracked write: the resulting state plus its ledger entry."""

    entity_type: str
    entity_id: int
    entity: Optional[dict[str, Any]] = None
    change_id: Optional[int] = None
    audit_warning: Optional[str] = None
