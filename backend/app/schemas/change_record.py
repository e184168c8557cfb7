"""Pydantic schemas for the change log, undo and activity feed."""
from __future__ import annotations
from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, Field

from app.models.change_record import EntityType, Operation


class ChangeRecordOut(BaseModel):
    id: int
    actor_id: str
    operation: Operation
    entity_type: EntityType
    entity_id: int
    before: Optional[dict[str, Any]] = None
    after: Optional[dict[str, Any]] = None
    rolled_back: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class UndoResultOut(BaseModel):
    change_id: int
    entity_type: EntityType
    entity_id: int
    inverse_operation: Operation
    state: str
    restored_entity_id: Optional[int] = None
    restored_fields: list[str] = []
    conflicts: list[str] = []
    skipped_fields: list[str] = []
    entity: Optional[dict[str, Any]] = None

    model_config = {"from_attributes": True}


class UndoLastRequest(BaseModel):
    actor_id: str
    count: int = Field(default=1, ge=1)
    entity_type: Optional[EntityType] = None


class UndoLastOut(BaseModel):
    success: bool = True
    undone_count: int
    operations: list[UndoResultOut]


class ActivityItemOut(BaseModel):
    id: int
    actor_id: str
    operation: str
    entity_type: str
    entity_id: int
    description: str
    rolled_back: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
