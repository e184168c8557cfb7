"""Entity repository — the record store the change engine wraps.

Reads and writes issues, projects and milestones as snapshots. The engine
never embeds entity business rules; this layer only maps snapshot fields to
ORM columns. Writes are flushed, never committed: commit boundaries belong
to the caller.
"""
import logging
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from app.models.change_record import EntityType, Operation
from app.models.issue import Issue
from app.models.milestone import Milestone
from app.models.project import Project
from app.services.errors import NotFound
from app.services.snapshot import SYSTEM_FIELDS, Snapshot, make_snapshot

logger = logging.getLogger(__name__)

ENTITY_MODELS = {
    EntityType.issue: Issue,
    EntityType.project: Project,
    EntityType.milestone: Milestone,
}


def model_for(entity_type: EntityType):
    return ENTITY_MODELS[EntityType(entity_type)]


def _column_python_type(column) -> Optional[type]:
    try:
        return column.type.python_type
    except NotImplementedError:
        return None


def _coerce(column, value: Any) -> Any:
    """Turn a stored snapshot value back into what the column expects."""
    if not isinstance(value, str):
        return value
    py_type = _column_python_type(column)
    # datetime before date: datetime is a date subclass
    if py_type is datetime:
        return datetime.fromisoformat(value)
    if py_type is date:
        return date.fromisoformat(value[:10])
    return value


class EntityRepository:
    """read(type, id) -> Snapshot | None; write(type, id, payload, op) -> Snapshot | None."""

    def __init__(self, db: Session):
        self.db = db

    def to_snapshot(self, row) -> Snapshot:
        mapper = inspect(type(row))
        return make_snapshot({attr.key: getattr(row, attr.key) for attr in mapper.column_attrs})

    def _get_row(self, entity_type: EntityType, entity_id: int, lock: bool = False):
        model = model_for(entity_type)
        return self.db.get(model, entity_id, populate_existing=True, with_for_update=lock or None)

    def read(self, entity_type: EntityType, entity_id: int, lock: bool = False) -> Optional[Snapshot]:
        """Current state of one record, or None if it does not exist."""
        row = self._get_row(entity_type, entity_id, lock=lock)
        if row is None:
            return None
        return self.to_snapshot(row)

    def _writable(self, model, payload: dict[str, Any]) -> dict[str, Any]:
        columns = {attr.key: attr.columns[0] for attr in inspect(model).column_attrs}
        values = {}
        for name, value in payload.items():
            if name in SYSTEM_FIELDS:
                continue
            column = columns.get(name)
            if column is None:
                # Snapshots are schema-free; columns may have been dropped since capture
                logger.debug("Ignoring unknown field %s.%s", model.__tablename__, name)
                continue
            values[name] = _coerce(column, value)
        return values

    def write(
        self,
        entity_type: EntityType,
        entity_id: Optional[int],
        payload: Optional[dict[str, Any]],
        operation: Operation,
    ) -> Optional[Snapshot]:
        """Apply one write and return the resulting state (None for DELETE)."""
        model = model_for(entity_type)
        operation = Operation(operation)

        if operation is Operation.create:
            row = model(**self._writable(model, payload or {}))
            self.db.add(row)
            self.db.flush()
            self.db.refresh(row)
            return self.to_snapshot(row)

        row = self._get_row(entity_type, entity_id)
        if row is None:
            raise NotFound(f"{EntityType(entity_type).value} #{entity_id} not found")

        if operation is Operation.update:
            for name, value in self._writable(model, payload or {}).items():
                setattr(row, name, value)
            self.db.flush()
            self.db.refresh(row)
            return self.to_snapshot(row)

        self.db.delete(row)
        self.db.flush()
        return None
