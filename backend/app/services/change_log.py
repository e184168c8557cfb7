"""Change log store — append-only ledger of change records.

Ids come from the table's autoincrement key, so append order is storage
commit order. Rows are never updated except for the one-way
``rolled_back`` flag, which is flipped with a conditional UPDATE so that
concurrent undos of the same record cannot both win.
"""
import logging
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.models.change_record import ChangeRecord, EntityType
from app.services.errors import AlreadyRolledBack, NotFound

logger = logging.getLogger(__name__)


class ChangeLogStore:
    def __init__(self, db: Session):
        self.db = db

    def append(self, record: ChangeRecord) -> int:
        """Insert a record and return its ledger id. Flushes; the caller commits."""
        record.rolled_back = False
        self.db.add(record)
        self.db.flush()
        logger.debug(
            "Appended change %d: %s %s #%s by %s",
            record.id, record.operation.value, record.entity_type.value, record.entity_id, record.actor_id,
        )
        return record.id

    def get(self, change_id: int) -> ChangeRecord:
        record = self.db.get(ChangeRecord, change_id, populate_existing=True)
        if record is None:
            raise NotFound(f"Change {change_id} not found")
        return record

    def _actor_query(self, actor_id: str, entity_type: Optional[EntityType] = None):
        query = self.db.query(ChangeRecord).filter(
            ChangeRecord.actor_id == actor_id,
            ChangeRecord.rolled_back.is_(False),
        )
        if entity_type is not None:
            query = query.filter(ChangeRecord.entity_type == EntityType(entity_type))
        return query.order_by(ChangeRecord.id.desc())

    def latest_by_actor(self, actor_id: str, entity_type: Optional[EntityType] = None) -> ChangeRecord:
        """Most recent record by this actor that has not been undone yet."""
        record = self._actor_query(actor_id, entity_type).first()
        if record is None:
            raise NotFound(f"No undoable changes for user {actor_id}")
        return record

    def latest_for_actor(
        self, actor_id: str, count: int, entity_type: Optional[EntityType] = None
    ) -> list[ChangeRecord]:
        return self._actor_query(actor_id, entity_type).limit(count).all()

    def mark_rolled_back(self, change_id: int) -> None:
        """Flip ``rolled_back`` false→true, or raise if someone already did."""
        result = self.db.execute(
            update(ChangeRecord)
            .where(ChangeRecord.id == change_id, ChangeRecord.rolled_back.is_(False))
            .values(rolled_back=True)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            # Keep any loaded instance in step with the row
            self.db.get(ChangeRecord, change_id, populate_existing=True)
            return
        if self.db.get(ChangeRecord, change_id, populate_existing=True) is None:
            raise NotFound(f"Change {change_id} not found")
        raise AlreadyRolledBack(change_id)

    def list_recent(self, limit: int = 50, actor_id: Optional[str] = None, offset: int = 0) -> list[ChangeRecord]:
        query = self.db.query(ChangeRecord)
        if actor_id:
            query = query.filter(ChangeRecord.actor_id == actor_id)
        return query.order_by(ChangeRecord.id.desc()).offset(offset).limit(limit).all()

    def list_for_entity(self, entity_type: EntityType, entity_id: int) -> list[ChangeRecord]:
        return (
            self.db.query(ChangeRecord)
            .filter(
                ChangeRecord.entity_type == EntityType(entity_type),
                ChangeRecord.entity_id == entity_id,
            )
            .order_by(ChangeRecord.id.desc())
            .all()
        )
