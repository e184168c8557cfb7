"""ChangeRecord ORM model — the append-only mutation ledger."""
import enum
from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON, ForeignKey, Index, CheckConstraint, Enum as SAEnum
from sqlalchemy.sql import func
from app.database import Base


class Operation(str, enum.Enum):
    create = "CREATE"
    update = "UPDATE"
    delete = "DELETE"


class EntityType(str, enum.Enum):
    issue = "issue"
    project = "project"
    milestone = "milestone"


class ChangeRecord(Base):
    __tablename__ = "change_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    actor_id = Column(String(36), ForeignKey("users.user_id"), nullable=False)
    operation = Column(SAEnum(Operation), nullable=False)
    entity_type = Column(SAEnum(EntityType), nullable=False)
    entity_id = Column(Integer, nullable=False)
    # none_as_null: an absent snapshot is SQL NULL, not JSON null
    before = Column(JSON(none_as_null=True), nullable=True)
    after = Column(JSON(none_as_null=True), nullable=True)
    rolled_back = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint(
            '(operation = \'create\' AND "before" IS NULL AND "after" IS NOT NULL)'
            ' OR (operation = \'update\' AND "before" IS NOT NULL AND "after" IS NOT NULL)'
            ' OR (operation = \'delete\' AND "before" IS NOT NULL AND "after" IS NULL)',
            name="ck_change_records_shape",
        ),
        Index("ix_change_records_actor", "actor_id", "rolled_back"),
        Index("ix_change_records_entity", "entity_type", "entity_id"),
    )
