"""Undo engine — applies the structural inverse of a change record.

Inverse table:

    CREATE -> DELETE the created row
    DELETE -> CREATE a new row from ``before`` (the new row gets a new id)
    UPDATE -> UPDATE with ``before``'s values for the fields the record changed

Before inverting, the current row is compared with the record's ``after``:

- match: nothing touched the row since; the inverse restores ``before`` exactly.
- mismatch: later writes changed the row. Only the fields this record
  changed are restored, so unrelated later edits survive. A field changed
  by this record *and* again later is a conflict, resolved by
  ``UNDO_CONFLICT_POLICY``: ``keep_newer`` (the default) leaves the later
  value and lists the field as skipped; ``overwrite`` restores ``before``
  (last write wins). Conflicts are reported and logged as a warning.
- entity gone: undoing CREATE/UPDATE of a deleted row raises EntityGone.

The rollback flag is claimed (compare-and-set) and the inverse is written in
one transaction. Of two concurrent undos of a record exactly one commits; a
failed inverse leaves the record unmarked so undo can be retried. Undo does
not write a change record of its own.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.models.change_record import ChangeRecord, EntityType, Operation
from app.services.change_capture import MutationExecutor
from app.services.change_log import ChangeLogStore
from app.services.entity_repository import EntityRepository
from app.services.errors import AlreadyRolledBack, ChangeLogError, Conflict, EntityGone, NotFound, PersistenceFailure
from app.services.snapshot import Snapshot, changed_fields, data_fields, snapshots_match, values_equal

logger = logging.getLogger(__name__)

OVERWRITE = "overwrite"
KEEP_NEWER = "keep_newer"
CONFLICT_POLICIES = (OVERWRITE, KEEP_NEWER)

INVERSE = {
    Operation.create: Operation.delete,
    Operation.delete: Operation.create,
    Operation.update: Operation.update,
}


@dataclass
class UndoResult:
    change_id: int
    entity_type: EntityType
    entity_id: int
    inverse_operation: Operation
    state: str  # "match" | "mismatch" | "recreated"
    restored_entity_id: Optional[int] = None
    restored_fields: list[str] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)
    skipped_fields: list[str] = field(default_factory=list)
    entity: Optional[Snapshot] = None


@dataclass
class _InversePlan:
    operation: Operation
    entity_id: Optional[int]
    payload: Optional[dict[str, Any]]
    state: str
    restored_fields: list[str] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)
    skipped_fields: list[str] = field(default_factory=list)


class UndoEngine:
    def __init__(self, db: Session, conflict_policy: Optional[str] = None):
        self.db = db
        self.repository = EntityRepository(db)
        self.executor = MutationExecutor(db, self.repository)
        self.store = ChangeLogStore(db)
        self.conflict_policy = conflict_policy or settings.UNDO_CONFLICT_POLICY
        if self.conflict_policy not in CONFLICT_POLICIES:
            raise ValueError(f"Unknown undo conflict policy {self.conflict_policy!r}")

    def undo(self, change_id: int, acting_user_id: str) -> UndoResult:
        """Undo a single change record. One-shot: a second call raises AlreadyRolledBack."""
        record = self.store.get(change_id)
        if record.rolled_back:
            raise AlreadyRolledBack(change_id)

        try:
            current = self.repository.read(record.entity_type, record.entity_id, lock=True)
            plan = self._plan(record, current)
        except ChangeLogError:
            # Release the row lock taken by the read
            self.db.rollback()
            raise

        try:
            # Claim first: the loser of a race fails here before writing anything
            self.store.mark_rolled_back(record.id)
            restored = self.executor.apply(plan.operation, record.entity_type, plan.entity_id, plan.payload)
            self.db.commit()
        except ChangeLogError:
            self.db.rollback()
            raise
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Undo of change %d failed to commit", change_id)
            raise PersistenceFailure(f"Could not undo change {change_id}") from exc

        if plan.conflicts:
            logger.warning(
                "Undo of change %d by %s: %s #%s had later edits to %s (%s)",
                change_id, acting_user_id, record.entity_type.value, record.entity_id,
                ", ".join(plan.conflicts), self.conflict_policy,
            )
        logger.info(
            "Undid change %d (%s %s #%s) by %s via %s [%s]",
            change_id, record.operation.value, record.entity_type.value, record.entity_id,
            acting_user_id, plan.operation.value, plan.state,
        )

        return UndoResult(
            change_id=record.id,
            entity_type=record.entity_type,
            entity_id=record.entity_id,
            inverse_operation=plan.operation,
            state=plan.state,
            restored_entity_id=restored["id"] if restored is not None else None,
            restored_fields=plan.restored_fields,
            conflicts=plan.conflicts,
            skipped_fields=plan.skipped_fields,
            entity=restored,
        )

    def undo_last(
        self, actor_id: str, count: int = 1, entity_type: Optional[EntityType] = None
    ) -> list[UndoResult]:
        """Undo the actor's most recent changes, newest first.

        Stops at the first failure; changes already undone stay undone.
        """
        count = max(1, min(count, settings.UNDO_LAST_MAX_COUNT))
        records = self.store.latest_for_actor(actor_id, count, entity_type)
        if not records:
            raise NotFound(f"No undoable changes for user {actor_id}")
        return [self.undo(record.id, actor_id) for record in records]

    # -- planning ----------------------------------------------------------

    def _plan(self, record: ChangeRecord, current: Optional[Snapshot]) -> _InversePlan:
        operation = INVERSE[record.operation]

        if record.operation is Operation.delete:
            if current is not None:
                raise Conflict(
                    f"Cannot restore {record.entity_type.value} #{record.entity_id}: a row with that id exists"
                )
            payload = data_fields(record.before)
            return _InversePlan(operation, None, payload, "recreated", restored_fields=list(payload))

        if current is None:
            raise EntityGone(record.entity_type.value, record.entity_id, record.id)

        state = "match" if snapshots_match(current, record.after) else "mismatch"

        if record.operation is Operation.create:
            # Deleting discards whatever was edited since creation; report it
            later = changed_fields(record.after, current)
            return _InversePlan(operation, record.entity_id, None, state, conflicts=later)

        return self._plan_update(record, current, state)

    def _plan_update(self, record: ChangeRecord, current: Snapshot, state: str) -> _InversePlan:
        before = record.before or {}
        after = record.after or {}
        plan = _InversePlan(Operation.update, record.entity_id, {}, state)

        for name in changed_fields(before, after):
            if name not in current:
                plan.skipped_fields.append(name)
                continue
            now = current[name]
            if values_equal(now, after.get(name)):
                plan.payload[name] = before.get(name)
                plan.restored_fields.append(name)
            elif values_equal(now, before.get(name)):
                # Someone already put it back
                plan.skipped_fields.append(name)
            else:
                plan.conflicts.append(name)
                if self.conflict_policy == OVERWRITE:
                    plan.payload[name] = before.get(name)
                    plan.restored_fields.append(name)
                else:
                    plan.skipped_fields.append(name)
        return plan
