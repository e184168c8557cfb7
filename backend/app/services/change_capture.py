"""Change capture — snapshot, mutate, then log.

Every write to an issue, project or milestone goes through ``ChangeTracker``:

1. ``SnapshotCapturer`` reads the prior state (skipped for CREATE).
2. ``MutationExecutor`` performs the write through the entity repository.
3. The mutation is committed, then a ``ChangeRecord`` holding
   {before, after} is appended and committed.

The entity rows and the ledger are not written in one transaction unless
``CHANGE_LOG_ATOMIC_WITH_MUTATION`` is set. A failed append after a
committed mutation is reported on the outcome as ``audit_warning`` and is
never retried: retrying the whole request could apply the mutation twice.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.models.change_record import ChangeRecord, EntityType, Operation
from app.services.change_log import ChangeLogStore
from app.services.entity_repository import EntityRepository
from app.services.errors import Conflict, NotFound, PersistenceFailure
from app.services.snapshot import Snapshot, changed_fields

logger = logging.getLogger(__name__)


@dataclass
class MutationOutcome:
    """Result of a tracked write."""

    operation: Operation
    entity_type: EntityType
    entity_id: int
    before: Optional[Snapshot]
    after: Optional[Snapshot]
    change: Optional[ChangeRecord] = None
    audit_warning: Optional[str] = None

    @property
    def change_id(self) -> Optional[int]:
        return self.change.id if self.change is not None else None


class SnapshotCapturer:
    def __init__(self, repository: EntityRepository):
        self.repository = repository

    def capture(self, entity_type: EntityType, entity_id: int) -> Snapshot:
        """Read the pre-mutation state, locking the row where the backend supports it.

        A record that vanished since the caller validated it means we raced a
        concurrent delete; that is a Conflict, since an UPDATE/DELETE without a
        ``before`` could never be undone.
        """
        snapshot = self.repository.read(entity_type, entity_id, lock=True)
        if snapshot is None:
            raise Conflict(
                f"{EntityType(entity_type).value} #{entity_id} disappeared before it could be captured"
            )
        return snapshot


class MutationExecutor:
    def __init__(self, db: Session, repository: EntityRepository):
        self.db = db
        self.repository = repository

    def apply(
        self,
        operation: Operation,
        entity_type: EntityType,
        entity_id: Optional[int],
        payload: Optional[dict[str, Any]] = None,
    ) -> Optional[Snapshot]:
        """Perform the write. Returns ``after`` for CREATE/UPDATE, None for DELETE."""
        try:
            return self.repository.write(entity_type, entity_id, payload, operation)
        except NotFound as exc:
            self.db.rollback()
            raise Conflict(exc.message) from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("%s on %s #%s failed", Operation(operation).value, EntityType(entity_type).value, entity_id)
            raise PersistenceFailure(
                f"Could not {Operation(operation).value.lower()} {EntityType(entity_type).value}"
            ) from exc


def _check_shape(operation: Operation, before: Optional[Snapshot], after: Optional[Snapshot]) -> None:
    if operation is Operation.create and (before is not None or after is None):
        raise ValueError("CREATE records carry an 'after' snapshot and no 'before'")
    if operation is Operation.delete and (before is None or after is not None):
        raise ValueError("DELETE records carry a 'before' snapshot and no 'after'")
    if operation is Operation.update and (before is None or after is None):
        raise ValueError("UPDATE records carry both 'before' and 'after'")


class ChangeTracker:
    """Caller-facing API: tracked create/update/delete plus ``record_change``."""

    def __init__(self, db: Session):
        self.db = db
        self.repository = EntityRepository(db)
        self.capturer = SnapshotCapturer(self.repository)
        self.executor = MutationExecutor(db, self.repository)
        self.store = ChangeLogStore(db)

    # -- ledger ------------------------------------------------------------

    def record_change(
        self,
        actor_id: str,
        operation: Operation,
        entity_type: EntityType,
        entity_id: int,
        before: Optional[Snapshot],
        after: Optional[Snapshot],
        commit: bool = True,
    ) -> Optional[ChangeRecord]:
        """Append one change record. No-op updates are not logged and return None."""
        operation = Operation(operation)
        entity_type = EntityType(entity_type)
        _check_shape(operation, before, after)

        if operation is Operation.update and not changed_fields(before, after):
            logger.debug("Skipping no-op update of %s #%s", entity_type.value, entity_id)
            return None

        record = ChangeRecord(
            actor_id=actor_id,
            operation=operation,
            entity_type=entity_type,
            entity_id=entity_id,
            before=before,
            after=after,
        )
        self.store.append(record)
        if commit:
            self.db.commit()
            self.db.refresh(record)
        return record

    def list_recent(self, limit: int = 50, actor_id: Optional[str] = None, offset: int = 0) -> list[ChangeRecord]:
        return self.store.list_recent(limit=limit, actor_id=actor_id, offset=offset)

    # -- tracked writes ----------------------------------------------------

    def create(self, actor_id: str, entity_type: EntityType, payload: dict[str, Any]) -> MutationOutcome:
        after = self.executor.apply(Operation.create, entity_type, None, payload)
        return self._commit_and_log(actor_id, Operation.create, entity_type, after["id"], None, after)

    def update(
        self, actor_id: str, entity_type: EntityType, entity_id: int, payload: dict[str, Any]
    ) -> MutationOutcome:
        before = self.capturer.capture(entity_type, entity_id)
        after = self.executor.apply(Operation.update, entity_type, entity_id, payload)
        return self._commit_and_log(actor_id, Operation.update, entity_type, entity_id, before, after)

    def delete(self, actor_id: str, entity_type: EntityType, entity_id: int) -> MutationOutcome:
        before = self.capturer.capture(entity_type, entity_id)
        self.executor.apply(Operation.delete, entity_type, entity_id)
        return self._commit_and_log(actor_id, Operation.delete, entity_type, entity_id, before, None)

    def _commit_and_log(
        self,
        actor_id: str,
        operation: Operation,
        entity_type: EntityType,
        entity_id: int,
        before: Optional[Snapshot],
        after: Optional[Snapshot],
    ) -> MutationOutcome:
        operation = Operation(operation)
        entity_type = EntityType(entity_type)
        outcome = MutationOutcome(operation, entity_type, entity_id, before, after)

        if settings.CHANGE_LOG_ATOMIC_WITH_MUTATION:
            try:
                outcome.change = self.record_change(actor_id, operation, entity_type, entity_id, before, after)
            except SQLAlchemyError as exc:
                self.db.rollback()
                logger.exception("Mutation and change log rolled back together for %s #%s", entity_type.value, entity_id)
                raise PersistenceFailure("Write aborted: change log append failed") from exc
            self._log_outcome(outcome)
            return outcome

        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Commit of %s on %s #%s failed", operation.value, entity_type.value, entity_id)
            raise PersistenceFailure(f"Could not {operation.value.lower()} {entity_type.value}") from exc

        try:
            outcome.change = self.record_change(actor_id, operation, entity_type, entity_id, before, after)
        except SQLAlchemyError:
            self.db.rollback()
            outcome.audit_warning = "Mutation succeeded, audit trail incomplete"
            logger.warning(
                "%s of %s #%s by %s committed but its change record could not be written",
                operation.value, entity_type.value, entity_id, actor_id,
                exc_info=True,
            )
            return outcome

        self._log_outcome(outcome)
        return outcome

    def _log_outcome(self, outcome: MutationOutcome) -> None:
        if outcome.change is None:
            logger.info("%s #%s updated without changes; nothing logged", outcome.entity_type.value, outcome.entity_id)
            return
        logger.info(
            "Change %d: %s %s #%s by %s",
            outcome.change.id, outcome.operation.value, outcome.entity_type.value,
            outcome.entity_id, outcome.change.actor_id,
        )
