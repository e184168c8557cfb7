"""Error taxonomy for change capture and undo."""
from typing import Optional


class ChangeLogError(Exception):
    """Base class for every failure raised by the change engine."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(ChangeLogError):
    """A change record or entity does not exist."""

    status_code = 404


class AlreadyRolledBack(ChangeLogError):
    """The change record has already been undone."""

    status_code = 409

    def __init__(self, change_id: int):
        super().__init__(f"Change {change_id} has already been rolled back")
        self.change_id = change_id


class EntityGone(ChangeLogError):
    """The undo target was deleted by a later operation."""

    status_code = 410

    def __init__(self, entity_type: str, entity_id: int, change_id: Optional[int] = None):
        super().__init__(f"{entity_type} #{entity_id} no longer exists")
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.change_id = change_id


class Conflict(ChangeLogError):
    """The record store changed under us (e.g. capture raced a delete)."""

    status_code = 409


class PersistenceFailure(ChangeLogError):
    """A write to the record store or the change log failed."""

    status_code = 503
