"""Shared FastAPI dependencies for the tracked-write and undo routes."""
from typing import Optional

from fastapi import Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User
from app.schemas.entity import MutationOut
from app.services.change_capture import ChangeTracker, MutationOutcome
from app.services.undo_engine import UndoEngine


def get_tracker(db: Session = Depends(get_db)) -> ChangeTracker:
    return ChangeTracker(db)


def get_undo_engine(db: Session = Depends(get_db)) -> UndoEngine:
    return UndoEngine(db)


def require_actor(
    actor_id: str = Query(..., description="ID of the user performing the change"),
    db: Session = Depends(get_db),
) -> str:
    """Every tracked write is attributed; the actor must exist."""
    if not db.query(User).filter(User.user_id == actor_id).first():
        raise HTTPException(status_code=404, detail="Actor not found")
    return actor_id


def mutation_response(outcome: MutationOutcome, response: Response) -> MutationOut:
    """Shape a tracked write for the client, flagging an incomplete audit trail."""
    if outcome.audit_warning:
        response.headers["X-Audit-Warning"] = outcome.audit_warning
    return MutationOut(
        entity_type=outcome.entity_type.value,
        entity_id=outcome.entity_id,
        entity=outcome.after,
        change_id=outcome.change_id,
        audit_warning=outcome.audit_warning,
    )


def clamp_limit(limit: Optional[int], default: int, maximum: int = 200) -> int:
    if limit is None:
        return default
    return max(1, min(limit, maximum))
