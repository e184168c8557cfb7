"""Change log and undo API routes.

Undo is one-shot per change: a second attempt answers 409. Authorization of
who may undo what is left to the caller; the engine only records who did it.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query

from app.config import settings
from app.dependencies import clamp_limit, get_tracker, get_undo_engine, require_actor
from app.schemas.change_record import ChangeRecordOut, UndoLastOut, UndoLastRequest, UndoResultOut
from app.services.change_capture import ChangeTracker
from app.services.undo_engine import UndoEngine

logger = logging.getLogger(__name__)
router = APIRouter()
undo_router = APIRouter()


@router.get("/", response_model=list[ChangeRecordOut])
def list_changes(
    limit: Optional[int] = Query(None),
    offset: int = Query(0, ge=0),
    actor_id: Optional[str] = Query(None),
    tracker: ChangeTracker = Depends(get_tracker),
):
    """Newest changes first, optionally for one actor."""
    return tracker.list_recent(
        limit=clamp_limit(limit, settings.ACTIVITY_DEFAULT_LIMIT), actor_id=actor_id, offset=offset
    )


@router.get("/{change_id}", response_model=ChangeRecordOut)
def get_change(change_id: int, tracker: ChangeTracker = Depends(get_tracker)):
    return tracker.store.get(change_id)


@router.post("/{change_id}/undo", response_model=UndoResultOut)
def undo_change(
    change_id: int,
    actor_id: str = Depends(require_actor),
    engine: UndoEngine = Depends(get_undo_engine),
):
    """Undo one change by id."""
    result = engine.undo(change_id, actor_id)
    return UndoResultOut.model_validate(result)


@undo_router.post("/", response_model=UndoLastOut)
def undo_last(payload: UndoLastRequest, engine: UndoEngine = Depends(get_undo_engine)):
    """Undo the actor's last N changes (N is capped by UNDO_LAST_MAX_COUNT)."""
    require_actor(payload.actor_id, engine.db)
    results = engine.undo_last(payload.actor_id, count=payload.count, entity_type=payload.entity_type)
    return UndoLastOut(
        undone_count=len(results),
        operations=[UndoResultOut.model_validate(r) for r in results],
    )
