"""Activity feed routes — change records rendered as sentences."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query

from app.config import settings
from app.dependencies import clamp_limit, get_tracker
from app.models.change_record import EntityType
from app.schemas.change_record import ActivityItemOut
from app.services.activity import project
from app.services.change_capture import ChangeTracker

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/", response_model=list[ActivityItemOut])
def activity_feed(
    limit: Optional[int] = Query(None),
    offset: int = Query(0, ge=0),
    actor_id: Optional[str] = Query(None),
    tracker: ChangeTracker = Depends(get_tracker),
):
    """Recent activity across all projects."""
    records = tracker.list_recent(
        limit=clamp_limit(limit, settings.ACTIVITY_DEFAULT_LIMIT), actor_id=actor_id, offset=offset
    )
    return [project(r) for r in records]


@router.get("/{entity_type}/{entity_id}", response_model=list[ActivityItemOut])
def entity_activity(entity_type: EntityType, entity_id: int, tracker: ChangeTracker = Depends(get_tracker)):
    """History of one issue, project or milestone, newest first."""
    return [project(r) for r in tracker.store.list_for_entity(entity_type, entity_id)]
