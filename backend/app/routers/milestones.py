"""Milestone API routes — writes are tracked and undoable."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_tracker, mutation_response, require_actor
from app.models.change_record import EntityType
from app.models.milestone import Milestone
from app.models.project import Project
from app.schemas.entity import MilestoneCreate, MilestoneUpdate, MilestoneOut, MutationOut
from app.services.change_capture import ChangeTracker

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=MutationOut, status_code=status.HTTP_201_CREATED)
def create_milestone(
    payload: MilestoneCreate,
    response: Response,
    actor_id: str = Depends(require_actor),
    db: Session = Depends(get_db),
    tracker: ChangeTracker = Depends(get_tracker),
):
    if not db.get(Project, payload.project_id):
        raise HTTPException(status_code=404, detail="Project not found")
    outcome = tracker.create(actor_id, EntityType.milestone, payload.model_dump())
    return mutation_response(outcome, response)


@router.get("/", response_model=list[MilestoneOut])
def list_milestones(project_id: Optional[int] = Query(None), db: Session = Depends(get_db)):
    """List milestones, soonest due first."""
    query = db.query(Milestone)
    if project_id:
        query = query.filter(Milestone.project_id == project_id)
    return query.order_by(Milestone.due_date.is_(None), Milestone.due_date.asc()).all()


@router.get("/{milestone_id}", response_model=MilestoneOut)
def get_milestone(milestone_id: int, db: Session = Depends(get_db)):
    milestone = db.get(Milestone, milestone_id)
    if not milestone:
        raise HTTPException(status_code=404, detail="Milestone not found")
    return milestone


@router.patch("/{milestone_id}", response_model=MutationOut)
def update_milestone(
    milestone_id: int,
    payload: MilestoneUpdate,
    response: Response,
    actor_id: str = Depends(require_actor),
    db: Session = Depends(get_db),
    tracker: ChangeTracker = Depends(get_tracker),
):
    if not db.get(Milestone, milestone_id):
        raise HTTPException(status_code=404, detail="Milestone not found")
    outcome = tracker.update(actor_id, EntityType.milestone, milestone_id, payload.model_dump(exclude_unset=True))
    return mutation_response(outcome, response)


@router.delete("/{milestone_id}", response_model=MutationOut)
def delete_milestone(
    milestone_id: int,
    response: Response,
    actor_id: str = Depends(require_actor),
    db: Session = Depends(get_db),
    tracker: ChangeTracker = Depends(get_tracker),
):
    if not db.get(Milestone, milestone_id):
        raise HTTPException(status_code=404, detail="Milestone not found")
    outcome = tracker.delete(actor_id, EntityType.milestone, milestone_id)
    return mutation_response(outcome, response)
