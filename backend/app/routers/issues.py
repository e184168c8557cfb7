"""Issue API routes — every write goes through the change tracker."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_tracker, mutation_response, require_actor
from app.models.change_record import EntityType
from app.models.issue import Issue, IssueStatus
from app.models.project import Project
from app.schemas.entity import IssueCreate, IssueUpdate, IssueOut, MutationOut
from app.services.change_capture import ChangeTracker

logger = logging.getLogger(__name__)
router = APIRouter()

VALID_STATUSES = [s.value for s in IssueStatus]


def _check_status(value: Optional[str]) -> None:
    if value is not None and value not in VALID_STATUSES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid status. Valid: {', '.join(VALID_STATUSES)}",
        )


@router.post("/", response_model=MutationOut, status_code=status.HTTP_201_CREATED)
def create_issue(
    payload: IssueCreate,
    response: Response,
    actor_id: str = Depends(require_actor),
    db: Session = Depends(get_db),
    tracker: ChangeTracker = Depends(get_tracker),
):
    """Create an issue and log a CREATE change."""
    _check_status(payload.status)
    if not db.get(Project, payload.project_id):
        raise HTTPException(status_code=404, detail="Project not found")
    outcome = tracker.create(actor_id, EntityType.issue, payload.model_dump())
    return mutation_response(outcome, response)


@router.get("/", response_model=list[IssueOut])
def list_issues(
    project_id: Optional[int] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(get_db),
):
    """List issues, highest priority first."""
    query = db.query(Issue)
    if project_id:
        query = query.filter(Issue.project_id == project_id)
    if status_filter:
        query = query.filter(Issue.status == status_filter)
    return query.order_by(Issue.priority.asc(), Issue.id.desc()).all()


@router.get("/{issue_id}", response_model=IssueOut)
def get_issue(issue_id: int, db: Session = Depends(get_db)):
    issue = db.get(Issue, issue_id)
    if not issue:
        raise HTTPException(status_code=404, detail="Issue not found")
    return issue


@router.patch("/{issue_id}", response_model=MutationOut)
def update_issue(
    issue_id: int,
    payload: IssueUpdate,
    response: Response,
    actor_id: str = Depends(require_actor),
    db: Session = Depends(get_db),
    tracker: ChangeTracker = Depends(get_tracker),
):
    """Partial update; logs an UPDATE change unless nothing actually changed."""
    _check_status(payload.status)
    if not db.get(Issue, issue_id):
        raise HTTPException(status_code=404, detail="Issue not found")
    outcome = tracker.update(actor_id, EntityType.issue, issue_id, payload.model_dump(exclude_unset=True))
    return mutation_response(outcome, response)


@router.delete("/{issue_id}", response_model=MutationOut)
def delete_issue(
    issue_id: int,
    response: Response,
    actor_id: str = Depends(require_actor),
    db: Session = Depends(get_db),
    tracker: ChangeTracker = Depends(get_tracker),
):
    """Hard-delete an issue; the DELETE change keeps its full prior state."""
    if not db.get(Issue, issue_id):
        raise HTTPException(status_code=404, detail="Issue not found")
    outcome = tracker.delete(actor_id, EntityType.issue, issue_id)
    return mutation_response(outcome, response)
