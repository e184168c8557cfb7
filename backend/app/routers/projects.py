"""Project API routes — writes are tracked and undoable."""
import logging
from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_tracker, mutation_response, require_actor
from app.models.change_record import EntityType
from app.models.project import Project
from app.schemas.entity import ProjectCreate, ProjectUpdate, ProjectOut, MutationOut
from app.services.change_capture import ChangeTracker

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=MutationOut, status_code=status.HTTP_201_CREATED)
def create_project(
    payload: ProjectCreate,
    response: Response,
    actor_id: str = Depends(require_actor),
    tracker: ChangeTracker = Depends(get_tracker),
):
    """Create a project. The actor becomes owner unless one is given."""
    data = payload.model_dump()
    data["owner_id"] = data["owner_id"] or actor_id
    outcome = tracker.create(actor_id, EntityType.project, data)
    return mutation_response(outcome, response)


@router.get("/", response_model=list[ProjectOut])
def list_projects(db: Session = Depends(get_db)):
    return db.query(Project).order_by(Project.id.desc()).all()


@router.get("/{project_id}", response_model=ProjectOut)
def get_project(project_id: int, db: Session = Depends(get_db)):
    project = db.get(Project, project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.patch("/{project_id}", response_model=MutationOut)
def update_project(
    project_id: int,
    payload: ProjectUpdate,
    response: Response,
    actor_id: str = Depends(require_actor),
    db: Session = Depends(get_db),
    tracker: ChangeTracker = Depends(get_tracker),
):
    if not db.get(Project, project_id):
        raise HTTPException(status_code=404, detail="Project not found")
    outcome = tracker.update(actor_id, EntityType.project, project_id, payload.model_dump(exclude_unset=True))
    return mutation_response(outcome, response)


@router.delete("/{project_id}", response_model=MutationOut)
def delete_project(
    project_id: int,
    response: Response,
    actor_id: str = Depends(require_actor),
    db: Session = Depends(get_db),
    tracker: ChangeTracker = Depends(get_tracker),
):
    """Delete a project. Its issues and milestones go with it and are not logged individually."""
    if not db.get(Project, project_id):
        raise HTTPException(status_code=404, detail="Project not found")
    outcome = tracker.delete(actor_id, EntityType.project, project_id)
    return mutation_response(outcome, response)
