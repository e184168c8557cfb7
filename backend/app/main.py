"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.database import Base, engine
from app.middleware.logging import RequestLoggingMiddleware
from app.services.errors import ChangeLogError

# Import routers
from app.routers import users, projects, milestones, issues, changes, activity

# Import all models so Base.metadata knows about them
from app.models.user import User                    # noqa: F401
from app.models.project import Project              # noqa: F401
from app.models.milestone import Milestone          # noqa: F401
from app.models.issue import Issue                  # noqa: F401
from app.models.change_record import ChangeRecord   # noqa: F401

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)-8s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Issue Tracker",
    description="Issue tracking backend with a change ledger and instant rollback",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Audit-Warning"],
)
app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(ChangeLogError)
async def change_log_error_handler(request: Request, exc: ChangeLogError):
    """Map engine errors to HTTP: NotFound 404, AlreadyRolledBack/Conflict 409, EntityGone 410, PersistenceFailure 503."""
    logger.info("%s %s -> %s: %s", request.method, request.url.path, type(exc).__name__, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": type(exc).__name__},
    )


# Register routers
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(projects.router, prefix="/api/projects", tags=["Projects"])
app.include_router(milestones.router, prefix="/api/milestones", tags=["Milestones"])
app.include_router(issues.router, prefix="/api/issues", tags=["Issues"])
app.include_router(changes.router, prefix="/api/changes", tags=["Changes"])
app.include_router(changes.undo_router, prefix="/api/undo", tags=["Changes"])
app.include_router(activity.router, prefix="/api/activity", tags=["Activity"])


@app.on_event("startup")
def on_startup():
    """Create database tables on startup (for SQLite dev mode)."""
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)


@app.get("/api/health")
def health_check():
    return {"status": "ok"}
