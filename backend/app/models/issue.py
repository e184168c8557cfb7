"""Issue ORM model."""
import enum
from sqlalchemy import Column, Integer, String, Text, Date, DateTime, Numeric, ForeignKey
from sqlalchemy.sql import func
from app.database import Base


class IssueStatus(str, enum.Enum):
    backlog = "backlog"
    todo = "todo"
    in_progress = "in_progress"
    blocked = "blocked"
    in_review = "in_review"
    done = "done"
    cancelled = "cancelled"


class Issue(Base):
    __tablename__ = "issues"

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    milestone_id = Column(Integer, ForeignKey("milestones.id", ondelete="SET NULL"), nullable=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(50), nullable=False, default=IssueStatus.backlog.value)
    priority = Column(Integer, nullable=False, default=3)  # 1=urgent … 5=none
    assignee_id = Column(String(36), ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    reporter_id = Column(String(36), ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    due_date = Column(Date, nullable=True)
    estimate_hours = Column(Numeric(10, 2, asdecimal=False), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
