"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-17

Creates the tracked entities (projects, milestones, issues), their actors
(users), and the append-only change_records ledger.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

operation_enum = sa.Enum("create", "update", "delete", name="operation")
entity_type_enum = sa.Enum("issue", "project", "milestone", name="entitytype")


def upgrade() -> None:
    # --- users ---
    op.create_table(
        "users",
        sa.Column("user_id", sa.String(36), primary_key=True),
        sa.Column("display_name", sa.String(100), nullable=False, unique=True),
        sa.Column("email", sa.String(255), nullable=True, unique=True),
        sa.Column("role", sa.String(50), nullable=False, server_default="member"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- projects ---
    op.create_table(
        "projects",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("status", sa.String(50), nullable=False, server_default="active"),
        sa.Column("owner_id", sa.String(36), sa.ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- milestones ---
    op.create_table(
        "milestones",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("project_id", sa.Integer, sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("due_date", sa.Date, nullable=True),
        sa.Column("status", sa.String(50), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- issues ---
    op.create_table(
        "issues",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("project_id", sa.Integer, sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("milestone_id", sa.Integer, sa.ForeignKey("milestones.id", ondelete="SET NULL"), nullable=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("status", sa.String(50), nullable=False, server_default="backlog"),
        sa.Column("priority", sa.Integer, nullable=False, server_default="3"),
        sa.Column("assignee_id", sa.String(36), sa.ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True),
        sa.Column("reporter_id", sa.String(36), sa.ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True),
        sa.Column("due_date", sa.Date, nullable=True),
        sa.Column("estimate_hours", sa.Numeric(10, 2), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("priority >= 1 AND priority <= 5", name="ck_issues_priority"),
    )
    op.create_index("ix_issues_project", "issues", ["project_id"])
    op.create_index("ix_issues_status", "issues", ["status"])

    # --- change_records (append-only; id order is mutation order) ---
    op.create_table(
        "change_records",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("actor_id", sa.String(36), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("operation", operation_enum, nullable=False),
        sa.Column("entity_type", entity_type_enum, nullable=False),
        sa.Column("entity_id", sa.Integer, nullable=False),
        sa.Column("before", sa.JSON, nullable=True),
        sa.Column("after", sa.JSON, nullable=True),
        sa.Column("rolled_back", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint(
            '(operation = \'create\' AND "before" IS NULL AND "after" IS NOT NULL)'
            ' OR (operation = \'update\' AND "before" IS NOT NULL AND "after" IS NOT NULL)'
            ' OR (operation = \'delete\' AND "before" IS NOT NULL AND "after" IS NULL)',
            name="ck_change_records_shape",
        ),
    )
    op.create_index("ix_change_records_actor", "change_records", ["actor_id", "rolled_back"])
    op.create_index("ix_change_records_entity", "change_records", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_index("ix_change_records_entity", table_name="change_records")
    op.drop_index("ix_change_records_actor", table_name="change_records")
    op.drop_table("change_records")
    op.drop_index("ix_issues_status", table_name="issues")
    op.drop_index("ix_issues_project", table_name="issues")
    op.drop_table("issues")
    op.drop_table("milestones")
    op.drop_table("projects")
    op.drop_table("users")
    operation_enum.drop(op.get_bind(), checkfirst=True)
    entity_type_enum.drop(op.get_bind(), checkfirst=True)
