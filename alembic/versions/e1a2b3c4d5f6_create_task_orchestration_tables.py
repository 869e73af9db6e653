"""create task orchestration tables

Revision ID: e1a2b3c4d5f6
Revises:
Create Date: 2026-10-19 00:00:00.000001
"""

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision = "e1a2b3c4d5f6"
down_revision = None
branch_labels = None
depends_on = None

TASK_STATUS = postgresql.ENUM(
    "PENDING",
    "DISPATCHED",
    "RUNNING",
    "STOPPED",
    "COMPLETED",
    "TIMEOUT",
    "FAILED",
    name="task_status",
    create_type=False,
)
ARTIFACT_CATEGORY = postgresql.ENUM(
    "INPUT", "OUTPUT", name="artifact_category", create_type=False
)
SINGLETON_OPERATIONS = (
    "operation IN ('merge', 'low_confidence_resolution', "
    "'null_group_resolution', 'duplicate_group_resolution')"
)


def _lifecycle_columns():
    return [
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("stopped_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("failed_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    # Shared by several tables; created once up front (no-op on SQLite)
    TASK_STATUS.create(op.get_bind(), checkfirst=True)
    ARTIFACT_CATEGORY.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "task_queue_types",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False, unique=True),
        sa.Column("max_workers", sa.Integer(), nullable=False),
        sa.Column("queue_name", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        "task_definitions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("task_runner_name", sa.String(length=100), nullable=False),
        sa.Column("task_runner_config", sa.JSON(), nullable=True),
        sa.Column("timeout_after_seconds", sa.Integer(), nullable=True),
        sa.Column("max_process_retries", sa.Integer(), nullable=True),
        sa.Column(
            "task_queue_type_id",
            sa.Integer(),
            sa.ForeignKey("task_queue_types.id"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_task_definitions_task_runner_name", "task_definitions", ["task_runner_name"]
    )
    op.create_index(
        "ix_task_definitions_task_queue_type_id",
        "task_definitions",
        ["task_queue_type_id"],
    )

    op.create_table(
        "task_workflows",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        "task_workflow_nodes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "task_workflow_id",
            sa.Integer(),
            sa.ForeignKey("task_workflows.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "task_definition_id",
            sa.Integer(),
            sa.ForeignKey("task_definitions.id"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=255), nullable=False),
    )
    op.create_table(
        "task_workflow_connections",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "task_workflow_id",
            sa.Integer(),
            sa.ForeignKey("task_workflows.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "source_node_id",
            sa.Integer(),
            sa.ForeignKey("task_workflow_nodes.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "target_node_id",
            sa.Integer(),
            sa.ForeignKey("task_workflow_nodes.id", ondelete="CASCADE"),
            nullable=False,
        ),
    )

    op.create_table(
        "workflow_runs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "task_workflow_id",
            sa.Integer(),
            sa.ForeignKey("task_workflows.id"),
            nullable=True,
        ),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("status", TASK_STATUS, nullable=False),
        *_lifecycle_columns(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_workflow_runs_status", "workflow_runs", ["status"])
    op.create_index("ix_workflow_runs_deleted_at", "workflow_runs", ["deleted_at"])
    op.create_index(
        "ix_workflow_runs_task_workflow_id", "workflow_runs", ["task_workflow_id"]
    )

    op.create_table(
        "task_runs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "task_definition_id",
            sa.Integer(),
            sa.ForeignKey("task_definitions.id"),
            nullable=False,
        ),
        sa.Column(
            "workflow_run_id",
            sa.Integer(),
            sa.ForeignKey("workflow_runs.id"),
            nullable=True,
        ),
        sa.Column(
            "workflow_node_id",
            sa.Integer(),
            sa.ForeignKey("task_workflow_nodes.id"),
            nullable=True,
        ),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("status", TASK_STATUS, nullable=False),
        *_lifecycle_columns(),
        sa.Column("input_tokens", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("output_tokens", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("process_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "input_artifacts_count", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column(
            "output_artifacts_count", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("meta", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_task_runs_status", "task_runs", ["status"])
    op.create_index("ix_task_runs_task_definition_id", "task_runs", ["task_definition_id"])
    op.create_index("ix_task_runs_workflow_run_id", "task_runs", ["workflow_run_id"])

    op.create_table(
        "task_processes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "task_run_id",
            sa.Integer(),
            sa.ForeignKey("task_runs.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("operation", sa.String(length=100), nullable=True),
        sa.Column("activity", sa.String(length=500), nullable=True),
        sa.Column("meta", sa.JSON(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("status", TASK_STATUS, nullable=False),
        sa.Column("restart_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("dispatched_at", sa.DateTime(timezone=True), nullable=True),
        *_lifecycle_columns(),
        sa.Column("timeout_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("input_tokens", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("output_tokens", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "input_artifacts_count", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column(
            "output_artifacts_count", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("celery_task_id", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_task_processes_status", "task_processes", ["status"])
    op.create_index("ix_task_processes_task_run_id", "task_processes", ["task_run_id"])
    op.create_index("ix_task_processes_operation", "task_processes", ["operation"])
    op.create_index(
        "uq_task_processes_run_singleton_operation",
        "task_processes",
        ["task_run_id", "operation"],
        unique=True,
        postgresql_where=sa.text(SINGLETON_OPERATIONS),
        sqlite_where=sa.text(SINGLETON_OPERATIONS),
    )

    op.create_table(
        "artifacts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("text_content", sa.Text(), nullable=True),
        sa.Column("json_content", sa.JSON(), nullable=True),
        sa.Column("meta", sa.JSON(), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        "artifactables",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "artifact_id",
            sa.Integer(),
            sa.ForeignKey("artifacts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("artifactable_type", sa.String(length=100), nullable=False),
        sa.Column("artifactable_id", sa.Integer(), nullable=False),
        sa.Column("category", ARTIFACT_CATEGORY, nullable=False),
        sa.Column(
            "task_process_id",
            sa.Integer(),
            sa.ForeignKey("task_processes.id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    op.create_index(
        "ix_artifactables_owner",
        "artifactables",
        ["artifactable_type", "artifactable_id", "category"],
    )


def downgrade() -> None:
    op.drop_index("ix_artifactables_owner", table_name="artifactables")
    op.drop_table("artifactables")
    op.drop_table("artifacts")
    op.drop_index("uq_task_processes_run_singleton_operation", table_name="task_processes")
    op.drop_table("task_processes")
    op.drop_table("task_runs")
    op.drop_table("workflow_runs")
    op.drop_table("task_workflow_connections")
    op.drop_table("task_workflow_nodes")
    op.drop_table("task_workflows")
    op.drop_table("task_definitions")
    op.drop_table("task_queue_types")
    TASK_STATUS.drop(op.get_bind(), checkfirst=True)
    ARTIFACT_CATEGORY.drop(op.get_bind(), checkfirst=True)
