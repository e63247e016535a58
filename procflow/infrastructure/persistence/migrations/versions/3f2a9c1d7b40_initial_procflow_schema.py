"""initial_procflow_schema

Revision ID: 3f2a9c1d7b40
Revises:
Create Date: 2026-10-19 09:12:44.201377

"""

from collections.abc import Sequence
from typing import Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f2a9c1d7b40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

VALIDATION_LEVEL_TYPES = ("none", "manager", "requester", "free")
TASK_STATUSES = (
    "to_assign",
    "todo",
    "in-progress",
    "done",
    "pending_validation_1",
    "pending_validation_2",
    "validated",
    "refused",
    "review",
    "cancelled",
)
NODE_TYPES = (
    "start",
    "end",
    "task",
    "validation",
    "notification",
    "condition",
    "sub_process_standard_direct",
    "sub_process_standard_manager",
    "sub_process_standard_validation1",
    "sub_process_standard_validation2",
    "fork",
    "join",
    "status_change",
    "assignment",
)


def _in(column: str, values: Sequence[str], name: str) -> sa.CheckConstraint:
    return sa.CheckConstraint(
        "{} IN ({})".format(column, ", ".join(f"'{v}'" for v in values)), name=name
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    # Directory
    op.create_table(
        "departments",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("manager_id", sa.String(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "app_user",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("manager_id", sa.String(), nullable=True),
        sa.Column("department_id", sa.String(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["manager_id"], ["app_user.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["department_id"], ["departments.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_app_user_manager_id", "app_user", ["manager_id"])
    op.create_index("ix_app_user_department_id", "app_user", ["department_id"])
    op.create_foreign_key(
        "fk_departments_manager_id_app_user",
        "departments",
        "app_user",
        ["manager_id"],
        ["id"],
        ondelete="SET NULL",
    )
    op.create_table(
        "user_groups",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "user_group_members",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("group_id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("position", sa.Integer(), server_default=sa.text("0"), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["group_id"], ["user_groups.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["app_user.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("group_id", "user_id", name="uq_user_group_members_group_user"),
    )
    op.create_index("ix_user_group_members_group_id", "user_group_members", ["group_id"])

    # Templates
    op.create_table(
        "process_templates",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column(
            "request_validation_levels",
            sa.Integer(),
            server_default=sa.text("0"),
            nullable=False,
        ),
        sa.Column("request_validator_1_type", sa.String(), nullable=False),
        sa.Column("request_validator_1_id", sa.String(), nullable=True),
        sa.Column("request_validator_2_type", sa.String(), nullable=False),
        sa.Column("request_validator_2_id", sa.String(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["request_validator_1_id"], ["app_user.id"], ondelete="SET NULL"
        ),
        sa.ForeignKeyConstraint(
            ["request_validator_2_id"], ["app_user.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "request_validation_levels BETWEEN 0 AND 2",
            name="process_templates_request_validation_levels_check",
        ),
        _in(
            "request_validator_1_type",
            VALIDATION_LEVEL_TYPES,
            "process_templates_request_validator_1_type_check",
        ),
        _in(
            "request_validator_2_type",
            VALIDATION_LEVEL_TYPES,
            "process_templates_request_validator_2_type_check",
        ),
    )
    op.create_table(
        "sub_process_templates",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("process_template_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("order_index", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("assignment_mode", sa.String(), nullable=False),
        sa.Column("assignment_target", sa.String(), nullable=False),
        sa.Column("target_assignee_id", sa.String(), nullable=True),
        sa.Column("target_group_id", sa.String(), nullable=True),
        sa.Column("target_department_id", sa.String(), nullable=True),
        sa.Column("target_manager_id", sa.String(), nullable=True),
        sa.Column("manager_source", sa.String(), nullable=True),
        sa.Column(
            "validation_levels", sa.Integer(), server_default=sa.text("0"), nullable=False
        ),
        sa.Column(
            "notify_on_create", sa.Boolean(), server_default=sa.text("true"), nullable=False
        ),
        sa.Column(
            "notify_on_status_change",
            sa.Boolean(),
            server_default=sa.text("true"),
            nullable=False,
        ),
        sa.Column(
            "notify_on_close", sa.Boolean(), server_default=sa.text("true"), nullable=False
        ),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["process_template_id"], ["process_templates.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "validation_levels BETWEEN 0 AND 2",
            name="sub_process_templates_validation_levels_check",
        ),
        _in(
            "assignment_mode",
            ("direct", "manager"),
            "sub_process_templates_assignment_mode_check",
        ),
        _in(
            "assignment_target",
            ("user", "group", "department", "rule"),
            "sub_process_templates_assignment_target_check",
        ),
        sa.CheckConstraint(
            "manager_source IS NULL OR manager_source IN "
            "('specific_user', 'requester_manager', 'target_department_manager')",
            name="sub_process_templates_manager_source_check",
        ),
    )
    op.create_index(
        "ix_sub_process_templates_process_template_id",
        "sub_process_templates",
        ["process_template_id"],
    )
    op.create_index(
        "ix_sub_process_templates_process_order",
        "sub_process_templates",
        ["process_template_id", "order_index"],
    )
    op.create_table(
        "task_templates",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("sub_process_template_id", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("priority", sa.String(), nullable=False),
        sa.Column("default_duration_days", sa.Integer(), nullable=True),
        sa.Column("order_index", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("validation_level_1", sa.String(), nullable=False),
        sa.Column("validation_level_2", sa.String(), nullable=False),
        sa.Column("validator_1_id", sa.String(), nullable=True),
        sa.Column("validator_2_id", sa.String(), nullable=True),
        sa.Column("checklist_items", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["sub_process_template_id"], ["sub_process_templates.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        _in(
            "priority",
            ("low", "medium", "high", "urgent"),
            "task_templates_priority_check",
        ),
        _in(
            "validation_level_1",
            VALIDATION_LEVEL_TYPES,
            "task_templates_validation_level_1_check",
        ),
        _in(
            "validation_level_2",
            VALIDATION_LEVEL_TYPES,
            "task_templates_validation_level_2_check",
        ),
    )
    op.create_index(
        "ix_task_templates_sub_process_template_id",
        "task_templates",
        ["sub_process_template_id"],
    )

    # Workflow templates
    default_active = sa.text("is_default AND status = 'active'")
    op.create_table(
        "workflow_templates",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("is_default", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("process_template_id", sa.String(), nullable=True),
        sa.Column("sub_process_template_id", sa.String(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["process_template_id"], ["process_templates.id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["sub_process_template_id"], ["sub_process_templates.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "(process_template_id IS NULL) <> (sub_process_template_id IS NULL)",
            name="workflow_templates_single_owner_check",
        ),
        _in(
            "status",
            ("draft", "active", "superseded"),
            "workflow_templates_status_check",
        ),
    )
    op.create_index("ix_workflow_templates_status", "workflow_templates", ["status"])
    op.create_index(
        "ix_workflow_templates_process_template_id",
        "workflow_templates",
        ["process_template_id"],
    )
    op.create_index(
        "ix_workflow_templates_sub_process_template_id",
        "workflow_templates",
        ["sub_process_template_id"],
    )
    op.create_index(
        "uq_workflow_templates_process_default",
        "workflow_templates",
        ["process_template_id"],
        unique=True,
        postgresql_where=default_active,
    )
    op.create_index(
        "uq_workflow_templates_sub_process_default",
        "workflow_templates",
        ["sub_process_template_id"],
        unique=True,
        postgresql_where=default_active,
    )
    op.create_table(
        "workflow_nodes",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("workflow_template_id", sa.String(), nullable=False),
        sa.Column("node_key", sa.String(), nullable=False),
        sa.Column("node_type", sa.String(), nullable=False),
        sa.Column("position_x", sa.Float(), nullable=False),
        sa.Column("position_y", sa.Float(), nullable=False),
        sa.Column("config", sa.JSON(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["workflow_template_id"], ["workflow_templates.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "workflow_template_id", "node_key", name="uq_workflow_nodes_template_key"
        ),
        _in("node_type", NODE_TYPES, "workflow_nodes_node_type_check"),
    )
    op.create_index(
        "ix_workflow_nodes_workflow_template_id", "workflow_nodes", ["workflow_template_id"]
    )
    op.create_table(
        "workflow_edges",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("workflow_template_id", sa.String(), nullable=False),
        sa.Column("source_key", sa.String(), nullable=False),
        sa.Column("target_key", sa.String(), nullable=False),
        sa.Column("source_handle", sa.String(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["workflow_template_id"], ["workflow_templates.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_workflow_edges_workflow_template_id", "workflow_edges", ["workflow_template_id"]
    )
    op.create_table(
        "workflow_generation_markers",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("owner_kind", sa.String(), nullable=False),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "owner_kind",
            "owner_id",
            "version",
            name="uq_workflow_generation_markers_owner_version",
        ),
        _in(
            "owner_kind",
            ("process", "sub_process"),
            "workflow_generation_markers_owner_kind_check",
        ),
    )

    # Tasks and requests (run foreign keys are added once those tables exist)
    op.create_table(
        "tasks",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("priority", sa.String(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("assignee_id", sa.String(), nullable=True),
        sa.Column("requester_id", sa.String(), nullable=True),
        sa.Column("reporter_id", sa.String(), nullable=True),
        sa.Column("original_assignee_id", sa.String(), nullable=True),
        sa.Column("department_id", sa.String(), nullable=True),
        sa.Column("parent_request_id", sa.String(), nullable=True),
        sa.Column("parent_sub_process_run_id", sa.String(), nullable=True),
        sa.Column("source_process_template_id", sa.String(), nullable=True),
        sa.Column("source_sub_process_template_id", sa.String(), nullable=True),
        sa.Column("source_task_template_id", sa.String(), nullable=True),
        sa.Column("workflow_run_id", sa.String(), nullable=True),
        sa.Column("validation_level_1", sa.String(), nullable=False),
        sa.Column("validation_level_2", sa.String(), nullable=False),
        sa.Column("validator_1_id", sa.String(), nullable=True),
        sa.Column("validator_2_id", sa.String(), nullable=True),
        sa.Column("validation_1_status", sa.String(), nullable=True),
        sa.Column("validation_1_by", sa.String(), nullable=True),
        sa.Column("validation_1_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("validation_1_comment", sa.Text(), nullable=True),
        sa.Column("validation_2_status", sa.String(), nullable=True),
        sa.Column("validation_2_by", sa.String(), nullable=True),
        sa.Column("validation_2_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("validation_2_comment", sa.Text(), nullable=True),
        sa.Column(
            "is_locked_for_validation",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
        sa.Column("validated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("validator_id", sa.String(), nullable=True),
        sa.Column("request_validation_status", sa.String(), nullable=False),
        sa.Column("custom_data", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["assignee_id"], ["app_user.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["requester_id"], ["app_user.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["department_id"], ["departments.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["parent_request_id"], ["tasks.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["source_process_template_id"], ["process_templates.id"], ondelete="SET NULL"
        ),
        sa.ForeignKeyConstraint(
            ["source_sub_process_template_id"],
            ["sub_process_templates.id"],
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["source_task_template_id"], ["task_templates.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
        _in("type", ("task", "request"), "tasks_type_check"),
        _in("status", TASK_STATUSES, "tasks_status_check"),
        _in("priority", ("low", "medium", "high", "urgent"), "tasks_priority_check"),
        _in("validation_level_1", VALIDATION_LEVEL_TYPES, "tasks_validation_level_1_check"),
        _in("validation_level_2", VALIDATION_LEVEL_TYPES, "tasks_validation_level_2_check"),
        sa.CheckConstraint(
            "validation_1_status IS NULL OR validation_1_status IN "
            "('pending', 'validated', 'refused')",
            name="tasks_validation_1_status_check",
        ),
        sa.CheckConstraint(
            "validation_2_status IS NULL OR validation_2_status IN "
            "('pending', 'validated', 'refused')",
            name="tasks_validation_2_status_check",
        ),
        _in(
            "request_validation_status",
            ("none", "pending_level_1", "pending_level_2", "approved", "refused", "returned"),
            "tasks_request_validation_status_check",
        ),
    )
    op.create_index("ix_tasks_type", "tasks", ["type"])
    op.create_index("ix_tasks_status", "tasks", ["status"])
    op.create_index("ix_tasks_assignee_id", "tasks", ["assignee_id"])
    op.create_index("ix_tasks_requester_id", "tasks", ["requester_id"])
    op.create_index("ix_tasks_parent_request_id", "tasks", ["parent_request_id"])
    op.create_index(
        "ix_tasks_parent_sub_process_run_id", "tasks", ["parent_sub_process_run_id"]
    )
    op.create_index("ix_tasks_workflow_run_id", "tasks", ["workflow_run_id"])
    op.create_index("ix_tasks_request_status", "tasks", ["parent_request_id", "status"])
    op.create_index(
        "ix_tasks_run_template",
        "tasks",
        ["parent_sub_process_run_id", "source_task_template_id"],
    )
    op.create_table(
        "task_checklist_items",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("task_id", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.Column(
            "is_completed", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        *_timestamps(),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_task_checklist_items_task_id", "task_checklist_items", ["task_id"])

    # Runs
    op.create_table(
        "workflow_runs",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("workflow_template_id", sa.String(), nullable=False),
        sa.Column("workflow_version", sa.Integer(), nullable=False),
        sa.Column("trigger_entity_id", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("execution_log", sa.JSON(), nullable=False),
        sa.Column("context_data", sa.JSON(), nullable=False),
        sa.Column("started_by", sa.String(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["workflow_template_id"], ["workflow_templates.id"], ondelete="RESTRICT"
        ),
        sa.ForeignKeyConstraint(["trigger_entity_id"], ["tasks.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        _in("status", ("running", "completed", "failed"), "workflow_runs_status_check"),
    )
    op.create_index(
        "ix_workflow_runs_workflow_template_id", "workflow_runs", ["workflow_template_id"]
    )
    op.create_index("ix_workflow_runs_trigger_entity_id", "workflow_runs", ["trigger_entity_id"])
    op.create_index("ix_workflow_runs_status", "workflow_runs", ["status"])
    op.create_table(
        "request_sub_processes",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("request_id", sa.String(), nullable=False),
        sa.Column("sub_process_template_id", sa.String(), nullable=False),
        sa.Column("workflow_run_id", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("order_index", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column(
            "notify_on_status_change",
            sa.Boolean(),
            server_default=sa.text("true"),
            nullable=False,
        ),
        sa.Column(
            "notify_on_close", sa.Boolean(), server_default=sa.text("true"), nullable=False
        ),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closure_notified_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["request_id"], ["tasks.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["sub_process_template_id"], ["sub_process_templates.id"], ondelete="RESTRICT"
        ),
        sa.ForeignKeyConstraint(["workflow_run_id"], ["workflow_runs.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "request_id",
            "sub_process_template_id",
            name="uq_request_sub_processes_request_template",
        ),
        _in(
            "status",
            ("waiting_validation", "pending", "running", "completed", "cancelled"),
            "request_sub_processes_status_check",
        ),
    )
    op.create_index(
        "ix_request_sub_processes_request_id", "request_sub_processes", ["request_id"]
    )
    op.create_index(
        "ix_request_sub_processes_workflow_run_id",
        "request_sub_processes",
        ["workflow_run_id"],
    )
    op.create_index("ix_request_sub_processes_status", "request_sub_processes", ["status"])
    op.create_foreign_key(
        "fk_tasks_parent_sub_process_run_id",
        "tasks",
        "request_sub_processes",
        ["parent_sub_process_run_id"],
        ["id"],
        ondelete="SET NULL",
    )
    op.create_foreign_key(
        "fk_tasks_workflow_run_id",
        "tasks",
        "workflow_runs",
        ["workflow_run_id"],
        ["id"],
        ondelete="SET NULL",
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_constraint("fk_tasks_workflow_run_id", "tasks", type_="foreignkey")
    op.drop_constraint("fk_tasks_parent_sub_process_run_id", "tasks", type_="foreignkey")
    op.drop_table("request_sub_processes")
    op.drop_table("workflow_runs")
    op.drop_table("task_checklist_items")
    op.drop_table("tasks")
    op.drop_table("workflow_generation_markers")
    op.drop_table("workflow_edges")
    op.drop_table("workflow_nodes")
    op.drop_table("workflow_templates")
    op.drop_table("task_templates")
    op.drop_table("sub_process_templates")
    op.drop_table("process_templates")
    op.drop_table("user_group_members")
    op.drop_table("user_groups")
    op.drop_constraint("fk_departments_manager_id_app_user", "departments", type_="foreignkey")
    op.drop_table("app_user")
    op.drop_table("departments")
