"""Approval requests and audit log.

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

_STAGES = ("manager", "hr", "admin")


def _stage_columns() -> list[sa.Column]:
    columns: list[sa.Column] = []
    for stage in _STAGES:
        columns.extend(
            [
                sa.Column(f"{stage}_status", sa.String(length=20), nullable=False, server_default="pending"),
                sa.Column(f"{stage}_acted_by", sa.Uuid(), nullable=True),
                sa.Column(f"{stage}_acted_at", sa.DateTime(timezone=True), nullable=True),
                sa.Column(f"{stage}_comment", sa.String(), nullable=True),
            ]
        )
    return columns


def upgrade() -> None:
    op.create_table(
        "approval_request",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column("subject_employee_id", sa.Uuid(), nullable=False),
        sa.Column("domain", sa.String(length=50), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("current_stage", sa.String(length=20), nullable=False, server_default="manager"),
        *_stage_columns(),
        sa.Column("rejected_by", sa.Uuid(), nullable=True),
        sa.Column("rejection_reason", sa.String(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_approval_request_company_id", "approval_request", ["company_id"])
    op.create_index("ix_approval_request_subject_employee_id", "approval_request", ["subject_employee_id"])
    op.create_index("ix_approval_request_created_at", "approval_request", ["created_at"])
    op.create_index(
        "ix_approval_request_company_domain_status", "approval_request", ["company_id", "domain", "status"]
    )
    op.create_index("ix_approval_request_domain_stage", "approval_request", ["domain", "current_stage"])

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column("actor_id", sa.Uuid(), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("before_json", sa.JSON(), nullable=True),
        sa.Column("after_json", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_log_company_id", "audit_log", ["company_id"])
    op.create_index("ix_audit_log_created_at", "audit_log", ["created_at"])
    op.create_index("ix_audit_entity", "audit_log", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("approval_request")
