"""Initial schema: audit log, salary inquiries, form drafts.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from __future__ import annotations

from typing import Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, tuple[str, ...], None] = None
depends_on: Union[str, tuple[str, ...], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "audit_log",
        sa.Column("event_type", sa.String(100), nullable=False, index=True),
        sa.Column("source_module", sa.String(100)),
        sa.Column("session_id", sa.String(100), index=True),
        sa.Column("tenant_id", sa.String(100), index=True),
        sa.Column("actor_id", sa.String(100), comment="Session id, admin name, or 'system'"),
        sa.Column("actor_role", sa.String(50), comment="user, admin, system"),
        sa.Column("data", postgresql.JSONB(astext_type=sa.Text())),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "salary_inquiries",
        sa.Column("session_id", sa.String(100), index=True),
        sa.Column("tenant_id", sa.String(100), index=True, comment="Project / widget public key"),
        sa.Column("tarif", sa.String(20), nullable=False, index=True),
        sa.Column("gruppe", sa.String(10), nullable=False),
        sa.Column("stufe", sa.String(5), nullable=False),
        sa.Column("jahr", sa.Integer(), nullable=False),
        sa.Column("brutto", sa.Numeric(12, 2), nullable=False),
        sa.Column("netto", sa.Numeric(12, 2), nullable=False),
        sa.Column("details", postgresql.JSONB(astext_type=sa.Text()), nullable=False, comment="Full calculation result"),
        sa.Column("form_state", postgresql.JSONB(astext_type=sa.Text())),
        sa.Column("citations", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "form_drafts",
        sa.Column("session_id", sa.String(100), nullable=False, unique=True),
        sa.Column("tenant_id", sa.String(100)),
        sa.Column("section", sa.String(20), nullable=False),
        sa.Column("form_state", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("form_drafts")
    op.drop_table("salary_inquiries")
    op.drop_table("audit_log")
