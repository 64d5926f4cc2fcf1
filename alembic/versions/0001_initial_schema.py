"""Initial schema: profiles, projects, payments.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-16 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=True),
        sa.Column("role", sa.Text(), nullable=False, server_default="customer"),
        sa.Column("brand_name", sa.Text(), nullable=True),
        sa.Column("tagline", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("contact_email", sa.Text(), nullable=True),
        sa.Column("phone_number", sa.Text(), nullable=True),
        sa.Column("brand_assets", postgresql.JSONB(), nullable=False, server_default="[]"),
        *_timestamps(),
        sa.CheckConstraint("role IN ('admin', 'customer')", name="ck_profiles_role"),
    )
    op.create_index("ix_profiles_email", "profiles", ["email"], unique=True)
    op.create_index("ix_profiles_role", "profiles", ["role"])

    op.create_table(
        "projects",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("project_number", sa.Integer(), nullable=False),
        sa.Column(
            "customer_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("profiles.id"),
            nullable=False,
        ),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="Pending"),
        sa.Column("project_name", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("spec_style_number", sa.Text(), nullable=True),
        sa.Column("spec_colors", sa.Text(), nullable=True),
        sa.Column("spec_sizes", sa.Text(), nullable=True),
        sa.Column("spec_apparel_type", sa.Text(), nullable=True),
        sa.Column("spec_gender", sa.Text(), nullable=True),
        sa.Column("spec_age_group", sa.Text(), nullable=True),
        sa.Column("wants_new_style", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("wants_tag_creation", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("wants_color_variations", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("wants_style_variations", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("wants_marketing_poster", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("admin_response", sa.Text(), nullable=True),
        sa.Column("rework_feedback", sa.Text(), nullable=True),
        sa.Column("bill_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("attachments", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("admin_attachments", postgresql.JSONB(), nullable=False, server_default="[]"),
        *_timestamps(),
        sa.CheckConstraint(
            "category IN ('AI Services', 'Websites & Apps', 'Automations')",
            name="ck_projects_category",
        ),
        sa.CheckConstraint(
            "status IN ('Pending', 'In Progress', 'Customer Review', 'Accepted', "
            "'Rework Requested', 'Paid', 'Completed')",
            name="ck_projects_status",
        ),
        sa.CheckConstraint("bill_amount >= 0", name="ck_projects_bill_amount"),
    )
    op.create_index("ix_projects_project_number", "projects", ["project_number"], unique=True)
    op.create_index("ix_projects_customer_id", "projects", ["customer_id"])
    op.create_index("ix_projects_category", "projects", ["category"])
    op.create_index("ix_projects_status", "projects", ["status"])

    op.create_table(
        "payments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "customer_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("profiles.id"),
            nullable=False,
        ),
        sa.Column("project_ids", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("proof_url", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="Pending Verification"),
        sa.Column(
            "reviewed_by",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("profiles.id"),
            nullable=True,
        ),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('Pending Verification', 'Verified', 'Rejected')",
            name="ck_payments_status",
        ),
    )
    op.create_index("ix_payments_customer_id", "payments", ["customer_id"])
    op.create_index("ix_payments_status", "payments", ["status"])


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    op.drop_table("payments")
    op.drop_table("projects")
    op.drop_table("profiles")
