"""Create bookmarklet tables: users, projects, directory_links, submissions.

Revision ID: 001_bookmarklet_core
Revises: 000_enable_extensions
Create Date: 2026-10-19

Bookmarklet tokens live in process memory and have no table.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001_bookmarklet_core"
down_revision: str | None = "000_enable_extensions"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_UUID_DEFAULT = sa.text("gen_random_uuid()")
_EMPTY_OBJECT = sa.text("'{}'::jsonb")
_EMPTY_ARRAY = sa.text("'[]'::jsonb")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def _jsonb(name: str, default: sa.TextClause) -> sa.Column:
    return sa.Column(
        name, postgresql.JSONB(), nullable=False, server_default=default
    )


def upgrade() -> None:
    # Users - plan drives bookmarklet usage and submission quotas
    op.create_table(
        "users",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=_UUID_DEFAULT),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("plan", sa.String(20), nullable=False, server_default="free"),
        *_timestamps(),
        sa.CheckConstraint(
            "plan IN ('free', 'pro', 'business', 'enterprise')",
            name="ck_users_plan",
        ),
    )
    op.create_index("idx_user_email", "users", ["email"], unique=True)

    # Projects - data the fill script embeds
    op.create_table(
        "projects",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=_UUID_DEFAULT),
        sa.Column(
            "user_id",
            sa.UUID(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("project_name", sa.String(255), nullable=False),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("website_url", sa.Text(), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("company_name", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("whatsapp", sa.String(50), nullable=True),
        sa.Column("business_description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(100), nullable=True),
        _jsonb("keywords", _EMPTY_ARRAY),
        sa.Column("business_hours", sa.String(255), nullable=True),
        sa.Column("established_year", sa.String(10), nullable=True),
        sa.Column("logo_image_url", sa.Text(), nullable=True),
        _jsonb("address", _EMPTY_OBJECT),
        _jsonb("seo_metadata", _EMPTY_OBJECT),
        _jsonb("social", _EMPTY_OBJECT),
        _jsonb("article_submission", _EMPTY_OBJECT),
        _jsonb("classified", _EMPTY_OBJECT),
        _jsonb("custom_fields", _EMPTY_ARRAY),
        *_timestamps(),
    )
    op.create_index("ix_projects_user_id", "projects", ["user_id"])

    # Directory links - requirement set drives the declared-field phase
    op.create_table(
        "directory_links",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=_UUID_DEFAULT),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("submission_url", sa.Text(), nullable=True),
        sa.Column("category", sa.String(100), nullable=True),
        _jsonb("required_fields", _EMPTY_ARRAY),
        *_timestamps(),
    )

    # Submissions - one row per reported fill
    op.create_table(
        "submissions",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=_UUID_DEFAULT),
        sa.Column(
            "user_id",
            sa.UUID(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "project_id",
            sa.UUID(),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "link_id",
            sa.UUID(),
            sa.ForeignKey("directory_links.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("directory", sa.String(255), nullable=False),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("page_url", sa.Text(), nullable=True),
        sa.Column("page_title", sa.Text(), nullable=True),
        sa.Column("page_description", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "submitted_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "status IN ('success', 'pending', 'rejected', 'failed')",
            name="ck_submissions_status",
        ),
    )
    op.create_index("ix_submissions_user_id", "submissions", ["user_id"])


def downgrade() -> None:
    op.drop_table("submissions")
    op.drop_table("directory_links")
    op.drop_table("projects")
    op.drop_table("users")
