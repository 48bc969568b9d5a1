"""create initial tables

Revision ID: 3f2a9c1d7e40
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3f2a9c1d7e40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """projects / activity_records / repository_stats / reports / settings を作成する。"""
    op.create_table(
        "projects",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("github_url", sa.String(length=512), nullable=False),
        sa.Column("owner", sa.String(length=255), nullable=False),
        sa.Column("repo", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("ai_provider", sa.String(length=50), server_default="openai", nullable=False),
        sa.Column("ai_model", sa.String(length=255), server_default="gpt-4o-mini", nullable=False),
        sa.Column("report_config", sa.Text(), nullable=True),
        sa.Column("last_sync_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("github_url"),
    )

    op.create_table(
        "activity_records",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("project_id", sa.BigInteger(), nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("github_id", sa.BigInteger(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("body", sa.Text(), server_default="", nullable=False),
        sa.Column("author", sa.String(length=255), server_default="unknown", nullable=False),
        sa.Column("url", sa.String(length=1024), nullable=True),
        sa.Column("state", sa.String(length=50), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("synced_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "project_id", "github_id", "kind",
            name="uq_activity_records_project_github_kind",
        ),
        sa.CheckConstraint(
            "kind IN ('ISSUE', 'DISCUSSION', 'PULL_REQUEST')",
            name="ck_activity_records_kind",
        ),
    )
    op.create_index(
        "ix_activity_records_project_created",
        "activity_records",
        ["project_id", "created_at"],
    )
    op.create_index(
        "ix_activity_records_project_updated",
        "activity_records",
        ["project_id", "updated_at"],
    )

    op.create_table(
        "repository_stats",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("project_id", sa.BigInteger(), nullable=False),
        sa.Column("stars", sa.Integer(), server_default="0", nullable=False),
        sa.Column("forks", sa.Integer(), server_default="0", nullable=False),
        sa.Column("watchers", sa.Integer(), server_default="0", nullable=False),
        sa.Column("open_issues", sa.Integer(), server_default="0", nullable=False),
        sa.Column("commits_last_week", sa.Integer(), server_default="0", nullable=False),
        sa.Column("unique_authors_last_week", sa.Integer(), server_default="0", nullable=False),
        sa.Column("contributors_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column(
            "top_contributors",
            postgresql.JSONB(astext_type=sa.Text()),
            server_default="[]",
            nullable=False,
        ),
        sa.Column("captured_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_repository_stats_project_captured",
        "repository_stats",
        ["project_id", "captured_at"],
    )

    op.create_table(
        "reports",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("project_id", sa.BigInteger(), nullable=False),
        sa.Column("title", sa.String(length=512), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("summary", sa.Text(), server_default="", nullable=False),
        sa.Column("report_type", sa.String(length=20), nullable=False),
        sa.Column("detail_level", sa.String(length=20), server_default="detailed", nullable=False),
        sa.Column("report_date", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("issues_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("discussions_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("pull_requests_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column(
            "highlights",
            postgresql.JSONB(astext_type=sa.Text()),
            server_default="[]",
            nullable=False,
        ),
        sa.Column(
            "metrics",
            postgresql.JSONB(astext_type=sa.Text()),
            server_default="{}",
            nullable=False,
        ),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "report_type IN ('DAILY', 'WEEKLY', 'MONTHLY')",
            name="ck_reports_report_type",
        ),
        sa.CheckConstraint(
            "detail_level IN ('summary', 'detailed')",
            name="ck_reports_detail_level",
        ),
    )
    op.create_index(
        "ix_reports_project_created",
        "reports",
        ["project_id", "created_at"],
    )

    op.create_table(
        "settings",
        sa.Column("key", sa.String(length=255), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("encrypted", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("key"),
    )


def downgrade() -> None:
    """全テーブルを削除する。"""
    op.drop_table("settings")
    op.drop_index("ix_reports_project_created", table_name="reports")
    op.drop_table("reports")
    op.drop_index("ix_repository_stats_project_captured", table_name="repository_stats")
    op.drop_table("repository_stats")
    op.drop_index("ix_activity_records_project_updated", table_name="activity_records")
    op.drop_index("ix_activity_records_project_created", table_name="activity_records")
    op.drop_table("activity_records")
    op.drop_table("projects")
