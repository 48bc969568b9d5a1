"""Report ORM model."""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    TIMESTAMP,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from repowatch.database import Base


class Report(Base):
    """AI-generated activity report.

    Rows are append-only. Item counts are denormalised so that report
    listings never need to touch ``activity_records``.
    """

    __tablename__ = "reports"
    __table_args__ = (
        CheckConstraint(
            "report_type IN ('DAILY', 'WEEKLY', 'MONTHLY')",
            name="ck_reports_report_type",
        ),
        CheckConstraint(
            "detail_level IN ('summary', 'detailed')",
            name="ck_reports_detail_level",
        ),
        Index("ix_reports_project_created", "project_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(
        BigInteger,
        primary_key=True,
        autoincrement=True,
    )
    project_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(
        String(512),
        nullable=False,
    )
    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    summary: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        server_default="",
    )
    report_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    detail_level: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        server_default="detailed",
    )
    report_date: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
    )
    issues_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        server_default="0",
    )
    discussions_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        server_default="0",
    )
    pull_requests_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        server_default="0",
    )
    highlights: Mapped[list[Any]] = mapped_column(
        JSONB,
        nullable=False,
        server_default="[]",
    )
    metrics: Mapped[dict[str, Any]] = mapped_column(
        JSONB,
        nullable=False,
        server_default="{}",
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # --- Relationships ---
    project: Mapped["Project"] = relationship(  # noqa: F821
        back_populates="reports",
    )

    def __repr__(self) -> str:
        return f"<Report(id={self.id}, title={self.title!r})>"
