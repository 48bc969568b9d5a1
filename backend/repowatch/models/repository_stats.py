"""RepositoryStats ORM model (point-in-time repository counters)."""

from datetime import datetime
from typing import Any

from sqlalchemy import BigInteger, ForeignKey, Index, Integer, TIMESTAMP, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from repowatch.database import Base


class RepositoryStats(Base):
    """Snapshot of repository-level counters captured during sync."""

    __tablename__ = "repository_stats"
    __table_args__ = (
        Index("ix_repository_stats_project_captured", "project_id", "captured_at"),
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
    stars: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    forks: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    watchers: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    open_issues: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    commits_last_week: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        server_default="0",
    )
    unique_authors_last_week: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        server_default="0",
    )
    contributors_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        server_default="0",
    )
    top_contributors: Mapped[list[Any]] = mapped_column(
        JSONB,
        nullable=False,
        server_default="[]",
    )
    captured_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # --- Relationships ---
    project: Mapped["Project"] = relationship(  # noqa: F821
        back_populates="stats_snapshots",
    )

    def __repr__(self) -> str:
        return (
            f"<RepositoryStats(id={self.id}, project_id={self.project_id}, "
            f"captured_at={self.captured_at})>"
        )
