"""ActivityRecord ORM model (normalised issue, discussion or pull request)."""

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    TIMESTAMP,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from repowatch.database import Base


class ActivityRecord(Base):
    """One GitHub item observed during sync.

    Rows are upserted on ``(project_id, github_id, kind)``: a later sync
    refreshes title, body, state and ``updated_at`` instead of inserting a
    duplicate.
    """

    __tablename__ = "activity_records"
    __table_args__ = (
        UniqueConstraint(
            "project_id",
            "github_id",
            "kind",
            name="uq_activity_records_project_github_kind",
        ),
        CheckConstraint(
            "kind IN ('ISSUE', 'DISCUSSION', 'PULL_REQUEST')",
            name="ck_activity_records_kind",
        ),
        Index("ix_activity_records_project_created", "project_id", "created_at"),
        Index("ix_activity_records_project_updated", "project_id", "updated_at"),
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
    kind: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    github_id: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )
    title: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    body: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        server_default="",
    )
    author: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        server_default="unknown",
    )
    url: Mapped[str | None] = mapped_column(
        String(1024),
        nullable=True,
    )
    state: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
    )
    synced_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # --- Relationships ---
    project: Mapped["Project"] = relationship(  # noqa: F821
        back_populates="activity_records",
    )

    def __repr__(self) -> str:
        return (
            f"<ActivityRecord(id={self.id}, kind={self.kind!r}, "
            f"github_id={self.github_id})>"
        )
