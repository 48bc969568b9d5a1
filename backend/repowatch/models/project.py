"""Project ORM model."""

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, String, TIMESTAMP, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from repowatch.database import Base


class Project(Base):
    """A monitored GitHub repository and its report settings."""

    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(
        BigInteger,
        primary_key=True,
        autoincrement=True,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    github_url: Mapped[str] = mapped_column(
        String(512),
        unique=True,
        nullable=False,
    )
    owner: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    repo: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default="true",
    )
    ai_provider: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        server_default="openai",
    )
    ai_model: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        server_default="gpt-4o-mini",
    )
    # Partial JSON override merged over the default report configuration.
    report_config: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    last_sync_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # --- Relationships ---
    activity_records: Mapped[list["ActivityRecord"]] = relationship(  # noqa: F821
        back_populates="project",
        cascade="all, delete-orphan",
    )
    reports: Mapped[list["Report"]] = relationship(  # noqa: F821
        back_populates="project",
        cascade="all, delete-orphan",
    )
    stats_snapshots: Mapped[list["RepositoryStats"]] = relationship(  # noqa: F821
        back_populates="project",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Project(id={self.id}, name={self.name!r})>"
