"""Setting ORM model (global key/value store)."""

from datetime import datetime

from sqlalchemy import Boolean, String, TIMESTAMP, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from repowatch.database import Base


class Setting(Base):
    """Global application setting.

    Rows flagged ``encrypted`` hold an AES-GCM ciphertext produced by
    ``repowatch.core.security.encrypt_secret`` and are masked on read.
    """

    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
    )
    value: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    encrypted: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default="false",
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return f"<Setting(key={self.key!r}, encrypted={self.encrypted})>"
