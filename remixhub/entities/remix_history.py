"""RemixHistory model: the durable record of one remix job."""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, String, DateTime, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from remixhub.database import Base


class RemixStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


TERMINAL_STATUSES = {RemixStatus.COMPLETED.value, RemixStatus.ERROR.value}

# Rows that count against the hourly quota
QUOTA_STATUSES = (RemixStatus.PROCESSING.value, RemixStatus.COMPLETED.value)


class RemixHistory(Base):
    __tablename__ = "remix_history"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("profiles.user_id"), nullable=False, index=True
    )
    source_repo: Mapped[str] = mapped_column(String(200), nullable=False)
    target_repo: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RemixStatus.PENDING.value, index=True
    )
    logs: Mapped[list] = mapped_column(JSON, nullable=True)
    error_message: Mapped[str] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)

    profile = relationship("Profile", back_populates="remixes")
    audit_entries = relationship(
        "AuditLog",
        back_populates="history",
        lazy="select",
        cascade="all, delete-orphan",
    )
