"""Profile model: a RemixHub user and their credit balance."""

from datetime import datetime, timezone

from sqlalchemy import String, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from remixhub.database import Base


class Profile(Base):
    __tablename__ = "profiles"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(200), nullable=True)
    email: Mapped[str] = mapped_column(String(320), nullable=True)
    credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # sha256 hex of the bearer token the user calls the API with
    api_token_hash: Mapped[str] = mapped_column(String(64), nullable=True, unique=True, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    remixes = relationship("RemixHistory", back_populates="profile", lazy="raise")
