"""Access grant (entitlement) model."""

from datetime import datetime, timezone

from sqlalchemy import String, ForeignKey, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, new_id


class AccessGrant(Base):
    """Time-boxed access to a content tier. Active while expires_at > now."""

    __tablename__ = "access_grants"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    fan_id: Mapped[str] = mapped_column(
        ForeignKey("fans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type: Mapped[str] = mapped_column(String, nullable=False)  # trial | monthly | special

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_access_grant_fan_type_exp", "fan_id", "type", "expires_at"),
    )
