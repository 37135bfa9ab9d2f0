"""Creator and fan models."""

from datetime import datetime, timezone

from sqlalchemy import String, Boolean, Integer, ForeignKey, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, new_id


class Creator(Base):
    """Content creator; owns fans, offers, packs and PPV messages."""

    __tablename__ = "creators"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    handle: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    display_name: Mapped[str | None] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


class Fan(Base):
    """A fan of one creator, plus the lightweight engagement signals purchases update."""

    __tablename__ = "fans"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    creator_id: Mapped[str] = mapped_column(
        ForeignKey("creators.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    display_name: Mapped[str | None] = mapped_column(String, nullable=True)
    name: Mapped[str | None] = mapped_column(String, nullable=True)
    is_new: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    adult_confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_intent_key: Mapped[str | None] = mapped_column(String, nullable=True)

    # Engagement signals
    last_activity_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_purchase_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    temperature_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    temperature_bucket: Mapped[str] = mapped_column(String, nullable=False, default="COLD")  # COLD | WARM | HOT
    next_action: Mapped[str | None] = mapped_column(String, nullable=True)
    preview: Mapped[str | None] = mapped_column(String, nullable=True)
    preview_time: Mapped[str | None] = mapped_column(String, nullable=True)  # "HH:MM"
    signals_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
