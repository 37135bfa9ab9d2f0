"""Catalog models: offers, packs, content items and PPV messages."""

from datetime import datetime, timezone

from sqlalchemy import String, Text, Boolean, Integer, ForeignKey, DateTime, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, new_id


class Offer(Base):
    """Purchasable offer configured by a creator."""

    __tablename__ = "offers"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    creator_id: Mapped[str] = mapped_column(
        ForeignKey("creators.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code: Mapped[str] = mapped_column(String, nullable=False)
    title: Mapped[str] = mapped_column(String, nullable=False)
    tier: Mapped[str | None] = mapped_column(String, nullable=True)  # "monthly" forces a monthly grant
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String, nullable=False, default="EUR")
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("creator_id", "code", name="uq_offer_creator_code"),
    )


class Pack(Base):
    """Content pack shown on the creator's page."""

    __tablename__ = "packs"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    creator_id: Mapped[str] = mapped_column(
        ForeignKey("creators.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    price: Mapped[str | None] = mapped_column(String, nullable=True)  # display string, e.g. "25 €"
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class ContentItem(Base):
    """Content a purchase is attached to."""

    __tablename__ = "content_items"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    creator_id: Mapped[str] = mapped_column(
        ForeignKey("creators.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    slug: Mapped[str] = mapped_column(String, nullable=False)
    pack: Mapped[str] = mapped_column(String, nullable=False, default="WELCOME")  # WELCOME | MONTHLY | SPECIAL
    type: Mapped[str] = mapped_column(String, nullable=False, default="TEXT")
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    visibility: Mapped[str] = mapped_column(String, nullable=False, default="VIP")
    is_preview: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_extra: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("creator_id", "slug", name="uq_content_item_creator_slug"),
    )


class PpvMessage(Base):
    """Pay-per-view chat message sent by a creator to one fan."""

    __tablename__ = "ppv_messages"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    creator_id: Mapped[str] = mapped_column(
        ForeignKey("creators.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    fan_id: Mapped[str] = mapped_column(
        ForeignKey("fans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    message_id: Mapped[str | None] = mapped_column(String, nullable=True)
    title: Mapped[str | None] = mapped_column(String, nullable=True)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String, nullable=False, default="EUR")

    status: Mapped[str] = mapped_column(String, nullable=False, default="LOCKED")  # LOCKED | SOLD
    sold_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    purchase_id: Mapped[str | None] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_ppv_message_creator_fan", "creator_id", "fan_id"),
    )
