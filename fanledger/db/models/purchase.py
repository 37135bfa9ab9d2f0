"""Purchase models: extras, tips, gifts, unlocks and PPV purchases."""

from datetime import datetime, timezone

from sqlalchemy import String, Integer, Boolean, ForeignKey, DateTime, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, new_id


class Purchase(Base):
    """Immutable purchase record. Only is_archived may change after commit."""

    __tablename__ = "purchases"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    fan_id: Mapped[str] = mapped_column(
        ForeignKey("fans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    content_item_id: Mapped[str | None] = mapped_column(
        ForeignKey("content_items.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    kind: Mapped[str] = mapped_column(String, nullable=False)  # EXTRA | TIP | GIFT
    tier: Mapped[str] = mapped_column(String, nullable=False, default="T0")
    amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # major units
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    product_id: Mapped[str | None] = mapped_column(String, nullable=True)
    product_type: Mapped[str | None] = mapped_column(String, nullable=True)  # SUBSCRIPTION | PACK | TIP | GIFT

    client_txn_id: Mapped[str | None] = mapped_column(String, nullable=True)
    session_tag: Mapped[str | None] = mapped_column(String, nullable=True)
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("fan_id", "kind", "client_txn_id", name="uq_purchase_fan_kind_client_txn"),
        Index("ix_purchase_fan_ts", "fan_id", "created_at"),
    )


class PpvPurchase(Base):
    """One purchase per fan per PPV message, ever."""

    __tablename__ = "ppv_purchases"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    ppv_message_id: Mapped[str] = mapped_column(
        ForeignKey("ppv_messages.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    fan_id: Mapped[str] = mapped_column(
        ForeignKey("fans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    creator_id: Mapped[str] = mapped_column(
        ForeignKey("creators.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String, nullable=False, default="EUR")
    status: Mapped[str] = mapped_column(String, nullable=False, default="PAID")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("ppv_message_id", "fan_id", name="uq_ppv_purchase_message_fan"),
    )
