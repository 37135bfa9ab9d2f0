"""Wallet and wallet transaction models."""

from datetime import datetime, timezone

from sqlalchemy import String, Integer, ForeignKey, DateTime, JSON, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, new_id


class Wallet(Base):
    """A fan's stored balance in minor currency units."""

    __tablename__ = "wallets"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)

    fan_id: Mapped[str] = mapped_column(
        ForeignKey("fans.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )

    currency: Mapped[str] = mapped_column(String, nullable=False, default="EUR")

    # Always equal to the sum of this wallet's transaction amounts
    balance_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("balance_cents >= 0", name="ck_wallet_balance_non_negative"),
    )


class WalletTransaction(Base):
    """Append-only ledger entry. Never updated or deleted."""

    __tablename__ = "wallet_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    wallet_id: Mapped[str] = mapped_column(
        ForeignKey("wallets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    kind: Mapped[str] = mapped_column(String, nullable=False)  # FAKE_TOPUP / PURCHASE / PPV_PURCHASE
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)  # signed
    balance_after_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    idempotency_key: Mapped[str | None] = mapped_column(String, nullable=True, unique=True)

    meta: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_wallet_tx_wallet_ts", "wallet_id", "created_at"),
    )
