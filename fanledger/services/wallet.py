"""
Wallet ledger.

A wallet holds a fan's balance in minor units next to an append-only
transaction log. Every balance change inserts one WalletTransaction carrying
the resulting balance, inside the caller's transaction, so the balance always
equals the sum of its transactions.

``debit`` and ``credit`` never commit; the purchase orchestrator owns the
transaction boundary. ``get_or_create_wallet`` is the exception: lazy creation
commits on its own so that it never rides along with a purchase.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fanledger.core.config import settings
from fanledger.core.errors import InsufficientBalanceError, NotFoundError, ValidationError
from fanledger.db.models import Wallet, WalletTransaction
from fanledger.utils.dates import utcnow

log = logging.getLogger(__name__)

MAX_IDEMPOTENCY_KEY_LENGTH = 120
RECENT_TRANSACTIONS = 8

KIND_TOPUP = "FAKE_TOPUP"
KIND_PURCHASE = "PURCHASE"
KIND_PPV_PURCHASE = "PPV_PURCHASE"


@dataclass(frozen=True)
class WalletSnapshot:
    id: str
    fan_id: str
    currency: str
    balance_cents: int

    @classmethod
    def from_row(cls, wallet: Wallet) -> "WalletSnapshot":
        return cls(
            id=wallet.id,
            fan_id=wallet.fan_id,
            currency=wallet.currency,
            balance_cents=int(wallet.balance_cents or 0),
        )

    def with_balance(self, balance_cents: int) -> "WalletSnapshot":
        return WalletSnapshot(self.id, self.fan_id, self.currency, balance_cents)


@dataclass(frozen=True)
class TransactionRecord:
    id: int
    wallet_id: str
    kind: str
    amount_cents: int
    balance_after_cents: int
    idempotency_key: str | None
    meta: dict | None
    created_at: Any

    @classmethod
    def from_row(cls, tx: WalletTransaction) -> "TransactionRecord":
        return cls(
            id=tx.id,
            wallet_id=tx.wallet_id,
            kind=tx.kind,
            amount_cents=tx.amount_cents,
            balance_after_cents=tx.balance_after_cents,
            idempotency_key=tx.idempotency_key,
            meta=tx.meta,
            created_at=tx.created_at,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "amountCents": self.amount_cents,
            "balanceAfterCents": self.balance_after_cents,
            "meta": self.meta,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class LedgerEntry:
    """Result of a debit/credit. ``transaction`` is None for zero-amount debits."""

    wallet: WalletSnapshot
    transaction: TransactionRecord | None
    reused: bool = False


_KEY_CHARS = re.compile(r"[^A-Za-z0-9:_\-.]")


def normalize_idempotency_key(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    key = _KEY_CHARS.sub("", value.strip())[:MAX_IDEMPOTENCY_KEY_LENGTH]
    return key or None


def wallet_payload(wallet: WalletSnapshot | None) -> dict:
    if wallet is None or not settings.WALLET_ENABLED:
        return {"enabled": False, "currency": settings.WALLET_CURRENCY, "balanceCents": 0}
    return {"enabled": True, "currency": wallet.currency, "balanceCents": wallet.balance_cents}


async def _select_wallet(db: AsyncSession, *, fan_id: str | None = None, wallet_id: str | None = None,
                         for_update: bool = False) -> Wallet | None:
    stmt = select(Wallet).execution_options(populate_existing=True)
    stmt = stmt.where(Wallet.fan_id == fan_id) if fan_id is not None else stmt.where(Wallet.id == wallet_id)
    if for_update:
        stmt = stmt.with_for_update()
    return await db.scalar(stmt)


async def lock_wallet(db: AsyncSession, wallet_id: str) -> None:
    """Take the wallet row lock for the rest of the transaction."""
    await _select_wallet(db, wallet_id=wallet_id, for_update=True)


async def find_wallet(db: AsyncSession, fan_id: str) -> WalletSnapshot | None:
    wallet = await _select_wallet(db, fan_id=fan_id)
    return WalletSnapshot.from_row(wallet) if wallet else None


async def get_or_create_wallet(db: AsyncSession, fan_id: str, currency: str | None = None) -> WalletSnapshot:
    """Fetch the fan's wallet, creating an empty one on first access."""
    existing = await _select_wallet(db, fan_id=fan_id)
    if existing:
        return WalletSnapshot.from_row(existing)

    wallet = Wallet(fan_id=fan_id, currency=currency or settings.WALLET_CURRENCY, balance_cents=0)
    db.add(wallet)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a creation race; the other request's row wins.
        await db.rollback()
        existing = await _select_wallet(db, fan_id=fan_id)
        if existing is None:
            raise
        log.info("wallet.create_race fan=%s", fan_id)
        return WalletSnapshot.from_row(existing)

    log.info("wallet.created fan=%s wallet=%s", fan_id, wallet.id)
    return WalletSnapshot.from_row(wallet)


async def find_transaction(db: AsyncSession, idempotency_key: str) -> TransactionRecord | None:
    tx = await db.scalar(
        select(WalletTransaction).where(WalletTransaction.idempotency_key == idempotency_key)
    )
    return TransactionRecord.from_row(tx) if tx else None


async def list_transactions(db: AsyncSession, wallet_id: str, limit: int = RECENT_TRANSACTIONS) -> list[TransactionRecord]:
    rows = await db.scalars(
        select(WalletTransaction)
        .where(WalletTransaction.wallet_id == wallet_id)
        .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
        .limit(limit)
    )
    return [TransactionRecord.from_row(tx) for tx in rows]


async def _apply_delta(db: AsyncSession, wallet_id: str, delta: int) -> int | None:
    """Atomically add ``delta``; a debit only applies while the balance covers it."""
    stmt = (
        update(Wallet)
        .where(Wallet.id == wallet_id)
        .values(balance_cents=Wallet.balance_cents + delta, updated_at=utcnow())
    )
    if delta < 0:
        stmt = stmt.where(Wallet.balance_cents >= -delta)
    result = await db.execute(
        stmt.returning(Wallet.balance_cents).execution_options(synchronize_session=False)
    )
    return result.scalar_one_or_none()


async def _write_entry(db: AsyncSession, wallet: WalletSnapshot, *, kind: str, amount_cents: int,
                       balance_after: int, idempotency_key: str | None, meta: dict | None) -> TransactionRecord:
    tx = WalletTransaction(
        wallet_id=wallet.id,
        kind=kind,
        amount_cents=amount_cents,
        balance_after_cents=balance_after,
        idempotency_key=idempotency_key,
        meta=meta,
        created_at=utcnow(),
    )
    db.add(tx)
    await db.flush()
    return TransactionRecord.from_row(tx)


async def debit(
    db: AsyncSession,
    wallet: WalletSnapshot,
    amount_cents: int,
    *,
    kind: str = KIND_PURCHASE,
    idempotency_key: str | None = None,
    meta: dict | None = None,
) -> LedgerEntry:
    if amount_cents < 0:
        raise ValidationError("Debit amount must not be negative")

    if idempotency_key:
        existing = await find_transaction(db, idempotency_key)
        if existing is not None:
            current = await _select_wallet(db, wallet_id=wallet.id)
            log.info("wallet.debit.reused wallet=%s key=%s", wallet.id, idempotency_key)
            return LedgerEntry(WalletSnapshot.from_row(current), existing, reused=True)

    current = await _select_wallet(db, wallet_id=wallet.id, for_update=True)
    if current is None:
        raise NotFoundError("Wallet not found", resource="wallet")
    fresh = WalletSnapshot.from_row(current)

    if amount_cents == 0:
        return LedgerEntry(fresh, None)

    if fresh.balance_cents < amount_cents:
        raise InsufficientBalanceError(amount_cents, fresh.balance_cents, wallet_payload(fresh))

    balance_after = await _apply_delta(db, wallet.id, -amount_cents)
    if balance_after is None:
        # A concurrent debit drained the wallet between our read and the update.
        drained = WalletSnapshot.from_row(await _select_wallet(db, wallet_id=wallet.id))
        raise InsufficientBalanceError(amount_cents, drained.balance_cents, wallet_payload(drained))

    tx = await _write_entry(
        db, fresh,
        kind=kind,
        amount_cents=-amount_cents,
        balance_after=balance_after,
        idempotency_key=idempotency_key,
        meta=meta,
    )
    log.info("wallet.debit wallet=%s amount_cents=%d balance_after=%d", wallet.id, amount_cents, balance_after)
    return LedgerEntry(fresh.with_balance(balance_after), tx)


async def credit(
    db: AsyncSession,
    wallet: WalletSnapshot,
    amount_cents: int,
    idempotency_key: str,
    *,
    kind: str = KIND_TOPUP,
    meta: dict | None = None,
) -> LedgerEntry:
    """Add funds. Callers check the adult-confirmation precondition first."""
    if amount_cents <= 0 or amount_cents > settings.MAX_TOPUP_CENTS:
        raise ValidationError(
            f"Amount must be between 1 and {settings.MAX_TOPUP_CENTS} cents",
            field="amountCents",
        )
    if not idempotency_key:
        raise ValidationError("Missing idempotency key", field="idempotencyKey")

    existing = await find_transaction(db, idempotency_key)
    if existing is not None:
        current = await _select_wallet(db, wallet_id=wallet.id)
        log.info("wallet.credit.reused wallet=%s key=%s", wallet.id, idempotency_key)
        return LedgerEntry(WalletSnapshot.from_row(current), existing, reused=True)

    current = await _select_wallet(db, wallet_id=wallet.id, for_update=True)
    if current is None:
        raise NotFoundError("Wallet not found", resource="wallet")
    fresh = WalletSnapshot.from_row(current)

    balance_after = await _apply_delta(db, wallet.id, amount_cents)
    tx = await _write_entry(
        db, fresh,
        kind=kind,
        amount_cents=amount_cents,
        balance_after=balance_after,
        idempotency_key=idempotency_key,
        meta=meta,
    )
    log.info("wallet.credit wallet=%s amount_cents=%d balance_after=%d", wallet.id, amount_cents, balance_after)
    return LedgerEntry(fresh.with_balance(balance_after), tx)
