"""
Purchase orchestrator.

One purchase attempt walks these stages:

    RESOLVED -> CHECK_ACTIVE_GRANT -> CHECK_IDEMPOTENT_DUPLICATE
             -> CHECK_BALANCE -> COMMIT -> SIDE_EFFECTS -> RESPONSE

COMMIT is a single database transaction: fresh balance read, wallet debit,
purchase row, grant upsert. Either all of it lands or none of it does. A
duplicate that slips past the idempotency check collides on the
``(fan_id, kind, client_txn_id)`` constraint; the commit adapter reports that
as ``Conflict`` and the orchestrator answers with the row that won.

Side effects (engagement signals, realtime events) run after the commit and
never fail the purchase.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Callable

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fanledger.core.config import settings
from fanledger.core.errors import (
    ConflictError,
    ForbiddenError,
    InsufficientBalanceError,
    NotFoundError,
    ValidationError,
)
from fanledger.db.models import ContentItem, Offer, Pack, PpvMessage, PpvPurchase, Purchase
from fanledger.realtime.hub import (
    PPV_UNLOCKED,
    PURCHASE_CREATED,
    EventHub,
    RealtimeEvent,
    access_updated,
)
from fanledger.services import wallet as ledger
from fanledger.services.access_grants import GrantRecord, find_active_grant, upsert_grant
from fanledger.services.engagement import ppv_preview, purchase_preview, record_purchase_signals
from fanledger.services.fans import FanRef
from fanledger.services.purchase_resolver import (
    PRODUCT_GIFT,
    PRODUCT_TIP,
    ResolvedPurchase,
    resolve,
    resolve_gift_pack,
    resolve_manual,
    resolve_support,
    slugify,
)
from fanledger.services.purchase_store import Conflict, Created, Reused, commit_once
from fanledger.services.wallet import WalletSnapshot
from fanledger.utils.dates import ensure_utc, utcnow

log = logging.getLogger(__name__)

KIND_EXTRA = "EXTRA"
KIND_TIP = "TIP"
KIND_GIFT = "GIFT"
PURCHASE_KINDS = (KIND_EXTRA, KIND_TIP, KIND_GIFT)
SUPPORT_KINDS = (KIND_TIP, KIND_GIFT)

MAX_CLIENT_TXN_ID_LENGTH = 120
MAX_SESSION_TAG_LENGTH = 120


class PurchaseStage(str, Enum):
    RESOLVED = "RESOLVED"
    CHECK_ACTIVE_GRANT = "CHECK_ACTIVE_GRANT"
    CHECK_IDEMPOTENT_DUPLICATE = "CHECK_IDEMPOTENT_DUPLICATE"
    CHECK_BALANCE = "CHECK_BALANCE"
    COMMIT = "COMMIT"
    SIDE_EFFECTS = "SIDE_EFFECTS"
    RESPONSE = "RESPONSE"


class PurchaseOutcome(str, Enum):
    CREATED = "created"
    REUSED = "reused"
    ALREADY_HAS_ACCESS = "already_has_access"
    FREE_UNLOCK = "free_unlock"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class PurchaseRecord:
    id: str
    fan_id: str
    content_item_id: str | None
    kind: str
    amount: int
    amount_cents: int
    product_id: str | None
    product_type: str | None
    client_txn_id: str | None
    session_tag: str | None
    is_archived: bool
    created_at: datetime

    @classmethod
    def from_row(cls, row: Purchase) -> "PurchaseRecord":
        return cls(
            id=row.id,
            fan_id=row.fan_id,
            content_item_id=row.content_item_id,
            kind=row.kind,
            amount=row.amount,
            amount_cents=row.amount_cents,
            product_id=row.product_id,
            product_type=row.product_type,
            client_txn_id=row.client_txn_id,
            session_tag=row.session_tag,
            is_archived=bool(row.is_archived),
            created_at=ensure_utc(row.created_at),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "fanId": self.fan_id,
            "contentItemId": self.content_item_id,
            "kind": self.kind,
            "amount": self.amount,
            "amountCents": self.amount_cents,
            "productId": self.product_id,
            "productType": self.product_type,
            "clientTxnId": self.client_txn_id,
            "sessionTag": self.session_tag,
            "isArchived": self.is_archived,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class PpvPurchaseRecord:
    id: str
    ppv_message_id: str
    fan_id: str
    creator_id: str
    amount_cents: int
    currency: str
    status: str
    created_at: datetime

    @classmethod
    def from_row(cls, row: PpvPurchase) -> "PpvPurchaseRecord":
        return cls(
            id=row.id,
            ppv_message_id=row.ppv_message_id,
            fan_id=row.fan_id,
            creator_id=row.creator_id,
            amount_cents=row.amount_cents,
            currency=row.currency,
            status=row.status,
            created_at=ensure_utc(row.created_at),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ppvMessageId": self.ppv_message_id,
            "fanId": self.fan_id,
            "amountCents": self.amount_cents,
            "currency": self.currency,
            "status": self.status,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class PpvRef:
    id: str
    creator_id: str
    fan_id: str
    message_id: str | None
    title: str | None
    price_cents: int
    currency: str
    status: str


@dataclass
class PurchaseResult:
    outcome: PurchaseOutcome
    purchase: PurchaseRecord | None = None
    wallet: WalletSnapshot | None = None
    grant: GrantRecord | None = None
    resolved: ResolvedPurchase | None = None

    @property
    def reused(self) -> bool:
        return self.outcome in (PurchaseOutcome.REUSED, PurchaseOutcome.ALREADY_HAS_ACCESS)

    @property
    def access_granted(self) -> bool:
        return self.grant is not None

    def to_response(self) -> dict:
        return {
            "ok": True,
            "outcome": self.outcome.value,
            "purchase": self.purchase.to_dict() if self.purchase else None,
            "grant": self.grant.to_dict() if self.grant else None,
            "wallet": ledger.wallet_payload(self.wallet),
            "accessGranted": self.access_granted,
            "reused": self.reused,
        }


@dataclass
class PpvResult:
    outcome: PurchaseOutcome
    purchase: PpvPurchaseRecord
    wallet: WalletSnapshot | None = None

    @property
    def reused(self) -> bool:
        return self.outcome == PurchaseOutcome.REUSED

    def to_response(self) -> dict:
        return {
            "ok": True,
            "outcome": self.outcome.value,
            "purchase": self.purchase.to_dict(),
            "wallet": ledger.wallet_payload(self.wallet),
            "reused": self.reused,
        }


@dataclass
class TopUpResult:
    wallet: WalletSnapshot
    transaction: ledger.TransactionRecord
    reused: bool = False

    def to_response(self) -> dict:
        return {
            "ok": True,
            "wallet": ledger.wallet_payload(self.wallet),
            "transaction": self.transaction.to_dict(),
            "reused": self.reused,
        }


class _GrantHeld(Exception):
    def __init__(self, grant: GrantRecord):
        super().__init__(grant.type)
        self.grant = grant


@dataclass(frozen=True)
class _Committed:
    purchase: PurchaseRecord
    wallet: WalletSnapshot | None
    grant: GrantRecord | None


def normalize_client_txn_id(value: str | None) -> str | None:
    if not isinstance(value, str):
        return None
    return value.strip()[:MAX_CLIENT_TXN_ID_LENGTH] or None


def purchase_idempotency_key(fan_id: str, kind: str, client_txn_id: str) -> str:
    return f"purchase:{fan_id}:{kind}:{client_txn_id}"


def ppv_idempotency_key(ppv_id: str, fan_id: str) -> str:
    return f"ppv:{ppv_id}:{fan_id}"


def topup_idempotency_key(fan_id: str, key: str) -> str:
    return f"topup:{fan_id}:{key}"


def amount_to_cents(amount: Decimal | float | int | str | None) -> int:
    """Major-unit support amount -> cents, within (0, MAX_PURCHASE_AMOUNT]."""
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, TypeError):
        raise ValidationError("Amount must be a number", field="amount")
    if not value.is_finite() or value <= 0 or value > settings.MAX_PURCHASE_AMOUNT:
        raise ValidationError(
            f"Amount must be greater than 0 and at most {settings.MAX_PURCHASE_AMOUNT}",
            field="amount",
        )
    return int((value * 100).to_integral_value())


class PurchaseOrchestrator:
    def __init__(self, db: AsyncSession, hub: EventHub, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.hub = hub
        self.clock = clock

    # -------- entry points --------

    async def purchase_offer(self, fan: FanRef, offer_id: str, client_txn_id: str | None,
                             *, charge_wallet: bool = True) -> PurchaseResult:
        resolved = resolve(offer_id, await self._creator_offers(fan.creator_id))
        if resolved is None:
            log.info("purchase.%s fan=%s offer=%s", PurchaseOutcome.NOT_FOUND.value, fan.id, offer_id)
            raise NotFoundError("Offer not found", resource="offer")
        return await self._purchase(fan, resolved, kind=KIND_EXTRA, client_txn_id=client_txn_id,
                                    charge_wallet=charge_wallet)

    async def record_unlock(self, fan: FanRef, offer_id: str, *, title: str | None = None,
                            price: float | int | None = None, client_txn_id: str | None = None) -> PurchaseResult:
        """A sale the creator took outside the wallet. Records it and grants access; no debit."""
        if not offer_id or not offer_id.strip():
            raise ValidationError("Missing offerId", field="offerId")
        resolved = resolve(offer_id, await self._creator_offers(fan.creator_id))
        if resolved is None:
            resolved = resolve_manual(offer_id, title, price)
        return await self._purchase(
            fan, resolved,
            kind=KIND_EXTRA,
            client_txn_id=client_txn_id or f"unlock:{offer_id}",
            charge_wallet=False,
        )

    async def support(self, fan: FanRef, kind: str, amount, client_txn_id: str | None, *,
                      pack_id: str | None = None, pack_name: str | None = None) -> PurchaseResult:
        """Tip or gift. A gift for a known pack stacks onto that pack's grant."""
        kind = (kind or "").upper()
        if kind not in SUPPORT_KINDS:
            raise ValidationError("kind must be TIP or GIFT", field="kind")
        amount_cents = amount_to_cents(amount)

        grant_type = None
        session_tag = None
        if kind == KIND_GIFT:
            grant_type = resolve_gift_pack(pack_id, pack_name, await self._creator_packs(fan.creator_id))
            tag_id = (pack_id or "").strip()
            tag_name = (pack_name or "").strip()
            if tag_id and tag_name:
                session_tag = f"{tag_id}:{tag_name}"[:MAX_SESSION_TAG_LENGTH]
            elif tag_id or tag_name:
                session_tag = (tag_id or tag_name)[:MAX_SESSION_TAG_LENGTH]

        return await self._purchase(
            fan, resolve_support(kind, amount_cents, grant_type),
            kind=kind,
            client_txn_id=client_txn_id,
            extend_if_active=grant_type is not None,
            session_tag=session_tag,
        )

    async def grant_access(self, fan: FanRef, grant_type: str, *, extend_if_active: bool = False) -> GrantRecord:
        """Creator-issued grant outside any purchase."""
        grant = await upsert_grant(self.db, fan.id, grant_type, extend_if_active=extend_if_active, now=self.clock())
        await self.db.commit()
        log.info("grant.manual fan=%s type=%s extend=%s", fan.id, grant_type, extend_if_active)
        self._publish(access_updated(fan.creator_id, fan.id, grant.type, grant.expires_at.isoformat()))
        return grant

    async def top_up(self, fan: FanRef, amount_cents: int, idempotency_key: str | None) -> TopUpResult:
        if not settings.WALLET_ENABLED:
            raise ValidationError("Wallet is disabled", reason="WALLET_DISABLED")
        if not settings.ALLOW_FAKE_PAYMENTS:
            raise ForbiddenError("Simulated top-ups are disabled", reason="FAKE_TOPUP_DISABLED")
        if not fan.adult_confirmed:
            raise ForbiddenError("Adult confirmation required", reason="ADULT_NOT_CONFIRMED")
        key = ledger.normalize_idempotency_key(idempotency_key)
        if not key:
            raise ValidationError("Missing idempotencyKey", field="idempotencyKey")
        key = topup_idempotency_key(fan.id, key)

        wallet = await ledger.get_or_create_wallet(self.db, fan.id)
        result = await commit_once(
            self.db,
            find_existing=lambda: ledger.find_transaction(self.db, key),
            write=lambda: ledger.credit(self.db, wallet, amount_cents, key, meta={"source": "simulated"}),
        )

        if isinstance(result, Created):
            log.info("wallet.topup fan=%s amount_cents=%d", fan.id, amount_cents)
            return TopUpResult(result.value.wallet, result.value.transaction)

        existing = result.value if isinstance(result, Reused) else await ledger.find_transaction(self.db, key)
        if existing is None:
            raise ConflictError("Top-up could not be recorded", constraint=result.constraint)
        log.info("wallet.topup.reused fan=%s key=%s", fan.id, key)
        return TopUpResult(await ledger.find_wallet(self.db, fan.id), existing, reused=True)

    # -------- PPV --------

    async def load_ppv(self, ppv_id: str) -> PpvRef:
        row = await self.db.scalar(
            select(PpvMessage).where(PpvMessage.id == ppv_id).execution_options(populate_existing=True)
        )
        if row is None:
            raise NotFoundError("PPV message not found", resource="ppv")
        return PpvRef(
            id=row.id,
            creator_id=row.creator_id,
            fan_id=row.fan_id,
            message_id=row.message_id,
            title=row.title,
            price_cents=row.price_cents,
            currency=row.currency,
            status=row.status,
        )

    async def purchase_ppv(self, fan: FanRef, ppv: PpvRef) -> PpvResult:
        if ppv.fan_id != fan.id or ppv.creator_id != fan.creator_id:
            raise ForbiddenError("PPV message belongs to another fan", reason="OWNERSHIP_MISMATCH")
        if not fan.adult_confirmed:
            raise ForbiddenError("Adult confirmation required", reason="ADULT_NOT_CONFIRMED")
        if ppv.price_cents <= 0:
            raise ValidationError("PPV message has no price", field="priceCents")

        now = self.clock()
        existing = await self._find_ppv_purchase(ppv.id, fan.id)
        if existing is not None:
            await self._mark_ppv_sold(ppv.id, existing.id, existing.created_at, commit=True)
            log.info("ppv.purchase.reused fan=%s ppv=%s", fan.id, ppv.id)
            return PpvResult(PurchaseOutcome.REUSED, existing, await self._wallet(fan.id))

        wallet = await self._check_balance(fan, ppv.price_cents)

        async def write() -> tuple[PpvPurchaseRecord, WalletSnapshot | None]:
            wallet_after = wallet
            if wallet is not None:
                entry = await ledger.debit(
                    self.db, wallet, ppv.price_cents,
                    kind=ledger.KIND_PPV_PURCHASE,
                    idempotency_key=ppv_idempotency_key(ppv.id, fan.id),
                    meta={"ppvMessageId": ppv.id, "creatorId": ppv.creator_id},
                )
                wallet_after = entry.wallet
            row = PpvPurchase(
                ppv_message_id=ppv.id,
                fan_id=fan.id,
                creator_id=ppv.creator_id,
                amount_cents=ppv.price_cents,
                currency=ppv.currency,
                status="PAID",
                created_at=now,
            )
            self.db.add(row)
            await self.db.flush()
            await self._mark_ppv_sold(ppv.id, row.id, now)
            return PpvPurchaseRecord.from_row(row), wallet_after

        result = await commit_once(
            self.db,
            find_existing=lambda: self._find_ppv_purchase(ppv.id, fan.id),
            write=write,
        )
        if not isinstance(result, Created):
            winner = result.value if isinstance(result, Reused) else await self._find_ppv_purchase(ppv.id, fan.id)
            if winner is None:
                raise ConflictError("PPV purchase could not be recorded", constraint=result.constraint)
            log.info("ppv.purchase.race_reused fan=%s ppv=%s", fan.id, ppv.id)
            return PpvResult(PurchaseOutcome.REUSED, winner, await self._wallet(fan.id))

        record, wallet_after = result.value
        log.info("ppv.purchase.created fan=%s ppv=%s amount_cents=%d", fan.id, ppv.id, record.amount_cents)

        title = ppv.title or "PPV"
        await self._update_signals(fan, ppv_preview(title, ppv.price_cents), now, boost=False)
        self._publish(RealtimeEvent(
            type=PURCHASE_CREATED,
            creator_id=fan.creator_id,
            fan_id=fan.id,
            event_id=record.id,
            payload={
                "purchaseId": record.id,
                "kind": "PPV",
                "amountCents": record.amount_cents,
                "title": title,
                "createdAt": record.created_at.isoformat(),
                "fanName": fan.label,
                "clientTxnId": f"ppv:{ppv.id}",
            },
        ))
        self._publish(RealtimeEvent(
            type=PPV_UNLOCKED,
            creator_id=fan.creator_id,
            fan_id=fan.id,
            payload={
                "ppvMessageId": ppv.id,
                "messageId": ppv.message_id,
                "purchaseId": record.id,
                "amountCents": record.amount_cents,
            },
        ))
        return PpvResult(PurchaseOutcome.CREATED, record, wallet_after)

    # -------- the state machine --------

    async def _purchase(
        self,
        fan: FanRef,
        resolved: ResolvedPurchase,
        *,
        kind: str,
        client_txn_id: str | None,
        charge_wallet: bool = True,
        extend_if_active: bool = False,
        session_tag: str | None = None,
    ) -> PurchaseResult:
        txn_id = normalize_client_txn_id(client_txn_id)
        if not txn_id:
            raise ValidationError("Missing clientTxnId", field="clientTxnId")
        if resolved.amount_cents > settings.MAX_PURCHASE_AMOUNT * 100:
            raise ValidationError("Amount exceeds the per-purchase maximum", field="amount")
        now = self.clock()
        log.debug("purchase.%s fan=%s product=%s rule=%s", PurchaseStage.RESOLVED.value, fan.id, resolved.product_id, resolved.rule)

        # CHECK_ACTIVE_GRANT
        if resolved.grant_type and not extend_if_active:
            active = await find_active_grant(self.db, fan.id, resolved.grant_type, now)
            if active is not None:
                # A retry of the purchase that created this grant is still a replay.
                own = await self._find_purchase(fan.id, kind, txn_id)
                outcome = PurchaseOutcome.REUSED if own else PurchaseOutcome.ALREADY_HAS_ACCESS
                log.info("purchase.%s fan=%s grant=%s stage=%s", outcome.value, fan.id, active.type, PurchaseStage.CHECK_ACTIVE_GRANT.value)
                return PurchaseResult(outcome, own, await self._wallet(fan.id), active, resolved)

        # CHECK_IDEMPOTENT_DUPLICATE
        existing = await self._find_purchase(fan.id, kind, txn_id)
        if existing is not None:
            log.info("purchase.reused fan=%s kind=%s client_txn=%s", fan.id, kind, txn_id)
            return PurchaseResult(PurchaseOutcome.REUSED, existing, await self._wallet(fan.id), None, resolved)

        if resolved.is_free_unlock and not settings.ALLOW_FREE_UNLOCKS:
            raise ValidationError("Free unlocks are disabled", reason="FREE_UNLOCK_DISABLED")

        # CHECK_BALANCE
        wallet = await self._check_balance(fan, resolved.amount_cents) if charge_wallet else None
        content_item_id = await self._ensure_content_item(fan.creator_id, resolved)

        # COMMIT
        async def write() -> _Committed:
            if resolved.grant_type and not extend_if_active:
                if wallet is not None:
                    await ledger.lock_wallet(self.db, wallet.id)
                held = await find_active_grant(self.db, fan.id, resolved.grant_type, now)
                if held is not None:
                    raise _GrantHeld(held)
            wallet_after = wallet
            if wallet is not None and resolved.amount_cents > 0:
                entry = await ledger.debit(
                    self.db, wallet, resolved.amount_cents,
                    kind=ledger.KIND_PURCHASE,
                    idempotency_key=purchase_idempotency_key(fan.id, kind, txn_id),
                    meta={"kind": kind, "productId": resolved.product_id, "title": resolved.title},
                )
                wallet_after = entry.wallet
            row = Purchase(
                fan_id=fan.id,
                content_item_id=content_item_id,
                kind=kind,
                tier="T0",
                amount=resolved.amount,
                amount_cents=resolved.amount_cents,
                product_id=resolved.product_id,
                product_type=resolved.product_type,
                client_txn_id=txn_id,
                session_tag=session_tag,
                is_archived=False,
                created_at=now,
            )
            self.db.add(row)
            await self.db.flush()
            grant = None
            if resolved.grant_type:
                grant = await upsert_grant(
                    self.db, fan.id, resolved.grant_type, extend_if_active=extend_if_active, now=now
                )
            return _Committed(PurchaseRecord.from_row(row), wallet_after, grant)

        try:
            result = await commit_once(
                self.db,
                find_existing=lambda: self._find_purchase(fan.id, kind, txn_id),
                write=write,
            )
        except _GrantHeld as held:
            log.info("purchase.%s fan=%s grant=%s stage=%s", PurchaseOutcome.ALREADY_HAS_ACCESS.value, fan.id, held.grant.type, PurchaseStage.COMMIT.value)
            return PurchaseResult(PurchaseOutcome.ALREADY_HAS_ACCESS, None, await self._wallet(fan.id), held.grant, resolved)

        if isinstance(result, Reused):
            log.info("purchase.reused fan=%s kind=%s client_txn=%s stage=%s", fan.id, kind, txn_id, PurchaseStage.COMMIT.value)
            return PurchaseResult(PurchaseOutcome.REUSED, result.value, await self._wallet(fan.id), None, resolved)

        if isinstance(result, Conflict):
            winner = await self._find_purchase(fan.id, kind, txn_id)
            if winner is None:
                log.warning("purchase.conflict fan=%s kind=%s constraint=%s", fan.id, kind, result.constraint)
                raise ConflictError("Purchase conflicts with an existing record", constraint=result.constraint)
            log.info("purchase.race_reused fan=%s kind=%s client_txn=%s", fan.id, kind, txn_id)
            return PurchaseResult(PurchaseOutcome.REUSED, winner, await self._wallet(fan.id), None, resolved)

        committed = result.value
        outcome = PurchaseOutcome.FREE_UNLOCK if resolved.is_free_unlock else PurchaseOutcome.CREATED
        log.info(
            "purchase.%s fan=%s kind=%s amount_cents=%d grant=%s",
            outcome.value, fan.id, kind, resolved.amount_cents, resolved.grant_type or "-",
        )

        # SIDE_EFFECTS
        await self._update_signals(fan, purchase_preview(resolved.title, resolved.amount_cents), now)
        self._publish(RealtimeEvent(
            type=PURCHASE_CREATED,
            creator_id=fan.creator_id,
            fan_id=fan.id,
            event_id=committed.purchase.id,
            payload={
                "purchaseId": committed.purchase.id,
                "kind": kind,
                "amountCents": resolved.amount_cents,
                "title": resolved.title,
                "createdAt": committed.purchase.created_at.isoformat(),
                "fanName": fan.label,
                "clientTxnId": txn_id,
            },
        ))
        if committed.grant is not None:
            self._publish(access_updated(
                fan.creator_id, fan.id, committed.grant.type, committed.grant.expires_at.isoformat()
            ))

        wallet_after = committed.wallet if committed.wallet is not None else await self._wallet(fan.id)
        return PurchaseResult(outcome, committed.purchase, wallet_after, committed.grant, resolved)

    # -------- helpers --------

    async def _check_balance(self, fan: FanRef, amount_cents: int) -> WalletSnapshot | None:
        """Wallet to debit, or None when purchases are not wallet-gated."""
        if not settings.WALLET_ENABLED:
            return None
        wallet = await ledger.get_or_create_wallet(self.db, fan.id)
        if amount_cents > 0 and wallet.balance_cents < amount_cents:
            log.info(
                "purchase.%s fan=%s required=%d balance=%d",
                PurchaseOutcome.INSUFFICIENT_BALANCE.value, fan.id, amount_cents, wallet.balance_cents,
            )
            raise InsufficientBalanceError(amount_cents, wallet.balance_cents, ledger.wallet_payload(wallet))
        return wallet

    async def _wallet(self, fan_id: str) -> WalletSnapshot | None:
        if not settings.WALLET_ENABLED:
            return None
        return await ledger.find_wallet(self.db, fan_id)

    async def _creator_offers(self, creator_id: str) -> list[Offer]:
        rows = await self.db.scalars(
            select(Offer).where(Offer.creator_id == creator_id, Offer.active.is_(True))
        )
        return list(rows)

    async def _creator_packs(self, creator_id: str) -> list[Pack]:
        rows = await self.db.scalars(select(Pack).where(Pack.creator_id == creator_id))
        return list(rows)

    async def _find_purchase(self, fan_id: str, kind: str, client_txn_id: str) -> PurchaseRecord | None:
        row = await self.db.scalar(
            select(Purchase)
            .where(
                Purchase.fan_id == fan_id,
                Purchase.kind == kind,
                Purchase.client_txn_id == client_txn_id,
            )
            .execution_options(populate_existing=True)
        )
        return PurchaseRecord.from_row(row) if row else None

    async def _find_ppv_purchase(self, ppv_id: str, fan_id: str) -> PpvPurchaseRecord | None:
        row = await self.db.scalar(
            select(PpvPurchase)
            .where(PpvPurchase.ppv_message_id == ppv_id, PpvPurchase.fan_id == fan_id)
            .execution_options(populate_existing=True)
        )
        return PpvPurchaseRecord.from_row(row) if row else None

    async def _mark_ppv_sold(self, ppv_id: str, purchase_id: str, now: datetime, *, commit: bool = False) -> None:
        result = await self.db.execute(
            update(PpvMessage)
            .where(PpvMessage.id == ppv_id, PpvMessage.status != "SOLD")
            .values(status="SOLD", sold_at=now, purchase_id=purchase_id)
            .execution_options(synchronize_session=False)
        )
        if commit and result.rowcount:
            await self.db.commit()

    async def _ensure_content_item(self, creator_id: str, resolved: ResolvedPurchase) -> str:
        """Content item the purchase attaches to; created once per creator and product."""
        if resolved.product_type in (PRODUCT_TIP, PRODUCT_GIFT):
            slug = resolved.product_id
        else:
            slug = f"unlock-{slugify(resolved.product_id)}"

        async def lookup() -> str | None:
            return await self.db.scalar(
                select(ContentItem.id).where(ContentItem.creator_id == creator_id, ContentItem.slug == slug)
            )

        found = await lookup()
        if found:
            return found

        item = ContentItem(
            creator_id=creator_id,
            slug=slug,
            pack=resolved.content_pack,
            type="TEXT",
            title=resolved.title,
            visibility="EXTRA",
            is_preview=False,
            is_extra=resolved.grant_type is None,
        )
        self.db.add(item)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            found = await lookup()
            if found is None:
                raise
            return found
        return item.id

    async def _update_signals(self, fan: FanRef, preview: str, now: datetime, *, boost: bool = True) -> None:
        try:
            await record_purchase_signals(
                self.db, fan.id,
                preview=preview,
                now=now,
                previous_bucket=fan.temperature_bucket,
                intent_key=fan.last_intent_key,
                boost=boost,
            )
        except Exception:
            await self.db.rollback()
            log.warning("purchase.signals_failed fan=%s", fan.id, exc_info=True)

    def _publish(self, event: RealtimeEvent) -> None:
        delivered = self.hub.emit(event)
        log.debug("event.emitted type=%s fan=%s listeners=%d", event.type, event.fan_id, delivered)


# -------- purchase history --------

async def list_purchases(db: AsyncSession, fan_id: str, *, include_archived: bool = True) -> list[PurchaseRecord]:
    """Paid purchases for a fan, newest first."""
    stmt = (
        select(Purchase)
        .where(Purchase.fan_id == fan_id, Purchase.amount_cents > 0)
        .order_by(Purchase.created_at.desc())
    )
    if not include_archived:
        stmt = stmt.where(Purchase.is_archived.is_(False))
    rows = await db.scalars(stmt)
    return [PurchaseRecord.from_row(p) for p in rows]


async def get_purchase(db: AsyncSession, purchase_id: str) -> PurchaseRecord:
    row = await db.scalar(
        select(Purchase).where(Purchase.id == purchase_id).execution_options(populate_existing=True)
    )
    if row is None:
        raise NotFoundError("Purchase not found", resource="purchase")
    return PurchaseRecord.from_row(row)


async def set_archived(db: AsyncSession, purchase_id: str, archived: bool | None = None) -> PurchaseRecord:
    """Archive flag is the only mutable purchase field. ``None`` toggles it."""
    current = await get_purchase(db, purchase_id)
    target = (not current.is_archived) if archived is None else archived
    await db.execute(
        update(Purchase)
        .where(Purchase.id == purchase_id)
        .values(is_archived=target)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    log.info("purchase.archived purchase=%s archived=%s", purchase_id, target)
    return await get_purchase(db, purchase_id)
