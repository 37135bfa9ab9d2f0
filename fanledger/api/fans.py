from fastapi import APIRouter, Depends, Path, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fanledger.core.config import settings
from fanledger.db.models import Pack
from fanledger.db.session import get_db
from fanledger.schemas.access import GrantRequest
from fanledger.schemas.purchase import OfferPurchaseRequest, SupportPurchaseRequest, UnlockRequest
from fanledger.schemas.wallet import TopUpRequest
from fanledger.services import wallet as ledger
from fanledger.services.access_grants import classify_pack_status, list_grants
from fanledger.services.access_state import access_summary, project, unlocked_packs_for
from fanledger.services.fans import FanRef, confirm_adult, get_fan
from fanledger.services.purchases import PurchaseOrchestrator, list_purchases
from fanledger.utils.dates import utcnow
from fanledger.utils.deps import Principal, ensure_fan_access, get_current_principal, get_orchestrator
from fanledger.utils.rate_limiter import purchase_rate_limit

router = APIRouter(prefix="/fans", tags=["fans"])


async def _authorized_fan(db: AsyncSession, fan_id: str, principal: Principal, *,
                          creator_only: bool = False) -> FanRef:
    fan = await get_fan(db, fan_id)
    ensure_fan_access(principal, fan, creator_only=creator_only)
    return fan


# -------- wallet --------

@router.get("/{fan_id}/wallet")
async def get_wallet(
    fan_id: str = Path(...),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    fan = await _authorized_fan(db, fan_id, principal)
    if not settings.WALLET_ENABLED:
        return {"ok": True, **ledger.wallet_payload(None), "lastTransactions": []}

    wallet = await ledger.get_or_create_wallet(db, fan.id)
    transactions = await ledger.list_transactions(db, wallet.id)
    return {
        "ok": True,
        **ledger.wallet_payload(wallet),
        "lastTransactions": [tx.to_dict() for tx in transactions],
    }


@router.post("/{fan_id}/wallet/topup")
async def top_up_wallet(
    request: Request,
    payload: TopUpRequest,
    fan_id: str = Path(...),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    orchestrator: PurchaseOrchestrator = Depends(get_orchestrator),
):
    fan = await _authorized_fan(db, fan_id, principal)
    result = await orchestrator.top_up(fan, payload.amount_cents, payload.idempotency_key)
    return result.to_response()


@router.post("/{fan_id}/confirm-adult")
async def confirm_adult_status(
    fan_id: str = Path(...),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    fan = await _authorized_fan(db, fan_id, principal)
    confirmed_at = await confirm_adult(db, fan.id)
    return {"ok": True, "adultConfirmedAt": confirmed_at.isoformat()}


# -------- purchases --------

@router.post("/{fan_id}/purchase")
@purchase_rate_limit("purchase")
async def purchase_offer(
    request: Request,
    payload: OfferPurchaseRequest,
    fan_id: str = Path(...),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    orchestrator: PurchaseOrchestrator = Depends(get_orchestrator),
):
    fan = await _authorized_fan(db, fan_id, principal)
    result = await orchestrator.purchase_offer(fan, payload.offer_id, payload.client_txn_id)
    return result.to_response()


@router.post("/{fan_id}/support")
@purchase_rate_limit("support")
async def support_creator(
    request: Request,
    payload: SupportPurchaseRequest,
    fan_id: str = Path(...),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    orchestrator: PurchaseOrchestrator = Depends(get_orchestrator),
):
    fan = await _authorized_fan(db, fan_id, principal)
    result = await orchestrator.support(
        fan,
        payload.kind,
        payload.amount,
        payload.client_txn_id,
        pack_id=payload.pack_id,
        pack_name=payload.pack_name,
    )
    return result.to_response()


@router.post("/{fan_id}/unlock")
async def record_unlock(
    payload: UnlockRequest,
    fan_id: str = Path(...),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    orchestrator: PurchaseOrchestrator = Depends(get_orchestrator),
):
    fan = await _authorized_fan(db, fan_id, principal, creator_only=True)
    result = await orchestrator.record_unlock(
        fan,
        payload.offer_id,
        title=payload.title,
        price=payload.price,
        client_txn_id=payload.client_txn_id,
    )
    return result.to_response()


@router.get("/{fan_id}/purchases")
async def purchase_history(
    fan_id: str = Path(...),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    fan = await _authorized_fan(db, fan_id, principal)
    purchases = await list_purchases(db, fan.id)
    return {"ok": True, "purchases": [p.to_dict() for p in purchases]}


# -------- access --------

@router.get("/{fan_id}/grants")
async def get_grants(
    fan_id: str = Path(...),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    fan = await _authorized_fan(db, fan_id, principal)
    now = utcnow()
    grants = await list_grants(db, fan.id)
    return {
        "ok": True,
        "grants": [{**g.to_dict(), "active": g.is_active(now)} for g in grants],
    }


@router.post("/{fan_id}/grants")
async def create_grant(
    payload: GrantRequest,
    fan_id: str = Path(...),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    orchestrator: PurchaseOrchestrator = Depends(get_orchestrator),
):
    fan = await _authorized_fan(db, fan_id, principal, creator_only=True)
    grant = await orchestrator.grant_access(fan, payload.type, extend_if_active=payload.extend_if_active)
    return {"ok": True, "grant": grant.to_dict()}


@router.get("/{fan_id}/access")
async def get_access(
    fan_id: str = Path(...),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    fan = await _authorized_fan(db, fan_id, principal)
    now = utcnow()
    grants = await list_grants(db, fan.id)
    state = project(grants, is_new=fan.is_new, now=now)

    packs = list(await db.scalars(select(Pack).where(Pack.creator_id == fan.creator_id)))
    pack_status = classify_pack_status(packs, grants, now)

    return {
        "ok": True,
        "accessState": state.to_dict(),
        "accessSummary": access_summary(state).to_dict(),
        "unlockedPacks": unlocked_packs_for(state.active_grant_types),
        "packStatusById": pack_status.status_by_id,
        "unlockedPackIds": pack_status.unlocked_pack_ids,
    }
