"""
Requests racing on separate sessions against one wallet.

SQLite cannot lock rows, so the engine here takes the write lock at BEGIN;
the second request waits for the first to commit and then sees its writes.
"""

import asyncio

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

from fanledger.core.errors import InsufficientBalanceError
from fanledger.db.models import PpvPurchase, Purchase, WalletTransaction
from fanledger.realtime.hub import EventHub
from fanledger.services import wallet as ledger
from fanledger.services.fans import get_fan
from fanledger.services.purchases import PurchaseOrchestrator, PurchaseOutcome

from factories import fund, make_creator, make_fan, make_offer, make_ppv


async def _buy(factory, hub, ref, offer_code, txn_id):
    async with factory() as session:
        return await PurchaseOrchestrator(session, hub).purchase_offer(ref, offer_code, txn_id)


@pytest.mark.asyncio
@pytest.mark.parametrize("code,title,price", [
    ("video-ducha", "Video en la ducha", 700),
    ("mensual", "Pack mensual", 2500),
])
async def test_same_client_txn_charged_once(serialized_engine, code, title, price):
    factory = sessionmaker(bind=serialized_engine, class_=AsyncSession, expire_on_commit=False)
    hub = EventHub()
    received = []
    hub.subscribe(received.append)

    async with factory() as seed:
        creator = await make_creator(seed)
        fan = await make_fan(seed, creator)
        await make_offer(seed, creator, code, title, price)
        await fund(seed, fan.id, 5000)
        ref = await get_fan(seed, fan.id)

    results = await asyncio.gather(
        _buy(factory, hub, ref, code, "txn-dup"),
        _buy(factory, hub, ref, code, "txn-dup"),
    )

    assert sorted(r.outcome for r in results) == [PurchaseOutcome.CREATED, PurchaseOutcome.REUSED]
    assert results[0].purchase.id == results[1].purchase.id

    async with factory() as check:
        assert await check.scalar(select(func.count()).select_from(Purchase)) == 1
        debits = await check.scalar(
            select(func.count()).select_from(WalletTransaction).where(WalletTransaction.amount_cents < 0)
        )
        assert debits == 1
        wallet = await ledger.find_wallet(check, fan.id)
        assert wallet.balance_cents == 5000 - price

    assert sum(1 for e in received if e.type == "PURCHASE_CREATED") == 1


async def _debit(factory, wallet, amount_cents, key):
    async with factory() as session:
        entry = await ledger.debit(session, wallet, amount_cents, idempotency_key=key)
        await session.commit()
        return entry


@pytest.mark.asyncio
async def test_debits_from_a_stale_snapshot_never_overdraw(serialized_engine):
    factory = sessionmaker(bind=serialized_engine, class_=AsyncSession, expire_on_commit=False)

    async with factory() as seed:
        creator = await make_creator(seed)
        fan = await make_fan(seed, creator)
        stale = await fund(seed, fan.id, 1000)

    results = await asyncio.gather(
        _debit(factory, stale, 700, "debit-a"),
        _debit(factory, stale, 700, "debit-b"),
        return_exceptions=True,
    )

    failures = [r for r in results if isinstance(r, Exception)]
    assert len(failures) == 1
    assert isinstance(failures[0], InsufficientBalanceError)
    assert failures[0].extra["requiredCents"] == 700

    async with factory() as check:
        wallet = await ledger.find_wallet(check, fan.id)
        assert wallet.balance_cents == 300
        debits = await check.scalar(
            select(func.count()).select_from(WalletTransaction).where(WalletTransaction.amount_cents < 0)
        )
        assert debits == 1


async def _buy_ppv(factory, hub, ref, ppv_ref):
    async with factory() as session:
        return await PurchaseOrchestrator(session, hub).purchase_ppv(ref, ppv_ref)


@pytest.mark.asyncio
async def test_same_ppv_bought_once(serialized_engine):
    factory = sessionmaker(bind=serialized_engine, class_=AsyncSession, expire_on_commit=False)
    hub = EventHub()

    async with factory() as seed:
        creator = await make_creator(seed)
        fan = await make_fan(seed, creator)
        ppv = await make_ppv(seed, creator, fan, price_cents=1500)
        await fund(seed, fan.id, 2000)
        ref = await get_fan(seed, fan.id)
        ppv_ref = await PurchaseOrchestrator(seed, hub).load_ppv(ppv.id)

    results = await asyncio.gather(
        _buy_ppv(factory, hub, ref, ppv_ref),
        _buy_ppv(factory, hub, ref, ppv_ref),
    )

    assert sorted(r.outcome for r in results) == [PurchaseOutcome.CREATED, PurchaseOutcome.REUSED]
    assert results[0].purchase.id == results[1].purchase.id

    async with factory() as check:
        assert await check.scalar(select(func.count()).select_from(PpvPurchase)) == 1
        debits = await check.scalar(
            select(func.count()).select_from(WalletTransaction).where(WalletTransaction.amount_cents < 0)
        )
        assert debits == 1
        wallet = await ledger.find_wallet(check, fan.id)
        assert wallet.balance_cents == 500
