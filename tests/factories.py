"""Seed helpers shared by the test modules."""

from datetime import timedelta

from fanledger.db.models import Creator, Fan, Offer, Pack, PpvMessage
from fanledger.services import wallet as ledger
from fanledger.utils.auth import create_access_token
from fanledger.utils.dates import utcnow


async def make_creator(db, handle="luna"):
    creator = Creator(handle=handle, display_name=handle.title())
    db.add(creator)
    await db.commit()
    return creator


async def make_fan(db, creator, *, adult=True, name="Alex", bucket="COLD", intent=None):
    fan = Fan(
        creator_id=creator.id,
        display_name=name,
        is_new=True,
        adult_confirmed_at=utcnow() if adult else None,
        temperature_bucket=bucket,
        last_intent_key=intent,
    )
    db.add(fan)
    await db.commit()
    return fan


async def make_offer(db, creator, code, title, price_cents, tier=None):
    offer = Offer(creator_id=creator.id, code=code, title=title, tier=tier, price_cents=price_cents)
    db.add(offer)
    await db.commit()
    return offer


async def make_pack(db, creator, name, price):
    pack = Pack(creator_id=creator.id, name=name, price=price)
    db.add(pack)
    await db.commit()
    return pack


async def make_ppv(db, creator, fan, price_cents=1500, title="Fotos de hoy"):
    ppv = PpvMessage(
        creator_id=creator.id,
        fan_id=fan.id,
        message_id="msg-1",
        title=title,
        price_cents=price_cents,
    )
    db.add(ppv)
    await db.commit()
    return ppv


async def fund(db, fan_id, amount_cents, key="seed"):
    wallet = await ledger.get_or_create_wallet(db, fan_id)
    entry = await ledger.credit(db, wallet, amount_cents, f"fund:{fan_id}:{key}")
    await db.commit()
    return entry.wallet


def auth_headers(subject, role):
    token = create_access_token(subject, role, expires_delta=timedelta(minutes=5))
    return {"Authorization": f"Bearer {token}"}
