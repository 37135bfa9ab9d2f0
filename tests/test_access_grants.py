from datetime import datetime, timedelta, timezone

import pytest

from fanledger.core.errors import ValidationError
from fanledger.services.access_grants import active_grants, find_active_grant, list_grants, upsert_grant

T0 = datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
class TestUpsertGrant:

    async def test_purchase_replaces_existing_grant(self, db, fan):
        await upsert_grant(db, fan.id, "trial", now=T0)
        later = T0 + timedelta(days=2)
        grant = await upsert_grant(db, fan.id, "trial", now=later)
        await db.commit()

        assert grant.expires_at == later + timedelta(days=7)
        grants = await list_grants(db, fan.id)
        assert len(grants) == 1

    async def test_gift_extends_active_grant(self, db, fan):
        first = await upsert_grant(db, fan.id, "monthly", now=T0)
        await upsert_grant(db, fan.id, "monthly", extend_if_active=True, now=T0 + timedelta(hours=1))
        extended = await upsert_grant(db, fan.id, "monthly", extend_if_active=True, now=T0 + timedelta(hours=2))
        await db.commit()

        assert extended.id == first.id
        assert extended.expires_at == first.expires_at + timedelta(days=60)

    async def test_gift_without_active_grant_creates_one(self, db, fan):
        await upsert_grant(db, fan.id, "special", now=T0 - timedelta(days=90))
        grant = await upsert_grant(db, fan.id, "special", extend_if_active=True, now=T0)
        await db.commit()

        assert grant.expires_at == T0 + timedelta(days=30)
        assert len(await list_grants(db, fan.id)) == 2

    async def test_one_active_grant_per_type(self, db, fan):
        await upsert_grant(db, fan.id, "trial", now=T0)
        await upsert_grant(db, fan.id, "monthly", now=T0)
        await upsert_grant(db, fan.id, "monthly", now=T0 + timedelta(days=1))
        await db.commit()

        active = await active_grants(db, fan.id, now=T0 + timedelta(days=1))
        assert sorted(g.type for g in active) == ["monthly", "trial"]

    async def test_unknown_type(self, db, fan):
        with pytest.raises(ValidationError):
            await upsert_grant(db, fan.id, "lifetime")


@pytest.mark.asyncio
async def test_find_active_grant_ignores_expired(db, fan):
    await upsert_grant(db, fan.id, "trial", now=T0)
    await db.commit()

    assert await find_active_grant(db, fan.id, "trial", now=T0 + timedelta(days=6)) is not None
    assert await find_active_grant(db, fan.id, "trial", now=T0 + timedelta(days=8)) is None
