from datetime import datetime, timezone

import pytest

from fanledger.db.models import Fan
from fanledger.services.engagement import (
    boosted_temperature,
    bucket_for,
    format_euros,
    ppv_preview,
    purchase_preview,
    record_purchase_signals,
    resolve_next_action,
)

from factories import make_fan


class TestTemperature:

    def test_buckets(self):
        assert bucket_for(0) == "COLD"
        assert bucket_for(35) == "WARM"
        assert bucket_for(70) == "HOT"

    def test_purchase_boost_from_cold(self):
        temperature = boosted_temperature("COLD", boost=50)
        assert temperature.score == 60
        assert temperature.bucket == "WARM"

    def test_boost_is_capped(self):
        assert boosted_temperature("HOT", boost=50).score == 100

    def test_unknown_bucket_uses_cold_baseline(self):
        assert boosted_temperature(None, boost=0).score == 10

    def test_next_action(self):
        assert resolve_next_action("buy_now", "COLD") == "SEND_PAYMENT_LINK"
        assert resolve_next_action(None, "HOT") == "PUSH_MONTHLY"
        assert resolve_next_action("SMALL_TALK", "WARM") == "BUILD_RAPPORT"


class TestPreviews:

    def test_whole_euros(self):
        assert format_euros(2500) == "25 EUR"
        assert purchase_preview("Pack mensual", 2500) == "Desbloqueado: Pack mensual - 25 EUR"

    def test_cents(self):
        assert format_euros(999) == "9.99 EUR"
        assert ppv_preview("Foto", 1550) == "🔓 Foto · 15.50 EUR"


@pytest.mark.asyncio
async def test_record_purchase_signals_updates_fan(db, creator):
    fan = await make_fan(db, creator, bucket="COLD", intent="PRICE_ASK")
    now = datetime(2026, 3, 1, 21, 5, tzinfo=timezone.utc)

    temperature = await record_purchase_signals(
        db, fan.id, preview="Desbloqueado: Foto - 7 EUR", now=now,
        previous_bucket="COLD", intent_key="PRICE_ASK", boost=True,
    )

    assert temperature.bucket == "WARM"
    row = await db.get(Fan, fan.id, populate_existing=True)
    assert row.preview == "Desbloqueado: Foto - 7 EUR"
    assert row.preview_time == "21:05"
    assert row.temperature_bucket == "WARM"
    assert row.next_action == "OFFER_EXTRA"


@pytest.mark.asyncio
async def test_ppv_signals_do_not_boost(db, creator):
    fan = await make_fan(db, creator, bucket="COLD")
    now = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

    assert await record_purchase_signals(db, fan.id, preview="🔓 Foto · 15 EUR", now=now, boost=False) is None

    row = await db.get(Fan, fan.id, populate_existing=True)
    assert row.temperature_bucket == "COLD"
    assert row.preview == "🔓 Foto · 15 EUR"
