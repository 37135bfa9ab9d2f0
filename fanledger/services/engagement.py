"""
Fan engagement signals touched by purchases.

The temperature score is a 0..100 heat estimate bucketed into COLD/WARM/HOT;
a purchase bumps it by ``ENGAGEMENT_PURCHASE_BOOST`` from the bucket's
baseline. ``next_action`` is the suggested follow-up for the creator.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from fanledger.core.config import settings
from fanledger.db.models import Fan

log = logging.getLogger(__name__)

BUCKET_BASELINE = {"HOT": 80, "WARM": 45, "COLD": 10}
HOT_THRESHOLD = 70
WARM_THRESHOLD = 35

INTENT_ACTIONS = {
    "UNSAFE_MINOR": "SAFETY",
    "SUPPORT": "SUPPORT",
    "BUY_NOW": "SEND_PAYMENT_LINK",
    "PRICE_ASK": "OFFER_EXTRA",
}
BUCKET_ACTIONS = {
    "HOT": "PUSH_MONTHLY",
    "WARM": "BUILD_RAPPORT",
    "COLD": "BREAK_ICE",
}


@dataclass(frozen=True)
class Temperature:
    score: int
    bucket: str


def bucket_for(score: int) -> str:
    if score >= HOT_THRESHOLD:
        return "HOT"
    if score >= WARM_THRESHOLD:
        return "WARM"
    return "COLD"


def boosted_temperature(bucket: str | None, boost: int | None = None) -> Temperature:
    boost = settings.ENGAGEMENT_PURCHASE_BOOST if boost is None else boost
    base = BUCKET_BASELINE.get((bucket or "").upper(), BUCKET_BASELINE["COLD"])
    score = max(0, min(100, base + boost))
    return Temperature(score, bucket_for(score))


def resolve_next_action(intent_key: str | None, bucket: str) -> str:
    intent = (intent_key or "").upper()
    if intent in INTENT_ACTIONS:
        return INTENT_ACTIONS[intent]
    return BUCKET_ACTIONS.get(bucket, "BREAK_ICE")


def format_euros(amount_cents: int) -> str:
    if amount_cents % 100 == 0:
        return f"{amount_cents // 100} EUR"
    return f"{amount_cents / 100:.2f} EUR"


def purchase_preview(title: str, amount_cents: int) -> str:
    return f"Desbloqueado: {title} - {format_euros(amount_cents)}"


def ppv_preview(title: str, amount_cents: int) -> str:
    return f"🔓 {title} · {format_euros(amount_cents)}"


async def record_purchase_signals(
    db: AsyncSession,
    fan_id: str,
    *,
    preview: str,
    now: datetime,
    previous_bucket: str | None = None,
    intent_key: str | None = None,
    boost: bool = True,
) -> Temperature | None:
    """Stamp purchase activity on the fan and commit. Returns the new temperature when boosted."""
    values = {
        "last_purchase_at": now,
        "last_activity_at": now,
        "preview": preview[:255],
        "preview_time": now.strftime("%H:%M"),
        "signals_updated_at": now,
    }
    temperature = None
    if boost:
        temperature = boosted_temperature(previous_bucket)
        values.update(
            temperature_score=temperature.score,
            temperature_bucket=temperature.bucket,
            next_action=resolve_next_action(intent_key, temperature.bucket),
        )

    await db.execute(
        update(Fan).where(Fan.id == fan_id).values(**values).execution_options(synchronize_session=False)
    )
    await db.commit()
    log.info(
        "engagement.updated fan=%s bucket=%s",
        fan_id, temperature.bucket if temperature else "-",
    )
    return temperature
