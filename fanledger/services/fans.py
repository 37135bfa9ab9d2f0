"""Fan lookups and the adult-confirmation flag."""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fanledger.core.errors import NotFoundError
from fanledger.db.models import Fan
from fanledger.utils.dates import utcnow

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FanRef:
    """Plain copy of the fan fields purchases need; safe to use after a rollback."""

    id: str
    creator_id: str
    display_name: str | None
    is_new: bool
    adult_confirmed: bool
    last_intent_key: str | None
    temperature_bucket: str

    @property
    def label(self) -> str:
        return self.display_name or "Fan"

    @classmethod
    def from_row(cls, fan: Fan) -> "FanRef":
        return cls(
            id=fan.id,
            creator_id=fan.creator_id,
            display_name=fan.display_name or fan.name,
            is_new=bool(fan.is_new),
            adult_confirmed=fan.adult_confirmed_at is not None,
            last_intent_key=fan.last_intent_key,
            temperature_bucket=fan.temperature_bucket or "COLD",
        )


async def get_fan(db: AsyncSession, fan_id: str) -> FanRef:
    fan = await db.scalar(
        select(Fan).where(Fan.id == fan_id).execution_options(populate_existing=True)
    )
    if fan is None:
        raise NotFoundError("Fan not found", resource="fan")
    return FanRef.from_row(fan)


async def confirm_adult(db: AsyncSession, fan_id: str, *, now: datetime | None = None) -> datetime:
    """Stamp adult confirmation once; later calls keep the first timestamp."""
    fan = await db.scalar(select(Fan).where(Fan.id == fan_id))
    if fan is None:
        raise NotFoundError("Fan not found", resource="fan")

    if fan.adult_confirmed_at is None:
        stamp = now or utcnow()
        await db.execute(
            update(Fan)
            .where(Fan.id == fan_id, Fan.adult_confirmed_at.is_(None))
            .values(adult_confirmed_at=stamp)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        log.info("fan.adult_confirmed fan=%s", fan_id)

    fan = await db.scalar(
        select(Fan).where(Fan.id == fan_id).execution_options(populate_existing=True)
    )
    return fan.adult_confirmed_at
