"""
Grant registry: time-boxed access grants per fan and type.

A grant is active while ``expires_at > now``. Direct purchases replace the
fan's grants of that type with one fresh grant; gifts extend the grant that
expires last. Writes flush but never commit.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal, Protocol, Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from fanledger.core.errors import ValidationError
from fanledger.data.packs import PACKS, GrantType, is_grant_type
from fanledger.db.models import AccessGrant
from fanledger.services.purchase_resolver import PackLike, grant_type_for_pack
from fanledger.utils.dates import ensure_utc, utcnow

log = logging.getLogger(__name__)

PackStatus = Literal["LOCKED", "UNLOCKED", "ACTIVE"]


class GrantLike(Protocol):
    type: str
    created_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class GrantRecord:
    id: str
    fan_id: str
    type: str
    created_at: datetime
    expires_at: datetime

    @classmethod
    def from_row(cls, grant: AccessGrant) -> "GrantRecord":
        return cls(
            id=grant.id,
            fan_id=grant.fan_id,
            type=grant.type,
            created_at=ensure_utc(grant.created_at),
            expires_at=ensure_utc(grant.expires_at),
        )

    def is_active(self, now: datetime) -> bool:
        return self.expires_at > now

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "fanId": self.fan_id,
            "type": self.type,
            "createdAt": self.created_at.isoformat(),
            "expiresAt": self.expires_at.isoformat(),
        }


@dataclass(frozen=True)
class PackStatusResult:
    status_by_id: dict[str, PackStatus]
    unlocked_pack_ids: list[str]


def grant_duration(grant_type: GrantType) -> timedelta:
    return timedelta(days=PACKS[grant_type].duration_days)


async def list_grants(db: AsyncSession, fan_id: str) -> list[GrantRecord]:
    rows = await db.scalars(
        select(AccessGrant)
        .where(AccessGrant.fan_id == fan_id)
        .order_by(AccessGrant.created_at.desc())
        .execution_options(populate_existing=True)
    )
    return [GrantRecord.from_row(g) for g in rows]


async def active_grants(db: AsyncSession, fan_id: str, now: datetime | None = None) -> list[GrantRecord]:
    now = now or utcnow()
    rows = await db.scalars(
        select(AccessGrant)
        .where(AccessGrant.fan_id == fan_id, AccessGrant.expires_at > now)
        .order_by(AccessGrant.expires_at.desc())
        .execution_options(populate_existing=True)
    )
    return [GrantRecord.from_row(g) for g in rows]


async def _latest_active(db: AsyncSession, fan_id: str, grant_type: str, now: datetime) -> AccessGrant | None:
    return await db.scalar(
        select(AccessGrant)
        .where(
            AccessGrant.fan_id == fan_id,
            AccessGrant.type == grant_type,
            AccessGrant.expires_at > now,
        )
        .order_by(AccessGrant.expires_at.desc())
        .limit(1)
        .execution_options(populate_existing=True)
    )


async def find_active_grant(db: AsyncSession, fan_id: str, grant_type: str,
                            now: datetime | None = None) -> GrantRecord | None:
    grant = await _latest_active(db, fan_id, grant_type, now or utcnow())
    return GrantRecord.from_row(grant) if grant else None


async def upsert_grant(
    db: AsyncSession,
    fan_id: str,
    grant_type: str,
    *,
    extend_if_active: bool = False,
    now: datetime | None = None,
) -> GrantRecord:
    if not is_grant_type(grant_type):
        raise ValidationError(f"Unknown grant type {grant_type!r}", field="type")

    now = now or utcnow()
    duration = grant_duration(grant_type)

    if extend_if_active:
        current = await _latest_active(db, fan_id, grant_type, now)
        if current is not None:
            current.expires_at = ensure_utc(current.expires_at) + duration
            await db.flush()
            log.info("grant.extended fan=%s type=%s expires_at=%s", fan_id, grant_type, current.expires_at)
            return GrantRecord.from_row(current)
    else:
        await db.execute(
            delete(AccessGrant).where(AccessGrant.fan_id == fan_id, AccessGrant.type == grant_type)
        )

    grant = AccessGrant(fan_id=fan_id, type=grant_type, created_at=now, expires_at=now + duration)
    db.add(grant)
    await db.flush()
    log.info("grant.created fan=%s type=%s expires_at=%s", fan_id, grant_type, grant.expires_at)
    return GrantRecord.from_row(grant)


def classify_pack_status(packs: Sequence[PackLike], grants: Sequence[GrantLike],
                         now: datetime | None = None) -> PackStatusResult:
    """
    LOCKED: the fan never held the pack's grant type.
    UNLOCKED: they held it, it has expired.
    ACTIVE: an unexpired grant exists.

    Packs whose grant type cannot be resolved are always LOCKED.
    """
    now = now or utcnow()
    held: set[str] = set()
    active: set[str] = set()
    for grant in grants:
        held.add(grant.type)
        if ensure_utc(grant.expires_at) > now:
            active.add(grant.type)

    status_by_id: dict[str, PackStatus] = {}
    unlocked: list[str] = []
    for pack in packs:
        grant_type = grant_type_for_pack(pack)
        if grant_type in active:
            status = "ACTIVE"
        elif grant_type in held:
            status = "UNLOCKED"
        else:
            status = "LOCKED"
        status_by_id[pack.id] = status
        if status != "LOCKED":
            unlocked.append(pack.id)

    return PackStatusResult(status_by_id, unlocked)
