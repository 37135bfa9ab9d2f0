"""
Entitlement projection.

Pure functions that turn a fan's grant rows into the access view the content
layer and the fan page read. Nothing here is stored; callers recompute on
every request.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Literal, Sequence

from fanledger.data.packs import ContentPack
from fanledger.services.access_grants import GrantLike
from fanledger.utils.dates import ensure_utc, utcnow

AccessStateName = Literal["ACTIVE", "EXPIRED", "NONE"]
LegacyAccessState = Literal["active", "expiring", "expired"]

CONTENT_PACK_ORDER: tuple[ContentPack, ...] = ("WELCOME", "MONTHLY", "SPECIAL")

_SECONDS_PER_DAY = 24 * 60 * 60


@dataclass(frozen=True)
class AccessState:
    has_active_access: bool
    access_state: AccessStateName
    access_type: str | None
    access_label: str
    membership_status: str
    days_left: int | None
    active_grant_types: list[str] = field(default_factory=list)
    has_access_history: bool = False
    last_grant_type: str | None = None

    def to_dict(self) -> dict:
        return {
            "hasActiveAccess": self.has_active_access,
            "accessState": self.access_state,
            "accessType": self.access_type,
            "accessLabel": self.access_label,
            "membershipStatus": self.membership_status,
            "daysLeft": self.days_left,
            "activeGrantTypes": list(self.active_grant_types),
            "hasAccessHistory": self.has_access_history,
            "lastGrantType": self.last_grant_type,
        }


@dataclass(frozen=True)
class AccessSummary:
    has_active_access: bool
    state: AccessStateName
    legacy_state: LegacyAccessState
    primary_label: str
    secondary_label: str | None
    days_left: int | None
    has_active_monthly: bool = False
    has_active_trial: bool = False
    has_active_special: bool = False

    def to_dict(self) -> dict:
        return {
            "hasActiveAccess": self.has_active_access,
            "state": self.state,
            "legacyState": self.legacy_state,
            "primaryLabel": self.primary_label,
            "secondaryLabel": self.secondary_label,
            "daysLeft": self.days_left,
            "hasActiveMonthly": self.has_active_monthly,
            "hasActiveTrial": self.has_active_trial,
            "hasActiveSpecial": self.has_active_special,
        }


def _access_label(access_type: str | None, state: AccessStateName, is_new: bool) -> str:
    if state == "EXPIRED":
        return "Caducado"
    if state == "NONE":
        return "Nuevo" if is_new else "Sin acceso"
    return {
        "trial": "Prueba 7 días",
        "monthly": "Suscripción mensual",
        "special": "Pack especial",
    }.get((access_type or "").lower(), access_type or "Acceso activo")


def days_until(expires_at: datetime, now: datetime) -> int:
    seconds = (ensure_utc(expires_at) - now).total_seconds()
    return max(0, math.ceil(seconds / _SECONDS_PER_DAY))


def _expiry(grant: GrantLike) -> datetime:
    return ensure_utc(grant.expires_at)


def project(grants: Sequence[GrantLike], is_new: bool = False, now: datetime | None = None) -> AccessState:
    now = now or utcnow()
    active = [g for g in grants if ensure_utc(g.expires_at) > now]

    last_grant = max(grants, key=_expiry, default=None)
    primary = max(active, key=_expiry, default=None)
    soonest = min(active, key=_expiry, default=None)
    has_history = len(grants) > 0

    if primary is not None:
        state: AccessStateName = "ACTIVE"
    elif has_history:
        state = "EXPIRED"
    else:
        state = "NONE"

    access_type = primary.type if primary else (last_grant.type if last_grant else None)

    if soonest is not None:
        days_left = days_until(soonest.expires_at, now)
    else:
        days_left = 0 if has_history else None

    if state == "ACTIVE":
        membership_status = (access_type or "active").lower()
    else:
        membership_status = "expired" if state == "EXPIRED" else "none"

    active_types: list[str] = []
    for grant in sorted(active, key=_expiry):
        if grant.type not in active_types:
            active_types.append(grant.type)

    return AccessState(
        has_active_access=primary is not None,
        access_state=state,
        access_type=access_type,
        access_label=_access_label(access_type, state, is_new),
        membership_status=membership_status,
        days_left=days_left,
        active_grant_types=active_types,
        has_access_history=has_history,
        last_grant_type=last_grant.type if last_grant else None,
    )


def unlocked_packs_for(active_grant_types: Iterable[str]) -> list[ContentPack]:
    types = {t.lower() for t in active_grant_types}
    unlocked: set[str] = set()
    if "monthly" in types:
        unlocked.update(("WELCOME", "MONTHLY"))
    if "trial" in types:
        unlocked.add("WELCOME")
    if "special" in types:
        unlocked.add("SPECIAL")
    return [pack for pack in CONTENT_PACK_ORDER if pack in unlocked]


def legacy_state(state: AccessState) -> LegacyAccessState:
    if not state.has_active_access:
        return "expired"
    remaining = state.days_left or 0
    if remaining > 7:
        return "active"
    if remaining >= 1:
        return "expiring"
    return "expired"


def _plural_days(n: int, one: str, many: str) -> str:
    return one if n == 1 else many.format(n=n)


def access_summary(state: AccessState) -> AccessSummary:
    """Fan-facing labels for the current access state."""
    legacy = legacy_state(state)

    if state.access_state == "NONE":
        return AccessSummary(
            has_active_access=False,
            state="NONE",
            legacy_state=legacy,
            primary_label="Aún no tienes acceso activo al contenido privado.",
            secondary_label="Escribe al creador si quieres entrar o probar el chat privado.",
            days_left=None,
        )

    if state.access_state == "EXPIRED":
        return AccessSummary(
            has_active_access=False,
            state="EXPIRED",
            legacy_state=legacy,
            primary_label="Acceso caducado",
            secondary_label="Tu acceso ha caducado. Si quieres volver a entrar, habla con el creador.",
            days_left=0,
        )

    remaining = state.days_left or 0
    types = set(state.active_grant_types)
    access_type = (state.access_type or "").lower()

    if access_type == "trial":
        primary = "Prueba 7 días"
        secondary = _plural_days(
            remaining,
            "Te queda 1 día para aprovechar el chat.",
            "Te quedan {n} días para aprovechar el chat.",
        )
    elif access_type == "monthly":
        primary = "Suscripción mensual"
        secondary = _plural_days(remaining, "Te queda 1 día activo.", "Te quedan {n} días activos.")
    elif access_type == "special":
        primary = "Pack especial activo"
        secondary = (
            _plural_days(remaining, "Acceso prioritario durante 1 día.", "Acceso prioritario durante {n} días.")
            if remaining > 0
            else "Acceso prioritario activo."
        )
    else:
        primary = state.access_label
        secondary = _plural_days(remaining, "1 día restante", "{n} días restantes") if remaining > 0 else None

    return AccessSummary(
        has_active_access=True,
        state="ACTIVE",
        legacy_state=legacy,
        primary_label=primary,
        secondary_label=secondary,
        days_left=remaining,
        has_active_monthly="monthly" in types,
        has_active_trial="trial" in types,
        has_active_special="special" in types,
    )
