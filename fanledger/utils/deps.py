from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from fanledger.core.config import settings
from fanledger.core.errors import ForbiddenError
from fanledger.db.session import get_db
from fanledger.realtime.hub import EventHub
from fanledger.services.fans import FanRef
from fanledger.services.purchases import PurchaseOrchestrator
from fanledger.utils.auth import ROLES

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)


@dataclass(frozen=True)
class Principal:
    id: str
    role: str  # fan | creator

    @property
    def is_creator(self) -> bool:
        return self.role == "creator"


def decode_principal(token: str | None) -> Principal | None:
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    subject = payload.get("sub")
    role = payload.get("role")
    if not subject or role not in ROLES:
        return None
    return Principal(id=str(subject), role=role)


async def get_current_principal(
    request: Request,
    token: str | None = Depends(oauth2_scheme),
) -> Principal:
    principal = decode_principal(token or request.cookies.get(settings.ACCESS_TOKEN_COOKIE_NAME))
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    request.state.principal = principal
    return principal


def get_event_hub(request: Request) -> EventHub:
    return request.app.state.event_hub


def get_orchestrator(
    db: AsyncSession = Depends(get_db),
    hub: EventHub = Depends(get_event_hub),
) -> PurchaseOrchestrator:
    return PurchaseOrchestrator(db, hub)


def ensure_fan_access(principal: Principal, fan: FanRef, *, creator_only: bool = False) -> None:
    """The fan themself or their creator; ``creator_only`` drops the fan."""
    if principal.is_creator and principal.id == fan.creator_id:
        return
    if not creator_only and principal.role == "fan" and principal.id == fan.id:
        return
    raise ForbiddenError("Not allowed for this fan", reason="OWNERSHIP_MISMATCH")
