from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from fanledger.db.session import get_db
from fanledger.schemas.purchase import ArchiveRequest
from fanledger.services.fans import get_fan
from fanledger.services.purchases import get_purchase, set_archived
from fanledger.utils.deps import Principal, ensure_fan_access, get_current_principal

router = APIRouter(prefix="/purchases", tags=["purchases"])


@router.post("/{purchase_id}/archive")
async def archive_purchase(
    payload: ArchiveRequest | None = None,
    purchase_id: str = Path(...),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    purchase = await get_purchase(db, purchase_id)
    ensure_fan_access(principal, await get_fan(db, purchase.fan_id))
    updated = await set_archived(db, purchase_id, payload.archived if payload else None)
    return {"ok": True, "purchase": updated.to_dict()}
