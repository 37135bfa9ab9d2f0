from fastapi import APIRouter, Depends, Path, Request
from sqlalchemy.ext.asyncio import AsyncSession

from fanledger.db.session import get_db
from fanledger.services.fans import get_fan
from fanledger.services.purchases import PurchaseOrchestrator
from fanledger.utils.deps import Principal, ensure_fan_access, get_current_principal, get_orchestrator
from fanledger.utils.rate_limiter import purchase_rate_limit

router = APIRouter(prefix="/ppv", tags=["ppv"])


@router.post("/{ppv_id}/purchase")
@purchase_rate_limit("ppv")
async def purchase_ppv(
    request: Request,
    ppv_id: str = Path(...),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    orchestrator: PurchaseOrchestrator = Depends(get_orchestrator),
):
    ppv = await orchestrator.load_ppv(ppv_id)
    fan = await get_fan(db, ppv.fan_id)
    ensure_fan_access(principal, fan)
    result = await orchestrator.purchase_ppv(fan, ppv)
    return result.to_response()
