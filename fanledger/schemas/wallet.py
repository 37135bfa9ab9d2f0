from pydantic import Field

from fanledger.schemas.purchase import CamelModel


class TopUpRequest(CamelModel):
    amount_cents: int = Field(gt=0)
    idempotency_key: str = Field(min_length=1, max_length=120)
