from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OfferPurchaseRequest(CamelModel):
    offer_id: str = Field(min_length=1, max_length=200)
    client_txn_id: str = Field(min_length=1, max_length=120)


class SupportPurchaseRequest(CamelModel):
    kind: str
    amount: Decimal
    client_txn_id: str = Field(min_length=1, max_length=120)
    pack_id: str | None = None
    pack_name: str | None = None

    @field_validator("kind")
    @classmethod
    def normalize_kind(cls, value: str) -> str:
        kind = value.strip().upper()
        if kind not in {"TIP", "GIFT"}:
            raise ValueError("kind must be TIP or GIFT")
        return kind


class UnlockRequest(CamelModel):
    offer_id: str = Field(min_length=1, max_length=200)
    title: str | None = None
    price: float | None = Field(default=None, ge=0)
    client_txn_id: str | None = Field(default=None, max_length=120)


class ArchiveRequest(CamelModel):
    archived: bool | None = None
