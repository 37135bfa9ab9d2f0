from typing import Literal

from fanledger.schemas.purchase import CamelModel


class GrantRequest(CamelModel):
    type: Literal["trial", "monthly", "special"]
    extend_if_active: bool = False
