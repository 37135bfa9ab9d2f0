"""
Fixed pack configuration.

Each grant type maps to one well-known pack: a price (major units), a grant
duration and the content tier it unlocks.
"""

from dataclasses import dataclass
from typing import Literal

GrantType = Literal["trial", "monthly", "special"]
ContentPack = Literal["WELCOME", "MONTHLY", "SPECIAL"]

GRANT_TYPES: tuple[GrantType, ...] = ("trial", "monthly", "special")


@dataclass(frozen=True)
class PackConfig:
    code: GrantType
    name: str
    price: int
    duration_days: int
    content_pack: ContentPack

    @property
    def price_cents(self) -> int:
        return self.price * 100


PACKS: dict[GrantType, PackConfig] = {
    "trial": PackConfig("trial", "Pack bienvenida", 9, 7, "WELCOME"),
    "monthly": PackConfig("monthly", "Pack mensual", 25, 30, "MONTHLY"),
    "special": PackConfig("special", "Pack especial", 49, 30, "SPECIAL"),
}


def is_grant_type(value: object) -> bool:
    return isinstance(value, str) and value in PACKS
