"""
Purchase resolver.

Turns whatever the client sent (an offer id or code, a pack code, a gift pack
name, a raw price) into one ``ResolvedPurchase``. Grant types are derived from
a single ordered rule table:

    catalog record (tier) -> keyword tokens -> exact price -> no grant

Every other module that needs to map a pack or offer to a grant type goes
through here. Nothing in this module touches the database.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Protocol, Sequence

from fanledger.data.packs import PACKS, ContentPack, GrantType

DEFAULT_TITLE = "Acceso desbloqueado"
MAX_TITLE_LENGTH = 140

PRODUCT_SUBSCRIPTION = "SUBSCRIPTION"
PRODUCT_PACK = "PACK"
PRODUCT_TIP = "TIP"
PRODUCT_GIFT = "GIFT"

RULE_CATALOG_TIER = "catalog_tier"
RULE_KEYWORD = "keyword"
RULE_PRICE = "price"
RULE_PACK_CODE = "pack_code"
RULE_NONE = "none"

# Checked in order; the first table hit wins.
KEYWORD_RULES: tuple[tuple[GrantType, tuple[str, ...]], ...] = (
    ("monthly", ("monthly", "mensual", "suscripcion", "subscription")),
    ("special", ("special", "especial", "pareja")),
    ("trial", ("trial", "welcome", "bienvenida", "prueba")),
)

PRICE_RULES: tuple[tuple[GrantType, int], ...] = tuple(
    (code, PACKS[code].price_cents) for code in ("monthly", "special", "trial")
)


class OfferLike(Protocol):
    id: str
    code: str
    title: str
    tier: str | None
    price_cents: int


class PackLike(Protocol):
    id: str
    name: str
    price: str | None


@dataclass(frozen=True)
class ResolvedPurchase:
    product_id: str
    title: str
    amount_cents: int
    grant_type: GrantType | None
    product_type: str
    content_pack: ContentPack
    rule: str

    @property
    def amount(self) -> int:
        """Whole major units, half rounded up, as stored on the purchase row."""
        return (self.amount_cents + 50) // 100

    @property
    def is_free_unlock(self) -> bool:
        return self.amount_cents == 0 and self.grant_type is None


_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def tokens(*values: str | None) -> set[str]:
    found: set[str] = set()
    for value in values:
        if value:
            found.update(t for t in _NON_ALNUM.split(value.lower()) if t)
    return found


def normalize_title(value: str | None) -> str:
    title = (value or "").strip()[:MAX_TITLE_LENGTH]
    return title or DEFAULT_TITLE


def slugify(value: str, max_length: int = 80) -> str:
    return _NON_ALNUM.sub("-", value.lower()).strip("-")[:max_length]


def match_keyword(*values: str | None) -> GrantType | None:
    found = tokens(*values)
    # Pack codes glued to other words ("monthlypack") still count.
    joined = " ".join(v.lower() for v in values if v)
    for grant_type, keywords in KEYWORD_RULES:
        if found.intersection(keywords) or any(k in joined for k in keywords):
            return grant_type
    return None


def match_price(amount_cents: int | None) -> GrantType | None:
    if not amount_cents:
        return None
    for grant_type, price_cents in PRICE_RULES:
        if amount_cents == price_cents:
            return grant_type
    return None


def parse_price_cents(value: str | int | float | None) -> int | None:
    """``"25 €"``, ``"9,99"``, ``25`` -> cents. Unparseable -> None."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return round(float(value) * 100)
    match = re.search(r"\d+(?:[.,]\d+)?", value)
    if not match:
        return None
    return round(float(match.group(0).replace(",", ".")) * 100)


def grant_type_for(identifier: str | None, title: str | None = None,
                   amount_cents: int | None = None) -> tuple[GrantType | None, str]:
    """Keyword table, then price table. Returns (grant_type, rule)."""
    by_keyword = match_keyword(identifier, title)
    if by_keyword:
        return by_keyword, RULE_KEYWORD
    by_price = match_price(amount_cents)
    if by_price:
        return by_price, RULE_PRICE
    return None, RULE_NONE


def grant_type_for_pack(pack: PackLike) -> GrantType | None:
    grant_type, _ = grant_type_for(pack.id, pack.name, parse_price_cents(pack.price))
    return grant_type


def _find_offer(identifier: str, offers: Iterable[OfferLike]) -> OfferLike | None:
    wanted = identifier.strip().lower()
    for offer in offers:
        if offer.id == identifier or (offer.code or "").lower() == wanted:
            return offer
    return None


def _product_type(grant_type: GrantType | None) -> str:
    return PRODUCT_SUBSCRIPTION if grant_type else PRODUCT_PACK


def _content_pack(grant_type: GrantType | None) -> ContentPack:
    return PACKS[grant_type].content_pack if grant_type else "WELCOME"


def resolve(identifier: str, offers: Sequence[OfferLike] = ()) -> ResolvedPurchase | None:
    """
    Resolve an offer id/code against the creator's catalog, then against the
    fixed pack codes. Returns None when neither knows the identifier.
    """
    if not identifier or not identifier.strip():
        return None

    offer = _find_offer(identifier, offers)
    if offer is not None:
        if (offer.tier or "").lower() == "monthly":
            grant_type, rule = "monthly", RULE_CATALOG_TIER
        else:
            grant_type, rule = grant_type_for(offer.code, offer.title, offer.price_cents)
        return ResolvedPurchase(
            product_id=offer.id,
            title=normalize_title(offer.title),
            amount_cents=max(0, int(offer.price_cents or 0)),
            grant_type=grant_type,
            product_type=_product_type(grant_type),
            content_pack=_content_pack(grant_type),
            rule=rule,
        )

    pack_code = match_keyword(identifier)
    if pack_code is None:
        return None
    pack = PACKS[pack_code]
    return ResolvedPurchase(
        product_id=pack.code,
        title=normalize_title(pack.name),
        amount_cents=pack.price_cents,
        grant_type=pack.code,
        product_type=_product_type(pack.code),
        content_pack=pack.content_pack,
        rule=RULE_PACK_CODE,
    )


def resolve_manual(offer_id: str, title: str | None, price: float | int | None) -> ResolvedPurchase:
    """A creator-recorded unlock: no catalog lookup, the caller states title and price."""
    amount_cents = parse_price_cents(price)
    grant_type, rule = grant_type_for(offer_id, title, amount_cents)
    if amount_cents is None:
        amount_cents = PACKS[grant_type].price_cents if grant_type else 0
    return ResolvedPurchase(
        product_id=offer_id,
        title=normalize_title(title or (PACKS[grant_type].name if grant_type else None)),
        amount_cents=max(0, amount_cents),
        grant_type=grant_type,
        product_type=_product_type(grant_type),
        content_pack=_content_pack(grant_type),
        rule=rule,
    )


def resolve_gift_pack(pack_id: str | None, pack_name: str | None,
                      packs: Sequence[PackLike] = ()) -> GrantType | None:
    """Grant type a gifted pack should extend, if any."""
    if not pack_id and not pack_name:
        return None
    for pack in packs:
        if pack.id == pack_id or (pack_name and pack.name.lower() == pack_name.lower()):
            found = grant_type_for_pack(pack)
            if found:
                return found
    grant_type, _ = grant_type_for(pack_id, pack_name)
    return grant_type


def resolve_support(kind: str, amount_cents: int, grant_type: GrantType | None = None) -> ResolvedPurchase:
    is_gift = kind == "GIFT"
    return ResolvedPurchase(
        product_id="support-gift" if is_gift else "support-tip",
        title="Regalo" if is_gift else "Propina",
        amount_cents=amount_cents,
        grant_type=grant_type,
        product_type=PRODUCT_GIFT if is_gift else PRODUCT_TIP,
        content_pack=_content_pack(grant_type),
        rule=RULE_KEYWORD if grant_type else RULE_NONE,
    )
