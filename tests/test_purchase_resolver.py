"""
Purchase resolver tests.

Covers the rule order (catalog record -> keyword -> price -> none), the fixed
pack codes, gift pack resolution and manual unlock resolution.
"""

from fanledger.db.models import Offer, Pack
from fanledger.services.purchase_resolver import (
    DEFAULT_TITLE,
    RULE_CATALOG_TIER,
    RULE_KEYWORD,
    RULE_NONE,
    RULE_PACK_CODE,
    RULE_PRICE,
    grant_type_for,
    grant_type_for_pack,
    parse_price_cents,
    resolve,
    resolve_gift_pack,
    resolve_manual,
    resolve_support,
    slugify,
)


def offer(code, title, price_cents, tier=None, id=None):
    return Offer(id=id or f"id-{code}", creator_id="c1", code=code, title=title, tier=tier, price_cents=price_cents)


class TestCatalogLookup:

    def test_matches_by_id(self):
        catalog = [offer("vip", "VIP del mes", 2500, id="offer-123")]
        resolved = resolve("offer-123", catalog)
        assert resolved.product_id == "offer-123"
        assert resolved.amount_cents == 2500

    def test_matches_code_case_insensitively(self):
        catalog = [offer("Fotos-Extra", "Fotos extra", 700)]
        resolved = resolve("fotos-extra", catalog)
        assert resolved is not None
        assert resolved.title == "Fotos extra"

    def test_monthly_tier_wins_over_keywords_and_price(self):
        """An explicit catalog tier beats a title that looks like another pack"""
        catalog = [offer("bundle", "Pack especial", 4900, tier="monthly")]
        resolved = resolve("bundle", catalog)
        assert resolved.grant_type == "monthly"
        assert resolved.rule == RULE_CATALOG_TIER
        assert resolved.product_type == "SUBSCRIPTION"
        assert resolved.content_pack == "MONTHLY"

    def test_keyword_beats_price(self):
        catalog = [offer("bienvenida", "Pack bienvenida", 2500)]
        resolved = resolve("bienvenida", catalog)
        assert resolved.grant_type == "trial"
        assert resolved.rule == RULE_KEYWORD

    def test_price_match_when_no_keyword(self):
        catalog = [offer("bundle-b", "Contenido VIP", 4900)]
        resolved = resolve("bundle-b", catalog)
        assert resolved.grant_type == "special"
        assert resolved.rule == RULE_PRICE
        assert resolved.product_type == "SUBSCRIPTION"

    def test_trial_offer_is_a_subscription(self):
        resolved = resolve("bienvenida", [offer("bienvenida", "Pack bienvenida", 900)])
        assert resolved.grant_type == "trial"
        assert resolved.product_type == "SUBSCRIPTION"

    def test_one_off_offer_has_no_grant(self):
        catalog = [offer("video-ducha", "Video en la ducha", 700)]
        resolved = resolve("video-ducha", catalog)
        assert resolved.grant_type is None
        assert resolved.rule == RULE_NONE
        assert resolved.product_type == "PACK"
        assert resolved.amount == 7

    def test_major_units_round_half_up(self):
        assert resolve("x2", [offer("x2", "Foto", 250)]).amount == 3
        assert resolve("x3", [offer("x3", "Foto", 249)]).amount == 2

    def test_blank_title_falls_back(self):
        resolved = resolve("x1", [offer("x1", "   ", 300)])
        assert resolved.title == DEFAULT_TITLE


class TestPackCodes:

    def test_known_pack_code_without_catalog(self):
        resolved = resolve("monthly")
        assert resolved.grant_type == "monthly"
        assert resolved.amount_cents == 2500
        assert resolved.rule == RULE_PACK_CODE

    def test_trial_code(self):
        resolved = resolve("trial")
        assert resolved.grant_type == "trial"
        assert resolved.amount_cents == 900
        assert resolved.content_pack == "WELCOME"
        assert resolved.product_type == "SUBSCRIPTION"

    def test_unknown_identifier_is_not_found(self):
        assert resolve("does-not-exist", [offer("vip", "VIP", 100)]) is None
        assert resolve("   ") is None


class TestRuleTable:

    def test_keyword_tokens(self):
        assert grant_type_for("pack-mensual")[0] == "monthly"
        assert grant_type_for(None, "Sesión en pareja")[0] == "special"
        assert grant_type_for("welcome")[0] == "trial"

    def test_price_table(self):
        assert grant_type_for("x", "y", 900) == ("trial", RULE_PRICE)
        assert grant_type_for("x", "y", 901) == (None, RULE_NONE)

    def test_parse_price(self):
        assert parse_price_cents("25 €") == 2500
        assert parse_price_cents("9,99") == 999
        assert parse_price_cents(49) == 4900
        assert parse_price_cents("gratis") is None

    def test_grant_type_for_pack_uses_price_string(self):
        assert grant_type_for_pack(Pack(id="p1", creator_id="c1", name="Colección A", price="49 €")) == "special"
        assert grant_type_for_pack(Pack(id="p2", creator_id="c1", name="Colección B", price="12 €")) is None

    def test_slugify(self):
        assert slugify("  Fotos Extra #2! ") == "fotos-extra-2"


class TestSupportAndManual:

    def test_tip_has_no_grant(self):
        resolved = resolve_support("TIP", 500)
        assert resolved.title == "Propina"
        assert resolved.product_type == "TIP"
        assert resolved.grant_type is None

    def test_gift_for_named_pack(self):
        packs = [Pack(id="p-month", creator_id="c1", name="Pack mensual", price="25 €")]
        assert resolve_gift_pack(None, "pack mensual", packs) == "monthly"
        assert resolve_gift_pack("p-month", None, packs) == "monthly"
        assert resolve_gift_pack(None, None, packs) is None

    def test_manual_unlock_defaults_price_from_pack(self):
        resolved = resolve_manual("special", None, None)
        assert resolved.grant_type == "special"
        assert resolved.amount_cents == 4900

    def test_manual_unlock_free_one_off(self):
        resolved = resolve_manual("custom-1", "Audio personalizado", 0)
        assert resolved.is_free_unlock
