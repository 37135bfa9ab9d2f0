"""
Entitlement projection and pack status tests (no database).
"""

from datetime import datetime, timedelta, timezone

from fanledger.db.models import Pack
from fanledger.services.access_grants import GrantRecord, classify_pack_status
from fanledger.services.access_state import access_summary, project, unlocked_packs_for

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def grant(type, expires_in_days, created_days_ago=1):
    return GrantRecord(
        id=f"g-{type}-{expires_in_days}",
        fan_id="f1",
        type=type,
        created_at=NOW - timedelta(days=created_days_ago),
        expires_at=NOW + timedelta(days=expires_in_days),
    )


class TestProject:

    def test_no_grants(self):
        state = project([], is_new=True, now=NOW)
        assert state.access_state == "NONE"
        assert state.membership_status == "none"
        assert state.days_left is None
        assert state.access_label == "Nuevo"
        assert not state.has_access_history

    def test_expired_history(self):
        state = project([grant("trial", -2)], now=NOW)
        assert state.access_state == "EXPIRED"
        assert state.membership_status == "expired"
        assert state.days_left == 0
        assert state.has_access_history
        assert state.active_grant_types == []
        assert state.last_grant_type == "trial"

    def test_days_left_counts_to_soonest_active_grant(self):
        grants = [grant("monthly", 29.5), grant("trial", 2.2)]
        state = project(grants, now=NOW)
        assert state.access_state == "ACTIVE"
        assert state.days_left == 3
        assert state.access_type == "monthly"
        assert state.membership_status == "monthly"
        assert set(state.active_grant_types) == {"monthly", "trial"}

    def test_naive_datetimes_are_treated_as_utc(self):
        naive = GrantRecord("g1", "f1", "special", NOW.replace(tzinfo=None),
                            (NOW + timedelta(days=1)).replace(tzinfo=None))
        state = project([naive], now=NOW)
        assert state.has_active_access
        assert state.days_left == 1


class TestUnlockedPacks:

    def test_trial_and_monthly(self):
        assert unlocked_packs_for(["trial", "monthly"]) == ["WELCOME", "MONTHLY"]

    def test_monthly_with_special(self):
        assert unlocked_packs_for(["monthly", "special"]) == ["WELCOME", "MONTHLY", "SPECIAL"]

    def test_trial_alone(self):
        assert unlocked_packs_for(["trial"]) == ["WELCOME"]

    def test_special_alone(self):
        assert unlocked_packs_for(["special"]) == ["SPECIAL"]

    def test_nothing(self):
        assert unlocked_packs_for([]) == []


class TestAccessSummary:

    def test_monthly_summary(self):
        summary = access_summary(project([grant("monthly", 20)], now=NOW))
        assert summary.state == "ACTIVE"
        assert summary.legacy_state == "active"
        assert summary.primary_label == "Suscripción mensual"
        assert summary.secondary_label == "Te quedan 20 días activos."
        assert summary.has_active_monthly
        assert not summary.has_active_trial

    def test_expiring_trial(self):
        summary = access_summary(project([grant("trial", 0.5)], now=NOW))
        assert summary.legacy_state == "expiring"
        assert summary.secondary_label == "Te queda 1 día para aprovechar el chat."

    def test_none_summary(self):
        summary = access_summary(project([], now=NOW))
        assert summary.state == "NONE"
        assert summary.days_left is None
        assert not summary.has_active_access

    def test_expired_summary(self):
        summary = access_summary(project([grant("special", -1)], now=NOW))
        assert summary.state == "EXPIRED"
        assert summary.legacy_state == "expired"
        assert summary.days_left == 0


class TestPackStatus:

    packs = [
        Pack(id="p-welcome", creator_id="c1", name="Pack bienvenida", price="9 €"),
        Pack(id="p-monthly", creator_id="c1", name="Suscripción", price="25 €"),
        Pack(id="p-special", creator_id="c1", name="Colección", price="49 €"),
        Pack(id="p-other", creator_id="c1", name="Otro", price="3 €"),
    ]

    def test_locked_unlocked_active(self):
        grants = [grant("monthly", 10), grant("trial", -3)]
        result = classify_pack_status(self.packs, grants, NOW)
        assert result.status_by_id == {
            "p-welcome": "UNLOCKED",
            "p-monthly": "ACTIVE",
            "p-special": "LOCKED",
            "p-other": "LOCKED",
        }
        assert result.unlocked_pack_ids == ["p-welcome", "p-monthly"]

    def test_expired_pack_stays_unlocked(self):
        trial_pack = Pack(id="p-trial", creator_id="c1", name="Pack bienvenida", price="9 €")
        result = classify_pack_status([trial_pack], [grant("trial", -23, created_days_ago=30)], NOW)
        assert result.status_by_id == {"p-trial": "UNLOCKED"}
        assert result.unlocked_pack_ids == ["p-trial"]

    def test_no_grants_everything_locked(self):
        result = classify_pack_status(self.packs, [], NOW)
        assert set(result.status_by_id.values()) == {"LOCKED"}
        assert result.unlocked_pack_ids == []
