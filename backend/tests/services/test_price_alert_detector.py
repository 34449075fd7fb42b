"""
Tests for price alert detection over inventory holdings.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select

from mtg_ingest.models import PriceAlert
from mtg_ingest.services.price_alerts import PriceAlertDetector, percentage_change

NOW = datetime(2026, 10, 18, 2, 30, tzinfo=timezone.utc)
YESTERDAY = NOW - timedelta(days=1)


@pytest.fixture
def detect(db_session):
    def _detect(now=NOW):
        alerts = PriceAlertDetector(db_session, now=lambda: now).detect_price_changes()
        db_session.commit()
        return alerts

    return _detect


@pytest.fixture
def holder(make_user, add_collection_item):
    """A user holding card c1 in their inventory."""
    user = make_user()
    add_collection_item(user, "c1")
    return user


def _all_alerts(db_session):
    return db_session.execute(select(PriceAlert).order_by(PriceAlert.id)).scalars().all()


class TestPercentageChange:
    @pytest.mark.parametrize("old,new,expected", [
        (1000, 1200, 20.0),
        (1000, 700, -30.0),
        (300, 400, 33.33),
        (300, 200, -33.33),
    ])
    def test_signed_and_rounded(self, old, new, expected):
        assert percentage_change(old, new) == expected


class TestThresholds:
    """+20% and -30% are inclusive boundaries."""

    @pytest.mark.parametrize("new_price,alert_type", [
        (1199, None),
        (1200, "price_increase"),
        (701, None),
        (700, "price_decrease"),
    ])
    def test_boundaries(self, db_session, holder, add_price, detect, new_price, alert_type):
        add_price("c1", YESTERDAY, usd_cents=1000)
        add_price("c1", NOW, usd_cents=new_price)

        alerts = detect()

        assert [a.alert_type for a in alerts] == ([alert_type] if alert_type else [])

    def test_custom_thresholds(self, db_session, holder, add_price):
        add_price("c1", YESTERDAY, usd_cents=1000)
        add_price("c1", NOW, usd_cents=1100)
        detector = PriceAlertDetector(db_session, now=lambda: NOW, increase_threshold=10.0)

        assert len(detector.detect_price_changes()) == 1


class TestSkippedHoldings:
    def test_single_snapshot_never_alerts(self, db_session, holder, add_price, detect):
        add_price("c1", NOW, usd_cents=5000)

        assert detect() == []

    def test_zero_old_price_is_skipped(self, db_session, holder, add_price, detect):
        add_price("c1", YESTERDAY, usd_cents=0)
        add_price("c1", NOW, usd_cents=500)

        assert detect() == []

    def test_missing_price_is_skipped(self, db_session, holder, add_price, detect):
        add_price("c1", YESTERDAY, usd_cents=None)
        add_price("c1", NOW, usd_cents=500)

        assert detect() == []

    def test_wishlist_items_never_alert(self, db_session, make_user, add_collection_item, add_price, detect):
        user = make_user()
        add_collection_item(user, "c1", "wishlist")
        add_price("c1", YESTERDAY, usd_cents=1000)
        add_price("c1", NOW, usd_cents=5000)

        assert detect() == []


class TestTreatmentPrices:
    def test_foil_holding_uses_foil_price(self, db_session, make_user, add_collection_item, add_price, detect):
        user = make_user()
        add_collection_item(user, "c1", treatment="Foil")
        # Base price flat, foil price up 50%
        add_price("c1", YESTERDAY, usd_cents=1000, usd_foil_cents=2000)
        add_price("c1", NOW, usd_cents=1000, usd_foil_cents=3000)

        alerts = detect()

        assert len(alerts) == 1
        assert alerts[0].old_price_cents == 2000
        assert alerts[0].new_price_cents == 3000
        assert alerts[0].treatment == "foil"

    def test_etched_falls_back_to_base_price(self, db_session, make_user, add_collection_item, add_price, detect):
        user = make_user()
        add_collection_item(user, "c1", treatment="Etched")
        add_price("c1", YESTERDAY, usd_cents=1000)
        add_price("c1", NOW, usd_cents=600)

        alerts = detect()

        assert [(a.old_price_cents, a.new_price_cents) for a in alerts] == [(1000, 600)]

    def test_normal_holding_ignores_foil_move(self, db_session, holder, add_price, detect):
        add_price("c1", YESTERDAY, usd_cents=1000, usd_foil_cents=2000)
        add_price("c1", NOW, usd_cents=1000, usd_foil_cents=4000)

        assert detect() == []


class TestDeduplication:
    """One alert per (user, card) per 24 hours."""

    def test_recent_alert_suppresses_new_one(self, db_session, holder, add_price, detect):
        add_price("c1", YESTERDAY, usd_cents=1000)
        add_price("c1", NOW, usd_cents=1500)
        assert len(detect(now=NOW)) == 1

        assert detect(now=NOW + timedelta(hours=23)) == []
        assert len(_all_alerts(db_session)) == 1

    def test_alert_after_window_expires(self, db_session, holder, add_price, detect):
        add_price("c1", YESTERDAY, usd_cents=1000)
        add_price("c1", NOW, usd_cents=1500)
        detect(now=NOW)

        assert len(detect(now=NOW + timedelta(hours=25))) == 1
        assert len(_all_alerts(db_session)) == 2

    def test_each_holder_alerts_once_per_card(
        self, db_session, make_user, add_collection_item, add_price, detect
    ):
        user = make_user()
        add_collection_item(user, "c1", "inventory", treatment="Foil")
        add_collection_item(user, "c1", "wishlist", treatment="Normal")
        other = make_user()
        add_collection_item(other, "c1", treatment="Normal")
        add_price("c1", YESTERDAY, usd_cents=1000, usd_foil_cents=1000)
        add_price("c1", NOW, usd_cents=2000, usd_foil_cents=2000)

        alerts = detect()

        assert sorted(a.user_id for a in alerts) == sorted([user.id, other.id])

    def test_users_are_deduplicated_independently(
        self, db_session, make_user, add_collection_item, add_price, detect
    ):
        alice, bob = make_user(), make_user()
        add_collection_item(alice, "c1")
        add_collection_item(bob, "c1")
        add_price("c1", YESTERDAY, usd_cents=1000)
        add_price("c1", NOW, usd_cents=1500)

        assert len(detect()) == 2


class TestAlertFields:
    def test_increase_alert_values(self, db_session, holder, add_price, detect):
        add_price("c1", YESTERDAY, usd_cents=1000)
        add_price("c1", NOW, usd_cents=1200)

        alert = detect()[0]

        assert alert.user_id == holder.id
        assert alert.card_id == "c1"
        assert alert.alert_type == "price_increase"
        assert alert.is_price_increase
        assert alert.percentage_change == Decimal("20.00")
        assert alert.dismissed is False
        assert alert.treatment is None

    def test_compares_latest_two_of_many_snapshots(self, db_session, holder, add_price, detect):
        add_price("c1", NOW - timedelta(days=2), usd_cents=100)
        add_price("c1", YESTERDAY, usd_cents=1000)
        add_price("c1", NOW, usd_cents=1050)

        assert detect() == []

    def test_alerts_are_flushed_not_committed(self, db_session, holder, add_price):
        add_price("c1", YESTERDAY, usd_cents=1000)
        add_price("c1", NOW, usd_cents=2000)

        alerts = PriceAlertDetector(db_session, now=lambda: NOW).detect_price_changes()
        assert alerts[0].id is not None
        db_session.rollback()

        assert _all_alerts(db_session) == []
