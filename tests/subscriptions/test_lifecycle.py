# tests/subscriptions/test_lifecycle.py
from datetime import datetime, timedelta, timezone as dt_timezone

import pytest

from subscriptions.models import Promocode, PromocodeUsage, SubscriptionLog, SubscriptionStatus
from subscriptions.services import SubscriptionService
from tests.scenario_cov import covers

NOW = datetime(2024, 1, 31, 12, 0, tzinfo=dt_timezone.utc)


@covers("R3.1")
@pytest.mark.django_db
def test_new_purchase_window_uses_calendar_months(make_user, make_subscription):
    sub = make_subscription(make_user(), period_months=1)

    start, end = SubscriptionService.compute_window(sub, NOW, renewal=False)

    assert start == NOW
    assert end == datetime(2024, 2, 29, 12, 0, tzinfo=dt_timezone.utc)


@covers("R3.2", "R3.3")
@pytest.mark.django_db
def test_renewal_window_is_max_of_end_and_now(make_user, make_subscription):
    started = NOW - timedelta(days=60)
    future = make_subscription(make_user(), period_months=3, status=SubscriptionStatus.ACTIVE,
                               start_date=started, end_date=datetime(2024, 3, 1, tzinfo=dt_timezone.utc))
    lapsed = make_subscription(make_user(), period_months=3, status=SubscriptionStatus.ACTIVE,
                               start_date=started, end_date=NOW - timedelta(days=1))

    assert SubscriptionService.compute_window(future, NOW, renewal=True) == (
        started, datetime(2024, 6, 1, tzinfo=dt_timezone.utc)
    )
    assert SubscriptionService.compute_window(lapsed, NOW, renewal=True) == (
        started, datetime(2024, 4, 30, 12, 0, tzinfo=dt_timezone.utc)
    )


@pytest.mark.django_db
def test_is_renewal_follows_status(make_user, make_subscription):
    assert not SubscriptionService.is_renewal(make_subscription(make_user()))
    assert SubscriptionService.is_renewal(make_subscription(make_user(), status=SubscriptionStatus.ACTIVE))


@covers("R3.5")
@pytest.mark.parametrize("extra_days, period, expected", [
    ({"1": 7, "3": 14}, 3, 14),
    ('{"1": 5}', 1, 5),
    ({"1": 7}, 6, 0),
    ({"1": -3}, 1, 0),
    ({"1": "abc"}, 1, 0),
    ("not json", 1, 0),
    (None, 1, 0),
])
def test_extra_days_for_period(extra_days, period, expected):
    assert Promocode(code="X", extra_days=extra_days).extra_days_for(period) == expected


@covers("R3.5")
@pytest.mark.django_db
def test_latest_usage_wins_over_payment_promocode(make_user, make_subscription):
    user = make_user()
    sub = make_subscription(user, period_months=1)
    used = Promocode.objects.create(code="USED", extra_days={"1": 10})
    other = Promocode.objects.create(code="OTHER", extra_days={"1": 3})
    PromocodeUsage.objects.create(promocode=used, user=user, subscription=sub, amount=10)

    assert SubscriptionService.bonus_days(sub, promocode=other) == 10


@pytest.mark.django_db
def test_activate_sets_active_and_adds_bonus(make_user, make_subscription):
    sub = make_subscription(make_user(), period_months=1)
    promo = Promocode.objects.create(code="P", extra_days={"1": 2})

    result = SubscriptionService.activate(sub, renewal=False, now=NOW, promocode=promo)

    sub.refresh_from_db()
    assert result.bonus_days == 2
    assert sub.status == SubscriptionStatus.ACTIVE
    assert sub.end_date == datetime(2024, 3, 2, 12, 0, tzinfo=dt_timezone.utc)


@pytest.mark.django_db
def test_cancel_keeps_access_flags(make_user, make_subscription):
    sub = make_subscription(make_user(), status=SubscriptionStatus.ACTIVE,
                            discord_role_granted=True, notion_access_granted=True)

    SubscriptionService.cancel(sub)

    sub.refresh_from_db()
    assert sub.status == SubscriptionStatus.CANCELLED
    assert sub.discord_role_granted and sub.notion_access_granted


@pytest.mark.django_db
def test_subscription_log_is_append_only(make_user):
    log = SubscriptionLog.write("payment_success", user=make_user(), amount=10)

    log.action = "tampered"
    with pytest.raises(ValueError):
        log.save()
    assert SubscriptionLog.objects.get(pk=log.pk).action == "payment_success"
