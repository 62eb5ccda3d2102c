from __future__ import annotations

from datetime import date, timedelta

import pytest

from cleancar.application.exceptions import PolicyReason, PolicyViolation
from cleancar.application.use_cases.booking_window import BookingWindowPolicy
from cleancar.application.utils.calendar import TIME_SLOTS, iter_dates


def saturate(store, occupy, start: date, end: date, skip: date | None = None) -> None:
    for day in iter_dates(start, end):
        if day == skip:
            continue
        for slot in TIME_SLOTS:
            occupy(store, day, slot)


def test_past_date_rejected(store, today):
    decision = BookingWindowPolicy(store).evaluate(today - timedelta(days=1), today)
    assert not decision.allowed
    assert decision.reason == PolicyReason.date_in_past


def test_today_and_horizon_are_bookable(store, today):
    policy = BookingWindowPolicy(store)
    assert policy.evaluate(today, today).allowed
    horizon = policy.evaluate(date(2025, 9, 2), today)
    assert horizon.allowed
    assert horizon.horizon == date(2025, 9, 2)
    assert not horizon.extended


def test_beyond_horizon_rejected_when_not_saturated(store, today):
    policy = BookingWindowPolicy(store)
    with pytest.raises(PolicyViolation) as exc:
        policy.check(today + timedelta(days=200), today)
    assert exc.value.reason == PolicyReason.outside_booking_window
    assert "within the next 3 months" in exc.value.message

    assert policy.evaluate(date(2025, 9, 3), today).reason == PolicyReason.outside_booking_window


def test_saturated_window_extends_to_six_months(store, occupy, today):
    saturate(store, occupy, today, date(2025, 9, 2))
    policy = BookingWindowPolicy(store)

    extended = policy.evaluate(date(2025, 10, 15), today)
    assert extended.allowed
    assert extended.extended
    assert extended.horizon == date(2025, 12, 2)

    assert policy.evaluate(date(2025, 12, 2), today).allowed
    beyond = policy.evaluate(date(2025, 12, 3), today)
    assert not beyond.allowed
    assert beyond.reason == PolicyReason.outside_extended_window


def test_one_open_date_keeps_window_closed(store, occupy, today):
    saturate(store, occupy, today, date(2025, 9, 2), skip=date(2025, 7, 15))
    policy = BookingWindowPolicy(store)
    assert policy.evaluate(date(2025, 10, 15), today).reason == PolicyReason.outside_booking_window
    assert policy.fully_booked_dates(today, date(2025, 9, 2)).count(date(2025, 7, 15)) == 0
