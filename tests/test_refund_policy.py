"""Tests for cancellation refunds and overtime charges."""

import pytest

from salonbook.engine.refund_policy import (
    calculate_overtime_charge,
    calculate_refund,
    hours_until,
    paid_amount_for,
    refund_for_cancellation,
)

from tests.conftest import make_reservation, utc


class TestRefundTiers:
    @pytest.mark.parametrize("hours,expected", [
        (72, 10000),
        (48, 10000),
        (47.9, 7000),
        (30, 7000),
        (24, 7000),
        (23.5, 5000),
        (12, 5000),
        (11.99, 0),
        (1.5, 0),
    ])
    def test_tier_boundaries(self, hours, expected):
        assert calculate_refund(10000, hours) == expected

    def test_fractional_refund_is_floored(self):
        assert calculate_refund(3333, 30) == 2333

    def test_started_reservation_refunds_nothing(self):
        assert calculate_refund(10000, -3) == 0

    def test_zero_paid(self):
        assert calculate_refund(0, 100) == 0

    def test_negative_paid(self):
        assert calculate_refund(-500, 100) == 0

    def test_monotonic_in_hours(self):
        hours = [h / 2 for h in range(-10, 120)]
        refunds = [calculate_refund(9999, h) for h in hours]
        assert refunds == sorted(refunds)


class TestOvertime:
    def test_no_overtime(self):
        assert calculate_overtime_charge(utc(2024, 6, 1, 11), utc(2024, 6, 1, 11), 100) == 0

    def test_early_finish(self):
        assert calculate_overtime_charge(utc(2024, 6, 1, 10, 50), utc(2024, 6, 1, 11), 100) == 0

    def test_whole_minutes(self):
        assert calculate_overtime_charge(utc(2024, 6, 1, 11, 15), utc(2024, 6, 1, 11), 100) == 1500

    def test_partial_minute_rounds_up(self):
        actual = utc(2024, 6, 1, 11).replace(second=1)
        assert calculate_overtime_charge(actual, utc(2024, 6, 1, 11), 200) == 200


class TestReservationRefund:
    def test_paid_amount_uses_total_when_paid(self):
        assert paid_amount_for(make_reservation(total_amount=8000, is_paid=True)) == 8000

    def test_paid_amount_uses_deposit_when_unpaid(self):
        assert paid_amount_for(make_reservation(total_amount=8000, deposit_amount=2000)) == 2000

    def test_paid_amount_zero_without_deposit(self):
        assert paid_amount_for(make_reservation()) == 0

    def test_refund_for_cancellation(self):
        reservation = make_reservation(total_amount=10000, is_paid=True)
        refund, hours = refund_for_cancellation(reservation, utc(2024, 5, 31, 4))
        assert hours == pytest.approx(30)
        assert refund == 7000

    def test_explicit_paid_amount_overrides(self):
        reservation = make_reservation()
        refund, _ = refund_for_cancellation(reservation, utc(2024, 5, 29, 10), paid_amount=4000)
        assert refund == 4000

    def test_hours_until_negative_after_start(self):
        assert hours_until(utc(2024, 6, 1, 10), utc(2024, 6, 1, 12)) == pytest.approx(-2)
