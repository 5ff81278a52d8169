from datetime import date, datetime, timedelta, timezone

from missionapi.utils.date_utils import days_inclusive, each_date_inclusive, to_date_only_utc
from missionapi.utils.pricing import (
    calculate_order_amounts,
    calculate_reward_krw,
    clamp_points_applied,
)


class TestOrderAmounts:
    """주문 금액 계산"""

    def test_basic_amounts(self):
        amounts = calculate_order_amounts(
            unit_price_krw=150, vat_percent=10, total_days=7, daily_target=20
        )

        assert amounts.total_qty == 140
        assert amounts.budget_total_krw == 21000
        assert amounts.vat_amount_krw == 2100
        assert amounts.total_amount_krw == 23100

    def test_vat_rounds_half_up(self):
        """5 * 10% = 0.5 -> 1"""
        amounts = calculate_order_amounts(5, 10, 1, 1)

        assert amounts.vat_amount_krw == 1
        assert amounts.total_amount_krw == 6

    def test_zero_vat(self):
        amounts = calculate_order_amounts(100, 0, 2, 3)

        assert amounts.vat_amount_krw == 0
        assert amounts.total_amount_krw == 600


class TestPointsClamp:
    def test_limited_by_balance(self):
        assert clamp_points_applied(5000, 1200, 3300) == (1200, 1200)

    def test_limited_by_total(self):
        assert clamp_points_applied(5000, 9000, 3300) == (3300, 3300)

    def test_negative_balance(self):
        assert clamp_points_applied(100, -500, 3300) == (0, 0)


class TestReward:
    def test_reward_is_floored(self):
        assert calculate_reward_krw(150, 0.25) == 37

    def test_reward_never_negative(self):
        assert calculate_reward_krw(100, -1) == 0


class TestDateUtils:
    def test_days_inclusive(self):
        assert days_inclusive(date(2024, 1, 1), date(2024, 1, 3)) == 3

    def test_each_date_inclusive_empty_when_reversed(self):
        assert list(each_date_inclusive(date(2024, 1, 3), date(2024, 1, 1))) == []

    def test_to_date_only_utc_converts_timezone(self):
        kst = timezone(timedelta(hours=9))
        value = datetime(2024, 1, 16, 1, 0, tzinfo=kst)

        assert to_date_only_utc(value) == date(2024, 1, 15)
