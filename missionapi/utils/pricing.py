"""주문 금액 계산 및 포인트 사용 한도 계산 (순수 함수)"""

import math
from typing import Tuple

from missionapi.schemas.order import OrderAmounts


def calculate_order_amounts(
    unit_price_krw: int, vat_percent: int, total_days: int, daily_target: int
) -> OrderAmounts:
    """
    상품 주문 금액 계산

    - total_qty = total_days * daily_target
    - budget_total = total_qty * unit_price
    - vat = round(budget_total * vat_percent / 100), .5 는 올림
    - total = budget_total + vat
    """
    total_qty = total_days * daily_target
    budget_total_krw = total_qty * unit_price_krw
    vat_amount_krw = math.floor(budget_total_krw * vat_percent / 100 + 0.5)
    total_amount_krw = budget_total_krw + vat_amount_krw

    return OrderAmounts(
        total_days=total_days,
        total_qty=total_qty,
        budget_total_krw=budget_total_krw,
        vat_amount_krw=vat_amount_krw,
        total_amount_krw=total_amount_krw,
    )


def clamp_points_applied(
    requested_points_krw: int, balance_krw: int, total_amount_krw: int
) -> Tuple[int, int]:
    """사용 가능한 포인트 상한(잔액과 결제 금액 중 작은 값)으로 요청 포인트를 제한

    Returns:
        (points_applied_krw, max_points_krw)
    """
    max_points_krw = max(0, min(balance_krw, total_amount_krw))
    points_applied_krw = max(0, min(requested_points_krw, max_points_krw))
    return points_applied_krw, max_points_krw


def calculate_reward_krw(unit_price_krw: int, reward_ratio: float) -> int:
    """회원 보상액 = 단가 * 보상 비율 (원 단위 절사)"""
    return max(0, math.floor(unit_price_krw * reward_ratio))
