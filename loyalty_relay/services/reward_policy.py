"""LTZ reward policy.

WHAT:
    Pure functions that turn order totals into loyalty-token (LTZ) amounts.

RULES:
    - Purchase: 10 LTZ per currency unit, floored (99.999 -> 999)
    - Large order: flat 1000 LTZ bonus when the total is >= 100
    - Signup: 500 LTZ
    - Referral: 2000 LTZ

All math is Decimal. Binary floats would turn 0.29 * 10 into 2.8999...
and floor it to 2.
"""

from decimal import Decimal, ROUND_FLOOR

from ..schemas import RewardSummary

LTZ_PER_UNIT = 10
LARGE_ORDER_THRESHOLD = Decimal("100")
LARGE_ORDER_BONUS = 1000
MINIMUM_ORDER_TOTAL = Decimal("0.01")
SIGNUP_REWARD = 500
REFERRAL_REWARD = 2000


def purchase_reward(order_total: Decimal) -> RewardSummary:
    """Compute base, bonus and total LTZ for an order.

    Args:
        order_total: Order total as a Decimal (Shopify's `total_price`)

    Raises:
        ValueError: for negative totals, which callers must reject first
    """
    order_total = Decimal(order_total)
    if order_total < 0:
        raise ValueError(f"Order total cannot be negative: {order_total}")

    base = int((order_total * LTZ_PER_UNIT).to_integral_value(rounding=ROUND_FLOOR))
    bonus = LARGE_ORDER_BONUS if order_total >= LARGE_ORDER_THRESHOLD else 0
    return RewardSummary(base=base, bonus=bonus, total=base + bonus)


def signup_reward() -> int:
    return SIGNUP_REWARD


def referral_reward() -> int:
    return REFERRAL_REWARD
