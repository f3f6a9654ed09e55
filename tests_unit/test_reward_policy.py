"""Unit tests for the LTZ reward policy."""

from decimal import Decimal

import pytest

from loyalty_relay.schemas import RewardSummary
from loyalty_relay.services.reward_policy import (
    purchase_reward,
    referral_reward,
    signup_reward,
)


@pytest.mark.parametrize(
    "total, base, bonus",
    [
        ("50.00", 500, 0),
        ("100.00", 1000, 1000),
        ("99.999", 999, 0),
        ("99.99", 999, 0),
        ("0.01", 0, 0),
        ("0.29", 2, 0),
        ("45.00", 450, 0),
        ("250.55", 2505, 1000),
        ("0", 0, 0),
    ],
)
def test_purchase_reward(total, base, bonus):
    assert purchase_reward(Decimal(total)) == RewardSummary(base=base, bonus=bonus, total=base + bonus)


def test_purchase_reward_floors_instead_of_rounding():
    assert purchase_reward(Decimal("12.3499")).base == 123
    assert purchase_reward(Decimal("12.39")).base == 123


def test_purchase_reward_rejects_negative_totals():
    with pytest.raises(ValueError):
        purchase_reward(Decimal("-5.00"))


def test_fixed_rewards():
    assert signup_reward() == 500
    assert referral_reward() == 2000
