"""Weighted-average cost on stock inbound."""

from decimal import Decimal

import pytest

from storefront.services.cost_basis import new_average_cost


def test_blends_equal_batches():
    assert new_average_cost(10, Decimal("100.00"), 10, Decimal("200.00")) == Decimal("150.00")


def test_weighted_by_quantity():
    # (30 * 10 + 10 * 50) / 40 = 20
    assert new_average_cost(30, "10.00", 10, "50.00") == Decimal("20.00")


def test_zero_on_hand_takes_batch_cost():
    assert new_average_cost(0, Decimal("999.00"), 4, Decimal("12.50")) == Decimal("12.50")


def test_negative_on_hand_takes_batch_cost():
    assert new_average_cost(-3, Decimal("10.00"), 4, Decimal("12.50")) == Decimal("12.50")


def test_rounds_half_up_to_cents():
    # (1 * 0.01 + 2 * 0.02) / 3 = 0.01666...
    assert new_average_cost(1, "0.01", 2, "0.02") == Decimal("0.02")


def test_missing_prior_cost_counts_as_zero():
    assert new_average_cost(1, None, 1, "10.00") == Decimal("5.00")


@pytest.mark.parametrize("qty", [0, -1])
def test_rejects_non_positive_incoming(qty):
    with pytest.raises(ValueError):
        new_average_cost(5, "10.00", qty, "10.00")
