"""Discount policy and product projection."""

from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest

from utils.pricing import evaluate_discount, is_discount_active, project_product

from fakes import utc

NOW = utc(2025, 6, 15, 12, 0, 0)


def _product(**overrides):
    data = dict(
        id="p1", name="Phone", description="d", price=Decimal("100.00"), stock_quantity=5,
        image_url=None, discount_percentage=None, discount_start_date=None,
        discount_end_date=None, created_at=NOW, updated_at=NOW,
    )
    data.update(overrides)
    return SimpleNamespace(**data)


class TestDiscountActivation:

    def test_scenario_twenty_percent_in_window(self):
        result = evaluate_discount("100.00", 20, utc(2020, 1, 1), utc(2030, 12, 31), NOW)
        assert result.is_discount_active is True
        assert result.effective_price == Decimal("80.00")
        assert result.discount_amount == Decimal("20.00")

    @pytest.mark.parametrize("percentage", [None, 0, "0", Decimal("0.00"), -5])
    def test_no_or_zero_percentage_never_active(self, percentage):
        result = evaluate_discount(50, percentage, utc(2020, 1, 1), utc(2030, 1, 1), NOW)
        assert result.is_discount_active is False
        assert result.effective_price == Decimal("50.00")
        assert result.discount_amount == Decimal("0.00")

    def test_open_bounds(self):
        assert is_discount_active(10, None, None, NOW)
        assert is_discount_active(10, utc(2025, 1, 1), None, NOW)
        assert is_discount_active(10, None, utc(2026, 1, 1), NOW)

    def test_outside_window(self):
        assert not is_discount_active(10, utc(2025, 7, 1), utc(2025, 8, 1), NOW)
        assert not is_discount_active(10, utc(2025, 1, 1), utc(2025, 6, 1), NOW)

    def test_bounds_are_inclusive(self):
        assert is_discount_active(10, NOW, utc(2026, 1, 1), NOW)
        assert is_discount_active(10, utc(2025, 1, 1), NOW, NOW)
        assert not is_discount_active(10, NOW + timedelta(microseconds=1), None, NOW)
        assert not is_discount_active(10, None, NOW - timedelta(microseconds=1), NOW)

    def test_naive_datetimes_are_utc(self):
        naive_start = datetime(2025, 6, 15, 12, 0, 0)
        assert is_discount_active(10, naive_start, None, NOW)


class TestDiscountAmounts:

    @pytest.mark.parametrize(
        "price,pct",
        [("19.99", 15), ("0.01", 50), ("999.99", "33.33"), ("100.00", 100), ("12.34", "0.5")],
    )
    def test_effective_plus_discount_equals_price(self, price, pct):
        result = evaluate_discount(price, pct, None, None, NOW)
        assert result.is_discount_active
        assert result.effective_price + result.discount_amount == Decimal(price)
        assert result.effective_price == Decimal(price) - (Decimal(price) * Decimal(str(pct)) / 100).quantize(Decimal("0.01"), rounding="ROUND_HALF_UP")

    def test_full_discount_is_free(self):
        result = evaluate_discount("42.00", 100, None, None, NOW)
        assert result.effective_price == Decimal("0.00")
        assert result.discount_amount == Decimal("42.00")


class TestProjection:

    def test_projection_attaches_derived_fields(self):
        view = project_product(_product(discount_percentage=Decimal("25.00")), NOW)
        assert view["original_price"] == Decimal("100.00")
        assert view["effective_price"] == Decimal("75.00")
        assert view["discount_amount"] == Decimal("25.00")
        assert view["is_discount_active"] is True
        assert view["discount_percentage"] == Decimal("25.00")

    def test_projection_changes_across_window_boundary(self):
        product = _product(
            discount_percentage=Decimal("10"),
            discount_start_date=utc(2025, 6, 1),
            discount_end_date=utc(2025, 6, 30),
        )
        before = project_product(product, utc(2025, 5, 31))
        during = project_product(product, utc(2025, 6, 10))
        after = project_product(product, utc(2025, 7, 1))
        assert before["effective_price"] == Decimal("100.00")
        assert during["effective_price"] == Decimal("90.00")
        assert after["effective_price"] == Decimal("100.00")
        assert [before["is_discount_active"], during["is_discount_active"], after["is_discount_active"]] == [
            False, True, False
        ]

    def test_projection_without_discount(self):
        view = project_product(_product(), NOW)
        assert view["discount_percentage"] is None
        assert view["is_discount_active"] is False
        assert view["effective_price"] == view["original_price"]
