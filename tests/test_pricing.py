"""Tests for the pricing policy."""
from decimal import Decimal

import pytest

from butler_ledger.exceptions import (
    ButlerValidationError,
    InvalidAmountError,
    UnknownOperationError,
)
from butler_ledger.pricing import (
    DELIVERY_DISPATCH,
    GROCERY_ORDER,
    MENU_VISION,
    PHONE_CALL,
    PLACE_ORDER,
    WEB_SEARCH,
    Price,
    compute_order_cost,
    resolve_price,
)


class TestFixedPrices:
    @pytest.mark.parametrize(
        "operation,expected",
        [
            (WEB_SEARCH, "0.50"),
            (PHONE_CALL, "0.10"),
            (MENU_VISION, "0.25"),
            (GROCERY_ORDER, "1.00"),
        ],
    )
    def test_default_prices(self, pricing, operation, expected):
        assert pricing.price(operation, {}).amount == Decimal(expected)

    def test_fixed_price_ignores_params(self, pricing):
        assert pricing.price(WEB_SEARCH, {"query": "x" * 500}).amount == Decimal("0.50")

    def test_unknown_operation(self, pricing):
        with pytest.raises(UnknownOperationError) as exc_info:
            pricing.price("teleport")
        assert exc_info.value.http_status == 404
        assert WEB_SEARCH in exc_info.value.details["available"]

    def test_non_positive_price_rejected(self):
        with pytest.raises(InvalidAmountError):
            resolve_price("freebie", lambda params: Price(amount=Decimal("0.00")))


class TestOrderPrice:
    def test_total_cost_overrides_formula(self, pricing):
        params = {"items": [{"name": "Taco", "price": 4, "quantity": 2}], "totalCost": 8}
        price = pricing.price(PLACE_ORDER, params)

        assert price.amount == Decimal("9.00")
        assert price.breakdown["orderCost"] == Decimal("8.00")
        assert price.breakdown["serviceFee"] == Decimal("1.00")

    def test_pickup_order_has_no_delivery_fees(self, pricing):
        cost = pricing.order_cost({"items": [{"name": "Taco", "price": 4, "quantity": 2}]})

        assert cost.subtotal == Decimal("8.00")
        assert cost.tax == Decimal("0.70")
        assert cost.delivery_fee == Decimal("0.00")
        assert cost.platform_fee == Decimal("0.00")
        assert cost.total == Decimal("9.70")

    def test_delivery_order_adds_fees_and_tip(self, pricing):
        cost = pricing.order_cost(
            {
                "items": [{"name": "Taco", "price": 4, "quantity": 2}],
                "deliveryAddress": "1 Main St",
                "tip": 2,
            }
        )

        assert cost.delivery_fee == Decimal("4.99")
        assert cost.platform_fee == Decimal("1.99")
        assert cost.tip == Decimal("2.00")
        assert cost.order_cost == Decimal("17.68")
        assert cost.total == Decimal("18.68")

    def test_explicit_subtotal_tax_and_delivery_fee(self, pricing):
        cost = pricing.order_cost(
            {"subtotal": "10.00", "tax": "1.00", "deliveryAddress": "x", "deliveryFee": "3.00"}
        )
        assert cost.order_cost == Decimal("15.99")

    def test_quantity_defaults_to_one(self, pricing):
        cost = pricing.order_cost({"items": [{"name": "Soda", "price": "2.50"}]})
        assert cost.subtotal == Decimal("2.50")

    @pytest.mark.parametrize(
        "items",
        [
            [{"name": "Taco"}],
            [{"name": "Taco", "price": 4, "quantity": 0}],
            [{"name": "Taco", "price": 4, "quantity": 1.5}],
            ["taco"],
            "taco",
        ],
    )
    def test_invalid_items(self, pricing, items):
        with pytest.raises(ButlerValidationError):
            pricing.order_cost({"items": items})

    def test_negative_price_rejected(self, pricing):
        with pytest.raises(InvalidAmountError):
            pricing.order_cost({"items": [{"name": "Taco", "price": -4}]})

    def test_compute_with_custom_rates(self):
        cost = compute_order_cost(
            {"subtotal": 100},
            tax_rate=Decimal("0.10"),
            service_fee=Decimal("2.00"),
            default_delivery_fee=Decimal("0"),
            platform_fee=Decimal("0"),
        )
        assert cost.tax == Decimal("10.00")
        assert cost.total == Decimal("112.00")


class TestDeliveryPrice:
    def test_base_fee_without_tip(self, pricing):
        price = pricing.price(DELIVERY_DISPATCH, {})
        assert price.amount == Decimal("5.99")
        assert price.breakdown == {"baseFee": Decimal("5.99"), "tip": Decimal("0.00")}

    def test_tip_is_added(self, pricing):
        assert pricing.price(DELIVERY_DISPATCH, {"tipAmount": 3}).amount == Decimal("8.99")
        assert pricing.price(DELIVERY_DISPATCH, {"tip": "1.50"}).amount == Decimal("7.49")

    def test_negative_tip_rejected(self, pricing):
        with pytest.raises(InvalidAmountError):
            pricing.price(DELIVERY_DISPATCH, {"tipAmount": -1})


def test_price_table_lists_every_operation(pricing):
    table = {row["operation"]: row for row in pricing.price_table()}
    assert set(table) == set(pricing.operations())
    assert table[WEB_SEARCH]["price"] == 0.5
    assert table[DELIVERY_DISPATCH]["pricing"] == "base fee + tip"
