"""
Тесты стратегий расчёта скидки и проверок применимости промокода.
Чистые функции, без базы данных.
"""

import time
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from backend.app.models.discount import (
    CartLine,
    CartSnapshot,
    DiscountApplied,
    DiscountCode,
    DiscountRejection,
    RejectionReason,
)
from backend.app.services.discount_engine import (
    check_min_order,
    check_validity_window,
    format_number,
    cheapest_units_total,
    lines_by_price,
    normalize_code,
    price_discount,
)


NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def make_code(**fields) -> DiscountCode:
    data = {"code": "SAVE10", "discount_type": "percentage", "discount_value": 10}
    data.update(fields)
    return DiscountCode(**data)


def make_cart(order_amount=0.0, items=()) -> CartSnapshot:
    return CartSnapshot(order_amount=order_amount, items=list(items))


def line(price, quantity=1, name="Eau de Parfum"):
    return {"price": price, "quantity": quantity, "name": name}


# ── Percentage / fixed ───────────────────────────────────────────────────

class TestPercentage:
    def test_percent_of_order_amount(self):
        result = price_discount(make_code(discount_value=15), make_cart(200))
        assert isinstance(result, DiscountApplied)
        assert result.discount_amount == pytest.approx(30)
        assert result.discount_details == {"percentage": 15}
        assert result.type == "percentage"
        assert result.value == 15

    def test_capped_by_max_discount(self):
        code = make_code(discount_value=50, max_discount=40)
        assert price_discount(code, make_cart(200)).discount_amount == 40

    def test_cap_not_applied_below_limit(self):
        code = make_code(discount_value=10, max_discount=40)
        assert price_discount(code, make_cart(200)).discount_amount == pytest.approx(20)

    def test_no_rounding(self):
        code = make_code(discount_value=10)
        assert price_discount(code, make_cart(33.33)).discount_amount == pytest.approx(3.333)


class TestFixed:
    @pytest.mark.parametrize("order_amount, expected", [(100, 25), (25, 25), (10, 10), (0, 0)])
    def test_never_exceeds_order_amount(self, order_amount, expected):
        code = make_code(discount_type="fixed", discount_value=25)
        result = price_discount(code, make_cart(order_amount))
        assert isinstance(result, DiscountApplied)
        assert result.discount_amount == expected
        assert result.discount_details == {"fixedAmount": 25}

    def test_amount_is_never_negative(self):
        code = make_code(discount_type="fixed", discount_value=25)
        assert price_discount(code, make_cart(-5)).discount_amount == 0


# ── Buy X Get X Free ─────────────────────────────────────────────────────

def bxgx(buy_x=1, get_x=1) -> DiscountCode:
    return make_code(
        code="B1G1", discount_type="percentage", discount_value=0,
        original_type="buyXgetX", buy_x=buy_x, get_x=get_x,
    )


class TestBuyXGetX:
    @pytest.mark.parametrize("prices", [(10, 30, 20), (30, 20, 10), (20, 10, 30)])
    def test_cheapest_unit_is_free_regardless_of_order(self, prices):
        cart = make_cart(60, [line(p) for p in prices])
        result = price_discount(bxgx(), cart)
        assert isinstance(result, DiscountApplied)
        assert result.discount_amount == 10
        assert result.type == "buyXgetX"
        assert result.discount_details == {
            "buyX": 1, "getX": 1, "freeItemsCount": 1, "type": "buyXgetX",
        }

    def test_quantities_expand_into_units(self):
        # 5 единиц, Buy 2 Get 1: один полный комплект, одна бесплатная единица
        cart = make_cart(0, [line(50, quantity=3), line(12, quantity=2)])
        result = price_discount(bxgx(buy_x=2, get_x=1), cart)
        assert result.discount_amount == 12
        assert result.discount_details["freeItemsCount"] == 1

    def test_several_sets(self):
        cart = make_cart(0, [line(40, 2), line(15, 2), line(25, 2)])
        result = price_discount(bxgx(buy_x=1, get_x=1), cart)
        # 6 единиц -> 3 комплекта -> 3 бесплатные: 15 + 15 + 25
        assert result.discount_details["freeItemsCount"] == 3
        assert result.discount_amount == 55

    def test_huge_quantity_is_priced_per_line(self):
        cart = make_cart(0, [line(1, quantity=10**12), line(3, quantity=2)])
        started = time.perf_counter()
        result = price_discount(bxgx(), cart)
        assert time.perf_counter() - started < 0.5
        assert result.discount_details["freeItemsCount"] == 500_000_000_001
        assert result.discount_amount == 500_000_000_001

    def test_missing_quantity_counts_as_one(self):
        cart = make_cart(0, [{"price": 10}, {"price": 20, "quantity": 0}])
        result = price_discount(bxgx(), cart)
        assert result.discount_amount == 10

    def test_insufficient_items(self):
        result = price_discount(bxgx(), make_cart(10, [line(10)]))
        assert isinstance(result, DiscountRejection)
        assert result.reason == RejectionReason.INSUFFICIENT_ITEMS
        assert result.to_response() == {
            "error": "Add 1 more item to your cart to apply this discount "
                     "(Buy 1 Get 1 Free - minimum 2 items required)",
            "neededItems": 1,
            "buyX": 1,
            "getX": 1,
            "minimumRequired": 2,
        }

    def test_insufficient_items_plural(self):
        result = price_discount(bxgx(buy_x=2, get_x=2), make_cart(10, [line(10)]))
        assert result.details["neededItems"] == 3
        assert result.message.startswith("Add 3 more items to your cart")

    def test_empty_cart(self):
        result = price_discount(bxgx(), make_cart(100))
        assert result.reason == RejectionReason.EMPTY_CART
        assert result.message == "Add items to your cart to apply this discount"

    @pytest.mark.parametrize("buy_x, get_x", [(None, 1), (1, None), (0, 1), (1, 0)])
    def test_invalid_configuration(self, buy_x, get_x):
        result = price_discount(bxgx(buy_x=buy_x, get_x=get_x), make_cart(10, [line(10, 3)]))
        assert result.reason == RejectionReason.INVALID_CONFIGURATION
        assert result.to_response() == {"error": "Invalid discount code configuration"}


# ── Buy X Get Y% off ─────────────────────────────────────────────────────

def bxgy(buy_x=2, percentage=50) -> DiscountCode:
    return make_code(
        code="B2G50", discount_type="percentage", discount_value=0,
        original_type="buyXgetYpercent", buy_x=buy_x, discount_percentage=percentage,
    )


class TestBuyXGetYPercent:
    def test_percentage_off_cheapest_unit(self):
        cart = make_cart(0, [line(90), line(40), line(60)])
        result = price_discount(bxgy(), cart)
        assert isinstance(result, DiscountApplied)
        assert result.discount_amount == 20
        assert result.discount_details == {
            "buyX": 2, "discountPercentage": 50, "type": "buyXgetYpercent",
        }

    def test_insufficient_items(self):
        result = price_discount(bxgy(buy_x=3, percentage=50), make_cart(0, [line(40)]))
        assert result.reason == RejectionReason.INSUFFICIENT_ITEMS
        assert result.to_response() == {
            "error": "Add 2 more items to get 50% off on the next item (Buy 3 Get 50% Off)",
            "neededItems": 2,
            "buyX": 3,
            "discountPercentage": 50,
        }

    def test_fractional_percentage_in_message(self):
        result = price_discount(bxgy(buy_x=2, percentage=12.5), make_cart(0, [line(40)]))
        assert "12.5% off" in result.message
        assert result.message.startswith("Add 1 more item to get")

    def test_empty_cart(self):
        assert price_discount(bxgy(), make_cart(0)).reason == RejectionReason.EMPTY_CART

    def test_invalid_configuration(self):
        result = price_discount(bxgy(percentage=None), make_cart(0, [line(10, 3)]))
        assert result.reason == RejectionReason.INVALID_CONFIGURATION


# ── Effective type ───────────────────────────────────────────────────────

class TestEffectiveType:
    def test_original_type_overrides_discount_type(self):
        code = bxgx()
        assert code.discount_type == "percentage"
        assert code.effective_type == "buyXgetX"

    def test_discount_type_used_without_original_type(self):
        assert make_code(discount_type="fixed").effective_type == "fixed"

    def test_unknown_type_is_unsupported(self):
        result = price_discount(make_code(original_type="freeShipping"), make_cart(100))
        assert result.reason == RejectionReason.UNSUPPORTED_TYPE
        assert result.to_response() == {"error": "This discount code type is not supported"}


# ── Eligibility gates ────────────────────────────────────────────────────

class TestValidityWindow:
    def test_open_ended(self):
        assert check_validity_window(make_code(), NOW) is None

    def test_not_yet_valid(self):
        code = make_code(valid_from=NOW + timedelta(seconds=1))
        result = check_validity_window(code, NOW)
        assert result.reason == RejectionReason.NOT_YET_VALID
        assert result.message == "Discount code is not yet valid"

    def test_boundaries_are_inclusive(self):
        code = make_code(valid_from=NOW, valid_until=NOW)
        assert check_validity_window(code, NOW) is None

    def test_expired_one_microsecond_later(self):
        code = make_code(valid_until=NOW)
        result = check_validity_window(code, NOW + timedelta(microseconds=1))
        assert result.reason == RejectionReason.EXPIRED
        assert result.message == "Discount code has expired"

    def test_naive_timestamps_are_utc(self):
        code = make_code(valid_until="2026-10-19 12:00:00")
        assert check_validity_window(code, NOW) is None
        assert check_validity_window(code, NOW + timedelta(seconds=1)) is not None


class TestMinOrder:
    def test_remaining_is_exact(self):
        result = check_min_order(make_code(min_purchase=100), 63)
        assert result.to_response() == {
            "error": "MIN_ORDER_AMOUNT",
            "minOrderAmount": 100,
            "minOrderRemaining": 37,
        }

    def test_equal_amount_passes(self):
        assert check_min_order(make_code(min_purchase=100), 100) is None

    def test_no_minimum(self):
        assert check_min_order(make_code(), 0) is None


# ── Helpers ──────────────────────────────────────────────────────────────

def test_normalize_code():
    assert normalize_code("  save10 ") == "SAVE10"


def test_format_number():
    assert format_number(50.0) == "50"
    assert format_number(12.5) == "12.5"
    assert format_number(3) == "3"


def test_lines_sorted_stably_by_price():
    first, cheap, second = CartLine(id="a", price=20, quantity=2), CartLine(price=5), CartLine(id="b", price=20)
    assert lines_by_price([first, cheap, second]) == [cheap, first, second]


def test_cheapest_units_total_spans_lines():
    items = [CartLine(price=20, quantity=2), CartLine(price=5), CartLine(price=20)]
    assert cheapest_units_total(items, 0) == 0
    assert cheapest_units_total(items, 2) == 25
    assert cheapest_units_total(items, 4) == 65


def test_cart_line_rejects_negative_quantity():
    with pytest.raises(ValidationError):
        CartLine(price=10, quantity=-1)
