"""
Расчёт скидки по промокоду.

Проверки выполняются строго по порядку, первая неудачная возвращает
DiscountRejection:

1. поиск активного кода (без учёта регистра и пробелов по краям);
2. срок действия (границы включительно);
3. лимит использований для пользователя или гостя с email;
4. минимальная сумма заказа;
5. расчёт по стратегии эффективного типа (original_type или discount_type).

Отказы - обычные значения. Исключение бывает только при сбое хранилища
(DiscountStoreError), его обрабатывает вызывающая сторона.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..models.discount import (
    CartLine,
    CartSnapshot,
    DiscountApplied,
    DiscountCode,
    DiscountRejection,
    DiscountType,
    Identity,
    PricingResult,
    RejectionReason,
    UserIdentity,
)
from .discount_store import DiscountStore


logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
Strategy = Callable[[DiscountCode, CartSnapshot], PricingResult]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_code(code: str) -> str:
    return code.strip().upper()


def format_number(value: Any) -> str:
    """50.0 -> "50", 12.5 -> "12.5"."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _items_word(count: int) -> str:
    return "item" if count == 1 else "items"


def _reject(reason: RejectionReason, message: str, **details: Any) -> DiscountRejection:
    return DiscountRejection(reason=reason, message=message, details=details)


def _applied(code: DiscountCode, amount: float, details: Dict[str, Any]) -> DiscountApplied:
    return DiscountApplied(
        discount_amount=amount if amount > 0 else 0.0,
        code=code.code,
        type=code.effective_type,
        value=code.discount_value,
        discount_details=details,
    )


def lines_by_price(items: Iterable[CartLine]) -> List[CartLine]:
    """Позиции корзины от самой дешёвой к самой дорогой.

    Сортировка стабильная и только по цене, поэтому порядок позиций
    с одинаковой ценой сохраняется.
    """
    return sorted(items, key=lambda item: item.price)


def cheapest_units_total(items: Iterable[CartLine], count: int) -> float:
    """Сумма цен `count` самых дешёвых единиц товара.

    Считается по позициям, а не по единицам: время не зависит от quantity.
    """
    total = 0.0
    remaining = count
    for item in lines_by_price(items):
        if remaining <= 0:
            break
        taken = min(item.quantity, remaining)
        total += item.price * taken
        remaining -= taken
    return total


# Стратегии

def price_percentage(code: DiscountCode, cart: CartSnapshot) -> PricingResult:
    amount = cart.order_amount * code.discount_value / 100
    if code.max_discount:
        amount = min(amount, code.max_discount)
    return _applied(code, amount, {"percentage": code.discount_value})


def price_fixed(code: DiscountCode, cart: CartSnapshot) -> PricingResult:
    amount = min(code.discount_value, cart.order_amount)
    return _applied(code, amount, {"fixedAmount": code.discount_value})


def price_buy_x_get_x(code: DiscountCode, cart: CartSnapshot) -> PricingResult:
    """Купи X, получи X бесплатно: бесплатными становятся самые дешёвые единицы."""
    if not cart.items:
        return _reject(RejectionReason.EMPTY_CART, "Add items to your cart to apply this discount")

    buy_x = code.buy_x or 0
    get_x = code.get_x or 0
    if buy_x <= 0 or get_x <= 0:
        return _reject(RejectionReason.INVALID_CONFIGURATION, "Invalid discount code configuration")

    total_quantity = cart.total_quantity
    minimum_required = buy_x + get_x
    if total_quantity < minimum_required:
        needed = minimum_required - total_quantity
        return _reject(
            RejectionReason.INSUFFICIENT_ITEMS,
            f"Add {needed} more {_items_word(needed)} to your cart to apply this discount "
            f"(Buy {buy_x} Get {get_x} Free - minimum {minimum_required} items required)",
            neededItems=needed,
            buyX=buy_x,
            getX=get_x,
            minimumRequired=minimum_required,
        )

    sets = total_quantity // minimum_required
    free_items_count = sets * get_x
    amount = cheapest_units_total(cart.items, free_items_count)

    return _applied(code, amount, {
        "buyX": buy_x,
        "getX": get_x,
        "freeItemsCount": free_items_count,
        "type": DiscountType.BUY_X_GET_X.value,
    })


def price_buy_x_get_y_percent(code: DiscountCode, cart: CartSnapshot) -> PricingResult:
    """Купи X, получи скидку Y% на следующий (самый дешёвый) товар."""
    if not cart.items:
        return _reject(RejectionReason.EMPTY_CART, "Add items to your cart to apply this discount")

    buy_x = code.buy_x or 0
    discount_percentage = code.discount_percentage or 0
    if buy_x <= 0 or discount_percentage <= 0:
        return _reject(RejectionReason.INVALID_CONFIGURATION, "Invalid discount code configuration")

    total_quantity = cart.total_quantity
    if total_quantity < buy_x:
        needed = buy_x - total_quantity
        percent = format_number(discount_percentage)
        return _reject(
            RejectionReason.INSUFFICIENT_ITEMS,
            f"Add {needed} more {_items_word(needed)} to get {percent}% off on the next item "
            f"(Buy {buy_x} Get {percent}% Off)",
            neededItems=needed,
            buyX=buy_x,
            discountPercentage=discount_percentage,
        )

    cheapest_price = lines_by_price(cart.items)[0].price
    amount = cheapest_price * discount_percentage / 100

    return _applied(code, amount, {
        "buyX": buy_x,
        "discountPercentage": discount_percentage,
        "type": DiscountType.BUY_X_GET_Y_PERCENT.value,
    })


STRATEGIES: Dict[DiscountType, Strategy] = {
    DiscountType.PERCENTAGE: price_percentage,
    DiscountType.FIXED: price_fixed,
    DiscountType.BUY_X_GET_X: price_buy_x_get_x,
    DiscountType.BUY_X_GET_Y_PERCENT: price_buy_x_get_y_percent,
}


def price_discount(code: DiscountCode, cart: CartSnapshot) -> PricingResult:
    """Выбирает стратегию по эффективному типу промокода и считает скидку."""
    kind = code.kind
    if kind is None:
        return _reject(RejectionReason.UNSUPPORTED_TYPE, "This discount code type is not supported")
    return STRATEGIES[kind](code, cart)


# Проверки применимости

def check_validity_window(code: DiscountCode, now: datetime) -> Optional[DiscountRejection]:
    if code.valid_from and now < code.valid_from:
        return _reject(RejectionReason.NOT_YET_VALID, "Discount code is not yet valid")
    if code.valid_until and now > code.valid_until:
        return _reject(RejectionReason.EXPIRED, "Discount code has expired")
    return None


def check_min_order(code: DiscountCode, order_amount: float) -> Optional[DiscountRejection]:
    if code.min_purchase and order_amount < code.min_purchase:
        return _reject(
            RejectionReason.MIN_ORDER_AMOUNT,
            "MIN_ORDER_AMOUNT",
            minOrderAmount=code.min_purchase,
            minOrderRemaining=code.min_purchase - order_amount,
        )
    return None


class DiscountResolver:
    """Проверяет промокод для корзины и покупателя и считает скидку.

    Ничего не записывает: использование промокода учитывается заказом,
    который ссылается на код. Между проверкой лимита и созданием заказа
    блокировки нет, при параллельных оформлениях лимит может быть
    немного превышен.
    """

    def __init__(self, store: DiscountStore, clock: Clock = _utcnow):
        self.store = store
        self.clock = clock

    async def resolve(self, code: str, cart: CartSnapshot, identity: Identity) -> PricingResult:
        normalized = normalize_code(code)

        discount = await self.store.find_active_code(normalized)
        if discount is None:
            result: PricingResult = _reject(RejectionReason.INVALID_CODE, "Invalid discount code")
        else:
            result = (
                check_validity_window(discount, self.clock())
                or await self._check_usage(discount, identity)
                or check_min_order(discount, cart.order_amount)
                or price_discount(discount, cart)
            )

        if isinstance(result, DiscountRejection):
            logger.info(f"[DISCOUNT] Code {normalized!r} rejected: {result.reason.value}")
        else:
            logger.info(
                f"[DISCOUNT] Code {result.code} applied ({result.type}): "
                f"discount={result.discount_amount} for order_amount={cart.order_amount}"
            )
        return result

    async def _check_usage(self, code: DiscountCode, identity: Identity) -> Optional[DiscountRejection]:
        limit = code.usage_limit
        if not limit or limit <= 0:
            return None

        if isinstance(identity, UserIdentity):
            used = await self.store.count_user_usage(identity.user_id, code.code)
            message = f"You have already used this discount code {limit} times."
        elif identity.email:
            used = await self.store.count_guest_usage(identity.email, code.code)
            message = f"This email has already used this discount code {limit} times."
        else:
            # Гостя без email не с чем сопоставить, лимит не проверяется
            return None

        if used >= limit:
            return _reject(RejectionReason.USAGE_LIMIT_REACHED, message)
        return None
