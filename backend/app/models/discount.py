"""
Модели промокодов, корзины и результата расчёта скидки.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_core import PydanticCustomError


class DiscountType(str, Enum):
    """Тип скидки (эффективный, с учётом original_type)."""
    PERCENTAGE = "percentage"  # Процент от суммы заказа
    FIXED = "fixed"  # Фиксированная сумма
    BUY_X_GET_X = "buyXgetX"  # Купи X, получи X бесплатно
    BUY_X_GET_Y_PERCENT = "buyXgetYpercent"  # Купи X, скидка Y% на следующий товар


COMPOSITE_TYPES = (DiscountType.BUY_X_GET_X, DiscountType.BUY_X_GET_Y_PERCENT)


def composite_config_error(
    kind: Optional[DiscountType],
    buy_x: Optional[int],
    get_x: Optional[int],
    discount_percentage: Optional[float],
) -> Optional[str]:
    """Проверяет параметры составной скидки. Возвращает текст ошибки или None."""
    if kind == DiscountType.BUY_X_GET_X and not (buy_x and get_x):
        return "Buy X and Get X quantities are required for this discount type"
    if kind == DiscountType.BUY_X_GET_Y_PERCENT and not (buy_x and discount_percentage):
        return "Buy X quantity and discount percentage are required for this discount type"
    return None


def _to_utc(value: Optional[datetime]) -> Optional[datetime]:
    # В SQLite даты могут храниться без часового пояса, считаем их UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class DiscountCode(BaseModel):
    """Промокод в том виде, в каком он хранится в таблице discount_codes."""
    id: Optional[int] = None
    code: str
    description: Optional[str] = None
    discount_type: str = "percentage"
    discount_value: float = 0
    # Старые записи хранят составной тип здесь, а в discount_type - тип расчёта
    original_type: Optional[str] = None
    min_purchase: Optional[float] = None
    max_discount: Optional[float] = None
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    usage_limit: Optional[int] = None
    usage_count: int = 0
    is_active: bool = True
    buy_x: Optional[int] = None
    get_x: Optional[int] = None
    discount_percentage: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_validator("discount_value", "usage_count", mode="before")
    @classmethod
    def _none_to_zero(cls, v):
        return 0 if v is None else v

    @field_validator("valid_from", "valid_until", "created_at", "updated_at")
    @classmethod
    def _aware(cls, v):
        return _to_utc(v)

    @property
    def effective_type(self) -> str:
        """Тип, по которому выбирается стратегия: original_type, иначе discount_type."""
        return self.original_type or self.discount_type

    @property
    def kind(self) -> Optional[DiscountType]:
        """Эффективный тип как элемент перечисления или None для неизвестных типов."""
        try:
            return DiscountType(self.effective_type)
        except ValueError:
            return None

    def admin_view(self) -> Dict[str, Any]:
        """Представление промокода для админ-панели."""
        return {
            "id": self.id,
            "code": self.code,
            "type": self.effective_type,
            "value": self.discount_value,
            "minOrderAmount": self.min_purchase,
            "maxDiscount": self.max_discount,
            "maxUses": self.usage_limit,
            "currentUses": self.usage_count,
            "isActive": self.is_active,
            "validFrom": self.valid_from.isoformat() if self.valid_from else None,
            "expiresAt": self.valid_until.isoformat() if self.valid_until else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
            "description": self.description,
            "buyX": self.buy_x,
            "getX": self.get_x,
            "discountPercentage": self.discount_percentage,
        }


class CartLine(BaseModel):
    """Позиция корзины, присланная клиентом."""
    model_config = ConfigDict(extra="ignore")

    id: Optional[Any] = None
    name: Optional[str] = ""
    price: float = 0
    quantity: int = 1

    @field_validator("price", mode="before")
    @classmethod
    def _default_price(cls, v):
        return v or 0

    @field_validator("quantity", mode="before")
    @classmethod
    def _default_quantity(cls, v):
        # Отсутствующее или нулевое количество считается одной единицей
        return v or 1

    @field_validator("quantity")
    @classmethod
    def _positive_quantity(cls, v):
        if v < 1:
            raise ValueError("quantity must be positive")
        return v


class CartSnapshot(BaseModel):
    """Содержимое заказа на момент проверки промокода."""
    order_amount: float = 0
    items: List[CartLine] = Field(default_factory=list)

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)


class UserIdentity(BaseModel):
    """Зарегистрированный пользователь."""
    kind: Literal["user"] = "user"
    user_id: str

    @field_validator("user_id", mode="before")
    @classmethod
    def _as_str(cls, v):
        return str(v)


class GuestIdentity(BaseModel):
    """Гость; email необязателен."""
    kind: Literal["guest"] = "guest"
    email: Optional[str] = None


Identity = Union[UserIdentity, GuestIdentity]


class RejectionReason(str, Enum):
    """Причина отказа в применении промокода."""
    INVALID_CODE = "invalid_code"
    NOT_YET_VALID = "not_yet_valid"
    EXPIRED = "expired"
    USAGE_LIMIT_REACHED = "usage_limit_reached"
    MIN_ORDER_AMOUNT = "min_order_amount"
    EMPTY_CART = "empty_cart"
    INVALID_CONFIGURATION = "invalid_configuration"
    INSUFFICIENT_ITEMS = "insufficient_items"
    UNSUPPORTED_TYPE = "unsupported_type"


class DiscountRejection(BaseModel):
    """Промокод не применим. Это ожидаемый результат, а не ошибка."""
    valid: Literal[False] = False
    reason: RejectionReason
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)

    def to_response(self) -> Dict[str, Any]:
        return {"error": self.message, **self.details}


class DiscountApplied(BaseModel):
    """Промокод применим, посчитанная скидка."""
    model_config = ConfigDict(populate_by_name=True)

    valid: Literal[True] = True
    discount_amount: float = Field(alias="discountAmount")
    code: str
    type: str
    value: float
    discount_details: Dict[str, Any] = Field(default_factory=dict, alias="discountDetails")

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


PricingResult = Union[DiscountApplied, DiscountRejection]


class DiscountValidate(BaseModel):
    """Запрос на проверку промокода."""
    model_config = ConfigDict(populate_by_name=True)

    # Типы полей проверяются в обработчике, чтобы вернуть 400 с понятной ошибкой вместо 422
    code: Optional[Any] = None
    order_amount: Optional[Any] = Field(None, alias="orderAmount")
    items: Optional[Any] = None
    email: Optional[Any] = None


class DiscountCodeCreate(BaseModel):
    """Модель для создания промокода из админ-панели."""
    model_config = ConfigDict(populate_by_name=True)

    code: Optional[str] = None
    type: Optional[str] = None
    value: Optional[float] = None
    min_order_amount: Optional[float] = Field(None, alias="minOrderAmount")
    max_discount: Optional[float] = Field(None, alias="maxDiscount")
    max_uses: Optional[int] = Field(None, alias="maxUses")
    valid_from: Optional[datetime] = Field(None, alias="validFrom")
    expires_at: Optional[datetime] = Field(None, alias="expiresAt")
    description: Optional[str] = None
    buy_x: Optional[int] = Field(None, alias="buyX")
    get_x: Optional[int] = Field(None, alias="getX")
    discount_percentage: Optional[float] = Field(None, alias="discountPercentage")

    @model_validator(mode="after")
    def _check_type_config(self):
        if not (self.code or "").strip() or not self.type:
            raise PydanticCustomError("discount_code", "Code and type are required")
        try:
            kind = DiscountType(self.type)
        except ValueError:
            raise PydanticCustomError("discount_code", "Unsupported discount type")
        if kind not in COMPOSITE_TYPES and not self.value:
            raise PydanticCustomError("discount_code", "Value is required for this discount type")
        error = composite_config_error(kind, self.buy_x, self.get_x, self.discount_percentage)
        if error:
            raise PydanticCustomError("discount_code", error)
        return self

    def to_row(self) -> Dict[str, Any]:
        """Строка для таблицы discount_codes."""
        kind = DiscountType(self.type)
        composite = kind in COMPOSITE_TYPES
        return {
            "code": self.code.strip().upper(),
            "description": self.description or None,
            # Составные типы хранятся как percentage с исходным типом в original_type
            "discount_type": DiscountType.PERCENTAGE.value if composite else kind.value,
            "discount_value": 0 if composite else float(self.value),
            "original_type": kind.value,
            "min_purchase": self.min_order_amount or None,
            "max_discount": self.max_discount or None,
            "valid_from": _to_utc(self.valid_from).isoformat() if self.valid_from else None,
            "valid_until": _to_utc(self.expires_at).isoformat() if self.expires_at else None,
            "usage_limit": self.max_uses or None,
            "usage_count": 0,
            "is_active": 1,
            "buy_x": self.buy_x or None,
            "get_x": self.get_x or None,
            "discount_percentage": self.discount_percentage or None,
        }


class DiscountCodeUpdate(BaseModel):
    """Модель для частичного обновления промокода."""
    model_config = ConfigDict(populate_by_name=True)

    code: Optional[str] = None
    type: Optional[str] = None
    value: Optional[float] = None
    min_order_amount: Optional[float] = Field(None, alias="minOrderAmount")
    max_discount: Optional[float] = Field(None, alias="maxDiscount")
    max_uses: Optional[int] = Field(None, alias="maxUses")
    valid_from: Optional[datetime] = Field(None, alias="validFrom")
    expires_at: Optional[datetime] = Field(None, alias="expiresAt")
    is_active: Optional[bool] = Field(None, alias="isActive")
    description: Optional[str] = None
    buy_x: Optional[int] = Field(None, alias="buyX")
    get_x: Optional[int] = Field(None, alias="getX")
    discount_percentage: Optional[float] = Field(None, alias="discountPercentage")

    @field_validator("type")
    @classmethod
    def _known_type(cls, v):
        if v is not None and v not in {t.value for t in DiscountType}:
            raise PydanticCustomError("discount_code", "Unsupported discount type")
        return v

    def to_row(self) -> Dict[str, Any]:
        """Только присланные поля, в именах колонок discount_codes."""
        sent = self.model_fields_set
        row: Dict[str, Any] = {}

        if "code" in sent and self.code:
            row["code"] = self.code.strip().upper()
        if "type" in sent and self.type:
            composite = DiscountType(self.type) in COMPOSITE_TYPES
            row["discount_type"] = DiscountType.PERCENTAGE.value if composite else self.type
            row["original_type"] = self.type
        if "value" in sent:
            row["discount_value"] = float(self.value or 0)
        if "min_order_amount" in sent:
            row["min_purchase"] = self.min_order_amount or None
        if "max_discount" in sent:
            row["max_discount"] = self.max_discount or None
        if "max_uses" in sent:
            row["usage_limit"] = self.max_uses or None
        if "valid_from" in sent:
            row["valid_from"] = _to_utc(self.valid_from).isoformat() if self.valid_from else None
        if "expires_at" in sent:
            row["valid_until"] = _to_utc(self.expires_at).isoformat() if self.expires_at else None
        if "is_active" in sent and self.is_active is not None:
            row["is_active"] = 1 if self.is_active else 0
        if "description" in sent:
            row["description"] = self.description or None
        if "buy_x" in sent:
            row["buy_x"] = self.buy_x or None
        if "get_x" in sent:
            row["get_x"] = self.get_x or None
        if "discount_percentage" in sent:
            row["discount_percentage"] = self.discount_percentage or None
        return row
