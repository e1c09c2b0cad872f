"""
Pydantic schemas for request validation and the typed order ``meta`` bag.
"""

from __future__ import annotations

import re
from typing import Annotated, Any, Literal, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
    model_validator,
)

from qrnr_shared.constants import AdminRole, OrderType, PaymentStatus

_DIGITS = re.compile(r"^\d+$")


def coerce_amount(value: Any) -> int:
    """
    Coerce an amount in the smallest currency unit to a non-negative int.

    ``"1500"`` and ``1500.0`` are accepted; ``"abc"``, ``"15.5"``, booleans and
    negative values are not.
    """
    if isinstance(value, bool):
        raise ValueError("amount must be an integer")
    if isinstance(value, int):
        amount = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise ValueError("amount must be an integer")
        amount = int(value)
    elif isinstance(value, str):
        text = value.strip().replace(",", "")
        if not _DIGITS.match(text):
            raise ValueError("amount must be an integer")
        amount = int(text)
    else:
        raise ValueError("amount must be an integer")

    if amount < 0:
        raise ValueError("amount must not be negative")
    return amount


Amount = Annotated[int, Field(ge=0)]


# ---------------------------------------------------------------------------
# Order meta (tagged union per order type)
# ---------------------------------------------------------------------------


class CartItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    name: str = Field(..., min_length=1, max_length=255)
    price: Amount = 0
    qty: int = Field(default=1, ge=1)
    options: list[Any] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, v):
        return None if v is None else str(v)

    @field_validator("price", mode="before")
    @classmethod
    def coerce_price(cls, v):
        return coerce_amount(v)


class CustomerInfo(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str | None = None
    phone: str | None = None
    addr: str | None = None
    memo: str | None = Field(default=None, validation_alias=AliasChoices("memo", "req"))


class PaymentInfo(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: PaymentStatus = PaymentStatus.UNPAID
    paymentKey: str | None = None
    method: str | None = None
    approvedAt: str | None = None


class _OrderMetaBase(BaseModel):
    model_config = ConfigDict(extra="forbid")

    orderName: str | None = None
    cart: list[CartItem] = Field(default_factory=list)
    customer: CustomerInfo | None = None
    memo: str = ""
    payment: PaymentInfo = Field(default_factory=PaymentInfo)


class StoreOrderMeta(_OrderMetaBase):
    type: Literal["store"] = "store"


class DeliveryOrderMeta(_OrderMetaBase):
    type: Literal["delivery"] = "delivery"
    reserveDate: str | None = None
    reserveTime: str | None = None


class ReserveOrderMeta(_OrderMetaBase):
    type: Literal["reserve"] = "reserve"
    reserveDate: str = Field(..., min_length=1)
    reserveTime: str = Field(..., min_length=1)


OrderMeta = Annotated[
    Union[StoreOrderMeta, DeliveryOrderMeta, ReserveOrderMeta],
    Field(discriminator="type"),
]
ORDER_META_ADAPTER: TypeAdapter = TypeAdapter(OrderMeta)

READ_ONLY_META_KEYS = {"history", "type"}


def build_order_meta(order_type: OrderType | str, data: dict[str, Any]) -> dict[str, Any]:
    """Validate ``data`` as the meta of an order of ``order_type`` and dump it as JSON."""
    payload = {**data, "type": OrderType(order_type).value}
    meta = ORDER_META_ADAPTER.validate_python(payload)
    return meta.model_dump(mode="json")


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


class CreateOrderRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    store_id: str | None = Field(default=None, validation_alias=AliasChoices("storeId", "store_id"))
    type: OrderType = OrderType.STORE
    amount: Amount = 0
    order_no: str | None = Field(
        default=None,
        max_length=64,
        validation_alias=AliasChoices("orderNo", "orderId"),
    )
    table_no: str | None = Field(
        default=None, max_length=32, validation_alias=AliasChoices("table", "tableNo")
    )
    order_name: str | None = Field(default=None, validation_alias=AliasChoices("orderName"))
    cart: list[CartItem] = Field(default_factory=list)
    customer: CustomerInfo | None = None
    memo: str | None = None
    reserve_date: str | None = Field(default=None, validation_alias=AliasChoices("reserveDate"))
    reserve_time: str | None = Field(
        default=None, validation_alias=AliasChoices("reserveTime", "time")
    )

    @field_validator("amount", mode="before")
    @classmethod
    def validate_amount(cls, v):
        return coerce_amount(v)

    @field_validator("table_no", "order_no", mode="before")
    @classmethod
    def stringify(cls, v):
        if v is None or v == "":
            return None
        return str(v).strip()

    def meta_payload(self) -> dict[str, Any]:
        memo = self.memo
        if not memo and self.customer is not None:
            memo = self.customer.memo
        data: dict[str, Any] = {
            "orderName": self.order_name or "주문",
            "cart": [item.model_dump() for item in self.cart],
            "customer": self.customer.model_dump() if self.customer else None,
            "memo": memo or "",
        }
        if self.type in (OrderType.DELIVERY, OrderType.RESERVE):
            data["reserveDate"] = self.reserve_date
            data["reserveTime"] = self.reserve_time
        return data


class UpdateOrderRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    status: str | None = None
    meta: dict[str, Any] | None = None

    @model_validator(mode="after")
    def require_change(self):
        if self.status is None and self.meta is None:
            raise ValueError("status or meta is required")
        return self


class PaymentConfirmRequest(BaseModel):
    paymentKey: str = Field(..., min_length=1)
    amount: Amount
    method: str | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def validate_amount(cls, v):
        return coerce_amount(v)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    uid: str = Field(..., validation_alias=AliasChoices("uid", "id"))
    pwd: str = Field(..., validation_alias=AliasChoices("pwd", "pw", "password"))
    store_id: str | None = Field(default=None, validation_alias=AliasChoices("storeId", "store_id"))

    @field_validator("uid", "pwd")
    @classmethod
    def strip_required(cls, v):
        v = str(v).strip()
        if not v:
            raise ValueError("ID_AND_PASSWORD_REQUIRED")
        return v


# ---------------------------------------------------------------------------
# Stores, admins, mappings
# ---------------------------------------------------------------------------

_SLUG = r"^[A-Za-z0-9_-]{1,64}$"


class StoreCreateRequest(BaseModel):
    storeId: str = Field(..., pattern=_SLUG)
    code: str = Field(..., min_length=1, max_length=32)
    name: str = Field(default="", max_length=255)
    qrLimit: int | None = Field(default=None, ge=0)


class StoreUpdateRequest(BaseModel):
    storeId: str = Field(..., min_length=1)
    code: str | None = Field(default=None, min_length=1, max_length=32)
    name: str | None = Field(default=None, max_length=255)
    qrLimit: int | None = Field(default=None, ge=0)


class StoreKeyRequest(BaseModel):
    storeId: str = Field(..., min_length=1)


class AdminRegisterRequest(BaseModel):
    id: str = Field(..., min_length=3, max_length=64, pattern=r"^[A-Za-z0-9_.@-]+$")
    password: str = Field(..., min_length=4)
    name: str | None = Field(default=None, max_length=255)
    role: str = "admin"
    storeId: str | None = None
    email: str | None = Field(default=None, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    phone: str | None = None

    @field_validator("role")
    @classmethod
    def validate_role(cls, v):
        if v not in AdminRole.all_values():
            raise ValueError(f"invalid role: {v}")
        return v


class AdminDeleteRequest(BaseModel):
    adminId: str = Field(..., min_length=1)


class MappingUpsertRequest(BaseModel):
    adminId: str = Field(..., validation_alias=AliasChoices("adminId", "adminKey"))
    storeId: str = Field(..., min_length=1)
    note: str | None = None
    isDefault: bool = False


class MappingDeleteRequest(BaseModel):
    adminId: str = Field(..., validation_alias=AliasChoices("adminId", "adminKey"))
    storeId: str = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Calls, settings
# ---------------------------------------------------------------------------


class CallRequest(BaseModel):
    storeId: str = Field(..., min_length=1)
    table: str | None = None
    note: str = Field(default="", max_length=500)

    @field_validator("table", mode="before")
    @classmethod
    def stringify_table(cls, v):
        if v is None or v == "":
            return None
        return str(v)


class StoreSettingsRequest(BaseModel):
    ownerBank: dict[str, Any]
