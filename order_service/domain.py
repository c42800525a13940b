"""Typed records passed between the stores and the placement service."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
import enum
from typing import Optional

CENTS = Decimal("0.01")


def to_money(value) -> Decimal:
    """Quantize to two fractional digits. Floats are refused."""
    if isinstance(value, float):
        raise TypeError("money must not be a float")
    return Decimal(value).quantize(CENTS)


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class LineItem:
    variant_id: int
    quantity: int


@dataclass(frozen=True)
class Variant:
    id: int
    product_id: Optional[int]
    product_name: str
    size: Optional[str]
    color: Optional[str]
    edition: Optional[str]
    price: Decimal
    stock_qty: int


@dataclass(frozen=True)
class OrderLine:
    variant_id: Optional[int]
    product_name: str
    size: Optional[str]
    color: Optional[str]
    edition: Optional[str]
    unit_price: Decimal
    quantity: int
    id: Optional[int] = None
    order_id: Optional[int] = None

    @property
    def subtotal(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)

    @classmethod
    def snapshot(cls, variant: Variant, quantity: int) -> "OrderLine":
        """Freeze the variant's current catalog data into an order line."""
        return cls(
            variant_id=variant.id,
            product_name=variant.product_name,
            size=variant.size,
            color=variant.color,
            edition=variant.edition,
            unit_price=to_money(variant.price),
            quantity=quantity,
        )


@dataclass(frozen=True)
class Order:
    id: int
    user_id: int
    total_amount: Decimal
    payment_method: str
    is_paid: bool
    status: OrderStatus
    created_at: datetime
    lines: tuple = field(default_factory=tuple)

    @property
    def item_count(self) -> int:
        return len(self.lines)
