"""Collaborator interfaces the placement service is written against.

The SQL implementations live in ``inventory``, ``cart``, ``ledger`` and
``activity``; ``memory`` provides in-process substitutes for tests.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Iterable, List, Optional, Protocol, Sequence, TypeVar

from .domain import Order, OrderLine, Variant

T = TypeVar("T")


class VariantStore(Protocol):
    def find_many_by_ids(self, ids: Iterable[int]) -> List[Variant]:
        """Return the variants that exist; missing ids are simply absent."""

    def decrement_stock(self, variant_id: int, amount: int) -> None:
        """Subtract ``amount`` or raise InsufficientStockError. Never clamps."""


class CartStore(Protocol):
    def clear_for_user(self, user_id: int) -> int:
        """Delete every cart line of the user and return how many went."""


class OrderLedger(Protocol):
    def create(
        self,
        user_id: int,
        total_amount: Decimal,
        payment_method: str,
        lines: Sequence[OrderLine],
    ) -> Order: ...

    def list_for_user(self, user_id: int) -> List[Order]: ...

    def get_for_user(self, user_id: int, order_id: int) -> Optional[Order]: ...


class ActivityRecorder(Protocol):
    def record(self, user_id: int, action: str, description: str) -> None: ...


@dataclass
class Transaction:
    """Stores bound to one open atomic unit."""

    variants: VariantStore
    carts: CartStore
    orders: OrderLedger
    activity: ActivityRecorder


class UnitOfWork(Protocol):
    def run(self, work: Callable[[Transaction], T]) -> T:
        """Run ``work`` in one transaction: commit on return, roll back on raise."""
