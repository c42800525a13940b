"""In-process stores with the same contracts as the SQL ones.

``InMemoryUnitOfWork`` serialises atomic units with a lock and restores a
copy of the state when the unit raises, so the placement service behaves the
same against these fakes as against a database.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
import itertools
import threading
from typing import Dict, List

import structlog

from .domain import Order, OrderStatus, Variant
from .errors import InsufficientStockError, OrderError, PersistenceError
from .ports import Transaction

logger = structlog.get_logger(__name__)


@dataclass
class CartLine:
    user_id: int
    variant_id: int
    quantity: int
    added_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class ActivityEntry:
    user_id: int
    action: str
    description: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class InMemoryState:
    variants: Dict[int, Variant] = field(default_factory=dict)
    cart: List[CartLine] = field(default_factory=list)
    orders: Dict[int, Order] = field(default_factory=dict)
    activity: List[ActivityEntry] = field(default_factory=list)
    next_order_id: int = 1
    next_line_id: int = 1


class InMemoryVariantStore:
    def __init__(self, state: InMemoryState):
        self.state = state

    def find_many_by_ids(self, ids):
        return [self.state.variants[i] for i in set(ids) if i in self.state.variants]

    def decrement_stock(self, variant_id, amount):
        variant = self.state.variants.get(variant_id)
        if variant is None or variant.stock_qty < amount:
            raise InsufficientStockError(
                variant_id=variant_id,
                product_name=variant.product_name if variant else "",
                size=variant.size if variant else None,
                color=variant.color if variant else None,
                requested=amount,
                available=variant.stock_qty if variant else 0,
            )
        self.state.variants[variant_id] = replace(variant, stock_qty=variant.stock_qty - amount)


class InMemoryCartStore:
    def __init__(self, state: InMemoryState):
        self.state = state

    def clear_for_user(self, user_id):
        kept = [line for line in self.state.cart if line.user_id != user_id]
        removed = len(self.state.cart) - len(kept)
        self.state.cart = kept
        return removed


class InMemoryOrderLedger:
    def __init__(self, state: InMemoryState):
        self.state = state

    def create(self, user_id, total_amount, payment_method, lines, status=OrderStatus.PROCESSING, is_paid=True):
        order_id = self.state.next_order_id
        self.state.next_order_id += 1
        line_ids = itertools.count(self.state.next_line_id)
        stored = tuple(replace(line, id=next(line_ids), order_id=order_id) for line in lines)
        self.state.next_line_id += len(stored)
        order = Order(
            id=order_id,
            user_id=user_id,
            total_amount=total_amount,
            payment_method=payment_method,
            is_paid=is_paid,
            status=status,
            created_at=datetime.now(timezone.utc),
            lines=stored,
        )
        self.state.orders[order_id] = order
        return order

    def list_for_user(self, user_id):
        orders = [o for o in self.state.orders.values() if o.user_id == user_id]
        return sorted(orders, key=lambda o: (o.created_at, o.id), reverse=True)

    def get_for_user(self, user_id, order_id):
        order = self.state.orders.get(order_id)
        if order is None or order.user_id != user_id:
            return None
        return order


class InMemoryActivityRecorder:
    def __init__(self, state: InMemoryState):
        self.state = state

    def record(self, user_id, action, description):
        self.state.activity.append(ActivityEntry(user_id=user_id, action=action, description=description))


class InMemoryUnitOfWork:
    def __init__(self, state: InMemoryState = None):
        self.state = state if state is not None else InMemoryState()
        self._lock = threading.Lock()

    def transaction(self) -> Transaction:
        return Transaction(
            variants=InMemoryVariantStore(self.state),
            carts=InMemoryCartStore(self.state),
            orders=InMemoryOrderLedger(self.state),
            activity=InMemoryActivityRecorder(self.state),
        )

    def run(self, work):
        with self._lock:
            saved = copy.deepcopy(self.state.__dict__)
            try:
                return work(self.transaction())
            except OrderError:
                self.state.__dict__.update(saved)
                raise
            except Exception as exc:
                self.state.__dict__.update(saved)
                logger.exception("Transaction rolled back", error=str(exc))
                raise PersistenceError() from exc

    # Seeding helpers, used outside any atomic unit.

    def add_variant(self, variant: Variant) -> Variant:
        self.state.variants[variant.id] = variant
        return variant

    def add_to_cart(self, user_id: int, variant_id: int, quantity: int = 1) -> None:
        self.state.cart.append(CartLine(user_id=user_id, variant_id=variant_id, quantity=quantity))

    def set_price(self, variant_id: int, price) -> None:
        self.state.variants[variant_id] = replace(self.state.variants[variant_id], price=price)
