"""Order placement: validate, check stock, price, and commit in one transaction."""
from __future__ import annotations

from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import List, Optional

import structlog

from .activity import CREATE_ORDER
from .domain import LineItem, Order, OrderLine, to_money
from .errors import (
    EmptyOrderError,
    InsufficientStockError,
    InvalidItemError,
    OrderNotFoundError,
    VariantNotFoundError,
)
from .messaging.producer import order_placed_event
from .ports import Transaction, UnitOfWork

logger = structlog.get_logger(__name__)

DEFAULT_PAYMENT_METHOD = "Credit Card"
ORDER_PLACED = "order.placed"


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def parse_items(items) -> List[LineItem]:
    """Check the shape of the submitted items without touching any store."""
    if not items or isinstance(items, (str, bytes, Mapping)) or not isinstance(items, Sequence):
        raise EmptyOrderError()

    parsed = []
    for index, item in enumerate(items):
        if isinstance(item, LineItem):
            variant_id, quantity = item.variant_id, item.quantity
        elif isinstance(item, Mapping):
            variant_id, quantity = item.get("variant_id"), item.get("quantity")
        else:
            raise InvalidItemError(index, "item must have a variant_id and a quantity")

        if not _is_int(variant_id) or variant_id < 1:
            raise InvalidItemError(index, "variant_id must be a positive integer")
        if not _is_int(quantity) or quantity < 1:
            raise InvalidItemError(index, "quantity must be a positive integer")
        parsed.append(LineItem(variant_id=variant_id, quantity=quantity))
    return parsed


class OrderPlacementService:
    def __init__(self, unit_of_work: UnitOfWork, event_publisher=None, default_payment_method=DEFAULT_PAYMENT_METHOD):
        self.unit_of_work = unit_of_work
        self.event_publisher = event_publisher
        self.default_payment_method = default_payment_method

    def place_order(self, user_id: int, items, payment_method: Optional[str] = None) -> Order:
        try:
            line_items = parse_items(items)
        except (EmptyOrderError, InvalidItemError) as exc:
            logger.warning("Order rejected", user_id=user_id, error=exc.code, **exc.context())
            raise

        payment_method = payment_method or self.default_payment_method
        order = self.unit_of_work.run(
            lambda tx: self._place(tx, user_id, line_items, payment_method)
        )

        logger.info(
            "Order created",
            user_id=user_id,
            order_id=order.id,
            item_count=order.item_count,
            total_amount=str(order.total_amount),
            payment_method=payment_method,
        )
        self._publish(order)
        return order

    def _place(self, tx: Transaction, user_id: int, items: List[LineItem], payment_method: str) -> Order:
        # 1. One query for every distinct variant; this is the snapshot we validate against.
        requested_ids = {item.variant_id for item in items}
        variants = {v.id: v for v in tx.variants.find_many_by_ids(requested_ids)}

        # 2. All-or-nothing on existence.
        if len(variants) != len(requested_ids):
            missing = requested_ids - set(variants)
            logger.warning(
                "Order rejected",
                user_id=user_id,
                error=VariantNotFoundError.code,
                requested_variants=sorted(requested_ids),
                missing_variants=sorted(missing),
            )
            raise VariantNotFoundError(missing)

        # 3. Stock check in submission order, then price and snapshot each line.
        remaining = {variant_id: v.stock_qty for variant_id, v in variants.items()}
        total = Decimal("0")
        lines = []
        for item in items:
            variant = variants[item.variant_id]
            if remaining[variant.id] < item.quantity:
                logger.warning(
                    "Order rejected",
                    user_id=user_id,
                    error=InsufficientStockError.code,
                    variant_id=variant.id,
                    product_name=variant.product_name,
                    requested=item.quantity,
                    available=remaining[variant.id],
                )
                raise InsufficientStockError(
                    variant_id=variant.id,
                    product_name=variant.product_name,
                    size=variant.size,
                    color=variant.color,
                    requested=item.quantity,
                    available=remaining[variant.id],
                )
            remaining[variant.id] -= item.quantity
            line = OrderLine.snapshot(variant, item.quantity)
            total += line.subtotal
            lines.append(line)

        # 4. Write: order and lines, stock, cart, audit.
        order = tx.orders.create(
            user_id=user_id,
            total_amount=to_money(total),
            payment_method=payment_method,
            lines=lines,
        )
        for line in lines:
            tx.variants.decrement_stock(line.variant_id, line.quantity)
        tx.carts.clear_for_user(user_id)
        tx.activity.record(
            user_id,
            CREATE_ORDER,
            f"Created order #{order.id} with {len(items)} items",
        )
        return order

    def _publish(self, order: Order) -> None:
        if self.event_publisher is None:
            return
        # The order is committed; a broker outage must not turn it into a failure.
        try:
            self.event_publisher.publish(ORDER_PLACED, order_placed_event(order))
        except Exception:
            logger.exception("Failed to publish order event", order_id=order.id)

    def list_orders(self, user_id: int) -> List[Order]:
        orders = self.unit_of_work.run(lambda tx: tx.orders.list_for_user(user_id))
        logger.info("User orders fetched", user_id=user_id, order_count=len(orders))
        return orders

    def get_order(self, user_id: int, order_id: int) -> Order:
        order = self.unit_of_work.run(lambda tx: tx.orders.get_for_user(user_id, order_id))
        if order is None:
            logger.warning("Attempt to access non-existent order", user_id=user_id, order_id=order_id)
            raise OrderNotFoundError(order_id)
        return order
