"""Errors raised by order placement.

Every error carries a stable ``code`` and a ``context()`` dict so the HTTP
layer can render a precise message without parsing strings.
"""


class OrderError(Exception):
    code = "order_error"

    def context(self) -> dict:
        return {}


class EmptyOrderError(OrderError):
    code = "empty_order"

    def __init__(self):
        super().__init__("Order must contain at least one item")


class InvalidItemError(OrderError):
    code = "invalid_item"

    def __init__(self, index: int, reason: str):
        self.index = index
        self.reason = reason
        super().__init__(f"Item {index + 1} is invalid: {reason}")

    def context(self) -> dict:
        return {"item_index": self.index, "reason": self.reason}


class VariantNotFoundError(OrderError):
    code = "variant_not_found"

    def __init__(self, missing_ids):
        self.missing_ids = sorted(missing_ids)
        super().__init__(
            "Order rejected: product variants do not exist: "
            + ", ".join(str(i) for i in self.missing_ids)
        )

    def context(self) -> dict:
        return {"missing_variant_ids": self.missing_ids}


class InsufficientStockError(OrderError):
    code = "insufficient_stock"

    def __init__(self, variant_id: int, product_name: str, size, color, requested: int, available: int):
        self.variant_id = variant_id
        self.product_name = product_name
        self.size = size
        self.color = color
        self.requested = requested
        self.available = available
        super().__init__(f'Not enough stock for "{product_name}" ({color}, {size})')

    def context(self) -> dict:
        return {
            "variant_id": self.variant_id,
            "product_name": self.product_name,
            "size": self.size,
            "color": self.color,
            "requested": self.requested,
            "available": self.available,
        }


class OrderNotFoundError(OrderError):
    code = "order_not_found"

    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")

    def context(self) -> dict:
        return {"order_id": self.order_id}


class PersistenceError(OrderError):
    """The atomic unit could not be committed. Nothing was written."""

    code = "persistence_error"

    def __init__(self, message: str = "Failed to create order"):
        super().__init__(message)
