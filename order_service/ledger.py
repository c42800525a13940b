from sqlalchemy.orm import Session, selectinload

from .domain import Order, OrderLine, OrderStatus, to_money
from .models import Order as OrderRow
from .models import OrderItem


def to_order(row: OrderRow) -> Order:
    return Order(
        id=row.id,
        user_id=row.user_id,
        total_amount=to_money(row.total_amount),
        payment_method=row.payment_method,
        is_paid=bool(row.is_paid),
        status=OrderStatus(row.status),
        created_at=row.created_at,
        lines=tuple(
            OrderLine(
                id=item.id,
                order_id=item.order_id,
                variant_id=item.variant_id,
                product_name=item.product_name,
                size=item.size,
                color=item.color,
                edition=item.edition,
                unit_price=to_money(item.unit_price),
                quantity=item.quantity,
            )
            for item in row.items
        ),
    )


class SqlOrderLedger:
    """Creates orders with their lines and reads them back per user."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, user_id, total_amount, payment_method, lines, status=OrderStatus.PROCESSING, is_paid=True):
        row = OrderRow(
            user_id=user_id,
            total_amount=total_amount,
            payment_method=payment_method,
            is_paid=is_paid,
            status=status.value,
            items=[
                OrderItem(
                    variant_id=line.variant_id,
                    product_name=line.product_name,
                    size=line.size,
                    color=line.color,
                    edition=line.edition,
                    unit_price=line.unit_price,
                    quantity=line.quantity,
                    subtotal=line.subtotal,
                )
                for line in lines
            ],
        )
        self.session.add(row)
        self.session.flush() # Assigns ids to the order and its items.
        return to_order(row)

    def list_for_user(self, user_id: int):
        rows = (
            self.session.query(OrderRow)
            .options(selectinload(OrderRow.items))
            .filter(OrderRow.user_id == user_id)
            .order_by(OrderRow.created_at.desc(), OrderRow.id.desc())
            .all()
        )
        return [to_order(row) for row in rows]

    def get_for_user(self, user_id: int, order_id: int):
        row = (
            self.session.query(OrderRow)
            .options(selectinload(OrderRow.items))
            .filter(OrderRow.id == order_id, OrderRow.user_id == user_id)
            .first()
        )
        return to_order(row) if row else None
