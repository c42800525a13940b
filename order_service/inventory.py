import structlog
from sqlalchemy.orm import Session, joinedload

from .domain import Variant
from .errors import InsufficientStockError
from .models import ProductVariant

logger = structlog.get_logger(__name__)


def to_variant(row: ProductVariant) -> Variant:
    return Variant(
        id=row.id,
        product_id=row.product_id,
        product_name=row.product.name if row.product else "",
        size=row.size,
        color=row.color,
        edition=row.edition,
        price=row.price,
        stock_qty=row.stock_qty,
    )


class SqlVariantStore:
    """Product variants and their stock counters, read and written through one session."""

    def __init__(self, session: Session):
        self.session = session

    def find_many_by_ids(self, ids):
        ids = list(set(ids))
        if not ids:
            return []
        rows = (
            self.session.query(ProductVariant)
            .options(joinedload(ProductVariant.product))
            .filter(ProductVariant.id.in_(ids))
            .all()
        )
        return [to_variant(row) for row in rows]

    def decrement_stock(self, variant_id: int, amount: int) -> None:
        """
        Subtracts ``amount`` from the variant's stock.
        - The guard ``stock_qty >= amount`` is evaluated by the database at write time,
          so a concurrent placement that got there first makes this match zero rows.
        - Zero matched rows aborts with InsufficientStockError; stock is never clamped.
        """
        matched = (
            self.session.query(ProductVariant)
            .filter(ProductVariant.id == variant_id, ProductVariant.stock_qty >= amount)
            .update(
                {ProductVariant.stock_qty: ProductVariant.stock_qty - amount},
                synchronize_session=False,
            )
        )
        if matched == 1:
            return

        row = (
            self.session.query(ProductVariant)
            .options(joinedload(ProductVariant.product))
            .filter(ProductVariant.id == variant_id)
            .populate_existing()
            .first()
        )
        available = row.stock_qty if row else 0
        logger.warning(
            "Stock guard rejected decrement",
            variant_id=variant_id,
            requested=amount,
            available=available,
        )
        raise InsufficientStockError(
            variant_id=variant_id,
            product_name=row.product.name if row and row.product else "",
            size=row.size if row else None,
            color=row.color if row else None,
            requested=amount,
            available=available,
        )
