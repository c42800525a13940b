import structlog
from sqlalchemy.orm import Session

from .models import CartItem

logger = structlog.get_logger(__name__)


class SqlCartStore:
    def __init__(self, session: Session):
        self.session = session

    def clear_for_user(self, user_id: int) -> int:
        # An empty cart is not an error.
        deleted = (
            self.session.query(CartItem)
            .filter(CartItem.user_id == user_id)
            .delete(synchronize_session=False)
        )
        logger.debug("Cart cleared", user_id=user_id, removed=deleted)
        return deleted
