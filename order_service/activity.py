import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .models import ActivityLog

logger = structlog.get_logger(__name__)

CREATE_ORDER = "CREATE_ORDER"


class SqlActivityRecorder:
    """Appends audit entries inside the caller's transaction.

    A failed write is logged and re-raised, so it rolls back the surrounding
    order along with it.
    """

    def __init__(self, session: Session):
        self.session = session

    def record(self, user_id: int, action: str, description: str) -> None:
        try:
            self.session.add(ActivityLog(user_id=user_id, action=action, description=description))
            self.session.flush()
        except SQLAlchemyError:
            logger.exception("Failed to record activity", user_id=user_id, action=action)
            raise
