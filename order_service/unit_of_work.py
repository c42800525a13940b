import structlog

from .activity import SqlActivityRecorder
from .cart import SqlCartStore
from .errors import OrderError, PersistenceError
from .inventory import SqlVariantStore
from .ledger import SqlOrderLedger
from .ports import Transaction

logger = structlog.get_logger(__name__)


class SqlAlchemyUnitOfWork:
    """Runs a callable inside a single SQLAlchemy session and transaction.

    The callable receives a ``Transaction`` whose stores all share the session.
    Returning commits; raising rolls back. Errors from the order domain pass
    through unchanged, anything else surfaces as ``PersistenceError``.
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def run(self, work):
        session = self.session_factory()
        try:
            tx = Transaction(
                variants=SqlVariantStore(session),
                carts=SqlCartStore(session),
                orders=SqlOrderLedger(session),
                activity=SqlActivityRecorder(session),
            )
            result = work(tx)
            session.commit()
            return result
        except OrderError:
            session.rollback()
            raise
        except Exception as exc:
            session.rollback()
            logger.exception("Transaction rolled back", error=str(exc))
            raise PersistenceError() from exc
        finally:
            # Ensure the session is always closed, committed or not.
            session.close()
