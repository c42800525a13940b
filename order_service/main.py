import threading
from typing import Any, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
import structlog

from .config import get_settings
from .database import build_session_factory
from .domain import Order
from .errors import (
    EmptyOrderError,
    InsufficientStockError,
    InvalidItemError,
    OrderError,
    OrderNotFoundError,
    PersistenceError,
    VariantNotFoundError,
)
from .messaging.producer import RabbitMQProducer
from .service import OrderPlacementService
from .unit_of_work import SqlAlchemyUnitOfWork
from .utils.logging import configure_logging

logger = structlog.get_logger(__name__)

# Error classification -> HTTP status code.
STATUS_CODES = {
    EmptyOrderError: 400,
    InvalidItemError: 400,
    VariantNotFoundError: 404,
    OrderNotFoundError: 404,
    InsufficientStockError: 409,
    PersistenceError: 500,
}


class OrderRequest(BaseModel):
    """Defines the data model for an incoming order request.

    Items are taken as sent; the placement service validates each one so a
    malformed line is reported with its index.
    """
    items: Any = None
    payment_method: Optional[str] = None


def serialize_order(order: Order) -> dict:
    return {
        "id": order.id,
        "user_id": order.user_id,
        "total_amount": str(order.total_amount),
        "payment_method": order.payment_method,
        "is_paid": order.is_paid,
        "status": order.status.value,
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "items": [
            {
                "id": line.id,
                "variant_id": line.variant_id,
                "product_name": line.product_name,
                "size": line.size,
                "color": line.color,
                "edition": line.edition,
                "unit_price": str(line.unit_price),
                "quantity": line.quantity,
                "subtotal": str(line.subtotal),
            }
            for line in order.lines
        ],
    }


def build_service(settings=None) -> OrderPlacementService:
    """Wire the placement service against the configured database and broker."""
    settings = settings or get_settings()
    publisher = None
    if settings.publishing_enabled:
        publisher = RabbitMQProducer(host=settings.rabbitmq_host, exchange_name=settings.events_exchange)
    return OrderPlacementService(
        SqlAlchemyUnitOfWork(build_session_factory(settings.database_url)),
        event_publisher=publisher,
        default_payment_method=settings.default_payment_method,
    )


def current_user_id(x_user_id: Optional[str] = Header(None)) -> int:
    """The authenticated user's id, set by the upstream authenticator."""
    try:
        return int(x_user_id)
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="No authenticated user")


def create_app(service: OrderPlacementService = None) -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)

    app = FastAPI(title="Order Service")
    app.state.service = service
    build_lock = threading.Lock()

    def get_service(request: Request) -> OrderPlacementService:
        # Built on first use so importing the app does not open a database.
        if request.app.state.service is None:
            with build_lock:
                if request.app.state.service is None:
                    request.app.state.service = build_service(settings)
        return request.app.state.service

    @app.exception_handler(OrderError)
    async def order_error_handler(request: Request, exc: OrderError):
        status_code = STATUS_CODES.get(type(exc), 400)
        if status_code >= 500:
            # Internal detail stays in the logs.
            logger.error("Request failed", path=request.url.path, error=exc.code)
            body = {"success": False, "error": exc.code, "message": "Something went wrong, try again later"}
        else:
            body = {"success": False, "error": exc.code, "message": str(exc), **exc.context()}
        return JSONResponse(status_code=status_code, content=body)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = [{"field": ".".join(str(part) for part in err["loc"]), "reason": err["msg"]} for err in exc.errors()]
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "invalid_request", "message": "Invalid request", "errors": errors},
        )

    @app.get("/")
    def root():
        """Health check endpoint."""
        return {"message": "Order service is running"}

    # Places an order for the authenticated user from the submitted line items.
    @app.post("/api/v1/orders", status_code=201)
    def create_order(
        req: OrderRequest,
        user_id: int = Depends(current_user_id),
        service: OrderPlacementService = Depends(get_service),
    ):
        order = service.place_order(
            user_id,
            req.items,
            payment_method=req.payment_method,
        )
        return {"success": True, "data": serialize_order(order)}

    # Retrieves the authenticated user's orders, newest first.
    @app.get("/api/v1/orders")
    def list_orders(
        user_id: int = Depends(current_user_id),
        service: OrderPlacementService = Depends(get_service),
    ):
        orders = service.list_orders(user_id)
        return {"success": True, "count": len(orders), "data": [serialize_order(o) for o in orders]}

    # Retrieves a single order, only if it belongs to the authenticated user.
    @app.get("/api/v1/orders/{order_id}")
    def get_order(
        order_id: int,
        user_id: int = Depends(current_user_id),
        service: OrderPlacementService = Depends(get_service),
    ):
        order = service.get_order(user_id, order_id)
        return {"success": True, "data": serialize_order(order)}

    return app


app = create_app()
