from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from .database import Base # Import the Base class from our database setup


def _now():
    return datetime.now(timezone.utc)


# Money columns: fixed-point, two fractional digits.
Money = Numeric(10, 2, asdecimal=True)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(100))
    created_at = Column(DateTime, default=_now)


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    base_price = Column(Money, nullable=False)

    variants = relationship("ProductVariant", back_populates="product")


# A purchasable SKU of a product with its own price and stock counter.
class ProductVariant(Base):
    __tablename__ = "product_variants"
    __table_args__ = (CheckConstraint("stock_qty >= 0", name="ck_product_variants_stock_non_negative"),)

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"))
    size = Column(String(20))
    color = Column(String(50))
    edition = Column(String(50))
    price = Column(Money, nullable=False)
    stock_qty = Column(Integer, nullable=False)

    product = relationship("Product", back_populates="variants")


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), index=True)
    total_amount = Column(Money, nullable=False) # Sum of line subtotals, fixed at creation.
    payment_method = Column(String(50), nullable=False)
    is_paid = Column(Boolean, default=False)
    status = Column(String(50), default="pending")
    created_at = Column(DateTime, default=_now)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )


# Snapshot of a variant at purchase time; survives variant deletion.
class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), index=True)
    variant_id = Column(Integer, ForeignKey("product_variants.id", ondelete="SET NULL"), nullable=True)
    product_name = Column(String(255), nullable=False)
    size = Column(String(20))
    color = Column(String(50))
    edition = Column(String(50))
    unit_price = Column(Money, nullable=False)
    quantity = Column(Integer, nullable=False)
    subtotal = Column(Money, nullable=False)

    order = relationship("Order", back_populates="items")


class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True)
    variant_id = Column(Integer, ForeignKey("product_variants.id", ondelete="CASCADE"))
    quantity = Column(Integer, nullable=False, default=1)
    added_at = Column(DateTime, default=_now)


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    action = Column(String(50), nullable=False)
    description = Column(Text)
    created_at = Column(DateTime, default=_now)
