from sqlalchemy import (
    Boolean,
    String,
    Text,
    DateTime,
    Numeric,
    Integer,
    Uuid,
    CheckConstraint,
    Index,
    text,
    ForeignKey,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, declarative_base
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List
import uuid

Base = declarative_base()

# Column ranges: INTEGER and Numeric(12, 2)
INTEGER_MAX = 2**31 - 1
PRICE_MAX = Decimal("9999999999.99")
PRICE_QUANTUM = Decimal("0.01")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        default=utc_now,
        onupdate=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )


class Profile(TimestampMixin, Base):
    """
    Marketplace identity record. The id is the identity provider's user id.
    """
    __tablename__ = "profiles"
    __table_args__ = (
        CheckConstraint(
            "tier IN ('admin', 'importer', 'wholesaler', 'retailer', 'customer')",
            name="profiles_tier_check",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    business_name: Mapped[Optional[str]] = mapped_column(String(200))

    # Role in the tier hierarchy
    tier: Mapped[str] = mapped_column(String(20), default="customer", nullable=False)

    # Invoice bookkeeping for B2B buyers
    balance: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    due_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)

    is_banned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class Category(TimestampMixin, Base):
    """
    Product categories managed by admins
    """
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    icon_svg: Mapped[Optional[str]] = mapped_column(Text)


class Product(TimestampMixin, Base):
    """
    Catalog entry. Owned by the seller through its listing.
    """
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)

    # Opaque object store URL, never inspected
    image_url: Mapped[Optional[str]] = mapped_column(String(500))

    category_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("categories.id", ondelete="SET NULL")
    )

    category: Mapped[Optional["Category"]] = relationship("Category", lazy="selectin")


class Listing(TimestampMixin, Base):
    """
    A seller's priced, stocked offer of a product to one downstream tier
    """
    __tablename__ = "listings"
    __table_args__ = (
        CheckConstraint("price > 0", name="listings_price_positive_check"),
        CheckConstraint("stock_quantity >= 0", name="listings_stock_non_negative_check"),
        CheckConstraint("min_order_quantity >= 1", name="listings_min_order_positive_check"),
        CheckConstraint(
            "target_tier IN ('customer', 'retailer', 'wholesaler')",
            name="listings_target_tier_check",
        ),
        Index("listings_target_tier_stock_idx", "target_tier", "stock_quantity"),
        Index("listings_seller_idx", "seller_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False
    )
    seller_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False
    )

    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    stock_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Derived from the seller's tier at creation, admin correction only
    target_tier: Mapped[str] = mapped_column(String(20), nullable=False)
    is_bulk_offer: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    min_order_quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    product: Mapped["Product"] = relationship("Product", lazy="selectin")


class OrderB2C(TimestampMixin, Base):
    """
    Cash-on-delivery order placed by an end customer (possibly anonymous)
    """
    __tablename__ = "orders_b2c"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'shipped', 'delivered', 'cancelled')",
            name="orders_b2c_status_check",
        ),
        Index("orders_b2c_seller_idx", "seller_id"),
        Index("orders_b2c_user_idx", "user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Buyer contact details for delivery
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    customer_address: Mapped[str] = mapped_column(Text, nullable=False)
    customer_phone: Mapped[str] = mapped_column(String(30), nullable=False)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("profiles.id", ondelete="SET NULL")
    )

    # Seller of the purchased listing at the time of purchase
    seller_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)

    items: Mapped[List["OrderItemB2C"]] = relationship(
        "OrderItemB2C",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin"
    )


class OrderItemB2C(Base):
    __tablename__ = "order_items_b2c"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="order_items_b2c_quantity_check"),
        Index("order_items_b2c_listing_idx", "listing_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("orders_b2c.id", ondelete="CASCADE"),
        nullable=False
    )
    # No FK: the listing may be deleted while the order stays for audit
    listing_id: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price_at_purchase: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    order: Mapped["OrderB2C"] = relationship("OrderB2C", back_populates="items")


class OrderB2B(TimestampMixin, Base):
    """
    Business order between adjacent tiers, one seller per order
    """
    __tablename__ = "orders_b2b"
    __table_args__ = (
        CheckConstraint("total_price >= 0", name="orders_b2b_total_check"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'shipped', 'delivered', 'cancelled', 'completed')",
            name="orders_b2b_status_check",
        ),
        Index("orders_b2b_buyer_idx", "buyer_id"),
        Index("orders_b2b_seller_idx", "seller_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    buyer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False
    )
    seller_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False
    )
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)

    items: Mapped[List["OrderItemB2B"]] = relationship(
        "OrderItemB2B",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin"
    )


class OrderItemB2B(Base):
    __tablename__ = "order_items_b2b"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="order_items_b2b_quantity_check"),
        Index("order_items_b2b_listing_idx", "listing_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("orders_b2b.id", ondelete="CASCADE"),
        nullable=False
    )
    listing_id: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price_at_purchase: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    order: Mapped["OrderB2B"] = relationship("OrderB2B", back_populates="items")
