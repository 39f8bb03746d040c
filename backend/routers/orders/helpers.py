from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from models import Listing, OrderB2C, OrderItemB2C, OrderB2B, OrderItemB2B, INTEGER_MAX
from dependencies.roles import (
    TargetTier, parse_tier, can_place_b2b, can_place_b2c, upstream_target_of
)
from dependencies.rbac import ensure_not_banned
from routers.listings.helpers import catalog_helpers
from utils.errors import (
    CommerceError, ValidationFailedError, NotFoundError, ForbiddenError, InvalidTierError,
    TierMismatchError, InsufficientStockError, MinimumOrderError
)
from .lifecycle import OrderKind, parse_status
from collections import OrderedDict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, List, Tuple
import logging

logger = logging.getLogger(__name__)

BUYER_INFO_FIELDS = ("customer_name", "customer_address", "customer_phone")


@dataclass
class PartitionFailure:
    seller_id: str
    error: CommerceError

    def to_dict(self) -> dict:
        return {
            "seller_id": self.seller_id,
            "code": self.error.code.value,
            "detail": self.error.detail
        }


@dataclass
class CheckoutResult:
    """Outcome of a multi-seller checkout: one order per committed seller"""
    orders: List[OrderB2B] = field(default_factory=list)
    failures: List[PartitionFailure] = field(default_factory=list)


@dataclass(frozen=True)
class _LineSnapshot:
    listing_id: int
    seller_id: object
    price: Decimal
    stock_quantity: int
    target_tier: str
    is_bulk_offer: bool
    min_order_quantity: int
    quantity: int


def _validate_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationFailedError("Quantity must be a positive integer", field="quantity")
    if quantity > INTEGER_MAX:
        raise ValidationFailedError(f"Quantity cannot exceed {INTEGER_MAX}", field="quantity")
    return quantity


class OrderHelpers:
    """Order placement and order history queries"""

    # =================
    # PLACEMENT
    # =================

    async def place_b2c(
        self,
        db: AsyncSession,
        caller,
        buyer_info: dict,
        listing_id: int,
        quantity: int
    ) -> OrderB2C:
        """
        Place a cash-on-delivery order for a customer listing.

        The order, its line item and the stock decrement commit together.
        Anonymous checkout passes caller=None.
        """
        if caller is not None:
            ensure_not_banned(caller)
            if not can_place_b2c(caller.tier):
                raise ForbiddenError(
                    f"{parse_tier(caller.tier).value.title()} tier cannot place customer orders",
                    tier=parse_tier(caller.tier).value
                )

        quantity = _validate_quantity(quantity)
        for name in BUYER_INFO_FIELDS:
            if not (buyer_info.get(name) or "").strip():
                raise ValidationFailedError(f"{name} is required", field=name)

        result = await db.execute(select(Listing).where(Listing.id == listing_id))
        listing = result.scalar_one_or_none()
        if not listing or listing.target_tier != TargetTier.CUSTOMER.value:
            raise NotFoundError("Listing not found", listing_id=listing_id)

        if listing.stock_quantity < quantity:
            raise InsufficientStockError(
                f"Only {listing.stock_quantity} units available",
                listing_id=listing_id,
                requested=quantity,
                available=listing.stock_quantity
            )

        # Price is captured now and never re-read from the listing
        price_at_purchase = listing.price
        seller_id = listing.seller_id

        try:
            await catalog_helpers.decrement_stock(db, listing_id, quantity)

            order = OrderB2C(
                customer_name=buyer_info["customer_name"].strip(),
                customer_address=buyer_info["customer_address"].strip(),
                customer_phone=buyer_info["customer_phone"].strip(),
                user_id=caller.user_id if caller is not None else None,
                seller_id=seller_id,
                status="pending",
                items=[
                    OrderItemB2C(
                        listing_id=listing_id,
                        quantity=quantity,
                        price_at_purchase=price_at_purchase
                    )
                ]
            )
            db.add(order)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(f"B2C order {order.id} placed for listing {listing_id} x{quantity}")
        return order

    async def place_b2b(self, db: AsyncSession, caller, lines: List[dict]) -> CheckoutResult:
        """
        Place business orders for a cart, one order per seller.

        Each seller partition is validated and committed on its own, so a
        failing partition never undoes an order already placed with another
        seller. When nothing commits, the first partition's error is raised.
        """
        ensure_not_banned(caller)
        tier = parse_tier(caller.tier)
        if not can_place_b2b(tier):
            raise InvalidTierError(f"{tier.value.title()} tier cannot place business orders", tier=tier.value)

        if not lines:
            raise ValidationFailedError("Cart is empty", field="lines")

        # Merge repeated listings, keeping first-seen order
        merged = OrderedDict()
        for line in lines:
            listing_id = line.get("listing_id")
            if listing_id is None:
                raise ValidationFailedError("listing_id is required", field="listing_id")
            quantity = _validate_quantity(line.get("quantity"))
            merged[listing_id] = _validate_quantity(merged.get(listing_id, 0) + quantity)

        result = await db.execute(select(Listing).where(Listing.id.in_(list(merged))))
        listings = {listing.id: listing for listing in result.scalars().all()}
        missing = [listing_id for listing_id in merged if listing_id not in listings]
        if missing:
            raise NotFoundError("Listing not found", listing_id=missing[0])

        # Plain snapshots survive the rollbacks of failed partitions
        partitions = OrderedDict()
        for listing_id, quantity in merged.items():
            listing = listings[listing_id]
            partitions.setdefault(listing.seller_id, []).append(_LineSnapshot(
                listing_id=listing.id,
                seller_id=listing.seller_id,
                price=listing.price,
                stock_quantity=listing.stock_quantity,
                target_tier=listing.target_tier,
                is_bulk_offer=listing.is_bulk_offer,
                min_order_quantity=listing.min_order_quantity,
                quantity=quantity
            ))

        buyer_target = upstream_target_of(tier).value
        committed_ids = []
        failures = []

        for seller_id, partition in partitions.items():
            try:
                order_id = await self._place_partition(db, caller, seller_id, partition, buyer_target)
                committed_ids.append(order_id)
            except CommerceError as e:
                await db.rollback()
                logger.warning(f"B2B partition for seller {seller_id} failed: {e.code.value} {e.detail}")
                failures.append(PartitionFailure(seller_id=str(seller_id), error=e))
            except Exception:
                await db.rollback()
                raise

        if not committed_ids:
            raise failures[0].error

        refreshed = await db.execute(
            select(OrderB2B)
            .where(OrderB2B.id.in_(committed_ids))
            .execution_options(populate_existing=True)
        )
        by_id = {order.id: order for order in refreshed.scalars().all()}
        return CheckoutResult(
            orders=[by_id[order_id] for order_id in committed_ids],
            failures=failures
        )

    async def _place_partition(self, db: AsyncSession, caller, seller_id, partition, buyer_target: str) -> int:
        for line in partition:
            if line.target_tier != buyer_target:
                raise TierMismatchError(
                    f"Listing {line.listing_id} is not offered to your tier",
                    listing_id=line.listing_id,
                    target_tier=line.target_tier
                )
            if line.is_bulk_offer and line.quantity < line.min_order_quantity:
                raise MinimumOrderError(
                    f"Listing {line.listing_id} requires at least {line.min_order_quantity} units",
                    listing_id=line.listing_id,
                    min_order_quantity=line.min_order_quantity,
                    requested=line.quantity
                )
            if line.stock_quantity < line.quantity:
                raise InsufficientStockError(
                    f"Only {line.stock_quantity} units available for listing {line.listing_id}",
                    listing_id=line.listing_id,
                    requested=line.quantity,
                    available=line.stock_quantity
                )

        total_price = sum((line.price * line.quantity for line in partition), Decimal("0"))

        for line in partition:
            await catalog_helpers.decrement_stock(db, line.listing_id, line.quantity)

        order = OrderB2B(
            buyer_id=caller.user_id,
            seller_id=seller_id,
            total_price=total_price,
            status="pending",
            items=[
                OrderItemB2B(
                    listing_id=line.listing_id,
                    quantity=line.quantity,
                    price_at_purchase=line.price
                )
                for line in partition
            ]
        )
        db.add(order)
        await db.commit()

        logger.info(f"B2B order {order.id} placed by {caller.user_id} with seller {seller_id}, total {total_price}")
        return order.id

    # =================
    # HISTORY
    # =================

    async def _page(self, db: AsyncSession, model, conditions, status_filter, page: int, limit: int):
        if status_filter is not None:
            kind = OrderKind.B2C if model is OrderB2C else OrderKind.B2B
            conditions = list(conditions) + [model.status == parse_status(kind, status_filter).value]

        total = await db.scalar(select(func.count(model.id)).where(*conditions))
        result = await db.execute(
            select(model)
            .where(*conditions)
            .order_by(model.created_at.desc(), model.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def my_b2c_orders(self, db, caller, status_filter: Optional[str] = None, page: int = 1, limit: int = 20) -> Tuple[List[OrderB2C], int]:
        """Orders a registered customer placed"""
        return await self._page(db, OrderB2C, [OrderB2C.user_id == caller.user_id], status_filter, page, limit)

    async def seller_b2c_orders(self, db, caller, status_filter: Optional[str] = None, page: int = 1, limit: int = 20) -> Tuple[List[OrderB2C], int]:
        """Customer orders received by the caller. Admins see all of them."""
        conditions = [] if caller.is_admin else [OrderB2C.seller_id == caller.user_id]
        return await self._page(db, OrderB2C, conditions, status_filter, page, limit)

    async def b2b_purchases(self, db, caller, status_filter: Optional[str] = None, page: int = 1, limit: int = 20) -> Tuple[List[OrderB2B], int]:
        return await self._page(db, OrderB2B, [OrderB2B.buyer_id == caller.user_id], status_filter, page, limit)

    async def b2b_sales(self, db, caller, status_filter: Optional[str] = None, page: int = 1, limit: int = 20) -> Tuple[List[OrderB2B], int]:
        conditions = [] if caller.is_admin else [OrderB2B.seller_id == caller.user_id]
        return await self._page(db, OrderB2B, conditions, status_filter, page, limit)

    async def get_order(self, db: AsyncSession, caller, kind, order_id: int):
        """Load one order the caller is a party to (or any order for admins)"""
        kind = OrderKind(kind)
        model = OrderB2C if kind == OrderKind.B2C else OrderB2B

        result = await db.execute(select(model).where(model.id == order_id))
        order = result.scalar_one_or_none()
        if not order:
            raise NotFoundError("Order not found", order_id=order_id, kind=kind.value)

        buyer_id = order.user_id if kind == OrderKind.B2C else order.buyer_id
        if not (caller.is_admin or caller.user_id in (buyer_id, order.seller_id)):
            raise ForbiddenError("You are not a party to this order", order_id=order_id)

        return order


order_helpers = OrderHelpers()
