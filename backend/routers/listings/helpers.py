from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func
from config import LOW_STOCK_THRESHOLD
from models import Listing, Product, Category, INTEGER_MAX, PRICE_MAX, PRICE_QUANTUM
from dependencies.roles import (
    TargetTier, parse_tier, can_create_listing, downstream_tier_of, is_bulk_seller
)
from utils.errors import (
    ValidationFailedError, NotFoundError, InvalidTierError, ForbiddenError,
    InsufficientStockError, ImmutableFieldError
)
from .visibility import ListingFilter
from decimal import Decimal, InvalidOperation
from typing import Optional, List, Tuple
import logging

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {"price", "stock_quantity", "min_order_quantity"}
ADMIN_ONLY_FIELDS = {"target_tier", "is_bulk_offer"}


def validate_price(value) -> Decimal:
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationFailedError("Price must be a decimal number", field="price")
    if not price.is_finite() or price <= 0:
        raise ValidationFailedError("Price must be greater than zero", field="price")
    if price > PRICE_MAX:
        raise ValidationFailedError(f"Price cannot exceed {PRICE_MAX}", field="price")
    # Stored as Numeric(12, 2); anything finer would be rounded on write
    if price != price.quantize(PRICE_QUANTUM):
        raise ValidationFailedError("Price cannot have more than 2 decimal places", field="price")
    return price


def validate_stock(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationFailedError("Stock quantity must be an integer", field="stock_quantity")
    if value < 0:
        raise ValidationFailedError("Stock quantity cannot be negative", field="stock_quantity")
    if value > INTEGER_MAX:
        raise ValidationFailedError(f"Stock quantity cannot exceed {INTEGER_MAX}", field="stock_quantity")
    return value


def validate_min_order_quantity(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationFailedError("Minimum order quantity must be an integer", field="min_order_quantity")
    if value < 1:
        raise ValidationFailedError("Minimum order quantity must be at least 1", field="min_order_quantity")
    if value > INTEGER_MAX:
        raise ValidationFailedError(f"Minimum order quantity cannot exceed {INTEGER_MAX}", field="min_order_quantity")
    return value


class CatalogHelpers:
    """Storage and point mutation of products and listings"""

    async def get_listing(self, db: AsyncSession, listing_id: int) -> Listing:
        result = await db.execute(select(Listing).where(Listing.id == listing_id))
        listing = result.scalar_one_or_none()
        if not listing:
            raise NotFoundError("Listing not found", listing_id=listing_id)
        return listing

    def ensure_can_manage(self, caller, listing: Listing) -> None:
        """Only the listing's seller or an admin may change it"""
        if caller.is_admin or listing.seller_id == caller.user_id:
            return
        logger.warning(f"User {caller.user_id} tried to modify listing {listing.id} owned by {listing.seller_id}")
        raise ForbiddenError("Only the seller or an admin can modify this listing", listing_id=listing.id)

    async def create_listing(
        self,
        db: AsyncSession,
        caller,
        product: dict,
        price,
        stock_quantity: int,
        min_order_quantity: Optional[int] = None
    ) -> Listing:
        """
        Create a product and the caller's listing for it in one transaction.

        target_tier and is_bulk_offer come from the caller's tier. Non-bulk
        listings always carry a minimum order quantity of 1.
        """
        tier = parse_tier(caller.tier)
        if not can_create_listing(tier):
            raise InvalidTierError(f"{tier.value.title()} tier cannot create listings", tier=tier.value)

        name = (product.get("name") or "").strip()
        if not name:
            raise ValidationFailedError("Product name is required", field="name")

        price = validate_price(price)
        stock_quantity = validate_stock(stock_quantity)

        bulk = is_bulk_seller(tier)
        if min_order_quantity is None:
            min_order_quantity = 1
        min_order_quantity = validate_min_order_quantity(min_order_quantity)
        if not bulk:
            min_order_quantity = 1

        category = None
        category_id = product.get("category_id")
        if category_id is not None:
            category = await db.get(Category, category_id)
            if not category:
                raise ValidationFailedError("Category does not exist", field="category_id", category_id=category_id)

        try:
            new_product = Product(
                name=name,
                description=product.get("description"),
                image_url=product.get("image_url"),
                category=category
            )
            listing = Listing(
                product=new_product,
                seller_id=caller.user_id,
                price=price,
                stock_quantity=stock_quantity,
                target_tier=downstream_tier_of(tier).value,
                is_bulk_offer=bulk,
                min_order_quantity=min_order_quantity
            )
            db.add(listing)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(f"Listing {listing.id} created by {caller.user_id} for {listing.target_tier} tier")
        return listing

    async def update_listing(self, db: AsyncSession, caller, listing_id: int, changes: dict) -> Listing:
        """
        Apply absolute replacement values for price, stock and minimum order.

        target_tier and is_bulk_offer may only be corrected by an admin.
        """
        listing = await self.get_listing(db, listing_id)
        self.ensure_can_manage(caller, listing)

        unknown = set(changes) - UPDATABLE_FIELDS - ADMIN_ONLY_FIELDS
        if unknown:
            raise ValidationFailedError(f"Unknown fields: {', '.join(sorted(unknown))}")

        locked = sorted(field for field in ADMIN_ONLY_FIELDS if field in changes)
        if locked and not caller.is_admin:
            raise ImmutableFieldError(
                f"{', '.join(locked)} cannot be changed after creation",
                fields=",".join(locked),
                listing_id=listing_id
            )

        try:
            if "target_tier" in changes:
                try:
                    listing.target_tier = TargetTier(changes["target_tier"]).value
                except ValueError:
                    raise ValidationFailedError("Invalid target tier", field="target_tier")
            if "is_bulk_offer" in changes:
                listing.is_bulk_offer = bool(changes["is_bulk_offer"])
            if "price" in changes:
                listing.price = validate_price(changes["price"])
            if "stock_quantity" in changes:
                listing.stock_quantity = validate_stock(changes["stock_quantity"])
            if "min_order_quantity" in changes:
                listing.min_order_quantity = validate_min_order_quantity(changes["min_order_quantity"])

            if not listing.is_bulk_offer:
                listing.min_order_quantity = 1

            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(f"Listing {listing_id} updated by {caller.user_id}: {sorted(changes)}")
        return listing

    async def decrement_stock(self, db: AsyncSession, listing_id: int, quantity: int) -> Listing:
        """
        Atomically take quantity units from a listing.

        The conditional UPDATE is the only source of truth for availability;
        stock is left unchanged when it is insufficient. Runs inside the
        caller's transaction and never commits.
        """
        if quantity < 1:
            raise ValidationFailedError("Quantity must be at least 1", field="quantity")

        result = await db.execute(
            update(Listing)
            .where(Listing.id == listing_id, Listing.stock_quantity >= quantity)
            .values(stock_quantity=Listing.stock_quantity - quantity)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            current = await db.execute(
                select(Listing.stock_quantity).where(Listing.id == listing_id)
            )
            available = current.scalar_one_or_none()
            if available is None:
                raise NotFoundError("Listing not found", listing_id=listing_id)
            raise InsufficientStockError(
                f"Only {available} units available",
                listing_id=listing_id,
                requested=quantity,
                available=available
            )

        refreshed = await db.execute(
            select(Listing)
            .where(Listing.id == listing_id)
            .execution_options(populate_existing=True)
        )
        return refreshed.scalar_one()

    async def delete_listing(self, db: AsyncSession, caller, listing_id: int) -> None:
        """
        Remove a listing. Historical order items keep the dangling listing id.
        The product goes with its last listing.
        """
        listing = await self.get_listing(db, listing_id)
        self.ensure_can_manage(caller, listing)
        product_id = listing.product_id

        try:
            await db.delete(listing)
            await db.flush()

            remaining = await db.scalar(
                select(func.count(Listing.id)).where(Listing.product_id == product_id)
            )
            if not remaining:
                await db.execute(delete(Product).where(Product.id == product_id))

            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(f"Listing {listing_id} deleted by {caller.user_id}")

    async def browse(
        self,
        db: AsyncSession,
        listing_filter: ListingFilter,
        page: int = 1,
        limit: int = 20
    ) -> Tuple[List[Listing], int]:
        """Page through listings matching a visibility filter, newest first"""
        conditions = listing_filter.clauses()

        total = await db.scalar(select(func.count(Listing.id)).where(*conditions))

        offset = (page - 1) * limit
        result = await db.execute(
            select(Listing)
            .where(*conditions)
            .order_by(Listing.created_at.desc(), Listing.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def low_stock_listings(self, db: AsyncSession, seller_id=None) -> List[Listing]:
        """Listings running out but not yet empty. No seller means every listing."""
        query = select(Listing).where(
            Listing.stock_quantity > 0,
            Listing.stock_quantity < LOW_STOCK_THRESHOLD
        )
        if seller_id is not None:
            query = query.where(Listing.seller_id == seller_id)

        result = await db.execute(query.order_by(Listing.stock_quantity.asc(), Listing.id.asc()))
        return list(result.scalars().all())


catalog_helpers = CatalogHelpers()
