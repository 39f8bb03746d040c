"""
Listing visibility rules

Every filter here is a frozen value: equal inputs produce equal (and equally
hashed) filters, so callers may cache or compare them freely. A filter can be
applied in memory as a predicate or pushed down to SQL through clauses().
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, List
import uuid

from models import Listing
from dependencies.roles import Tier, TargetTier, upstream_target_of, parse_tier


class VisibilityContext(str, Enum):
    BROWSE = "browse"
    DASHBOARD = "dashboard"
    PUBLIC = "public"


@dataclass(frozen=True)
class ListingFilter:
    target_tier: Optional[TargetTier] = None
    seller_id: Optional[uuid.UUID] = None
    in_stock_only: bool = False
    bulk_only: bool = False

    def __call__(self, listing) -> bool:
        if self.target_tier is not None and listing.target_tier != self.target_tier.value:
            return False
        if self.seller_id is not None and listing.seller_id != self.seller_id:
            return False
        if self.in_stock_only and listing.stock_quantity <= 0:
            return False
        if self.bulk_only and not listing.is_bulk_offer:
            return False
        return True

    def clauses(self) -> List:
        """SQLAlchemy WHERE clauses equivalent to calling the filter"""
        conditions = []
        if self.target_tier is not None:
            conditions.append(Listing.target_tier == self.target_tier.value)
        if self.seller_id is not None:
            conditions.append(Listing.seller_id == self.seller_id)
        if self.in_stock_only:
            conditions.append(Listing.stock_quantity > 0)
        if self.bulk_only:
            conditions.append(Listing.is_bulk_offer.is_(True))
        return conditions


def for_buyer(tier) -> ListingFilter:
    target = upstream_target_of(tier)
    return ListingFilter(
        target_tier=target,
        in_stock_only=True,
        # Importer to wholesaler lane only carries bulk offers
        bulk_only=target == TargetTier.WHOLESALER,
    )


def for_seller_dashboard(seller_id) -> ListingFilter:
    # Zero-stock listings stay visible so the seller can restock them
    return ListingFilter(seller_id=uuid.UUID(str(seller_id)))


def for_public_marketplace() -> ListingFilter:
    return ListingFilter(target_tier=TargetTier.CUSTOMER, in_stock_only=True)


def resolve(caller, context) -> ListingFilter:
    """
    Pick the listing filter for a caller in a given context

    Args:
        caller: CurrentUser or None for anonymous visitors
        context: VisibilityContext (or its string value)
    """
    context = VisibilityContext(context)

    if context == VisibilityContext.PUBLIC or caller is None:
        return for_public_marketplace()

    if context == VisibilityContext.DASHBOARD:
        return for_seller_dashboard(caller.user_id)

    if parse_tier(caller.tier) == Tier.CUSTOMER:
        return for_public_marketplace()
    return for_buyer(caller.tier)
