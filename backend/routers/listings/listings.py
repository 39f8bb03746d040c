from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from config import get_db, LOW_STOCK_THRESHOLD
from routers.auth.auth import get_current_user, get_optional_user
from dependencies.rbac import (
    require_listing_read, require_listing_write, require_listing_delete
)
from utils.errors import CommerceError, NotFoundError
from utils.response_helpers import safe_model_validate, listing_to_dict
from .helpers import catalog_helpers
from .visibility import resolve, VisibilityContext
from .schemas import (
    ListingCreate, ListingUpdate, ListingResponse, ListingListResponse, LowStockResponse
)
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/listings", tags=["Listings"])


def _listing_page(listings, page: int, limit: int, total: int) -> ListingListResponse:
    return ListingListResponse(
        listings=[safe_model_validate(ListingResponse, listing_to_dict(listing)) for listing in listings],
        page=page,
        limit=limit,
        total=total
    )


# =================
# BROWSING ROUTES
# =================

@router.get("/marketplace", response_model=ListingListResponse)
async def get_public_marketplace(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    """Customer-facing listings in stock. No authentication required."""
    try:
        listing_filter = resolve(None, VisibilityContext.PUBLIC)
        listings, total = await catalog_helpers.browse(db, listing_filter, page, limit)
        return _listing_page(listings, page, limit, total)

    except HTTPException:
        raise
    except CommerceError:
        raise
    except Exception as e:
        logger.error(f"Error getting marketplace listings: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get marketplace listings"
        )


@router.get("/browse", response_model=ListingListResponse)
async def browse_listings(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_listing_read)
):
    """Listings offered to the caller's tier"""
    try:
        listing_filter = resolve(current_user, VisibilityContext.BROWSE)
        listings, total = await catalog_helpers.browse(db, listing_filter, page, limit)
        return _listing_page(listings, page, limit, total)

    except HTTPException:
        raise
    except CommerceError:
        raise
    except Exception as e:
        logger.error(f"Error browsing listings: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to browse listings"
        )


@router.get("/mine", response_model=ListingListResponse)
async def get_my_listings(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_listing_write)
):
    """Seller dashboard, including listings that are out of stock"""
    try:
        listing_filter = resolve(current_user, VisibilityContext.DASHBOARD)
        listings, total = await catalog_helpers.browse(db, listing_filter, page, limit)
        return _listing_page(listings, page, limit, total)

    except HTTPException:
        raise
    except CommerceError:
        raise
    except Exception as e:
        logger.error(f"Error getting seller listings: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get seller listings"
        )


@router.get("/low-stock", response_model=LowStockResponse)
async def get_low_stock_listings(
    current_user = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_listing_write)
):
    """Restock panel. Admins see every seller's listings."""
    try:
        seller_id = None if current_user.is_admin else current_user.user_id
        listings = await catalog_helpers.low_stock_listings(db, seller_id)
        return LowStockResponse(
            threshold=LOW_STOCK_THRESHOLD,
            listings=[safe_model_validate(ListingResponse, listing_to_dict(listing)) for listing in listings]
        )

    except HTTPException:
        raise
    except CommerceError:
        raise
    except Exception as e:
        logger.error(f"Error getting low stock listings: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get low stock listings"
        )


@router.get("/{listing_id}", response_model=ListingResponse)
async def get_listing(
    listing_id: int,
    current_user = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """Single listing, if visible to the caller"""
    try:
        listing = await catalog_helpers.get_listing(db, listing_id)

        owns_listing = current_user is not None and (
            current_user.is_admin or listing.seller_id == current_user.user_id
        )
        if not owns_listing and not resolve(current_user, VisibilityContext.BROWSE)(listing):
            raise NotFoundError("Listing not found", listing_id=listing_id)

        return safe_model_validate(ListingResponse, listing_to_dict(listing))

    except HTTPException:
        raise
    except CommerceError:
        raise
    except Exception as e:
        logger.error(f"Error getting listing {listing_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get listing"
        )


# =================
# SELLER ROUTES
# =================

@router.post("", response_model=ListingResponse, status_code=status.HTTP_201_CREATED)
async def create_listing(
    listing_data: ListingCreate,
    current_user = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_listing_write)
):
    """Create a product and list it for the caller's downstream tier"""
    try:
        listing = await catalog_helpers.create_listing(
            db,
            current_user,
            product=listing_data.product.model_dump(),
            price=listing_data.price,
            stock_quantity=listing_data.stock_quantity,
            min_order_quantity=listing_data.min_order_quantity
        )
        return safe_model_validate(ListingResponse, listing_to_dict(listing))

    except HTTPException:
        raise
    except CommerceError:
        raise
    except Exception as e:
        logger.error(f"Error creating listing: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create listing"
        )


@router.patch("/{listing_id}", response_model=ListingResponse)
async def update_listing(
    listing_id: int,
    listing_data: ListingUpdate,
    current_user = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_listing_write)
):
    """Change price, stock or minimum order quantity"""
    try:
        changes = listing_data.model_dump(exclude_unset=True)
        listing = await catalog_helpers.update_listing(db, current_user, listing_id, changes)
        return safe_model_validate(ListingResponse, listing_to_dict(listing))

    except HTTPException:
        raise
    except CommerceError:
        raise
    except Exception as e:
        logger.error(f"Error updating listing {listing_id}: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update listing"
        )


@router.delete("/{listing_id}")
async def delete_listing(
    listing_id: int,
    current_user = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_listing_delete)
):
    """Remove a listing. Past orders keep their line items."""
    try:
        await catalog_helpers.delete_listing(db, current_user, listing_id)
        return {"message": "Listing deleted successfully"}

    except HTTPException:
        raise
    except CommerceError:
        raise
    except Exception as e:
        logger.error(f"Error deleting listing {listing_id}: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete listing"
        )
