from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from models import INTEGER_MAX
from routers.products.schemas import ProductInput, ProductResponse


class ListingCreate(BaseModel):
    product: ProductInput
    price: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    stock_quantity: int = Field(..., ge=0, le=INTEGER_MAX)
    # Only honoured for bulk offers
    min_order_quantity: Optional[int] = Field(None, ge=1, le=INTEGER_MAX)


class ListingUpdate(BaseModel):
    """Absolute replacement values. Omitted fields are left alone."""
    price: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    stock_quantity: Optional[int] = Field(None, ge=0, le=INTEGER_MAX)
    min_order_quantity: Optional[int] = Field(None, ge=1, le=INTEGER_MAX)
    # Admin correction only
    target_tier: Optional[str] = None
    is_bulk_offer: Optional[bool] = None


class ListingResponse(BaseModel):
    id: int
    product_id: int
    seller_id: str
    price: Decimal
    stock_quantity: int
    target_tier: str
    is_bulk_offer: bool
    min_order_quantity: int
    created_at: datetime
    updated_at: datetime
    product: Optional[ProductResponse] = None


class ListingListResponse(BaseModel):
    """Response schema for listing pages"""
    listings: List[ListingResponse]
    page: int
    limit: int
    total: int


class LowStockResponse(BaseModel):
    threshold: int
    listings: List[ListingResponse] = Field(default_factory=list)
