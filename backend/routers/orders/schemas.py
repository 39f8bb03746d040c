from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from models import INTEGER_MAX


class B2COrderCreate(BaseModel):
    listing_id: int
    quantity: int = Field(..., ge=1, le=INTEGER_MAX)
    customer_name: str = Field(..., max_length=200)
    customer_address: str
    customer_phone: str = Field(..., max_length=30)


class CartLine(BaseModel):
    listing_id: int
    quantity: int = Field(..., ge=1, le=INTEGER_MAX)


class B2BOrderCreate(BaseModel):
    lines: List[CartLine]


class OrderStatusUpdate(BaseModel):
    status: str


class OrderItemResponse(BaseModel):
    id: int
    listing_id: int
    quantity: int
    price_at_purchase: Decimal
    line_total: Decimal


class B2COrderResponse(BaseModel):
    id: int
    customer_name: str
    customer_address: str
    customer_phone: str
    user_id: Optional[str] = None
    seller_id: str
    status: str
    total: Decimal
    items: List[OrderItemResponse]
    created_at: datetime
    updated_at: datetime


class B2BOrderResponse(BaseModel):
    id: int
    buyer_id: str
    seller_id: str
    total_price: Decimal
    status: str
    items: List[OrderItemResponse]
    created_at: datetime
    updated_at: datetime


class PartitionFailureResponse(BaseModel):
    seller_id: str
    code: str
    detail: str


class B2BCheckoutResponse(BaseModel):
    orders: List[B2BOrderResponse]
    failures: List[PartitionFailureResponse] = []


class B2COrderListResponse(BaseModel):
    orders: List[B2COrderResponse]
    page: int
    limit: int
    total: int


class B2BOrderListResponse(BaseModel):
    orders: List[B2BOrderResponse]
    page: int
    limit: int
    total: int
