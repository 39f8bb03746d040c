from fastapi import APIRouter, Depends, HTTPException, status, Query, BackgroundTasks, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from config import get_db
from models import Profile
from routers.auth.auth import get_current_user, get_optional_user
from dependencies.rbac import (
    require_permission, require_b2c_checkout, require_b2c_read, require_b2b_read, require_b2b_write
)
from utils.errors import CommerceError
from utils.response_helpers import safe_model_validate, b2c_order_to_dict, b2b_order_to_dict
from utils.notifications import (
    send_email, send_sms,
    get_order_received_email, get_b2b_order_placed_email, get_order_status_email,
    get_b2c_order_placed_sms, get_order_status_sms
)
from .helpers import order_helpers
from .lifecycle import OrderKind, transition_order
from .schemas import (
    B2COrderCreate, B2BOrderCreate, OrderStatusUpdate,
    B2COrderResponse, B2BOrderResponse, B2BCheckoutResponse,
    B2COrderListResponse, B2BOrderListResponse
)
from typing import Optional
import uuid
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["Orders"])


def require_order_permission(permission: str):
    """RBAC check for routes where the order kind is a path parameter"""
    def check_order_rbac(kind: OrderKind, request: Request):
        return require_permission(f"orders/{kind.value}", permission)(request)
    return check_order_rbac


def _order_to_response(kind: OrderKind, order):
    if kind == OrderKind.B2C:
        return safe_model_validate(B2COrderResponse, b2c_order_to_dict(order))
    return safe_model_validate(B2BOrderResponse, b2b_order_to_dict(order))


async def _profile_email(db: AsyncSession, user_id) -> Optional[str]:
    result = await db.execute(select(Profile.email).where(Profile.id == uuid.UUID(str(user_id))))
    return result.scalar_one_or_none()


async def send_order_notifications(kind: OrderKind, order_data: dict, background_tasks: BackgroundTasks, db: AsyncSession):
    """Queue order placed notifications for both parties"""
    try:
        seller_email = await _profile_email(db, order_data["seller_id"])
        if seller_email:
            subject, body = get_order_received_email(order_data, kind.value)
            background_tasks.add_task(send_email, seller_email, subject, body)

        if kind == OrderKind.B2C:
            background_tasks.add_task(send_sms, order_data["customer_phone"], get_b2c_order_placed_sms(order_data))
        else:
            buyer_email = await _profile_email(db, order_data["buyer_id"])
            if buyer_email:
                subject, body = get_b2b_order_placed_email(order_data)
                background_tasks.add_task(send_email, buyer_email, subject, body)
    except Exception as e:
        # The order is already committed; a notification problem must not fail the request
        logger.error(f"Error queueing notifications for {kind.value} order {order_data['id']}: {str(e)}")


async def send_status_notifications(kind: OrderKind, order_data: dict, background_tasks: BackgroundTasks, db: AsyncSession):
    try:
        if kind == OrderKind.B2C:
            background_tasks.add_task(send_sms, order_data["customer_phone"], get_order_status_sms(order_data))
        else:
            buyer_email = await _profile_email(db, order_data["buyer_id"])
            if buyer_email:
                subject, body = get_order_status_email(order_data)
                background_tasks.add_task(send_email, buyer_email, subject, body)
    except Exception as e:
        logger.error(f"Error queueing status notification for {kind.value} order {order_data['id']}: {str(e)}")


# =================
# PLACEMENT ROUTES
# =================

@router.post("/b2c", response_model=B2COrderResponse, status_code=status.HTTP_201_CREATED)
async def place_b2c_order(
    order_data: B2COrderCreate,
    background_tasks: BackgroundTasks,
    current_user = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_b2c_checkout)
):
    """
    Cash-on-delivery checkout for a customer listing. Anonymous buyers allowed.
    """
    try:
        order = await order_helpers.place_b2c(
            db,
            current_user,
            buyer_info=order_data.model_dump(include={"customer_name", "customer_address", "customer_phone"}),
            listing_id=order_data.listing_id,
            quantity=order_data.quantity
        )
        order_dict = b2c_order_to_dict(order)

        await send_order_notifications(OrderKind.B2C, order_dict, background_tasks, db)

        return safe_model_validate(B2COrderResponse, order_dict)

    except HTTPException:
        raise
    except CommerceError:
        raise
    except Exception as e:
        logger.error(f"Error placing B2C order: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to place order"
        )


@router.post("/b2b", response_model=B2BCheckoutResponse, status_code=status.HTTP_201_CREATED)
async def place_b2b_order(
    order_data: B2BOrderCreate,
    background_tasks: BackgroundTasks,
    current_user = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_b2b_write)
):
    """
    Business checkout. The cart is split into one order per seller; sellers
    whose part fails are reported in failures.
    """
    try:
        result = await order_helpers.place_b2b(
            db,
            current_user,
            [line.model_dump() for line in order_data.lines]
        )

        orders = []
        for order in result.orders:
            order_dict = b2b_order_to_dict(order)
            await send_order_notifications(OrderKind.B2B, order_dict, background_tasks, db)
            orders.append(safe_model_validate(B2BOrderResponse, order_dict))

        return B2BCheckoutResponse(
            orders=orders,
            failures=[failure.to_dict() for failure in result.failures]
        )

    except HTTPException:
        raise
    except CommerceError:
        raise
    except Exception as e:
        logger.error(f"Error placing B2B order: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to place order"
        )


# =================
# HISTORY ROUTES
# =================

@router.get("/b2c/mine", response_model=B2COrderListResponse)
async def get_my_b2c_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    order_status: Optional[str] = Query(None, alias="status"),
    current_user = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_b2c_read)
):
    """Orders the caller placed as a customer"""
    try:
        orders, total = await order_helpers.my_b2c_orders(db, current_user, order_status, page, limit)
        return B2COrderListResponse(
            orders=[_order_to_response(OrderKind.B2C, order) for order in orders],
            page=page,
            limit=limit,
            total=total
        )

    except HTTPException:
        raise
    except CommerceError:
        raise
    except Exception as e:
        logger.error(f"Error getting customer orders: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get orders"
        )


@router.get("/b2c/sales", response_model=B2COrderListResponse)
async def get_b2c_sales(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    order_status: Optional[str] = Query(None, alias="status"),
    current_user = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_b2c_read)
):
    """Customer orders received by the caller"""
    try:
        orders, total = await order_helpers.seller_b2c_orders(db, current_user, order_status, page, limit)
        return B2COrderListResponse(
            orders=[_order_to_response(OrderKind.B2C, order) for order in orders],
            page=page,
            limit=limit,
            total=total
        )

    except HTTPException:
        raise
    except CommerceError:
        raise
    except Exception as e:
        logger.error(f"Error getting customer sales: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get orders"
        )


@router.get("/b2b/purchases", response_model=B2BOrderListResponse)
async def get_b2b_purchases(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    order_status: Optional[str] = Query(None, alias="status"),
    current_user = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_b2b_read)
):
    try:
        orders, total = await order_helpers.b2b_purchases(db, current_user, order_status, page, limit)
        return B2BOrderListResponse(
            orders=[_order_to_response(OrderKind.B2B, order) for order in orders],
            page=page,
            limit=limit,
            total=total
        )

    except HTTPException:
        raise
    except CommerceError:
        raise
    except Exception as e:
        logger.error(f"Error getting B2B purchases: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get orders"
        )


@router.get("/b2b/sales", response_model=B2BOrderListResponse)
async def get_b2b_sales(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    order_status: Optional[str] = Query(None, alias="status"),
    current_user = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_b2b_read)
):
    try:
        orders, total = await order_helpers.b2b_sales(db, current_user, order_status, page, limit)
        return B2BOrderListResponse(
            orders=[_order_to_response(OrderKind.B2B, order) for order in orders],
            page=page,
            limit=limit,
            total=total
        )

    except HTTPException:
        raise
    except CommerceError:
        raise
    except Exception as e:
        logger.error(f"Error getting B2B sales: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get orders"
        )


@router.get("/{kind}/{order_id}")
async def get_order(
    kind: OrderKind,
    order_id: int,
    current_user = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_order_permission("read"))
):
    """Order detail for the buyer, the seller or an admin"""
    try:
        order = await order_helpers.get_order(db, current_user, kind, order_id)
        return _order_to_response(kind, order)

    except HTTPException:
        raise
    except CommerceError:
        raise
    except Exception as e:
        logger.error(f"Error getting {kind.value} order {order_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get order"
        )


# =================
# LIFECYCLE ROUTES
# =================

@router.put("/{kind}/{order_id}/status")
async def update_order_status(
    kind: OrderKind,
    order_id: int,
    status_update: OrderStatusUpdate,
    background_tasks: BackgroundTasks,
    current_user = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_order_permission("write"))
):
    """Advance or cancel an order. Cancelling does not restock the listing."""
    try:
        order = await transition_order(db, current_user, kind, order_id, status_update.status)
        response = _order_to_response(kind, order)

        await send_status_notifications(kind, response.model_dump(), background_tasks, db)

        return response

    except HTTPException:
        raise
    except CommerceError:
        raise
    except Exception as e:
        logger.error(f"Error updating {kind.value} order {order_id} status: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update order status"
        )
