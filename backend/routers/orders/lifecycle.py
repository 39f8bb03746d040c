"""
Order status state machines

B2C and B2B orders follow separate, fixed transition tables. A transition is
legal only when the target is a listed successor of the current status;
same-state moves are rejected like any other. Status writes are guarded by
the status that was read, so a concurrent change turns into an illegal
transition instead of a lost update.
"""
from enum import Enum
from typing import Dict, FrozenSet, Type
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from models import OrderB2C, OrderB2B
from utils.errors import IllegalTransitionError, ForbiddenError, NotFoundError, ValidationFailedError
import logging

logger = logging.getLogger(__name__)


class OrderKind(str, Enum):
    B2C = "b2c"
    B2B = "b2b"


class B2CStatus(str, Enum):
    PENDING = "pending"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class B2BStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    # Legacy terminal state kept for revenue reporting
    COMPLETED = "completed"


B2C_TRANSITIONS: Dict[B2CStatus, FrozenSet[B2CStatus]] = {
    B2CStatus.PENDING: frozenset({B2CStatus.SHIPPED, B2CStatus.CANCELLED}),
    B2CStatus.SHIPPED: frozenset({B2CStatus.DELIVERED}),
    B2CStatus.DELIVERED: frozenset(),
    B2CStatus.CANCELLED: frozenset(),
}

B2B_TRANSITIONS: Dict[B2BStatus, FrozenSet[B2BStatus]] = {
    B2BStatus.PENDING: frozenset({B2BStatus.CONFIRMED, B2BStatus.CANCELLED}),
    B2BStatus.CONFIRMED: frozenset({B2BStatus.SHIPPED, B2BStatus.CANCELLED}),
    B2BStatus.SHIPPED: frozenset({B2BStatus.DELIVERED}),
    B2BStatus.DELIVERED: frozenset(),
    B2BStatus.CANCELLED: frozenset(),
    B2BStatus.COMPLETED: frozenset(),
}

for _table, _statuses in ((B2C_TRANSITIONS, B2CStatus), (B2B_TRANSITIONS, B2BStatus)):
    if set(_table) != set(_statuses):
        raise RuntimeError(f"{_statuses.__name__} transition table incomplete")

B2C_REVENUE_STATUSES: FrozenSet[B2CStatus] = frozenset({B2CStatus.DELIVERED})
B2B_REVENUE_STATUSES: FrozenSet[B2BStatus] = frozenset({
    B2BStatus.SHIPPED,
    B2BStatus.DELIVERED,
    B2BStatus.COMPLETED,
})

_STATUS_ENUM: Dict[OrderKind, Type[Enum]] = {
    OrderKind.B2C: B2CStatus,
    OrderKind.B2B: B2BStatus,
}
_TRANSITIONS = {
    OrderKind.B2C: B2C_TRANSITIONS,
    OrderKind.B2B: B2B_TRANSITIONS,
}
_ORDER_MODEL = {
    OrderKind.B2C: OrderB2C,
    OrderKind.B2B: OrderB2B,
}


def parse_status(kind, value):
    kind = OrderKind(kind)
    try:
        return _STATUS_ENUM[kind](value)
    except ValueError:
        raise ValidationFailedError(f"Unknown {kind.value} order status: {value}", status=value)


def allowed_transitions(kind, current) -> FrozenSet:
    kind = OrderKind(kind)
    return _TRANSITIONS[kind][parse_status(kind, current)]


def ensure_transition(kind, current, target):
    """Return the target status if it is a legal successor of current"""
    kind = OrderKind(kind)
    current = parse_status(kind, current)
    target = parse_status(kind, target)
    if target not in _TRANSITIONS[kind][current]:
        raise IllegalTransitionError(
            f"Cannot move a {kind.value} order from {current.value} to {target.value}",
            current=current.value,
            target=target.value
        )
    return target


def revenue_statuses(kind) -> FrozenSet[str]:
    kind = OrderKind(kind)
    statuses = B2C_REVENUE_STATUSES if kind == OrderKind.B2C else B2B_REVENUE_STATUSES
    return frozenset(s.value for s in statuses)


def ensure_can_advance(kind, caller, order) -> None:
    """
    B2C orders are advanced by the seller or an admin.
    B2B orders are advanced by the seller only.
    """
    kind = OrderKind(kind)
    if order.seller_id == caller.user_id:
        return
    if kind == OrderKind.B2C and caller.is_admin:
        return
    logger.warning(f"User {caller.user_id} tried to change status of {kind.value} order {order.id}")
    raise ForbiddenError("Only the seller can change this order's status", order_id=order.id)


async def transition_order(db: AsyncSession, caller, kind, order_id: int, target):
    """
    Move an order to a new status.

    Cancelling never returns stock to the listing.
    """
    kind = OrderKind(kind)
    model = _ORDER_MODEL[kind]

    result = await db.execute(select(model).where(model.id == order_id))
    order = result.scalar_one_or_none()
    if not order:
        raise NotFoundError("Order not found", order_id=order_id, kind=kind.value)

    ensure_can_advance(kind, caller, order)
    current = order.status
    target = ensure_transition(kind, current, target)

    try:
        updated = await db.execute(
            update(model)
            .where(model.id == order_id, model.status == current)
            .values(status=target.value)
            .execution_options(synchronize_session=False)
        )
        if updated.rowcount == 0:
            raise IllegalTransitionError(
                "Order status changed concurrently",
                current=current,
                target=target.value
            )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    refreshed = await db.execute(
        select(model).where(model.id == order_id).execution_options(populate_existing=True)
    )
    order = refreshed.scalar_one()
    logger.info(f"{kind.value.upper()} order {order_id} moved from {current} to {target.value} by {caller.user_id}")
    return order
