"""
Dashboard metrics, recomputed from committed rows on every request.

A scope is either one seller (their listings and the orders they sold) or the
whole marketplace for admins. Revenue counts only revenue-eligible statuses
for each order kind.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from config import LOW_STOCK_THRESHOLD, RECENT_ORDERS_WINDOW_DAYS
from models import Listing, OrderB2C, OrderItemB2C, OrderB2B, utc_now
from routers.orders.lifecycle import OrderKind, revenue_statuses
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional, Dict
import logging

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class StatisticsHelpers:
    """Read-only aggregation over listings and orders"""

    def _listing_scope(self, seller_id):
        return [] if seller_id is None else [Listing.seller_id == seller_id]

    def _b2c_scope(self, seller_id):
        return [] if seller_id is None else [OrderB2C.seller_id == seller_id]

    def _b2b_scope(self, seller_id):
        return [] if seller_id is None else [OrderB2B.seller_id == seller_id]

    async def total_listings(self, db: AsyncSession, seller_id=None) -> int:
        return await db.scalar(
            select(func.count(Listing.id)).where(*self._listing_scope(seller_id))
        ) or 0

    async def active_listings(self, db: AsyncSession, seller_id=None) -> int:
        return await db.scalar(
            select(func.count(Listing.id)).where(
                Listing.stock_quantity > 0,
                *self._listing_scope(seller_id)
            )
        ) or 0

    async def low_stock_alerts(self, db: AsyncSession, seller_id=None, threshold: int = LOW_STOCK_THRESHOLD) -> int:
        return await db.scalar(
            select(func.count(Listing.id)).where(
                Listing.stock_quantity > 0,
                Listing.stock_quantity < threshold,
                *self._listing_scope(seller_id)
            )
        ) or 0

    async def _count_orders(self, db: AsyncSession, seller_id=None, *conditions) -> int:
        b2c = await db.scalar(
            select(func.count(OrderB2C.id)).where(
                *self._b2c_scope(seller_id),
                *[condition(OrderB2C) for condition in conditions]
            )
        ) or 0
        b2b = await db.scalar(
            select(func.count(OrderB2B.id)).where(
                *self._b2b_scope(seller_id),
                *[condition(OrderB2B) for condition in conditions]
            )
        ) or 0
        return b2c + b2b

    async def total_orders(self, db: AsyncSession, seller_id=None) -> int:
        return await self._count_orders(db, seller_id)

    async def pending_orders(self, db: AsyncSession, seller_id=None) -> int:
        return await self._count_orders(db, seller_id, lambda model: model.status == "pending")

    async def recent_orders(self, db: AsyncSession, seller_id=None, window_days: int = RECENT_ORDERS_WINDOW_DAYS, now: Optional[datetime] = None) -> int:
        """Orders created within the trailing window"""
        since = (now or utc_now()) - timedelta(days=window_days)
        return await self._count_orders(db, seller_id, lambda model: model.created_at >= since)

    async def total_revenue(self, db: AsyncSession, seller_id=None, since: Optional[datetime] = None, until: Optional[datetime] = None) -> Decimal:
        """
        Sum of line totals over revenue-eligible B2C orders plus total_price
        over revenue-eligible B2B orders, optionally within [since, until).
        """
        b2c_query = (
            select(OrderItemB2C.quantity, OrderItemB2C.price_at_purchase)
            .join(OrderB2C, OrderItemB2C.order_id == OrderB2C.id)
            .where(
                OrderB2C.status.in_(revenue_statuses(OrderKind.B2C)),
                *self._b2c_scope(seller_id)
            )
        )
        b2b_query = select(OrderB2B.total_price).where(
            OrderB2B.status.in_(revenue_statuses(OrderKind.B2B)),
            *self._b2b_scope(seller_id)
        )
        if since is not None:
            b2c_query = b2c_query.where(OrderB2C.created_at >= since)
            b2b_query = b2b_query.where(OrderB2B.created_at >= since)
        if until is not None:
            b2c_query = b2c_query.where(OrderB2C.created_at < until)
            b2b_query = b2b_query.where(OrderB2B.created_at < until)

        # Summed in Python so Decimal precision does not depend on the backend
        revenue = Decimal("0")
        for quantity, price in (await db.execute(b2c_query)).all():
            revenue += Decimal(quantity) * Decimal(price)
        for (total_price,) in (await db.execute(b2b_query)).all():
            revenue += Decimal(total_price)
        return revenue

    async def dashboard(self, db: AsyncSession, seller_id=None) -> Dict:
        """All headline metrics for one scope"""
        stats = {
            "total_listings": await self.total_listings(db, seller_id),
            "active_listings": await self.active_listings(db, seller_id),
            "pending_orders": await self.pending_orders(db, seller_id),
            "total_orders": await self.total_orders(db, seller_id),
            "total_revenue": await self.total_revenue(db, seller_id),
            "low_stock_alerts": await self.low_stock_alerts(db, seller_id),
            "recent_orders": await self.recent_orders(db, seller_id),
            "low_stock_threshold": LOW_STOCK_THRESHOLD,
            "recent_window_days": RECENT_ORDERS_WINDOW_DAYS,
        }
        logger.debug(f"Dashboard stats for {seller_id or 'marketplace'}: {stats}")
        return stats

    def period_bounds(self, now: datetime) -> Dict[str, tuple]:
        """
        [start, end) bounds in UTC for today, yesterday, this week (from
        Monday) and this month
        """
        now = _as_utc(now)
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        tomorrow = today + timedelta(days=1)
        week_start = today - timedelta(days=today.weekday())
        month_start = today.replace(day=1)
        next_month = (month_start + timedelta(days=32)).replace(day=1)
        return {
            "today": (today, tomorrow),
            "yesterday": (today - timedelta(days=1), today),
            "this_week": (week_start, week_start + timedelta(days=7)),
            "this_month": (month_start, next_month),
        }

    async def period_overview(self, db: AsyncSession, seller_id=None, now: Optional[datetime] = None) -> Dict[str, Dict]:
        """Order count and revenue per reporting period"""
        now = now or utc_now()
        overview = {}
        for period, (start, end) in self.period_bounds(now).items():
            orders = await self._count_orders(
                db,
                seller_id,
                lambda model: model.created_at >= start,
                lambda model: model.created_at < end
            )
            overview[period] = {
                "orders": orders,
                "revenue": await self.total_revenue(db, seller_id, since=start, until=end),
            }
        return overview


statistics_helpers = StatisticsHelpers()
