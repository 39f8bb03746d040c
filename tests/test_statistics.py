"""Tests for dashboard statistics."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from sqlalchemy import update

from models import OrderB2C, OrderB2B
from routers.orders.helpers import order_helpers
from routers.orders.lifecycle import transition_order
from routers.statistics.helpers import statistics_helpers


async def test_revenue_counts_only_delivered_customer_orders(users, make_listing, db, buyer_info):
    listing = await make_listing(users["retailer"], price="12.50", stock=20)
    pending = await order_helpers.place_b2c(db, None, buyer_info, listing.id, 2)
    delivered = await order_helpers.place_b2c(db, None, buyer_info, listing.id, 3)

    assert await statistics_helpers.total_revenue(db, users["retailer"].user_id) == Decimal("0")

    await transition_order(db, users["retailer"], "b2c", delivered.id, "shipped")
    assert await statistics_helpers.total_revenue(db, users["retailer"].user_id) == Decimal("0")

    await transition_order(db, users["retailer"], "b2c", delivered.id, "delivered")
    assert await statistics_helpers.total_revenue(db, users["retailer"].user_id) == Decimal("37.50")

    await transition_order(db, users["retailer"], "b2c", pending.id, "cancelled")
    assert await statistics_helpers.total_revenue(db, users["retailer"].user_id) == Decimal("37.50")


async def test_b2b_revenue_counts_from_shipment(users, make_listing, db):
    listing = await make_listing(users["wholesaler"], price="8.00", stock=20)
    result = await order_helpers.place_b2b(db, users["retailer"], [{"listing_id": listing.id, "quantity": 5}])
    order_id = result.orders[0].id
    seller_id = users["wholesaler"].user_id

    await transition_order(db, users["wholesaler"], "b2b", order_id, "confirmed")
    assert await statistics_helpers.total_revenue(db, seller_id) == Decimal("0")

    await transition_order(db, users["wholesaler"], "b2b", order_id, "shipped")
    assert await statistics_helpers.total_revenue(db, seller_id) == Decimal("40.00")

    await transition_order(db, users["wholesaler"], "b2b", order_id, "delivered")
    assert await statistics_helpers.total_revenue(db, seller_id) == Decimal("40.00")


async def test_legacy_completed_orders_count_as_revenue(users, make_listing, db):
    listing = await make_listing(users["wholesaler"], price="8.00", stock=20)
    result = await order_helpers.place_b2b(db, users["retailer"], [{"listing_id": listing.id, "quantity": 2}])

    await db.execute(update(OrderB2B).where(OrderB2B.id == result.orders[0].id).values(status="completed"))
    await db.commit()

    assert await statistics_helpers.total_revenue(db, users["wholesaler"].user_id) == Decimal("16.00")


async def test_dashboard_is_scoped_to_the_seller(users, make_listing, db, buyer_info):
    mine = await make_listing(users["retailer"], stock=3)
    await make_listing(users["retailer"], stock=0)
    await make_listing(users["retailer"], stock=100)
    theirs = await make_listing(users["wholesaler"], stock=2)

    await order_helpers.place_b2c(db, None, buyer_info, mine.id, 1)
    await order_helpers.place_b2b(db, users["retailer"], [{"listing_id": theirs.id, "quantity": 1}])

    stats = await statistics_helpers.dashboard(db, users["retailer"].user_id)
    assert stats["total_listings"] == 3
    assert stats["active_listings"] == 2
    # 3 - 1 leaves 2 units; the sold-out listing is not an alert
    assert stats["low_stock_alerts"] == 1
    # Buying from a wholesaler is not a sale
    assert stats["total_orders"] == 1
    assert stats["pending_orders"] == 1
    assert stats["recent_orders"] == 1
    assert stats["total_revenue"] == Decimal("0")

    marketplace = await statistics_helpers.dashboard(db)
    assert marketplace["total_listings"] == 4
    assert marketplace["total_orders"] == 2
    assert marketplace["low_stock_alerts"] == 2


async def test_recent_orders_window(users, make_listing, db, buyer_info):
    listing = await make_listing(users["retailer"], stock=10)
    old = await order_helpers.place_b2c(db, None, buyer_info, listing.id, 1)
    await order_helpers.place_b2c(db, None, buyer_info, listing.id, 1)

    await db.execute(
        update(OrderB2C)
        .where(OrderB2C.id == old.id)
        .values(created_at=datetime.now(timezone.utc) - timedelta(days=30))
    )
    await db.commit()

    assert await statistics_helpers.recent_orders(db, users["retailer"].user_id, window_days=7) == 1
    assert await statistics_helpers.recent_orders(db, users["retailer"].user_id, window_days=60) == 2
    assert await statistics_helpers.total_orders(db, users["retailer"].user_id) == 2


def test_period_bounds():
    # A Wednesday
    now = datetime(2026, 10, 14, 15, 30, tzinfo=timezone.utc)
    bounds = statistics_helpers.period_bounds(now)

    assert bounds["today"] == (datetime(2026, 10, 14, tzinfo=timezone.utc), datetime(2026, 10, 15, tzinfo=timezone.utc))
    assert bounds["yesterday"] == (datetime(2026, 10, 13, tzinfo=timezone.utc), datetime(2026, 10, 14, tzinfo=timezone.utc))
    assert bounds["this_week"] == (datetime(2026, 10, 12, tzinfo=timezone.utc), datetime(2026, 10, 19, tzinfo=timezone.utc))
    assert bounds["this_month"] == (datetime(2026, 10, 1, tzinfo=timezone.utc), datetime(2026, 11, 1, tzinfo=timezone.utc))


def test_period_bounds_at_year_end():
    bounds = statistics_helpers.period_bounds(datetime(2026, 12, 31, 23, 59, tzinfo=timezone.utc))
    assert bounds["this_month"][1] == datetime(2027, 1, 1, tzinfo=timezone.utc)


async def test_period_overview(users, make_listing, db, buyer_info):
    now = datetime(2026, 10, 14, 15, 30, tzinfo=timezone.utc)
    listing = await make_listing(users["retailer"], price="5.00", stock=10)

    placed = []
    for created_at in (now - timedelta(hours=1), now - timedelta(days=1), now - timedelta(days=20)):
        order = await order_helpers.place_b2c(db, None, buyer_info, listing.id, 1)
        await transition_order(db, users["retailer"], "b2c", order.id, "shipped")
        await transition_order(db, users["retailer"], "b2c", order.id, "delivered")
        await db.execute(update(OrderB2C).where(OrderB2C.id == order.id).values(created_at=created_at))
        placed.append(order.id)
    await db.commit()

    overview = await statistics_helpers.period_overview(db, users["retailer"].user_id, now=now)

    assert overview["today"] == {"orders": 1, "revenue": Decimal("5.00")}
    assert overview["yesterday"] == {"orders": 1, "revenue": Decimal("5.00")}
    assert overview["this_week"] == {"orders": 2, "revenue": Decimal("10.00")}
    assert overview["this_month"] == {"orders": 2, "revenue": Decimal("10.00")}
    assert len(placed) == 3
