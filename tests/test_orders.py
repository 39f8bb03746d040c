"""Tests for order placement."""

import pytest
from decimal import Decimal

from dependencies.roles import Tier
from routers.listings.helpers import catalog_helpers
from routers.orders.helpers import order_helpers
from utils.errors import (
    ValidationFailedError, NotFoundError, ForbiddenError, InvalidTierError,
    TierMismatchError, InsufficientStockError, MinimumOrderError, ErrorCode
)
from utils.response_helpers import order_items_total


async def stock_of(session_factory, listing_id) -> int:
    async with session_factory() as session:
        return (await catalog_helpers.get_listing(session, listing_id)).stock_quantity


# =================
# B2C
# =================

async def test_place_b2c_order(users, make_listing, db, buyer_info, session_factory):
    listing = await make_listing(users["retailer"], price="10.50", stock=5)

    order = await order_helpers.place_b2c(db, users["customer"], buyer_info, listing.id, 3)

    assert order.status == "pending"
    assert order.user_id == users["customer"].user_id
    assert order.seller_id == users["retailer"].user_id
    assert len(order.items) == 1
    assert order.items[0].price_at_purchase == Decimal("10.50")
    assert order_items_total(order.items) == Decimal("31.50")
    assert await stock_of(session_factory, listing.id) == 2


async def test_anonymous_checkout(users, make_listing, db, buyer_info):
    listing = await make_listing(users["retailer"])
    order = await order_helpers.place_b2c(db, None, buyer_info, listing.id, 1)
    assert order.user_id is None


async def test_price_snapshot_survives_price_change(users, make_listing, db, buyer_info, session_factory):
    listing = await make_listing(users["retailer"], price="10.00", stock=5)
    order = await order_helpers.place_b2c(db, None, buyer_info, listing.id, 2)

    async with session_factory() as session:
        await catalog_helpers.update_listing(session, users["retailer"], listing.id, {"price": Decimal("99.00")})

    async with session_factory() as session:
        reloaded = await order_helpers.get_order(session, users["retailer"], "b2c", order.id)
        assert reloaded.items[0].price_at_purchase == Decimal("10.00")
        assert order_items_total(reloaded.items) == Decimal("20.00")


async def test_b2c_rejects_non_customer_listing(users, make_listing, db, buyer_info):
    listing = await make_listing(users["wholesaler"])
    with pytest.raises(NotFoundError):
        await order_helpers.place_b2c(db, None, buyer_info, listing.id, 1)


async def test_b2c_missing_listing(db, buyer_info):
    with pytest.raises(NotFoundError):
        await order_helpers.place_b2c(db, None, buyer_info, 12345, 1)


@pytest.mark.parametrize("quantity", [0, -2])
async def test_b2c_quantity_must_be_positive(users, make_listing, db, buyer_info, quantity):
    listing = await make_listing(users["retailer"])
    with pytest.raises(ValidationFailedError):
        await order_helpers.place_b2c(db, None, buyer_info, listing.id, quantity)


async def test_b2c_quantity_cannot_exceed_integer_range(users, make_listing, db, buyer_info, session_factory):
    listing = await make_listing(users["retailer"], stock=5)

    with pytest.raises(ValidationFailedError):
        await order_helpers.place_b2c(db, None, buyer_info, listing.id, 10**20)

    assert await stock_of(session_factory, listing.id) == 5


async def test_b2c_requires_buyer_details(users, make_listing, db, buyer_info):
    listing = await make_listing(users["retailer"])
    buyer_info["customer_phone"] = "  "
    with pytest.raises(ValidationFailedError):
        await order_helpers.place_b2c(db, None, buyer_info, listing.id, 1)


async def test_b2c_rejects_banned_and_business_buyers(users, make_listing, db, buyer_info):
    listing = await make_listing(users["admin"])

    with pytest.raises(ForbiddenError):
        await order_helpers.place_b2c(db, users["banned"], buyer_info, listing.id, 1)

    with pytest.raises(ForbiddenError):
        await order_helpers.place_b2c(db, users["wholesaler"], buyer_info, listing.id, 1)


async def test_b2c_insufficient_stock_writes_nothing(users, make_listing, db, buyer_info, session_factory):
    listing = await make_listing(users["retailer"], stock=2)

    with pytest.raises(InsufficientStockError):
        await order_helpers.place_b2c(db, None, buyer_info, listing.id, 3)

    assert await stock_of(session_factory, listing.id) == 2
    async with session_factory() as session:
        orders, total = await order_helpers.seller_b2c_orders(session, users["retailer"])
        assert total == 0


async def test_sequential_orders_cannot_oversell(users, make_listing, session_factory, buyer_info):
    listing = await make_listing(users["retailer"], stock=5)

    async with session_factory() as session:
        await order_helpers.place_b2c(session, None, buyer_info, listing.id, 3)

    async with session_factory() as session:
        with pytest.raises(InsufficientStockError):
            await order_helpers.place_b2c(session, None, buyer_info, listing.id, 3)

    assert await stock_of(session_factory, listing.id) == 2


async def test_stale_read_cannot_oversell(users, make_listing, session_factory, buyer_info):
    """Both buyers saw 5 units; only the first order for 3 may succeed."""
    listing = await make_listing(users["retailer"], stock=5)

    async with session_factory() as first, session_factory() as second:
        # Both sessions now hold the listing with stock_quantity == 5
        assert (await catalog_helpers.get_listing(first, listing.id)).stock_quantity == 5
        assert (await catalog_helpers.get_listing(second, listing.id)).stock_quantity == 5

        await order_helpers.place_b2c(first, None, buyer_info, listing.id, 3)

        with pytest.raises(InsufficientStockError):
            await order_helpers.place_b2c(second, None, buyer_info, listing.id, 3)

    assert await stock_of(session_factory, listing.id) == 2
    async with session_factory() as session:
        _, total = await order_helpers.seller_b2c_orders(session, users["retailer"])
        assert total == 1


async def test_orders_drain_stock_exactly(users, make_listing, session_factory, buyer_info):
    listing = await make_listing(users["retailer"], stock=7)
    succeeded = 0

    for quantity in [2, 4, 3, 1, 1]:
        async with session_factory() as session:
            try:
                await order_helpers.place_b2c(session, None, buyer_info, listing.id, quantity)
                succeeded += quantity
            except InsufficientStockError:
                pass

    assert succeeded == 7
    assert await stock_of(session_factory, listing.id) == 0


# =================
# B2B
# =================

async def test_place_b2b_order(users, make_listing, db, session_factory):
    rice = await make_listing(users["wholesaler"], price="40.00", stock=10, name="Rice 25kg")
    oil = await make_listing(users["wholesaler"], price="15.25", stock=10, name="Oil 5L")

    result = await order_helpers.place_b2b(db, users["retailer"], [
        {"listing_id": rice.id, "quantity": 2},
        {"listing_id": oil.id, "quantity": 4},
    ])

    assert result.failures == []
    assert len(result.orders) == 1
    order = result.orders[0]
    assert order.buyer_id == users["retailer"].user_id
    assert order.seller_id == users["wholesaler"].user_id
    assert order.status == "pending"
    assert order.total_price == Decimal("141.00")
    assert order.total_price == order_items_total(order.items)
    assert await stock_of(session_factory, rice.id) == 8
    assert await stock_of(session_factory, oil.id) == 6


async def test_duplicate_cart_lines_are_merged(users, make_listing, db, session_factory):
    listing = await make_listing(users["wholesaler"], price="5.00", stock=10)

    result = await order_helpers.place_b2b(db, users["retailer"], [
        {"listing_id": listing.id, "quantity": 2},
        {"listing_id": listing.id, "quantity": 3},
    ])

    items = result.orders[0].items
    assert [(item.listing_id, item.quantity) for item in items] == [(listing.id, 5)]
    assert await stock_of(session_factory, listing.id) == 5


async def test_merged_cart_lines_stay_in_integer_range(users, make_listing, db, session_factory):
    listing = await make_listing(users["wholesaler"], stock=10)

    with pytest.raises(ValidationFailedError):
        await order_helpers.place_b2b(db, users["retailer"], [
            {"listing_id": listing.id, "quantity": 2**31 - 1},
            {"listing_id": listing.id, "quantity": 2**31 - 1},
        ])

    assert await stock_of(session_factory, listing.id) == 10


async def test_bulk_minimum_order(users, make_listing, db, session_factory):
    listing = await make_listing(users["importer"], stock=100, min_order_quantity=5)

    with pytest.raises(MinimumOrderError):
        await order_helpers.place_b2b(db, users["wholesaler"], [{"listing_id": listing.id, "quantity": 2}])

    assert await stock_of(session_factory, listing.id) == 100

    result = await order_helpers.place_b2b(db, users["wholesaler"], [{"listing_id": listing.id, "quantity": 5}])
    assert result.orders[0].total_price == Decimal("50.00")


async def test_tier_mismatch(users, make_listing, db):
    importer_offer = await make_listing(users["importer"], min_order_quantity=1)

    with pytest.raises(TierMismatchError):
        await order_helpers.place_b2b(db, users["retailer"], [{"listing_id": importer_offer.id, "quantity": 1}])


async def test_b2b_requires_business_buyer(users, make_listing, db):
    listing = await make_listing(users["wholesaler"])

    with pytest.raises(InvalidTierError):
        await order_helpers.place_b2b(db, users["customer"], [{"listing_id": listing.id, "quantity": 1}])

    with pytest.raises(InvalidTierError):
        await order_helpers.place_b2b(db, users["importer"], [{"listing_id": listing.id, "quantity": 1}])

    with pytest.raises(ForbiddenError):
        await order_helpers.place_b2b(db, users["banned"], [{"listing_id": listing.id, "quantity": 1}])


async def test_b2b_cart_validation(users, make_listing, db):
    listing = await make_listing(users["wholesaler"])

    with pytest.raises(ValidationFailedError):
        await order_helpers.place_b2b(db, users["retailer"], [])

    with pytest.raises(ValidationFailedError):
        await order_helpers.place_b2b(db, users["retailer"], [{"listing_id": listing.id, "quantity": 0}])

    with pytest.raises(NotFoundError):
        await order_helpers.place_b2b(db, users["retailer"], [
            {"listing_id": listing.id, "quantity": 1},
            {"listing_id": 9999, "quantity": 1},
        ])


async def test_failed_partition_keeps_other_sellers_orders(users, make_listing, make_user, db, session_factory):
    second_wholesaler = await make_user(Tier.WHOLESALER)
    third_wholesaler = await make_user(Tier.WHOLESALER)

    first = await make_listing(users["wholesaler"], price="3.00", stock=10)
    short = await make_listing(second_wholesaler, price="4.00", stock=1)
    short_partner = await make_listing(second_wholesaler, price="4.00", stock=10)
    last = await make_listing(third_wholesaler, price="6.00", stock=10)

    result = await order_helpers.place_b2b(db, users["retailer"], [
        {"listing_id": first.id, "quantity": 2},
        {"listing_id": short_partner.id, "quantity": 1},
        {"listing_id": short.id, "quantity": 5},
        {"listing_id": last.id, "quantity": 1},
    ])

    assert [order.seller_id for order in result.orders] == [
        users["wholesaler"].user_id, third_wholesaler.user_id
    ]
    assert [order.total_price for order in result.orders] == [Decimal("6.00"), Decimal("6.00")]
    assert len(result.failures) == 1
    failure = result.failures[0].to_dict()
    assert failure["seller_id"] == str(second_wholesaler.user_id)
    assert failure["code"] == ErrorCode.INSUFFICIENT_STOCK.value

    # The failing partition is all-or-nothing
    assert await stock_of(session_factory, short_partner.id) == 10
    assert await stock_of(session_factory, short.id) == 1
    assert await stock_of(session_factory, first.id) == 8
    assert await stock_of(session_factory, last.id) == 9


async def test_b2b_stale_read_cannot_oversell(users, make_listing, make_user, session_factory):
    """Two wholesalers saw 5 units of a bulk offer; only the first order for 3 may succeed."""
    other_wholesaler = await make_user(Tier.WHOLESALER)
    listing = await make_listing(users["importer"], price="20.00", stock=5, min_order_quantity=1)

    async with session_factory() as first, session_factory() as second:
        assert (await catalog_helpers.get_listing(first, listing.id)).stock_quantity == 5
        assert (await catalog_helpers.get_listing(second, listing.id)).stock_quantity == 5

        result = await order_helpers.place_b2b(first, users["wholesaler"], [{"listing_id": listing.id, "quantity": 3}])
        assert result.orders[0].total_price == Decimal("60.00")

        # The second session still holds the stale listing, so only the
        # conditional decrement can refuse this partition
        with pytest.raises(InsufficientStockError):
            await order_helpers.place_b2b(second, other_wholesaler, [{"listing_id": listing.id, "quantity": 3}])

    assert await stock_of(session_factory, listing.id) == 2
    async with session_factory() as session:
        _, total = await order_helpers.b2b_sales(session, users["importer"])
        assert total == 1
        _, purchases = await order_helpers.b2b_purchases(session, other_wholesaler)
        assert purchases == 0


async def test_all_partitions_failing_raises_first_error(users, make_listing, make_user, db):
    other = await make_user(Tier.WHOLESALER)
    empty = await make_listing(users["wholesaler"], stock=0)
    importer_offer = await make_listing(users["importer"], min_order_quantity=1)
    other_empty = await make_listing(other, stock=0)

    with pytest.raises(InsufficientStockError):
        await order_helpers.place_b2b(db, users["retailer"], [
            {"listing_id": empty.id, "quantity": 1},
            {"listing_id": importer_offer.id, "quantity": 1},
            {"listing_id": other_empty.id, "quantity": 1},
        ])


# =================
# HISTORY
# =================

async def test_order_history_scopes(users, make_listing, db, buyer_info):
    retail = await make_listing(users["retailer"], stock=10)
    wholesale = await make_listing(users["wholesaler"], stock=10)

    await order_helpers.place_b2c(db, users["customer"], buyer_info, retail.id, 1)
    await order_helpers.place_b2c(db, None, buyer_info, retail.id, 1)
    await order_helpers.place_b2b(db, users["retailer"], [{"listing_id": wholesale.id, "quantity": 2}])

    mine, total = await order_helpers.my_b2c_orders(db, users["customer"])
    assert total == 1

    sales, total = await order_helpers.seller_b2c_orders(db, users["retailer"])
    assert total == 2

    _, total = await order_helpers.seller_b2c_orders(db, users["admin"])
    assert total == 2

    purchases, total = await order_helpers.b2b_purchases(db, users["retailer"])
    assert total == 1
    assert purchases[0].seller_id == users["wholesaler"].user_id

    _, total = await order_helpers.b2b_sales(db, users["wholesaler"])
    assert total == 1

    _, total = await order_helpers.seller_b2c_orders(db, users["retailer"], status_filter="delivered")
    assert total == 0

    with pytest.raises(ValidationFailedError):
        await order_helpers.seller_b2c_orders(db, users["retailer"], status_filter="confirmed")


async def test_get_order_authority(users, make_listing, db, buyer_info):
    listing = await make_listing(users["retailer"])
    order = await order_helpers.place_b2c(db, users["customer"], buyer_info, listing.id, 1)

    for key in ("customer", "retailer", "admin"):
        assert (await order_helpers.get_order(db, users[key], "b2c", order.id)).id == order.id

    with pytest.raises(ForbiddenError):
        await order_helpers.get_order(db, users["wholesaler"], "b2c", order.id)

    with pytest.raises(NotFoundError):
        await order_helpers.get_order(db, users["admin"], "b2b", order.id + 100)
