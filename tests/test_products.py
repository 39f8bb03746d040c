"""Tests for product edits and category management."""

import pytest

from dependencies.roles import Tier
from routers.products.helpers import product_helpers
from utils.errors import ForbiddenError, ValidationFailedError, NotFoundError

AS = "X-Test-User"


async def test_seller_edits_own_product(users, make_listing, db):
    listing = await make_listing(users["retailer"], name="Honey 250g")

    product = await product_helpers.update_product(
        db, users["retailer"], listing.product_id, {"name": "  Wild honey 250g ", "description": None}
    )

    assert product.name == "Wild honey 250g"
    assert product.description is None


async def test_only_listing_sellers_or_admins_edit(users, make_listing, make_user, db):
    listing = await make_listing(users["retailer"])
    stranger = await make_user(Tier.RETAILER)

    with pytest.raises(ForbiddenError):
        await product_helpers.update_product(db, stranger, listing.product_id, {"name": "Mine now"})

    product = await product_helpers.update_product(db, users["admin"], listing.product_id, {"name": "Renamed"})
    assert product.name == "Renamed"


async def test_product_edit_validation(users, make_listing, db):
    listing = await make_listing(users["retailer"])

    with pytest.raises(ValidationFailedError):
        await product_helpers.update_product(db, users["retailer"], listing.product_id, {"price": "1.00"})

    with pytest.raises(ValidationFailedError):
        await product_helpers.update_product(db, users["retailer"], listing.product_id, {"name": "   "})

    with pytest.raises(ValidationFailedError):
        await product_helpers.update_product(db, users["retailer"], listing.product_id, {"category_id": 404})

    with pytest.raises(NotFoundError):
        await product_helpers.update_product(db, users["retailer"], 9999, {"name": "Ghost"})


async def test_category_lifecycle(client, users, make_listing):
    created = await client.post("/admin/categories", headers={AS: "admin"}, json={"name": "Spices"})
    assert created.status_code == 201
    category_id = created.json()["id"]

    duplicate = await client.post("/admin/categories", headers={AS: "admin"}, json={"name": "Spices"})
    assert duplicate.status_code == 422
    assert duplicate.json()["code"] == "validation_error"

    listing = await make_listing(users["retailer"], name="Cumin 100g", category_id=category_id)

    public = await client.get("/products/categories")
    assert [category["name"] for category in public.json()] == ["Spices"]

    deleted = await client.delete(f"/admin/categories/{category_id}", headers={AS: "admin"})
    assert deleted.status_code == 200

    # The product survives, uncategorized
    response = await client.get(f"/listings/{listing.id}")
    assert response.status_code == 200
    assert response.json()["product"]["category_id"] is None


async def test_categories_are_admin_only(client):
    response = await client.post("/admin/categories", headers={AS: "retailer"}, json={"name": "Grains"})
    assert response.status_code == 403
    assert response.json()["code"] == "forbidden"
