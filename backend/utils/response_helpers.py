"""
Response helper utilities for handling UUID conversions and model validation
"""
from typing import Any, Dict
from decimal import Decimal
import uuid
from pydantic import BaseModel


def convert_uuids_to_strings(obj: Any) -> Any:
    """
    Recursively convert UUID objects to strings in any data structure
    """
    if isinstance(obj, uuid.UUID):
        return str(obj)
    elif isinstance(obj, dict):
        return {key: convert_uuids_to_strings(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [convert_uuids_to_strings(item) for item in obj]
    elif isinstance(obj, BaseModel):
        return obj
    elif hasattr(obj, '__dict__'):
        # SQLAlchemy models and other plain objects
        result = {}
        for key, value in obj.__dict__.items():
            if not key.startswith('_'):
                result[key] = convert_uuids_to_strings(value)
        return result
    else:
        return obj


def safe_model_validate(model_class: BaseModel, data: Any) -> BaseModel:
    """
    Safely validate a model by converting UUIDs to strings first
    """
    if hasattr(data, '__dict__') and not isinstance(data, dict):
        data = data.__dict__.copy()

    clean_data = convert_uuids_to_strings(data)

    # Remove SQLAlchemy internal keys if present
    if isinstance(clean_data, dict):
        clean_data = {k: v for k, v in clean_data.items() if not k.startswith('_')}

    return model_class.model_validate(clean_data)


def line_total(quantity: int, price_at_purchase: Decimal) -> Decimal:
    return Decimal(quantity) * Decimal(price_at_purchase)


def order_items_total(items) -> Decimal:
    """Sum of quantity x price_at_purchase across order line items"""
    return sum((line_total(item.quantity, item.price_at_purchase) for item in items), Decimal("0"))


def listing_to_dict(listing) -> Dict[str, Any]:
    """Convert Listing model (with its product) to dict with string UUIDs"""
    product = listing.product
    return {
        'id': listing.id,
        'product_id': listing.product_id,
        'seller_id': str(listing.seller_id),
        'price': listing.price,
        'stock_quantity': listing.stock_quantity,
        'target_tier': listing.target_tier,
        'is_bulk_offer': listing.is_bulk_offer,
        'min_order_quantity': listing.min_order_quantity,
        'created_at': listing.created_at,
        'updated_at': listing.updated_at,
        'product': product_to_dict(product) if product is not None else None
    }


def product_to_dict(product) -> Dict[str, Any]:
    """Convert Product model to dict"""
    return {
        'id': product.id,
        'name': product.name,
        'description': product.description,
        'image_url': product.image_url,
        'category_id': product.category_id,
        'category_name': product.category.name if product.category is not None else None,
        'created_at': product.created_at,
        'updated_at': product.updated_at
    }


def category_to_dict(category) -> Dict[str, Any]:
    """Convert Category model to dict"""
    return {
        'id': category.id,
        'name': category.name,
        'icon_svg': category.icon_svg,
        'created_at': category.created_at,
        'updated_at': category.updated_at
    }


def order_item_to_dict(item) -> Dict[str, Any]:
    return {
        'id': item.id,
        'listing_id': item.listing_id,
        'quantity': item.quantity,
        'price_at_purchase': item.price_at_purchase,
        'line_total': line_total(item.quantity, item.price_at_purchase)
    }


def b2c_order_to_dict(order) -> Dict[str, Any]:
    """Convert OrderB2C model (with items) to dict; the total is derived from the items"""
    return {
        'id': order.id,
        'customer_name': order.customer_name,
        'customer_address': order.customer_address,
        'customer_phone': order.customer_phone,
        'user_id': str(order.user_id) if order.user_id else None,
        'seller_id': str(order.seller_id),
        'status': order.status,
        'total': order_items_total(order.items),
        'items': [order_item_to_dict(item) for item in order.items],
        'created_at': order.created_at,
        'updated_at': order.updated_at
    }


def b2b_order_to_dict(order) -> Dict[str, Any]:
    """Convert OrderB2B model (with items) to dict"""
    return {
        'id': order.id,
        'buyer_id': str(order.buyer_id),
        'seller_id': str(order.seller_id),
        'total_price': order.total_price,
        'status': order.status,
        'items': [order_item_to_dict(item) for item in order.items],
        'created_at': order.created_at,
        'updated_at': order.updated_at
    }
