"""
RBAC dependencies for FastAPI routes
Tier-based access control implemented as dependencies that run after authentication
"""
from fastapi import HTTPException, status, Request
from dependencies.roles import Tier
from utils.errors import ForbiddenError
import logging

logger = logging.getLogger(__name__)

RESOURCES_FOR_TIERS = {
    Tier.ADMIN: {
        'admin': ['read'],
        'categories': ['read', 'write', 'delete'],
        'listings': ['read', 'write', 'delete'],
        'products': ['read', 'write'],
        'orders/b2c': ['read', 'write'],
        'orders/b2b': ['read'],
        'statistics': ['read'],
    },
    Tier.IMPORTER: {
        'categories': ['read'],
        'listings': ['read', 'write', 'delete'],
        'products': ['read', 'write'],
        'orders/b2c': ['read', 'write'],  # Importers may shop the public marketplace
        'orders/b2b': ['read', 'write'],  # Sales side of bulk offers
        'statistics': ['read'],
    },
    Tier.WHOLESALER: {
        'categories': ['read'],
        'listings': ['read', 'write', 'delete'],
        'products': ['read', 'write'],
        'orders/b2b': ['read', 'write'],
        'statistics': ['read'],
    },
    Tier.RETAILER: {
        'categories': ['read'],
        'listings': ['read', 'write', 'delete'],
        'products': ['read', 'write'],
        'orders/b2c': ['read', 'write'],  # Sales side of customer listings
        'orders/b2b': ['read', 'write'],
        'statistics': ['read'],
    },
    Tier.CUSTOMER: {
        'categories': ['read'],
        'listings': ['read'],
        'products': ['read'],
        'orders/b2c': ['read', 'write'],
    },
}


def translate_method_to_action(method: str) -> str:
    """Map HTTP methods to RBAC actions"""
    method_permission_mapping = {
        'GET': 'read',
        'POST': 'write',
        'PUT': 'write',
        'PATCH': 'write',
        'DELETE': 'delete',
    }
    return method_permission_mapping.get(method.upper(), 'read')


def has_permission(tier: Tier, resource_name: str, required_permission: str) -> bool:
    """Check if a tier has permission for the resource and action"""
    tier_permissions = RESOURCES_FOR_TIERS.get(tier)
    if not tier_permissions:
        return False

    if resource_name in tier_permissions:
        return required_permission in tier_permissions[resource_name]

    parent_resource = resource_name.split('/')[0]
    if parent_resource in tier_permissions:
        return required_permission in tier_permissions[parent_resource]

    return False


def ensure_not_banned(current_user) -> None:
    """Banned callers are rejected before reaching any engine operation"""
    if current_user is not None and current_user.is_banned:
        logger.warning(f"Rejected banned caller {current_user.user_id}")
        raise ForbiddenError("Account is banned", user_id=current_user.user_id)


def require_permission(resource: str, permission: str = None, allow_anonymous: bool = False):
    """
    Create an RBAC dependency that checks permissions

    Args:
        resource: Resource name from RESOURCES_FOR_TIERS
        permission: Specific permission (derived from the HTTP method if not provided)
        allow_anonymous: Let unauthenticated callers through (public checkout)
    """
    def check_rbac(request: Request):
        """RBAC dependency function"""
        current_user = getattr(request.state, 'current_user', None)
        if current_user is None:
            if allow_anonymous:
                return True
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required"
            )

        ensure_not_banned(current_user)

        required_permission = permission or translate_method_to_action(request.method)
        logger.debug(f"RBAC Check - Tier: {current_user.tier.value}, Resource: {resource}, Permission: {required_permission}")

        if not has_permission(current_user.tier, resource, required_permission):
            logger.warning(f"Access denied - Tier: {current_user.tier.value}, Resource: {resource}, Permission: {required_permission}")
            raise ForbiddenError(
                f"{current_user.tier.value.title()} tier does not have {required_permission} permission for {resource}",
                resource=resource
            )

        return True

    return check_rbac


# Admin
require_admin = require_permission("admin", "read")

# Categories
require_category_write = require_permission("categories", "write")
require_category_delete = require_permission("categories", "delete")

# Listings
require_listing_read = require_permission("listings", "read")
require_listing_write = require_permission("listings", "write")
require_listing_delete = require_permission("listings", "delete")

# Products
require_product_write = require_permission("products", "write")

# Orders
require_b2c_checkout = require_permission("orders/b2c", "write", allow_anonymous=True)
require_b2c_read = require_permission("orders/b2c", "read")
require_b2c_write = require_permission("orders/b2c", "write")
require_b2b_read = require_permission("orders/b2b", "read")
require_b2b_write = require_permission("orders/b2b", "write")

# Dashboards
require_statistics = require_permission("statistics", "read")
