"""
Tier hierarchy for the marketplace

Admin (0) supervises everything and may list test offers for customers.
Importer (1) sells bulk offers to Wholesalers.
Wholesaler (2) buys from Importers and sells to Retailers.
Retailer (3) buys from Wholesalers and sells to Customers.
Customer (4) buys from Retailers.

Pure functions only. Every table below must cover every Tier member.
"""
from enum import Enum
from typing import Optional, Dict
from utils.errors import UnknownTierError


class Tier(str, Enum):
    ADMIN = "admin"
    IMPORTER = "importer"
    WHOLESALER = "wholesaler"
    RETAILER = "retailer"
    CUSTOMER = "customer"


class TargetTier(str, Enum):
    CUSTOMER = "customer"
    RETAILER = "retailer"
    WHOLESALER = "wholesaler"


TIER_RANK: Dict[Tier, int] = {
    Tier.ADMIN: 0,
    Tier.IMPORTER: 1,
    Tier.WHOLESALER: 2,
    Tier.RETAILER: 3,
    Tier.CUSTOMER: 4,
}

# Who a seller of each tier sells to
_DOWNSTREAM: Dict[Tier, Optional[TargetTier]] = {
    Tier.ADMIN: TargetTier.CUSTOMER,
    Tier.IMPORTER: TargetTier.WHOLESALER,
    Tier.WHOLESALER: TargetTier.RETAILER,
    Tier.RETAILER: TargetTier.CUSTOMER,
    Tier.CUSTOMER: None,
}

# Which listings a buyer of each tier may query. Admins and importers shop
# the public marketplace.
_UPSTREAM_TARGET: Dict[Tier, TargetTier] = {
    Tier.ADMIN: TargetTier.CUSTOMER,
    Tier.IMPORTER: TargetTier.CUSTOMER,
    Tier.WHOLESALER: TargetTier.WHOLESALER,
    Tier.RETAILER: TargetTier.RETAILER,
    Tier.CUSTOMER: TargetTier.CUSTOMER,
}

_CAN_CREATE_LISTING: Dict[Tier, bool] = {
    Tier.ADMIN: True,
    Tier.IMPORTER: True,
    Tier.WHOLESALER: True,
    Tier.RETAILER: True,
    Tier.CUSTOMER: False,
}

_CAN_PLACE_B2B: Dict[Tier, bool] = {
    Tier.ADMIN: False,
    Tier.IMPORTER: False,
    Tier.WHOLESALER: True,
    Tier.RETAILER: True,
    Tier.CUSTOMER: False,
}

for _table in (TIER_RANK, _DOWNSTREAM, _UPSTREAM_TARGET, _CAN_CREATE_LISTING, _CAN_PLACE_B2B):
    if set(_table) != set(Tier):
        raise RuntimeError("tier table out of sync with Tier enum")


def parse_tier(value) -> Tier:
    """Convert a stored tier string into a Tier, refusing unknown values"""
    if isinstance(value, Tier):
        return value
    try:
        return Tier(value)
    except ValueError:
        raise UnknownTierError(f"Unrecognized tier value: {value!r}", tier=value)


def downstream_tier_of(tier) -> Optional[TargetTier]:
    """Target tier of listings created by a seller of this tier"""
    return _DOWNSTREAM[parse_tier(tier)]


def upstream_target_of(tier) -> TargetTier:
    """Target tier of listings a buyer of this tier is allowed to query"""
    return _UPSTREAM_TARGET[parse_tier(tier)]


def can_create_listing(tier) -> bool:
    return _CAN_CREATE_LISTING[parse_tier(tier)]


def can_place_b2b(tier) -> bool:
    return _CAN_PLACE_B2B[parse_tier(tier)]


def can_place_b2c(tier) -> bool:
    # Admins and importers shop the public marketplace like any customer
    return upstream_target_of(tier) == TargetTier.CUSTOMER


def is_bulk_seller(tier) -> bool:
    """Importers sell bulk offers with a minimum order quantity"""
    return parse_tier(tier) == Tier.IMPORTER


def display_name(tier) -> str:
    tier = parse_tier(tier)
    if tier == Tier.ADMIN:
        return "Administrator"
    return tier.value.title()
