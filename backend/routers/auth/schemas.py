from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from decimal import Decimal
import uuid

from dependencies.roles import Tier


class CurrentUser(BaseModel):
    """Authenticated caller, passed explicitly into every engine operation"""
    user_id: uuid.UUID
    email: Optional[str] = None
    tier: Tier
    is_banned: bool = False

    @property
    def is_admin(self) -> bool:
        return self.tier == Tier.ADMIN


class ProfileResponse(BaseModel):
    id: str
    email: str
    business_name: Optional[str] = None
    tier: str
    tier_display_name: str
    balance: Decimal
    due_amount: Decimal
    is_banned: bool
    created_at: datetime
    updated_at: datetime
