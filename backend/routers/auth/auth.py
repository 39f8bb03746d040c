from fastapi import APIRouter, Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from config import get_db
from models import Profile
from dependencies.roles import parse_tier, display_name
from utils.errors import NotFoundError
from utils.response_helpers import safe_model_validate
from .schemas import CurrentUser, ProfileResponse
from .helpers import auth_helpers
from typing import Optional
import uuid
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


async def _resolve_caller(token: str, db: AsyncSession) -> CurrentUser:
    identity = auth_helpers.verify_token(token)

    result = await db.execute(
        select(Profile).where(Profile.id == uuid.UUID(str(identity.id)))
    )
    profile = result.scalar_one_or_none()
    if not profile:
        logger.warning(f"No profile found for authenticated user {identity.id}")
        raise NotFoundError("Profile not found", user_id=identity.id)

    # The profile row is authoritative; token metadata can lag behind admin changes
    if identity.role and identity.role != profile.tier:
        logger.info(f"Token role {identity.role} differs from profile tier {profile.tier} for {profile.id}")

    return CurrentUser(
        user_id=profile.id,
        email=profile.email or identity.email,
        tier=parse_tier(profile.tier),
        is_banned=profile.is_banned
    )


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> CurrentUser:
    """Get the authenticated caller from the bearer token"""
    current_user = await _resolve_caller(credentials.credentials, db)
    request.state.current_user = current_user
    return current_user


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security),
    db: AsyncSession = Depends(get_db)
) -> Optional[CurrentUser]:
    """Same as get_current_user but allows anonymous callers"""
    if credentials is None:
        request.state.current_user = None
        return None
    current_user = await _resolve_caller(credentials.credentials, db)
    request.state.current_user = current_user
    return current_user


@router.get("/me", response_model=ProfileResponse)
async def get_me(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Return the caller's marketplace profile"""
    result = await db.execute(select(Profile).where(Profile.id == current_user.user_id))
    profile = result.scalar_one_or_none()
    if not profile:
        raise NotFoundError("Profile not found")

    profile_dict = profile.__dict__.copy()
    profile_dict["tier_display_name"] = display_name(profile.tier)
    return safe_model_validate(ProfileResponse, profile_dict)
