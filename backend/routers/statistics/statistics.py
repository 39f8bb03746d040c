from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from config import get_db, DISPLAY_CURRENCY
from routers.auth.auth import get_current_user
from dependencies.rbac import require_statistics
from utils.errors import CommerceError
from .helpers import statistics_helpers
from .schemas import DashboardResponse, OverviewResponse
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/statistics", tags=["Statistics"])


def _scope_of(current_user):
    """Admins see the whole marketplace, sellers see their own figures"""
    if current_user.is_admin:
        return None, "marketplace"
    return current_user.user_id, "seller"


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    current_user = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_statistics)
):
    """Headline metrics for the seller dashboard"""
    try:
        seller_id, scope = _scope_of(current_user)
        stats = await statistics_helpers.dashboard(db, seller_id)
        return DashboardResponse(scope=scope, currency=DISPLAY_CURRENCY, **stats)

    except HTTPException:
        raise
    except CommerceError:
        raise
    except Exception as e:
        logger.error(f"Error computing dashboard statistics: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to compute statistics"
        )


@router.get("/overview", response_model=OverviewResponse)
async def get_overview(
    current_user = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_statistics)
):
    """Orders and revenue for today, yesterday, this week and this month"""
    try:
        seller_id, scope = _scope_of(current_user)
        overview = await statistics_helpers.period_overview(db, seller_id)
        return OverviewResponse(scope=scope, currency=DISPLAY_CURRENCY, **overview)

    except HTTPException:
        raise
    except CommerceError:
        raise
    except Exception as e:
        logger.error(f"Error computing overview statistics: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to compute statistics"
        )
