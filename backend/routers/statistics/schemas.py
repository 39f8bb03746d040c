from pydantic import BaseModel
from decimal import Decimal


class DashboardResponse(BaseModel):
    scope: str
    currency: str
    total_listings: int
    active_listings: int
    pending_orders: int
    total_orders: int
    total_revenue: Decimal
    low_stock_alerts: int
    low_stock_threshold: int
    recent_orders: int
    recent_window_days: int


class PeriodStats(BaseModel):
    orders: int
    revenue: Decimal


class OverviewResponse(BaseModel):
    scope: str
    currency: str
    today: PeriodStats
    yesterday: PeriodStats
    this_week: PeriodStats
    this_month: PeriodStats
