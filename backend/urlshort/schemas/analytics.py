from typing import List
from pydantic import BaseModel


class TimeSeriesPoint(BaseModel):
    """Single point in time series data"""
    timestamp: str  # ISO date string
    clicks: int


class RefererStats(BaseModel):
    """Referer statistics"""
    referer: str
    clicks: int
    percentage: float


class LinkAnalytics(BaseModel):
    """Click breakdown for a link over a period"""
    short_code: str
    period: str  # "24h", "7d", "30d", "90d"
    total_clicks: int
    clicks_by_time: List[TimeSeriesPoint]
    top_referers: List[RefererStats]
