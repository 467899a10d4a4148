from datetime import datetime, timedelta, timezone
from typing import List
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models import Click, Url

PERIODS = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
}
DEFAULT_PERIOD = "7d"


def normalize_period(period: str) -> str:
    """Unknown periods fall back to the default"""
    return period if period in PERIODS else DEFAULT_PERIOD


def get_period_start(period: str) -> datetime:
    """Get start datetime for given period"""
    return datetime.now(timezone.utc) - PERIODS[normalize_period(period)]


def get_clicks_by_day(db: Session, url_id: int, period: str) -> List[dict]:
    """Get clicks aggregated by day"""
    start_date = get_period_start(period)

    results = db.query(
        func.date(Click.clicked_at).label('date'),
        func.count(Click.id).label('clicks')
    ).filter(
        Click.url_id == url_id,
        Click.clicked_at >= start_date
    ).group_by(
        func.date(Click.clicked_at)
    ).order_by(
        func.date(Click.clicked_at)
    ).all()

    # SQLite returns the date as a string, other backends as a date
    return [
        {
            "timestamp": row.date if isinstance(row.date, str) else row.date.isoformat() if row.date else "",
            "clicks": row.clicks
        }
        for row in results
    ]


def get_top_referers(db: Session, url_id: int, period: str, limit: int = 10) -> List[dict]:
    """Get top referer sources"""
    start_date = get_period_start(period)

    results = db.query(
        Click.referer,
        func.count(Click.id).label('clicks')
    ).filter(
        Click.url_id == url_id,
        Click.clicked_at >= start_date
    ).group_by(
        Click.referer
    ).order_by(
        func.count(Click.id).desc()
    ).limit(limit).all()

    total = sum(row.clicks for row in results)

    # NULL and empty referers are grouped separately by the database
    merged = {}
    for row in results:
        key = row.referer if row.referer else "Direct"
        merged[key] = merged.get(key, 0) + row.clicks

    return [
        {
            "referer": referer,
            "clicks": clicks,
            "percentage": round(clicks / total * 100, 1) if total > 0 else 0
        }
        for referer, clicks in sorted(merged.items(), key=lambda item: item[1], reverse=True)
    ]


def get_link_analytics(db: Session, url: Url, period: str) -> dict:
    """Get click analytics for a link"""
    period = normalize_period(period)
    start_date = get_period_start(period)

    total_clicks = db.query(func.count(Click.id)).filter(
        Click.url_id == url.id,
        Click.clicked_at >= start_date
    ).scalar() or 0

    return {
        "short_code": url.short_code,
        "period": period,
        "total_clicks": total_clicks,
        "clicks_by_time": get_clicks_by_day(db, url.id, period),
        "top_referers": get_top_referers(db, url.id, period)
    }
