import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import RedirectResponse

from ..config import Settings
from ..schemas.analytics import LinkAnalytics
from ..schemas.link import LinkStats, ShortenRequest, ShortenResponse
from ..services.click_tracker import ClickTracker
from ..services.qr import render_qr_png
from ..services.url_store import UrlStore
from ..utils.validators import get_client_ip

router = APIRouter()

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}


def _header(request: Request, name: str) -> Optional[str]:
    value = request.headers.get(name)
    return value[:512] if value else None


def get_store(request: Request) -> UrlStore:
    return request.app.state.store


def get_tracker(request: Request) -> ClickTracker:
    return request.app.state.tracker


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_logger(request: Request) -> logging.Logger:
    return request.app.state.logger


def build_short_url(settings: Settings, short_code: str) -> str:
    return f"{settings.BASE_URL.rstrip('/')}/{short_code}"


def _shorten(url: str, store: UrlStore, settings: Settings, logger: logging.Logger) -> ShortenResponse:
    record = store.create_or_get(url)
    logger.info("URL shortened", extra={"original_url": url, "short_code": record.short_code})

    return ShortenResponse(
        short_code=record.short_code,
        short_url=build_short_url(settings, record.short_code),
        original_url=record.original_url,
        created_at=record.created_at
    )


@router.post("/s", response_model=ShortenResponse, status_code=status.HTTP_201_CREATED)
def shorten_url(
    link_data: ShortenRequest,
    store: UrlStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    logger: logging.Logger = Depends(get_logger)
):
    """
    Create a short link.

    Submitting the same URL again returns the existing short code.
    """
    return _shorten(link_data.url, store, settings, logger)


@router.get("/s", response_model=ShortenResponse, status_code=status.HTTP_201_CREATED)
def shorten_url_from_query(
    u: Optional[str] = Query(None, description="Original URL to shorten"),
    store: UrlStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    logger: logging.Logger = Depends(get_logger)
):
    """Create a short link from the `u` query parameter."""
    if not u:
        logger.warning("Missing URL query parameter")
        raise HTTPException(status_code=400, detail="Missing 'u' query parameter")

    return _shorten(u, store, settings, logger)


@router.get("/{short_code}/stats", response_model=LinkStats)
def get_link_stats(
    short_code: str,
    store: UrlStore = Depends(get_store),
    logger: logging.Logger = Depends(get_logger)
):
    """Click statistics for a short link."""
    stats = store.get_stats(short_code)
    logger.info("Stats retrieved", extra={"short_code": short_code, "clicks": stats.total_clicks})
    return stats


@router.get("/{short_code}/analytics", response_model=LinkAnalytics)
def get_link_analytics(
    short_code: str,
    period: str = Query("7d", description="One of 24h, 7d, 30d, 90d"),
    store: UrlStore = Depends(get_store)
):
    """Clicks by day and top referers for a short link."""
    return store.get_analytics(short_code, period)


@router.get("/{short_code}/qr")
def get_link_qr(
    short_code: str,
    store: UrlStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    logger: logging.Logger = Depends(get_logger)
):
    """PNG QR code pointing at the short link."""
    record = store.get_by_code(short_code)

    png = render_qr_png(
        build_short_url(settings, record.short_code),
        error_correction=settings.QR_ERROR_CORRECTION,
        size=settings.QR_SIZE
    )
    logger.info("QR code generated", extra={"short_code": short_code})

    return Response(
        content=png,
        media_type="image/png",
        headers={"Cache-Control": "public, max-age=86400"}  # 1 day
    )


@router.get("/{short_code}")
def redirect_to_url(
    short_code: str,
    request: Request,
    store: UrlStore = Depends(get_store),
    tracker: ClickTracker = Depends(get_tracker),
    logger: logging.Logger = Depends(get_logger)
):
    """
    Redirect to the original URL from short code.

    The click is recorded in the background; the redirect does not wait
    for it and is not affected if recording fails.
    """
    record = store.get_by_code(short_code)

    tracker.dispatch(
        record.id,
        user_agent=_header(request, "user-agent"),
        referer=_header(request, "referer"),
        ip_address=get_client_ip(request)
    )

    logger.info("Redirecting", extra={"short_code": short_code, "original_url": record.original_url})
    return RedirectResponse(
        url=record.original_url,
        status_code=status.HTTP_301_MOVED_PERMANENTLY,
        headers=NO_CACHE_HEADERS
    )
