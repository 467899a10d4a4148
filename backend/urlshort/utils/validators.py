from typing import Optional
from urllib.parse import urlparse

from pydantic import HttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..core.exceptions import ValidationError

MAX_URL_LENGTH = 2048
ALLOWED_SCHEMES = ("http", "https")

_http_url = TypeAdapter(HttpUrl)


def _has_forbidden_chars(url: str) -> bool:
    return any(c.isspace() or ord(c) < 0x20 or c == "\x7f" for c in url)


def validate_url(url: str) -> None:
    """
    Validate a URL submitted for shortening.

    The URL is checked as given; no normalization is applied and the
    caller stores the original string, not pydantic's parsed form.

    Args:
        url: The URL to validate

    Raises:
        ValidationError: If the URL is empty, too long, contains whitespace
            or control characters, unparseable, not http(s), or has no
            valid host
    """
    if not url:
        raise ValidationError("URL cannot be empty")

    if len(url) > MAX_URL_LENGTH:
        raise ValidationError(f"URL is too long (max {MAX_URL_LENGTH} characters)")

    if _has_forbidden_chars(url):
        raise ValidationError("Invalid URL format: whitespace or control characters")

    try:
        result = urlparse(url)
        hostname = result.hostname
    except ValueError as e:
        raise ValidationError(f"Invalid URL format: {e}") from e

    # Only http and https
    if result.scheme not in ALLOWED_SCHEMES:
        raise ValidationError("URL must use http or https scheme")

    if not hostname:
        raise ValidationError("URL must have a valid host")

    # Host syntax is checked by pydantic's URL parser
    try:
        _http_url.validate_python(url)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid URL format: {e.errors()[0]['msg']}") from e


def get_client_ip(request) -> Optional[str]:
    """
    Get client IP address from request.

    Args:
        request: FastAPI request object

    Returns:
        Client IP address, or None when it cannot be determined
    """
    # Check for X-Forwarded-For header (if behind proxy)
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # Take the first IP in the chain
        return forwarded.split(",")[0].strip()

    # Otherwise use client.host
    return request.client.host if request.client else None
