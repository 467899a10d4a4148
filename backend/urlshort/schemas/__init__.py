from .link import ShortenRequest, ShortenResponse, LinkStats
from .analytics import LinkAnalytics

__all__ = ["ShortenRequest", "ShortenResponse", "LinkStats", "LinkAnalytics"]
