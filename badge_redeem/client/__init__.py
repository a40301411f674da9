"""HTTP access to the badge API"""

from .http_client import HttpClient
from .badge_api import BadgeApiClient

__all__ = ["HttpClient", "BadgeApiClient"]
