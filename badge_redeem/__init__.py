"""
Badge Redemption Client

Validates badge download tokens, downloads the badge they unlock and
exports the badge data as JSON.
"""

__version__ = "0.1.0"

from .config import RedeemConfig

# Core flow
from .core import TokenRedemptionFlow, FlowStatus

# Client and utilities
from .client import BadgeApiClient, HttpClient
from .exceptions import BadgeRedeemError, HTTPRequestError, ResponseFormatError, TransportError
from .models import BadgeAssignmentView, ValidationResponse
from .notifications import Notification, Severity

__all__ = [
    "RedeemConfig",
    "TokenRedemptionFlow", "FlowStatus",
    "BadgeApiClient", "HttpClient",
    "BadgeRedeemError", "HTTPRequestError", "ResponseFormatError", "TransportError",
    "BadgeAssignmentView", "ValidationResponse",
    "Notification", "Severity",
]
