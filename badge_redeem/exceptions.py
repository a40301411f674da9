import logging

logger = logging.getLogger(__name__)


class BadgeRedeemError(Exception):
    """Base class for every error raised by the badge API client."""


class HTTPRequestError(BadgeRedeemError):
    def __init__(self, status: int, url: str, reason: str, method: str, body: str = None):
        self.status = status
        self.url = url
        self.reason = reason
        self.method = method
        self.body = body
        message = f"HTTP {status} Error for {url}: {reason}"
        if body:
            message += f" | Response: {body}"
        super().__init__(message)

    def log_http_error(self):
        logger.error("❌ HTTP Request Failed:")
        logger.error(f"  ➤ Method : {self.method}")
        logger.error(f"  ➤ URL    : {self.url}")
        logger.error(f"  ➤ Status : {self.status}")
        logger.error(f"  ➤ Reason : {self.reason}")
        if self.body:
            logger.error(f"  ➤ Body   : {self.body}")


class TransportError(BadgeRedeemError):
    """The request never produced an HTTP response (connection refused, DNS, timeout...)."""

    def __init__(self, url: str, method: str, reason: str):
        self.url = url
        self.method = method
        self.reason = reason
        super().__init__(f"{method} {url} failed: {reason}")


class ResponseFormatError(BadgeRedeemError):
    """The server answered, but not with the payload we expected."""

    def __init__(self, message: str, url: str = None):
        self.url = url
        super().__init__(message if not url else f"{message} ({url})")
