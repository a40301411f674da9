"""
Runtime configuration for the badge redemption client.

Values are resolved once, when the client is built, and passed explicitly
to the components that need them.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

DEFAULT_FILENAME = "badge.png"
DEFAULT_DATE_FORMAT = "%d/%m/%Y %H:%M"


@dataclass(frozen=True)
class RedeemConfig:
    """Configuration for the token redemption flow and its API client"""

    api_base_url: str
    output_dir: str = "."
    default_filename: str = DEFAULT_FILENAME
    request_timeout: Optional[float] = None
    date_format: str = DEFAULT_DATE_FORMAT
    log_level: str = "WARNING"

    def __post_init__(self):
        if not self.api_base_url or not self.api_base_url.strip():
            raise ValueError("Missing required configuration: BADGE_API_URL")
        # frozen dataclass, so normalise through object.__setattr__
        object.__setattr__(self, "api_base_url", self.api_base_url.strip().rstrip("/"))

    @classmethod
    def from_env(cls, **overrides) -> "RedeemConfig":
        """
        Build the configuration from environment variables (and a .env file if present).

        Keyword overrides that are not None win over the environment, which is
        how the command line flags are applied.
        """
        load_dotenv()

        timeout = os.getenv("BADGE_REQUEST_TIMEOUT")
        settings = {
            "api_base_url": os.getenv("BADGE_API_URL") or os.getenv("NEXT_PUBLIC_API_URL") or "",
            "output_dir": os.getenv("BADGE_OUTPUT_DIR", "."),
            "default_filename": os.getenv("BADGE_DEFAULT_FILENAME", DEFAULT_FILENAME),
            "request_timeout": float(timeout) if timeout else None,
            "date_format": os.getenv("BADGE_DATE_FORMAT", DEFAULT_DATE_FORMAT),
            "log_level": os.getenv("LOG_LEVEL", "WARNING").upper(),
        }
        settings.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**settings)
