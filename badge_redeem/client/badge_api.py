"""
Typed access to the badge REST API used by the download page.
"""

import json
import logging
from typing import Any, Dict

from badge_redeem.client.http_client import HttpClient
from badge_redeem.config import DEFAULT_FILENAME, RedeemConfig
from badge_redeem.core.artifacts import filename_from_content_disposition
from badge_redeem.exceptions import BadgeRedeemError, HTTPRequestError, ResponseFormatError
from badge_redeem.models import AssertionVerification, DownloadedArtifact, ValidationResponse

logger = logging.getLogger(__name__)

VALIDATE_TOKEN_ENDPOINT = "/api/badges/validate-token"
DOWNLOAD_BY_TOKEN_ENDPOINT = "/api/badges/download-by-token"
OPEN_BADGE_ENDPOINT = "/api/public/assertions/{assignment_id}/open-badge"
PUBLIC_ASSERTION_ENDPOINT = "/public/assertions/{badge_id}"
VALIDATE_ASSERTION_ENDPOINT = "/api/badges/validate"


def mask_token(token: str) -> str:
    """Keep tokens out of logs: only the last four characters survive."""
    token = token.strip()
    return f"***{token[-4:]}" if len(token) > 4 else "***"


class BadgeApiClient:
    """
    Badge API client.

    Raises only BadgeRedeemError subclasses: HTTPRequestError for non-2xx
    answers, TransportError when no answer arrives, ResponseFormatError when
    the answer cannot be understood.
    """

    def __init__(self, http_client: HttpClient, default_filename: str = DEFAULT_FILENAME):
        self.http_client = http_client
        self.default_filename = default_filename

    @classmethod
    def from_config(cls, config: RedeemConfig) -> "BadgeApiClient":
        http_client = HttpClient(base_url=config.api_base_url, timeout=config.request_timeout)
        return cls(http_client, default_filename=config.default_filename)

    @property
    def base_url(self) -> str:
        return self.http_client.base_url

    async def validate_token(self, token: str) -> ValidationResponse:
        logger.info(f"🔑 Validating token {mask_token(token)}")
        # Rejections come back as JSON whatever the status code
        data = await self.http_client.post(VALIDATE_TOKEN_ENDPOINT, {"token": token}, raise_for_status=False)
        response = ValidationResponse.from_api(data)
        logger.info(f"Token {mask_token(token)} valid={response.valid}")
        return response

    async def download_by_token(self, token: str) -> DownloadedArtifact:
        logger.info(f"⬇️  Downloading badge for token {mask_token(token)}")
        response = await self.http_client.post_for_bytes(DOWNLOAD_BY_TOKEN_ENDPOINT, {"token": token})
        filename = filename_from_content_disposition(
            response.headers.get("Content-Disposition"), self.default_filename
        )
        return DownloadedArtifact(
            filename=filename,
            content=response.content,
            content_type=response.headers.get("Content-Type"),
        )

    async def fetch_open_badge(self, assignment_id) -> Dict[str, Any]:
        """Fetch the public Open Badge document of an assignment."""
        endpoint = OPEN_BADGE_ENDPOINT.format(assignment_id=str(assignment_id).strip())
        document = await self.http_client.get(endpoint)
        if not isinstance(document, dict):
            raise ResponseFormatError("Open Badge document should be a JSON object")
        return document

    async def verify_assertion(self, badge_id: str, recipient: str) -> AssertionVerification:
        """
        Check that a public badge assertion is valid for the given recipient.

        The assertion is fetched first and then sent back, serialized, to the
        validation endpoint. Any failure along the way is reported as an
        invalid result carrying the error message.
        """
        if not badge_id or not badge_id.strip() or not recipient or not recipient.strip():
            raise ValueError("Both the badge ID and the recipient are required")

        try:
            try:
                assertion = await self.http_client.get(
                    PUBLIC_ASSERTION_ENDPOINT.format(badge_id=badge_id.strip())
                )
            except HTTPRequestError as e:
                logger.warning(f"Assertion {badge_id} not available: HTTP {e.status}")
                return AssertionVerification.failed("Badge not found")

            data = await self.http_client.post(
                VALIDATE_ASSERTION_ENDPOINT,
                {"badgeJson": json.dumps(assertion), "recipient": recipient.strip()},
                raise_for_status=False,
            )
            return AssertionVerification.from_api(data)
        except BadgeRedeemError as e:
            logger.error(f"❌ Assertion verification failed: {e}")
            return AssertionVerification.failed(str(e))

    async def close(self):
        await self.http_client.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
