#!/usr/bin/env python3
"""
Token Redemption Flow

Drives a download token from entry to artifact:
validate -> display -> download -> re-validate -> export.

The flow holds exactly one state at a time (Empty, Validating, Invalid,
Valid, Downloading); the badge view only lives inside Valid and Downloading.
Server, network and filesystem failures never escape an operation: they end
up as notifications, and reset() always brings the flow back to Empty.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, ClassVar, Optional, Union

import pyperclip

from badge_redeem.config import RedeemConfig
from badge_redeem.core.artifacts import ArtifactStore
from badge_redeem.core.export import build_export_document, export_filename
from badge_redeem.exceptions import BadgeRedeemError, HTTPRequestError
from badge_redeem.models import BadgeAssignmentView
from badge_redeem.notifications import Notification, NotificationSink, Severity

logger = logging.getLogger(__name__)


class FlowStatus(str, Enum):
    EMPTY = "empty"
    VALIDATING = "validating"
    INVALID = "invalid"
    VALID = "valid"
    DOWNLOADING = "downloading"


@dataclass(frozen=True)
class Empty:
    status: ClassVar[FlowStatus] = FlowStatus.EMPTY


@dataclass(frozen=True)
class Validating:
    status: ClassVar[FlowStatus] = FlowStatus.VALIDATING


@dataclass(frozen=True)
class Invalid:
    message: str = ""
    status: ClassVar[FlowStatus] = FlowStatus.INVALID


@dataclass(frozen=True)
class Valid:
    view: BadgeAssignmentView
    status: ClassVar[FlowStatus] = FlowStatus.VALID


@dataclass(frozen=True)
class Downloading:
    view: BadgeAssignmentView
    status: ClassVar[FlowStatus] = FlowStatus.DOWNLOADING


FlowState = Union[Empty, Validating, Invalid, Valid, Downloading]

CONNECTION_ERROR_MESSAGE = "Could not connect to the server"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenRedemptionFlow:
    """
    One redemption page worth of state.

    Args:
        api: a BadgeApiClient (anything with async validate_token/download_by_token)
        config: resolved configuration (API base URL for image links, output dir)
        notify: notification sink
        artifacts: where downloads and exports are written; defaults to config.output_dir
        clipboard: callable used by copy_token; defaults to pyperclip.copy
        clock: returns the current aware datetime; used for exports
    """

    def __init__(self, api, config: RedeemConfig, notify: NotificationSink,
                 artifacts: Optional[ArtifactStore] = None,
                 clipboard: Optional[Callable[[str], None]] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.api = api
        self.config = config
        self.notify = notify
        self.artifacts = artifacts or ArtifactStore(config.output_dir)
        self.clipboard = clipboard or pyperclip.copy
        self.clock = clock or _utcnow

        self.token = ""
        self.state: FlowState = Empty()
        # Bumped by every validate() and by reset(); results of older requests are dropped
        self._generation = 0

    ############################################################################
                            # Read-only views of the state
    ############################################################################

    @property
    def status(self) -> FlowStatus:
        return self.state.status

    @property
    def view(self) -> Optional[BadgeAssignmentView]:
        return getattr(self.state, "view", None)

    @property
    def is_validating(self) -> bool:
        return isinstance(self.state, Validating)

    @property
    def is_downloading(self) -> bool:
        return isinstance(self.state, Downloading)

    @property
    def is_valid_token(self) -> bool:
        return isinstance(self.state, (Valid, Downloading))

    @property
    def can_download(self) -> bool:
        return isinstance(self.state, Valid) and bool(self.token.strip())

    def _emit(self, title: str, description: str, severity: Severity = Severity.INFO):
        self.notify(Notification(title=title, description=description, severity=severity))

    ############################################################################
                                    # Operations
    ############################################################################

    def set_token(self, text: str):
        """Input binding: store the raw text as typed."""
        self.token = text or ""

    async def validate(self) -> bool:
        """
        Validate the held token against the API.

        Returns True when the token was accepted and the badge view is now held.
        When calls overlap, the most recently started one decides the state.
        """
        token = self.token.strip()
        if not token:
            self._emit("Error", "Please enter a valid download code", Severity.ERROR)
            return False

        if isinstance(self.state, Downloading):
            logger.warning("Validation ignored: a download is in progress")
            return False

        self._generation += 1
        self.state = Validating()
        return await self._run_validation(token, self._generation)

    async def _run_validation(self, token: str, generation: int) -> bool:
        try:
            response = await self.api.validate_token(token)
        except BadgeRedeemError as e:
            if generation != self._generation:
                logger.debug(f"Dropping failed validation from superseded request #{generation}")
                return False
            logger.error(f"❌ Token validation request failed: {e}")
            self.state = Invalid(CONNECTION_ERROR_MESSAGE)
            self._emit("Connection error", CONNECTION_ERROR_MESSAGE, Severity.ERROR)
            return False

        if generation != self._generation:
            logger.debug(f"Dropping validation result from superseded request #{generation}")
            return False

        if response.valid and response.badge_info is not None:
            self.state = Valid(response.badge_info)
            self._emit("✅ Valid code!", "You can now download your badge.")
            return True

        self.state = Invalid(response.message)
        self._emit("❌ Invalid code", response.message, Severity.ERROR)
        return False

    async def download(self) -> Optional[Path]:
        """
        Download the badge file for the held token and refresh the badge view.

        Only acts in the Valid state. Returns the path the badge was saved to,
        or None when nothing was saved.
        """
        token = self.token.strip()
        if not isinstance(self.state, Valid) or not token:
            logger.debug(f"Download ignored in state '{self.status.value}'")
            return None

        view = self.state.view
        generation = self._generation
        self.state = Downloading(view)

        try:
            artifact = await self.api.download_by_token(token)
        except HTTPRequestError as e:
            e.log_http_error()
            if generation == self._generation:
                self.state = Valid(view)
                self._emit("Download failed", e.body or e.reason or f"HTTP {e.status}", Severity.ERROR)
            return None
        except BadgeRedeemError as e:
            logger.error(f"❌ Badge download failed: {e}")
            if generation == self._generation:
                self.state = Valid(view)
                self._emit("Error", "Failed to download the badge", Severity.ERROR)
            return None

        if generation != self._generation:
            logger.info("Download finished after the flow was reset; discarding it")
            return None

        try:
            path = self.artifacts.save_bytes(artifact.filename, artifact.content)
        except OSError as e:
            logger.error(f"❌ Could not save {artifact.filename}: {e}")
            self.state = Valid(view)
            self._emit("Error", f"Could not save {artifact.filename}", Severity.ERROR)
            return None

        self._emit("🎉 Download complete!", f'Badge "{view.badge_name}" downloaded successfully!')

        # The download counter is only ever re-read from the server
        await self._run_validation(token, generation)
        return path

    def export(self) -> Optional[Path]:
        """Write the held badge view as a JSON document. Purely local."""
        view = self.view
        if view is None:
            self._emit("Error", "No validated badge to export", Severity.ERROR)
            return None

        moment = self.clock()
        document = build_export_document(view, self.config.api_base_url, moment)
        filename = export_filename(view.badge_name, moment)
        try:
            path = self.artifacts.save_json(filename, document)
        except OSError as e:
            logger.error(f"❌ Could not write {filename}: {e}")
            self._emit("Error", f"Could not write {filename}", Severity.ERROR)
            return None

        self._emit("📄 JSON exported!", "Badge data exported successfully!")
        return path

    def reset(self, force: bool = False) -> bool:
        """
        Back to Empty: token, badge view and valid flag are cleared.

        Refused while a request is in flight unless forced; a forced reset
        makes the in-flight request's result be discarded when it lands.
        """
        if isinstance(self.state, (Validating, Downloading)) and not force:
            logger.debug(f"Reset refused in state '{self.status.value}'")
            return False

        self._generation += 1
        self.token = ""
        self.state = Empty()
        return True

    def copy_token(self) -> bool:
        """Put the raw token on the clipboard."""
        try:
            self.clipboard(self.token)
        except pyperclip.PyperclipException as e:
            logger.warning(f"Clipboard unavailable: {e}")
            self._emit("Error", "Could not copy the code to the clipboard", Severity.ERROR)
            return False
        self._emit("Copied!", "Code copied to the clipboard")
        return True
