"""
Data returned by the badge API.

Everything here is built from server payloads only; the client never
fabricates or patches a BadgeAssignmentView.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from badge_redeem.exceptions import ResponseFormatError

_FRACTION = re.compile(r"\.(\d+)")


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp as sent by the API into an aware datetime.

    Accepts a trailing 'Z' and fractional seconds of any precision. A value
    without an offset is read as local time, which is what a browser does.
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    # fromisoformat only takes 3 or 6 fraction digits on older interpreters
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


def _require(data: Dict[str, Any], key: str, kind):
    if key not in data or data[key] is None:
        raise ResponseFormatError(f"badgeInfo is missing required field '{key}'")
    value = data[key]
    if kind is int and (isinstance(value, bool) or not isinstance(value, int)):
        raise ResponseFormatError(f"badgeInfo field '{key}' should be an integer, got {value!r}")
    if kind is str and not isinstance(value, str):
        raise ResponseFormatError(f"badgeInfo field '{key}' should be a string, got {value!r}")
    return value


def _text(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    return "" if value is None else str(value)


@dataclass(frozen=True)
class BadgeAssignmentView:
    """A badge assignment as unlocked by a download token."""

    badge_name: str
    badge_description: str
    badge_category: str
    badge_image_path: str
    issuer: str
    issuer_image_path: str
    student_name: str
    achievement_reason: str
    assigned_at: str
    download_count: int
    token_expires_at: str
    assignment_id: int

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "BadgeAssignmentView":
        if not isinstance(data, dict):
            raise ResponseFormatError(f"badgeInfo should be an object, got {type(data).__name__}")

        view = cls(
            badge_name=_require(data, "badgeName", str),
            badge_description=_text(data, "badgeDescription"),
            badge_category=_text(data, "badgeCategory"),
            badge_image_path=_text(data, "badgeImagePath"),
            issuer=_text(data, "issuer"),
            issuer_image_path=_text(data, "issuerImagePath"),
            student_name=_text(data, "studentName"),
            achievement_reason=_text(data, "achievementReason"),
            assigned_at=_require(data, "assignedAt", str),
            download_count=_require(data, "downloadCount", int),
            token_expires_at=_require(data, "tokenExpiresAt", str),
            assignment_id=_require(data, "assignmentId", int),
        )

        # Fail early on unreadable timestamps rather than at render time
        for key, value in (("assignedAt", view.assigned_at), ("tokenExpiresAt", view.token_expires_at)):
            try:
                parse_timestamp(value)
            except ValueError:
                raise ResponseFormatError(f"badgeInfo field '{key}' is not an ISO-8601 timestamp: {value!r}")
        return view

    @property
    def assigned_at_datetime(self) -> datetime:
        return parse_timestamp(self.assigned_at)

    @property
    def token_expires_at_datetime(self) -> datetime:
        return parse_timestamp(self.token_expires_at)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """True when the token expiry is before `now` (wall clock by default)."""
        now = now or datetime.now(timezone.utc)
        return self.token_expires_at_datetime < now


@dataclass(frozen=True)
class ValidationResponse:
    valid: bool
    message: str
    badge_info: Optional[BadgeAssignmentView] = None

    @classmethod
    def from_api(cls, data: Any) -> "ValidationResponse":
        if not isinstance(data, dict) or not isinstance(data.get("valid"), bool):
            raise ResponseFormatError("validate-token response has no boolean 'valid' flag")

        badge_info = data.get("badgeInfo")
        return cls(
            valid=data["valid"],
            message=_text(data, "message"),
            badge_info=BadgeAssignmentView.from_api(badge_info) if badge_info is not None else None,
        )


@dataclass(frozen=True)
class DownloadedArtifact:
    """A binary badge file as returned by download-by-token."""

    filename: str
    content: bytes
    content_type: Optional[str] = None


@dataclass
class AssertionVerification:
    """Outcome of verifying a public badge assertion for a recipient."""

    valid: bool
    badge_name: Optional[str] = None
    issuer: Optional[str] = None
    errors: List[str] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Any) -> "AssertionVerification":
        if not isinstance(data, dict):
            raise ResponseFormatError("validate response should be an object")
        errors = data.get("errors") or []
        return cls(
            valid=bool(data.get("valid")),
            badge_name=data.get("badgeName"),
            issuer=data.get("issuer"),
            errors=[str(error) for error in errors],
        )

    @classmethod
    def failed(cls, message: str) -> "AssertionVerification":
        return cls(valid=False, errors=[message])
