"""
The portable JSON document produced by "export".
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict

from badge_redeem.core.assets import AssetCategory, build_asset_url
from badge_redeem.models import BadgeAssignmentView

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def iso_utc(moment: datetime) -> str:
    """Format like JavaScript's Date.toISOString(): UTC, milliseconds, trailing Z."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def export_filename(badge_name: str, moment: datetime) -> str:
    slug = _NON_ALNUM.sub("-", badge_name).lower()
    return f"badge-{slug}-{int(moment.timestamp() * 1000)}.json"


def build_export_document(view: BadgeAssignmentView, api_base_url: str, moment: datetime) -> Dict[str, Any]:
    return {
        "badge": {
            "name": view.badge_name,
            "description": view.badge_description,
            "category": view.badge_category,
            "imagePath": view.badge_image_path,
            "imageUrl": build_asset_url(api_base_url, view.badge_image_path, AssetCategory.BADGES),
        },
        "issuer": {
            "name": view.issuer,
            "imagePath": view.issuer_image_path,
            "imageUrl": build_asset_url(api_base_url, view.issuer_image_path, AssetCategory.ISSUERS),
        },
        "recipient": {
            "name": view.student_name,
            "achievementReason": view.achievement_reason,
        },
        "metadata": {
            "assignedAt": view.assigned_at,
            "downloadCount": view.download_count,
            "tokenExpiresAt": view.token_expires_at,
            "assignmentId": view.assignment_id,
            "exportedAt": iso_utc(moment),
        },
    }
