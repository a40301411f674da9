"""
Terminal rendering of the redemption page and of Open Badge documents.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from rich.console import Group
from rich.json import JSON
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from badge_redeem.config import DEFAULT_DATE_FORMAT
from badge_redeem.core.assets import AssetCategory, build_asset_url
from badge_redeem.models import BadgeAssignmentView, parse_timestamp

VALIDITY_VALID = "valid"
VALIDITY_EXPIRED = "expired"


def format_date(value: str, date_format: str = DEFAULT_DATE_FORMAT) -> str:
    """Presentation format for API timestamps, in local time. Unparseable values pass through."""
    try:
        return parse_timestamp(value).astimezone().strftime(date_format)
    except ValueError:
        return value


def validity_indicator(view: BadgeAssignmentView, now: Optional[datetime] = None) -> str:
    return VALIDITY_EXPIRED if view.is_expired(now or datetime.now(timezone.utc)) else VALIDITY_VALID


def render_badge_view(view: Optional[BadgeAssignmentView], api_base_url: str,
                      now: Optional[datetime] = None,
                      date_format: str = DEFAULT_DATE_FORMAT):
    """
    Build the "Information" card for the current view.

    Expiry is worked out here, against `now`, every time the card is built.
    """
    if view is None:
        return Panel("[dim]No validated code[/dim]", title="Information", border_style="dim")

    now = now or datetime.now(timezone.utc)
    indicator = validity_indicator(view, now)

    details = Table.grid(padding=(0, 2))
    details.add_column(style="bold")
    details.add_column()
    if view.badge_category:
        details.add_row("Category", escape(view.badge_category))
    if view.badge_description:
        details.add_row("Description", escape(view.badge_description))
    badge_url = build_asset_url(api_base_url, view.badge_image_path, AssetCategory.BADGES)
    if badge_url:
        details.add_row("Image", escape(badge_url))
    if view.issuer:
        details.add_row("Issued by", escape(view.issuer))
        issuer_url = build_asset_url(api_base_url, view.issuer_image_path, AssetCategory.ISSUERS)
        if issuer_url:
            details.add_row("Issuer image", escape(issuer_url))
    details.add_row("Earned by", escape(view.student_name))
    if view.achievement_reason:
        details.add_row("Reason", escape(view.achievement_reason))
    details.add_row("Date", format_date(view.assigned_at, date_format))
    details.add_row("Downloads", str(view.download_count))

    status_style = "red" if indicator == VALIDITY_EXPIRED else "green"
    status = (f"[{status_style}]Valid until: {format_date(view.token_expires_at, date_format)} "
              f"({indicator})[/{status_style}]")

    return Panel(
        Group(f"[bold]{escape(view.badge_name)}[/bold]", details, status),
        title="Information",
        border_style=status_style,
    )


def render_open_badge(document: Dict[str, Any]):
    return Panel(JSON(json.dumps(document)), title="Open Badge")
