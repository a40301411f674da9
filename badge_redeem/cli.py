#!/usr/bin/env python3
"""
Badge Redemption Client

Redeem a download token from the command line: validate it, look at the
badge it unlocks, download the badge file and export its data as JSON.
Also views public Open Badge documents and verifies badge assertions.
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from rich.console import Console

from badge_redeem.client.badge_api import BadgeApiClient
from badge_redeem.config import RedeemConfig
from badge_redeem.core.redemption_flow import TokenRedemptionFlow
from badge_redeem.display import render_badge_view, render_open_badge
from badge_redeem.exceptions import BadgeRedeemError, HTTPRequestError
from badge_redeem.notifications import ConsoleNotifier, LoggingNotifier, NotificationSink

COMMANDS = ["validate", "download", "export", "open-badge", "verify"]

console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Badge download-token client")

    parser.add_argument("--command", choices=COMMANDS, required=True, help="Command to execute")

    # Token commands
    parser.add_argument("--token", help="Download code received by email")
    parser.add_argument("--copy", action="store_true", help="Copy the token to the clipboard")
    parser.add_argument("--quiet", action="store_true",
                        help="Send notifications to the log instead of the console")

    # Public badge commands
    parser.add_argument("--assignment_id", help="Assignment ID for open-badge")
    parser.add_argument("--badge_id", help="Badge assertion ID for verify")
    parser.add_argument("--recipient", help="Recipient email for verify")

    # Overrides for the environment configuration
    parser.add_argument("--api_url", help="API base URL (default: $BADGE_API_URL)")
    parser.add_argument("--output_dir", help="Where badge files and exports are saved")
    return parser


def setup_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def build_notifier(quiet: bool = False) -> NotificationSink:
    if quiet:
        return LoggingNotifier()
    return ConsoleNotifier(console)


async def redeem(config: RedeemConfig, args) -> int:
    """Run the token commands through one redemption flow."""
    if not args.token or not args.token.strip():
        console.print("❌ Missing --token for this command")
        return 1

    async with BadgeApiClient.from_config(config) as api:
        flow = TokenRedemptionFlow(api, config, notify=build_notifier(args.quiet))
        flow.set_token(args.token)
        if args.copy:
            flow.copy_token()

        if not await flow.validate():
            return 1
        console.print(render_badge_view(flow.view, config.api_base_url, date_format=config.date_format))

        if args.command == "download":
            path = await flow.download()
            if path is None:
                return 1
            console.print(f"💾 Saved to {path}")
            if flow.view is not None:
                console.print(render_badge_view(flow.view, config.api_base_url, date_format=config.date_format))

        elif args.command == "export":
            path = flow.export()
            if path is None:
                return 1
            console.print(f"📄 Exported to {path}")

    return 0


async def show_open_badge(config: RedeemConfig, assignment_id: Optional[str]) -> int:
    if not assignment_id:
        console.print("❌ Missing --assignment_id for open-badge")
        return 1

    async with BadgeApiClient.from_config(config) as api:
        try:
            document = await api.fetch_open_badge(assignment_id)
        except HTTPRequestError as e:
            logging.getLogger(__name__).warning(f"Open badge {assignment_id}: HTTP {e.status}")
            console.print("❌ Badge not found")
            return 1
        except BadgeRedeemError as e:
            console.print(f"❌ Error fetching badge: {e}")
            return 1

    console.print(render_open_badge(document))
    return 0


async def verify(config: RedeemConfig, badge_id: Optional[str], recipient: Optional[str]) -> int:
    badge_id = (badge_id or "").strip()
    recipient = (recipient or "").strip()
    if not badge_id or not recipient:
        console.print("❌ Fill in both --badge_id and --recipient")
        return 1

    async with BadgeApiClient.from_config(config) as api:
        result = await api.verify_assertion(badge_id, recipient)

    if result.valid:
        console.print("✅ Badge is valid!")
        console.print(f"  Name  : {result.badge_name}")
        console.print(f"  Issuer: {result.issuer}")
        return 0

    console.print("❌ Badge is invalid")
    for error in result.errors:
        console.print(f"  - {error}")
    return 1


async def main(argv: Optional[List[str]] = None) -> int:
    """Main function to run the client."""
    args = build_parser().parse_args(argv)

    try:
        config = RedeemConfig.from_env(api_base_url=args.api_url, output_dir=args.output_dir)
    except ValueError as e:
        console.print(f"❌ {e}")
        return 1

    setup_logging(config.log_level)

    if args.command == "open-badge":
        return await show_open_badge(config, args.assignment_id)
    if args.command == "verify":
        return await verify(config, args.badge_id, args.recipient)
    return await redeem(config, args)


def run():
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
