"""
Badge Redemption Client - command line entry point

    python main.py --command download --token <code>
"""

import asyncio
import sys

from badge_redeem.cli import main

if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
