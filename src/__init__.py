# Nomad Slack Approver

import asyncio

from src.app import main as _main


def main():
    """Entry point for the nomad-slack-approver CLI command."""
    asyncio.run(_main())
