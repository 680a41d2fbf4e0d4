#!/usr/bin/env python3
"""
Nomad Slack Approver - Main Application Entry Point

Posts a Slack message for every Nomad job registration waiting on this
approver, and relays the approve/deny decision back to Nomad.
"""

import asyncio
import signal
import sys
from typing import Optional

from aiohttp import web
from loguru import logger
from slack_bolt.adapter.socket_mode.async_handler import AsyncSocketModeHandler
from slack_bolt.async_app import AsyncApp
from slack_sdk.web.async_client import AsyncWebClient

from src.approval.decision import DecisionProcessor
from src.approval.store import ApprovalStore
from src.config import config
from src.handlers import register_handlers
from src.nomad.client import NomadClient, NomadError
from src.stream.watcher import EventWatcher


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


async def start_http_listener(app: AsyncApp) -> web.AppRunner:
    """Serve Slack interaction callbacks over HTTP."""
    http = config.http
    runner = web.AppRunner(app.web_app(path=http.path, port=http.port))
    await runner.setup()
    site = web.TCPSite(runner, http.host, http.port)
    await site.start()
    logger.info(f"Server listening on {http.host}:{http.port}{http.path}")
    return runner


async def shutdown(
    store: ApprovalStore,
    nomad: NomadClient,
    runner: Optional[web.AppRunner] = None,
    socket_handler: Optional[AsyncSocketModeHandler] = None,
) -> None:
    """Graceful shutdown: stop listeners and close the Nomad session."""
    logger.info("Shutting down...")
    pending = await store.get_pending()
    if pending:
        logger.info(
            f"Dropping {len(pending)} open approval(s): "
            f"{', '.join(p.job_id for p in pending)}"
        )
    if socket_handler:
        await socket_handler.close_async()
    if runner:
        await runner.cleanup()
    await nomad.close()
    logger.info("Shutdown complete")


async def main():
    """Main application entry point."""
    configure_logging(config.LOG_LEVEL)

    # Validate configuration
    errors = config.validate_required()
    if errors:
        logger.error("Configuration errors:")
        for error in errors:
            logger.error(f"  - {error}")
        sys.exit(1)

    # Create app components
    slack_client = AsyncWebClient(token=config.SLACK_BOT_TOKEN)
    nomad = NomadClient(
        config.NOMAD_ADDR,
        token=config.NOMAD_TOKEN,
        namespace=config.NOMAD_NAMESPACE,
        timeouts=config.stream_timeouts,
    )
    store = ApprovalStore(
        slack_client,
        config.channel,
        diff_provider=nomad.plan_job if config.INCLUDE_PLAN_DIFF else None,
    )
    processor = DecisionProcessor(
        store,
        nomad,
        slack_client,
        approver_secret=config.NOMAD_APPROVER_SECRET,
        nomad_ui_url=config.nomad_ui_url,
    )
    watcher = EventWatcher(config.NOMAD_APPROVER_ID, nomad)

    # Create Slack app
    app = AsyncApp(
        client=slack_client,
        signing_secret=config.SLACK_SIGNING_SECRET or None,
    )
    register_handlers(app, processor)

    # Setup shutdown handler
    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def signal_handler():
        logger.info("Received shutdown signal")
        shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, signal_handler)

    logger.info(f"Starting Nomad Slack Approver, posting to {config.channel}")

    runner = None
    socket_handler = None
    if config.socket_mode:
        socket_handler = AsyncSocketModeHandler(app, config.SLACK_APP_TOKEN)
        await socket_handler.connect_async()
        logger.info("Connected to Slack (Socket Mode)")
    else:
        runner = await start_http_listener(app)

    watcher_task = asyncio.create_task(watcher.subscribe(shutdown_event, store.upsert))
    stop_task = asyncio.create_task(shutdown_event.wait())
    await asyncio.wait({watcher_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
    shutdown_event.set()
    stop_task.cancel()

    exit_code = 0
    try:
        await watcher_task
    except NomadError as e:
        logger.error(f"Error creating event stream client: {e}")
        exit_code = 1
    except Exception as e:
        logger.error(f"Approval pipeline stopped: {type(e).__name__}: {e}")
        exit_code = 1

    await shutdown(store, nomad, runner, socket_handler)
    if exit_code:
        sys.exit(exit_code)


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
