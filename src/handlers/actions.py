"""Interactive component action handlers."""

import re

from slack_bolt.async_app import AsyncApp

from src.approval.decision import DecisionCallback

from .base import HandlerDependencies

# Approval attachments carry the job ID as callback_id, so match any of them
JOB_CALLBACK_ID = re.compile(r".+")


def register_actions(app: AsyncApp, deps: HandlerDependencies) -> None:
    """Register all interactive component handlers.

    Parameters
    ----------
    app : AsyncApp
        The Slack Bolt async app.
    deps : HandlerDependencies
        Shared handler dependencies.
    """

    @app.action({"type": "interactive_message", "callback_id": JOB_CALLBACK_ID})
    async def handle_job_decision(ack, body, logger):
        """Handle approve/deny button clicks on job registration messages."""
        await ack()

        callback = DecisionCallback.from_payload(body)
        logger.info(
            f"Decision callback for {callback.callback_id!r}: "
            f"{callback.actions} by {callback.user_name}"
        )
        await deps.processor.handle_decision(callback)
