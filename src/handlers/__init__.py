"""Handler registration for Slack actions."""

from slack_bolt.async_app import AsyncApp

from src.approval.decision import DecisionProcessor

from .actions import register_actions
from .base import HandlerDependencies


def register_handlers(app: AsyncApp, processor: DecisionProcessor) -> HandlerDependencies:
    """Register all Slack interaction handlers.

    Parameters
    ----------
    app : AsyncApp
        The Slack Bolt async app.
    processor : DecisionProcessor
        Resolves approvals and applies decisions to Nomad.

    Returns
    -------
    HandlerDependencies
        Container with shared dependencies.
    """
    deps = HandlerDependencies(processor=processor)
    register_actions(app, deps)
    return deps
