"""Base infrastructure for Slack interaction handlers."""

from dataclasses import dataclass

from src.approval.decision import DecisionProcessor


@dataclass
class HandlerDependencies:
    """Container for handler dependencies.

    Provides access to shared instances across all handlers.
    """

    processor: DecisionProcessor
