"""Job registration approval handling via Slack."""

from .decision import DecisionCallback, DecisionProcessor
from .slack_ui import build_approval_attachments, build_decision_attachments
from .store import ApprovalStore, NotificationHandle, PendingApproval
