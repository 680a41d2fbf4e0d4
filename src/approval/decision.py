"""Apply approve/deny decisions from Slack to Nomad."""

from dataclasses import dataclass, field
from typing import Optional

from loguru import logger
from slack_sdk.web.async_client import AsyncWebClient

from src.config import APPROVER_META_KEY
from src.nomad.client import Admission, NomadClient, NomadError

from .slack_ui import (
    APPROVE_ACTION,
    DECISION_ACTIONS,
    build_approval_attachments,
    build_decision_attachments,
    job_url,
)
from .store import SLACK_CALL_ERRORS, ApprovalStore, PendingApproval


@dataclass
class DecisionCallback:
    """The parts of a Slack ``interactive_message`` payload the processor needs."""

    callback_id: str
    actions: list[str] = field(default_factory=list)
    user_name: str = ""
    user_id: str = ""
    channel_id: str = ""
    message_ts: str = ""
    original_message: Optional[dict] = None

    @classmethod
    def from_payload(cls, payload: dict) -> "DecisionCallback":
        """Build a callback from a parsed interaction payload.

        Missing keys become empty values; validation happens in the processor.
        """
        user = payload.get("user") or {}
        channel = payload.get("channel") or {}
        return cls(
            callback_id=payload.get("callback_id") or "",
            actions=[a.get("name", "") for a in payload.get("actions") or []],
            user_name=user.get("name") or user.get("username") or user.get("id") or "",
            user_id=user.get("id") or "",
            channel_id=channel.get("id") or "",
            message_ts=payload.get("message_ts") or "",
            original_message=payload.get("original_message"),
        )


class DecisionProcessor:
    """Finalizes pending approvals from decision callbacks.

    The approval is removed from the store before Nomad is called, so a
    failed registration is not retried; the registration has to be re-emitted
    by Nomad to get a new notification.
    """

    def __init__(
        self,
        store: ApprovalStore,
        nomad: NomadClient,
        client: AsyncWebClient,
        approver_secret: str,
        nomad_ui_url: str = "",
    ):
        self.store = store
        self.nomad = nomad
        self.client = client
        self.approver_secret = approver_secret
        self.nomad_ui_url = nomad_ui_url

    async def handle_decision(self, callback: DecisionCallback) -> None:
        """Validate, resolve, apply and report one decision. Never raises."""
        if len(callback.actions) != 1:
            logger.warning(
                f"Expected exactly one action for {callback.callback_id!r}, "
                f"got {len(callback.actions)}"
            )
            return
        action = callback.actions[0]
        if action not in DECISION_ACTIONS:
            logger.warning(f"Unknown action {action!r} for {callback.callback_id!r}")
            return

        approval = await self.store.resolve(callback.callback_id)
        if not approval:
            logger.warning(
                f"Ignoring {action} from {callback.user_name} for {callback.callback_id!r}: "
                "not pending (duplicate or stale callback)"
            )
            return

        try:
            await self._apply(approval, action, callback.user_name)
        except NomadError as e:
            logger.error(f"Failed to {action} job {approval.job_id}: {e}")
            return
        logger.info(f"Job {approval.job_id}: {action} by {callback.user_name}")

        await self._update_message(approval, callback, action)

    async def _apply(self, approval: PendingApproval, action: str, user: str) -> None:
        job = approval.job
        if action == APPROVE_ACTION:
            job.meta[APPROVER_META_KEY] = user
            admission = Admission(secret=self.approver_secret)
        else:
            admission = Admission(
                secret=self.approver_secret,
                error=f"job rejected by {user}",
            )
        await self.nomad.register_job(job, admission)

    async def _update_message(
        self, approval: PendingApproval, callback: DecisionCallback, action: str
    ) -> None:
        original = (callback.original_message or {}).get("attachments")
        if not original:
            original = build_approval_attachments(approval.job)
        url = job_url(self.nomad_ui_url, approval.job) if self.nomad_ui_url else None
        attachments = build_decision_attachments(
            original, approval.job_id, action, callback.user_name, url
        )
        try:
            await self.client.chat_update(
                channel=approval.handle.channel,
                ts=approval.handle.ts,
                text=f"Job registration {approval.job_id}: {action}",
                attachments=attachments,
            )
        except SLACK_CALL_ERRORS as e:
            logger.warning(f"Failed to update approval message for job {approval.job_id}: {e}")
