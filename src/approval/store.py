"""Store of job registrations waiting on a Slack decision.

Holds at most one open approval, and one live Slack message, per job ID.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Optional

import aiohttp
from loguru import logger
from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from src.nomad.models import Job, JobDiff

from .slack_ui import build_approval_attachments

DiffProvider = Callable[[Job], Awaitable[Optional[JobDiff]]]

# Errors from a Slack call that are logged rather than propagated
SLACK_CALL_ERRORS = (SlackApiError, aiohttp.ClientError, asyncio.TimeoutError, OSError)


@dataclass(frozen=True)
class NotificationHandle:
    """Identifies a posted Slack message for later update or deletion."""

    channel: str
    ts: str


@dataclass
class PendingApproval:
    """A job registration waiting for an approve/deny decision."""

    job_id: str
    job: Job
    handle: NotificationHandle
    created_at: datetime = field(default_factory=datetime.now)


class ApprovalStore:
    """Tracks open approvals and their Slack notifications.

    Every operation runs entirely under one asyncio.Lock, Slack calls
    included, so the watcher and concurrent decision callbacks are serialized.
    """

    def __init__(
        self,
        client: AsyncWebClient,
        channel: str,
        diff_provider: Optional[DiffProvider] = None,
    ):
        self.client = client
        self.channel = channel
        self.diff_provider = diff_provider
        self._pending: dict[str, PendingApproval] = {}
        self._lock = asyncio.Lock()

    async def upsert(self, job: Job) -> PendingApproval:
        """Post a notification for ``job``, replacing any open one.

        Deleting the previous message is best effort. Posting the new one is
        not: a failure propagates to the caller and nothing is stored.
        """
        async with self._lock:
            existing = self._pending.pop(job.id, None)
            if existing:
                logger.info(
                    f"Replacing open approval for job {job.id} (message {existing.handle.ts})"
                )
                await self._delete_message(existing.handle)

            diff = await self._get_diff(job)
            attachments = build_approval_attachments(job, diff)

            logger.info(f"Sending approval request for job {job.id} to {self.channel}")
            result = await self.client.chat_postMessage(
                channel=self.channel,
                text=f"Job registration pending approval: {job.id}",
                attachments=attachments,
            )
            approval = PendingApproval(
                job_id=job.id,
                job=job,
                handle=NotificationHandle(channel=result["channel"], ts=result["ts"]),
            )
            self._pending[job.id] = approval
            return approval

    async def resolve(self, job_id: str) -> Optional[PendingApproval]:
        """Remove and return the open approval for ``job_id``.

        Returns None when there is none, e.g. a duplicate callback or an
        approval superseded and already resolved.
        """
        async with self._lock:
            approval = self._pending.pop(job_id, None)
            if not approval:
                logger.warning(f"No pending approval for job {job_id}")
                return None
            return approval

    async def get_pending(self) -> list[PendingApproval]:
        async with self._lock:
            return list(self._pending.values())

    async def count_pending(self) -> int:
        """Get count of open approvals."""
        async with self._lock:
            return len(self._pending)

    async def _delete_message(self, handle: NotificationHandle) -> None:
        try:
            await self.client.chat_delete(channel=handle.channel, ts=handle.ts)
        except SLACK_CALL_ERRORS as e:
            logger.warning(f"Failed to delete approval message {handle.ts}: {e}")

    async def _get_diff(self, job: Job) -> Optional[JobDiff]:
        if self.diff_provider is None:
            return None
        try:
            return await self.diff_provider(job)
        except Exception as e:
            logger.warning(f"Failed to get plan diff for job {job.id}: {e}")
            return None
