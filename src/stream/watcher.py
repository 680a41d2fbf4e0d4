"""Nomad event stream watcher.

Turns JobRegistered events into approval requests for this approver.
"""

import asyncio
from typing import AsyncIterator, Awaitable, Callable, Optional

from loguru import logger

from src.config import (
    AWAITING_APPROVAL_STATUS,
    JOB_REGISTERED_EVENT,
    PENDING_APPROVAL_VERSION,
)
from src.nomad.client import NomadClient
from src.nomad.models import EventBatch, Job

Sink = Callable[[Job], Awaitable[object]]


def rejection_reason(job: Job, approver_id: str) -> Optional[str]:
    """Return why ``job`` does not need this approver, or None if it does."""
    if job.version != PENDING_APPROVAL_VERSION:
        return f"not pending (version {job.version})"
    if not job.approvers:
        return "no approvers"
    if job.status != AWAITING_APPROVAL_STATUS:
        return f"not awaiting approval (status {job.status!r})"
    if job.approvers[0] != approver_id:
        return f"not next approver (next is {job.approvers[0]!r})"
    return None


class EventWatcher:
    """Single sequential consumer of the Nomad job event stream."""

    def __init__(self, approver_id: str, nomad: NomadClient):
        self.approver_id = approver_id
        self.nomad = nomad

    def filter_batch(self, batch: EventBatch) -> list[Job]:
        """Pick the jobs in a batch that need this approver.

        Nomad emits two JobRegistered events for the first registration of a
        job (one per table written), so events are de-duplicated by job ID,
        keeping the last one.
        """
        jobs: dict[str, Job] = {}
        for event in batch.events:
            if event.type != JOB_REGISTERED_EVENT:
                logger.debug(f"Skipping event {event.type} for {event.key}")
                continue
            try:
                job = event.job()
            except ValueError as e:
                logger.error(f"Expected job in {event.type} event: {e}")
                continue
            jobs[job.id] = job

        candidates = []
        for job in jobs.values():
            reason = rejection_reason(job, self.approver_id)
            if reason:
                logger.info(f"Skipping job {job.id}: {reason}")
                continue
            candidates.append(job)
        return candidates

    async def subscribe(self, stop: asyncio.Event, sink: Sink) -> None:
        """Forward qualifying jobs to ``sink`` until ``stop`` is set.

        Raises
        ------
        NomadError
            If the initial index cannot be read.
        Exception
            Whatever ``sink`` raised; a failing sink ends the watcher.
        """
        index = await self.nomad.get_latest_index()
        logger.info(
            f"Subscribing to Nomad job events from index {index} as approver {self.approver_id!r}"
        )
        batches = self.nomad.event_stream(index, topic="Job", key="*")
        try:
            while not stop.is_set():
                batch = await self._next_batch(batches, stop)
                if batch is None:
                    break
                await self._process(batch, sink)
        finally:
            await batches.aclose()
        logger.info("Event watcher stopped")

    async def _process(self, batch: EventBatch, sink: Sink) -> None:
        if batch.heartbeat:
            return
        if batch.error is not None:
            logger.warning(f"Error from event stream: {batch.error}")
            return

        for job in self.filter_batch(batch):
            try:
                await sink(job)
            except Exception as e:
                logger.error(f"Failed to request approval for job {job.id}: {e}")
                raise

    @staticmethod
    async def _next_batch(
        batches: AsyncIterator[EventBatch], stop: asyncio.Event
    ) -> Optional[EventBatch]:
        """Wait for the next batch; None when stopped or the stream ended."""
        async def pull() -> EventBatch:
            return await batches.__anext__()

        getter = asyncio.create_task(pull())
        stopper = asyncio.create_task(stop.wait())
        done, _ = await asyncio.wait({getter, stopper}, return_when=asyncio.FIRST_COMPLETED)
        if getter in done:
            stopper.cancel()
            try:
                return getter.result()
            except StopAsyncIteration:
                logger.warning("Nomad event stream ended")
                return None
        getter.cancel()
        try:
            await getter
        except (asyncio.CancelledError, StopAsyncIteration):
            pass
        return None
