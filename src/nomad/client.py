"""Async client for the parts of the Nomad HTTP API the approver uses."""

import asyncio
import json
import random
from dataclasses import dataclass
from typing import Any, AsyncIterator, Mapping, Optional

import aiohttp
from loguru import logger

from src.config import StreamTimeouts

from .models import EventBatch, Job, JobDiff


class NomadError(Exception):
    """Raised when a Nomad API call fails."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(f"{message} (status {status})" if status else message)


@dataclass
class Admission:
    """Admission payload sent with a re-registration.

    ``error`` set means the pending version is rejected.
    """

    secret: str
    error: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"Secret": self.secret}
        if self.error:
            data["Error"] = self.error
        return data


def parse_stream_line(line: bytes) -> Optional[EventBatch]:
    """Parse one newline-delimited frame of the event stream.

    Returns None for blank keep-alive lines. Undecodable frames come back
    as an error batch rather than raising.
    """
    line = line.strip()
    if not line:
        return None
    try:
        data = json.loads(line)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        return EventBatch(error=e)
    if not isinstance(data, dict):
        return EventBatch(error=ValueError(f"unexpected stream frame: {data!r}"))
    try:
        return EventBatch.from_dict(data)
    except ValueError as e:
        return EventBatch(error=e)


class NomadClient:
    """Thin aiohttp wrapper around the Nomad HTTP API.

    Parameters
    ----------
    address : str
        Base address of the Nomad agent, e.g. ``http://127.0.0.1:4646``.
    token : str, optional
        ACL token sent as ``X-Nomad-Token``.
    namespace : str
        Namespace used for job calls.
    timeouts : StreamTimeouts, optional
        Request timeout and event stream reconnect backoff.
    """

    def __init__(
        self,
        address: str,
        token: Optional[str] = None,
        namespace: str = "default",
        timeouts: Optional[StreamTimeouts] = None,
    ):
        self.address = address.rstrip("/")
        self.token = token
        self.namespace = namespace
        self.timeouts = timeouts or StreamTimeouts()
        self._session: Optional[aiohttp.ClientSession] = None

    def _headers(self) -> dict[str, str]:
        if self.token:
            return {"X-Nomad-Token": self.token}
        return {}

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers=self._headers())
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    async def _request(
        self,
        method: str,
        path: str,
        body: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> tuple[Any, Mapping[str, str]]:
        session = self._get_session()
        url = f"{self.address}{path}"
        timeout = aiohttp.ClientTimeout(total=self.timeouts.request)
        try:
            async with session.request(
                method, url, json=body, params=params, timeout=timeout
            ) as resp:
                if resp.status >= 400:
                    text = await resp.text()
                    raise NomadError(f"{method} {path} failed: {text.strip()}", resp.status)
                data = await resp.json(content_type=None)
                return data, resp.headers
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NomadError(f"{method} {path} failed: {type(e).__name__}: {e}") from e

    async def get_latest_index(self) -> int:
        """Return Nomad's current raft index, used as the stream resume point."""
        _, headers = await self._request("GET", "/v1/jobs", params={"namespace": self.namespace})
        raw = headers.get("X-Nomad-Index")
        try:
            return int(raw)
        except (TypeError, ValueError):
            raise NomadError(f"missing or invalid X-Nomad-Index header: {raw!r}") from None

    async def register_job(self, job: Job, admission: Admission) -> dict:
        """Re-register a job snapshot with an admission decision."""
        body = {
            "Job": job.to_dict(),
            "PolicyOverride": False,
            "PreserveCounts": False,
            "Admission": admission.to_dict(),
        }
        data, _ = await self._request(
            "PUT", f"/v1/job/{job.id}", body=body, params={"namespace": job.namespace}
        )
        logger.debug(f"Registered job {job.id}: eval {(data or {}).get('EvalID')}")
        return data or {}

    async def plan_job(self, job: Job) -> JobDiff:
        """Dry-run a job registration and return the predicted diff."""
        body = {"Job": job.to_dict(), "Diff": True, "PolicyOverride": False}
        data, _ = await self._request(
            "PUT", f"/v1/job/{job.id}/plan", body=body, params={"namespace": job.namespace}
        )
        return JobDiff.from_plan((data or {}).get("Diff"))

    async def event_stream(
        self,
        index: int,
        topic: str = "Job",
        key: str = "*",
    ) -> AsyncIterator[EventBatch]:
        """Stream event batches starting at ``index``.

        Transport failures are yielded as error batches, then the stream
        reconnects from the last seen index with exponential backoff.
        """
        params = {"topic": f"{topic}:{key}", "index": str(index), "namespace": "*"}
        attempt = 0
        while True:
            session = self._get_session()
            try:
                # Stream stays open indefinitely; only bound the connect phase
                timeout = aiohttp.ClientTimeout(
                    total=None, sock_connect=self.timeouts.request
                )
                async with session.get(
                    f"{self.address}/v1/event/stream", params=params, timeout=timeout
                ) as resp:
                    if resp.status >= 400:
                        text = await resp.text()
                        raise NomadError(f"event stream failed: {text.strip()}", resp.status)
                    attempt = 0
                    async for line in resp.content:
                        batch = parse_stream_line(line)
                        if batch is None:
                            continue
                        if batch.index:
                            params["index"] = str(batch.index + 1)
                        yield batch
                raise NomadError("event stream closed by server")
            except (aiohttp.ClientError, asyncio.TimeoutError, NomadError) as e:
                yield EventBatch(error=e)

            delay = min(
                self.timeouts.reconnect_base_delay * (2**attempt),
                self.timeouts.reconnect_max_delay,
            ) + random.uniform(0, 1)
            attempt += 1
            logger.warning(f"Reconnecting to Nomad event stream in {delay:.1f}s")
            await asyncio.sleep(delay)
