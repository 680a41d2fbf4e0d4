"""Pytest fixtures for Nomad Slack approver tests."""

import pytest
from slack_sdk.errors import SlackApiError

from src.nomad.client import NomadError
from src.nomad.models import Job


class FakeSlackClient:
    """Records chat calls the way AsyncWebClient would receive them."""

    def __init__(self, channel: str = "C123ABC"):
        self.channel = channel
        self.posted: list[dict] = []
        self.updated: list[dict] = []
        self.deleted: list[dict] = []
        # Ordered log of ("post" | "update" | "delete", ts)
        self.calls: list[tuple[str, str]] = []
        self.fail_post = False
        self.fail_update = False
        self.fail_delete = False
        self._ts = 0

    async def chat_postMessage(self, **kwargs):
        if self.fail_post:
            raise SlackApiError("post failed", {"ok": False, "error": "channel_not_found"})
        self._ts += 1
        ts = f"1700000000.{self._ts:06d}"
        self.posted.append(kwargs)
        self.calls.append(("post", ts))
        return {"ok": True, "channel": self.channel, "ts": ts}

    async def chat_update(self, **kwargs):
        if self.fail_update:
            raise SlackApiError("update failed", {"ok": False, "error": "message_not_found"})
        self.updated.append(kwargs)
        self.calls.append(("update", kwargs["ts"]))
        return {"ok": True}

    async def chat_delete(self, **kwargs):
        if self.fail_delete:
            raise SlackApiError("delete failed", {"ok": False, "error": "message_not_found"})
        self.deleted.append(kwargs)
        self.calls.append(("delete", kwargs["ts"]))
        return {"ok": True}


class FakeNomad:
    """Records registrations; optionally fails them."""

    def __init__(self):
        self.registered: list[tuple] = []
        self.fail_register = False

    async def register_job(self, job, admission):
        if self.fail_register:
            raise NomadError("PUT /v1/job failed: permission denied", 403)
        self.registered.append((job, admission))
        return {"EvalID": "eval-1"}


def make_job_dict(
    job_id: str = "web:1",
    version: int = 1000,
    status: str = "awaiting-approval",
    approvers: list | None = None,
    task_groups: list | None = None,
) -> dict:
    """Build a Nomad job JSON object pending approval."""
    if approvers is None:
        approvers = ["opA"]
    if task_groups is None:
        task_groups = [
            {
                "Name": "frontend",
                "Count": 2,
                "Tasks": [
                    {"Name": "nginx", "Driver": "docker", "Config": {"image": "nginx:1.25"}},
                    {
                        "Name": "sidecar",
                        "Driver": "exec",
                        "Config": {"command": "/bin/agent", "args": ["-v", "--port=9000"]},
                    },
                ],
            }
        ]
    return {
        "ID": job_id,
        "Name": job_id,
        "Namespace": "default",
        "Version": version,
        "Status": status,
        "Approvers": approvers,
        "Meta": None,
        "TaskGroups": task_groups,
    }


def make_event(job: dict | None, event_type: str = "JobRegistered") -> dict:
    return {
        "Topic": "Job",
        "Type": event_type,
        "Key": (job or {}).get("ID", ""),
        "Payload": {"Job": job} if job is not None else {},
    }


@pytest.fixture
def slack_client() -> FakeSlackClient:
    return FakeSlackClient()


@pytest.fixture
def nomad() -> FakeNomad:
    return FakeNomad()


@pytest.fixture
def job() -> Job:
    return Job.from_dict(make_job_dict())


@pytest.fixture
def job_dict():
    """Factory for Nomad job JSON objects."""
    return make_job_dict


@pytest.fixture
def job_event():
    """Factory for Nomad event JSON objects."""
    return make_event
