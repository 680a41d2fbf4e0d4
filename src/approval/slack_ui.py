"""Slack UI builders for job registration approval messages."""

import copy
import time
from typing import Optional

from src.nomad.models import Job, JobDiff

APPROVE_ACTION = "approve"
DENY_ACTION = "deny"
DECISION_ACTIONS = (APPROVE_ACTION, DENY_ACTION)

APPROVAL_TITLE = "Job Registration Approval"


def job_url(base_url: str, job: Job) -> str:
    """Link to the job in the Nomad UI."""
    return f"{base_url.rstrip('/')}/ui/jobs/{job.id}@{job.namespace}"


def build_task_fields(job: Job) -> list[dict]:
    """Build one attachment field per task with a driver-aware summary."""
    fields = []
    for tg in job.task_groups:
        for task in tg.tasks:
            fields.append(
                {
                    "title": f"Task: {tg.name}/{task.name}",
                    "value": f"Driver: {task.driver}\n{task.config.summary()}",
                    "short": False,
                }
            )
    return fields


def build_diff_fields(diff: JobDiff) -> list[dict]:
    """Build one attachment field per changed attribute."""
    return [
        {
            "title": f.path,
            "value": f"{f.old} → {f.new}",
            "short": True,
        }
        for f in diff.fields
    ]


def build_decision_actions() -> list[dict]:
    """Approve and deny buttons; deny asks for confirmation."""
    return [
        {
            "name": APPROVE_ACTION,
            "text": "Approve :heavy_check_mark:",
            "type": "button",
            "style": "primary",
            "value": APPROVE_ACTION,
        },
        {
            "name": DENY_ACTION,
            "text": "Deny :no_entry_sign:",
            "type": "button",
            "style": "danger",
            "value": DENY_ACTION,
            "confirm": {
                "title": "Are you sure?",
                "text": "The pending job version will be rejected.",
                "ok_text": "Deny",
                "dismiss_text": "Whoops!",
            },
        },
    ]


def build_approval_attachments(job: Job, diff: Optional[JobDiff] = None) -> list[dict]:
    """Build Slack attachments for a job registration pending approval.

    Args:
        job: The job snapshot awaiting approval
        diff: Optional predicted diff against the running version

    Returns:
        List with a single Slack attachment. Its ``callback_id`` is the job ID
        so the decision callback can be matched to the pending approval.
    """
    fields = build_task_fields(job)
    if diff:
        fields.extend(build_diff_fields(diff))

    return [
        {
            "fallback": f"Job registration pending approval: {job.id}",
            "title": APPROVAL_TITLE,
            "text": f"*{job.name}* in namespace `{job.namespace}` is waiting for approval",
            "fields": fields,
            "footer": f"Job ID: {job.id}",
            "ts": int(time.time()),
            "callback_id": job.id,
            "actions": build_decision_actions(),
        }
    ]


def build_decision_attachments(
    original: list[dict],
    job_id: str,
    action: str,
    user: str,
    url: Optional[str] = None,
) -> list[dict]:
    """Rewrite the approval attachments to show the decision.

    Args:
        original: Attachments of the message as posted
        job_id: The job ID the decision applies to
        action: ``approve`` or ``deny``
        user: Display name of the deciding user
        url: Optional link to the job

    Returns:
        Attachments without buttons, with "Approver" and "Action" fields added
    """
    attachments = copy.deepcopy(original) or [{"footer": f"Job ID: {job_id}"}]
    attachment = attachments[0]
    attachment.pop("actions", None)
    attachment["title"] = f"Job Registration ({action})"
    if url:
        attachment["title_link"] = url
    attachment["color"] = "good" if action == APPROVE_ACTION else "danger"
    attachment.setdefault("fields", [])
    attachment["fields"] = list(attachment["fields"] or []) + [
        {"title": "Approver", "value": user, "short": True},
        {"title": "Action", "value": action, "short": True},
    ]
    return attachments
