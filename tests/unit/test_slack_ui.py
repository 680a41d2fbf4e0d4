"""Unit tests for approval message builders."""

from src.approval.slack_ui import (
    APPROVAL_TITLE,
    build_approval_attachments,
    build_decision_attachments,
    job_url,
)
from src.nomad.models import FieldDiff, Job, JobDiff


class TestApprovalAttachments:
    """Tests for build_approval_attachments."""

    def test_one_field_per_task_with_driver_summary(self, job):
        attachment = build_approval_attachments(job)[0]

        assert attachment["fields"] == [
            {
                "title": "Task: frontend/nginx",
                "value": "Driver: docker\nImage: nginx:1.25",
                "short": False,
            },
            {
                "title": "Task: frontend/sidecar",
                "value": "Driver: exec\nCommand: /bin/agent\nArgs: -v --port=9000",
                "short": False,
            },
        ]

    def test_callback_id_title_and_footer_carry_job_id(self, job):
        attachment = build_approval_attachments(job)[0]

        assert attachment["callback_id"] == "web:1"
        assert attachment["title"] == APPROVAL_TITLE
        assert attachment["footer"] == "Job ID: web:1"

    def test_approve_and_deny_actions(self, job):
        actions = build_approval_attachments(job)[0]["actions"]

        assert [a["name"] for a in actions] == ["approve", "deny"]
        assert "confirm" in actions[1]

    def test_missing_config_renders_empty(self, job_dict):
        job = Job.from_dict(
            job_dict(
                task_groups=[
                    {"Name": "batch", "Tasks": [{"Name": "run", "Driver": "java", "Config": None}]}
                ]
            )
        )

        field = build_approval_attachments(job)[0]["fields"][0]

        assert field["value"] == "Driver: java\nCommand: \nArgs: "

    def test_diff_fields_appended(self, job):
        diff = JobDiff([FieldDiff("frontend.Count", "2", "3")])

        fields = build_approval_attachments(job, diff)[0]["fields"]

        assert len(fields) == 3
        assert fields[-1]["title"] == "frontend.Count"
        assert fields[-1]["value"] == "2 → 3"

    def test_does_not_mutate_job(self, job):
        before = job.to_dict()
        build_approval_attachments(job, JobDiff([FieldDiff("a", "1", "2")]))

        assert job.to_dict() == before


class TestDecisionAttachments:
    """Tests for build_decision_attachments."""

    def test_appends_approver_and_action(self, job):
        original = build_approval_attachments(job)

        attachment = build_decision_attachments(
            original, "web:1", "approve", "alice", "http://nomad/ui/jobs/web:1@default"
        )[0]

        assert attachment["title"] == "Job Registration (approve)"
        assert attachment["title_link"] == "http://nomad/ui/jobs/web:1@default"
        assert "actions" not in attachment
        assert attachment["fields"][-2:] == [
            {"title": "Approver", "value": "alice", "short": True},
            {"title": "Action", "value": "approve", "short": True},
        ]
        assert attachment["color"] == "good"
        # Original attachments are left alone
        assert "actions" in original[0]

    def test_deny_without_original(self):
        attachment = build_decision_attachments([], "web:1", "deny", "bob")[0]

        assert attachment["title"] == "Job Registration (deny)"
        assert attachment["color"] == "danger"
        assert "title_link" not in attachment
        assert attachment["footer"] == "Job ID: web:1"


def test_job_url(job):
    assert job_url("http://nomad:4646/", job) == "http://nomad:4646/ui/jobs/web:1@default"
