"""Unit tests for configuration module."""

import pytest
from pydantic import ValidationError

from src.config import DEFAULT_SLACK_CHANNEL, Config, HTTPConfig, StreamTimeouts


def make_config(**kwargs) -> Config:
    # Ignore any .env file in the working directory
    return Config(_env_file=None, **kwargs)


class TestStreamTimeouts:
    """Tests for StreamTimeouts model."""

    def test_default_values(self):
        timeouts = StreamTimeouts()

        assert timeouts.reconnect_base_delay == 1.0
        assert timeouts.reconnect_max_delay == 30.0
        assert timeouts.request == 30.0

    def test_rejects_non_positive(self):
        with pytest.raises(ValidationError, match="reconnect_base_delay must be positive"):
            StreamTimeouts(reconnect_base_delay=0)


class TestHTTPConfig:
    """Tests for HTTPConfig model."""

    def test_rejects_invalid_port(self):
        with pytest.raises(ValidationError):
            HTTPConfig(port=70000)

    def test_built_from_env_fields(self):
        cfg = make_config(HTTP_HOST="127.0.0.1", HTTP_PORT=8080, HTTP_PATH="/slack")

        assert cfg.http == HTTPConfig(host="127.0.0.1", port=8080, path="/slack")


class TestConfig:
    """Tests for Config settings."""

    def test_channel_falls_back_to_default(self):
        assert make_config().channel == DEFAULT_SLACK_CHANNEL
        assert make_config(SLACK_CHANNEL="C999").channel == "C999"

    def test_nomad_ui_url_defaults_to_address(self):
        cfg = make_config(NOMAD_ADDR="http://nomad:4646/")

        assert cfg.nomad_ui_url == "http://nomad:4646"
        assert make_config(NOMAD_UI_URL="https://ui.example").nomad_ui_url == "https://ui.example"

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("NOMAD_APPROVER_ID", "opA")
        monkeypatch.setenv("INCLUDE_PLAN_DIFF", "true")

        cfg = make_config()

        assert cfg.NOMAD_APPROVER_ID == "opA"
        assert cfg.INCLUDE_PLAN_DIFF is True

    def test_validate_required_reports_missing_secrets(self, monkeypatch):
        for name in ("NOMAD_APPROVER_SECRET", "SLACK_BOT_TOKEN", "SLACK_SIGNING_SECRET", "SLACK_APP_TOKEN"):
            monkeypatch.delenv(name, raising=False)

        errors = make_config().validate_required()

        assert any("NOMAD_APPROVER_SECRET" in e for e in errors)
        assert any("SLACK_BOT_TOKEN" in e for e in errors)
        assert any("SLACK_SIGNING_SECRET" in e for e in errors)

    def test_socket_mode_does_not_need_signing_secret(self, monkeypatch):
        monkeypatch.delenv("SLACK_SIGNING_SECRET", raising=False)

        cfg = make_config(
            NOMAD_APPROVER_SECRET="s3cret",
            SLACK_BOT_TOKEN="xoxb-test",
            SLACK_APP_TOKEN="xapp-test",
        )

        assert cfg.socket_mode is True
        assert cfg.validate_required() == []
