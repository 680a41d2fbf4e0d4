from typing import Optional

from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Channel used when SLACK_CHANNEL is not set
DEFAULT_SLACK_CHANNEL = "#nomad-approvals"

# Version Nomad assigns to a job registration parked for approval
PENDING_APPROVAL_VERSION = 1000

# Job status of a registration parked for approval
AWAITING_APPROVAL_STATUS = "awaiting-approval"

JOB_REGISTERED_EVENT = "JobRegistered"

# Job meta key carrying the Slack user who approved a registration
APPROVER_META_KEY = "SLACK_APPROVER"


class StreamTimeouts(BaseModel):
    """Timeout configuration for the Nomad event stream."""

    reconnect_base_delay: float = 1.0
    reconnect_max_delay: float = 30.0
    request: float = 30.0

    @field_validator("reconnect_base_delay", "reconnect_max_delay", "request")
    @classmethod
    def validate_positive_float(cls, v: float, info) -> float:
        """Ensure timeout values are positive."""
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive, got {v}")
        return v


class HTTPConfig(BaseModel):
    """Configuration for the inbound Slack callback listener."""

    host: str = "0.0.0.0"
    port: int = 80
    path: str = "/"

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Ensure the port is a valid TCP port."""
        if not 0 < v < 65536:
            raise ValueError(f"port must be between 1 and 65535, got {v}")
        return v


class Config(BaseSettings):
    """
    Application configuration loaded from multiple sources.

    Priority (highest to lowest):
    1. Environment variables
    2. .env file
    3. Default values
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Nomad configuration
    NOMAD_ADDR: str = "http://127.0.0.1:4646"
    NOMAD_TOKEN: Optional[str] = None
    NOMAD_NAMESPACE: str = "default"
    NOMAD_UI_URL: str = ""

    # Approver identity and the admission secret Nomad checks on re-registration
    NOMAD_APPROVER_ID: str = ""
    NOMAD_APPROVER_SECRET: str = ""

    # Slack configuration
    SLACK_BOT_TOKEN: str = ""
    SLACK_CHANNEL: str = ""
    SLACK_SIGNING_SECRET: str = ""
    SLACK_APP_TOKEN: str = ""  # Socket Mode when set, HTTP otherwise

    # Inbound HTTP listener
    HTTP_HOST: str = "0.0.0.0"
    HTTP_PORT: int = 80
    HTTP_PATH: str = "/"

    # Ask Nomad for a plan diff and render it in the notification
    INCLUDE_PLAN_DIFF: bool = False

    LOG_LEVEL: str = "INFO"

    # Event stream overrides from environment
    STREAM_RECONNECT_BASE_DELAY: float = 1.0
    STREAM_RECONNECT_MAX_DELAY: float = 30.0
    NOMAD_REQUEST_TIMEOUT: float = 30.0

    @property
    def channel(self) -> str:
        """Target Slack channel, falling back to the default channel."""
        return self.SLACK_CHANNEL or DEFAULT_SLACK_CHANNEL

    @property
    def nomad_ui_url(self) -> str:
        """Base URL used for job links in Slack messages."""
        return (self.NOMAD_UI_URL or self.NOMAD_ADDR).rstrip("/")

    @property
    def socket_mode(self) -> bool:
        return bool(self.SLACK_APP_TOKEN)

    @property
    def stream_timeouts(self) -> StreamTimeouts:
        """Build StreamTimeouts from environment variables."""
        return StreamTimeouts(
            reconnect_base_delay=self.STREAM_RECONNECT_BASE_DELAY,
            reconnect_max_delay=self.STREAM_RECONNECT_MAX_DELAY,
            request=self.NOMAD_REQUEST_TIMEOUT,
        )

    @property
    def http(self) -> HTTPConfig:
        """Build HTTPConfig from environment variables."""
        return HTTPConfig(host=self.HTTP_HOST, port=self.HTTP_PORT, path=self.HTTP_PATH)

    def validate_required(self) -> list[str]:
        """Validate required configuration."""
        errors = []
        if not self.NOMAD_APPROVER_SECRET:
            errors.append("NOMAD_APPROVER_SECRET is required")
        if not self.SLACK_BOT_TOKEN:
            errors.append("SLACK_BOT_TOKEN is required")
        if not self.socket_mode and not self.SLACK_SIGNING_SECRET:
            errors.append("SLACK_SIGNING_SECRET is required (unless SLACK_APP_TOKEN enables Socket Mode)")
        return errors


config = Config()
