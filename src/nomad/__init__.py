"""Nomad API client and job models."""

from .client import Admission, NomadClient, NomadError
from .models import (
    CommandConfig,
    DockerConfig,
    Event,
    EventBatch,
    FieldDiff,
    Job,
    JobDiff,
    Task,
    TaskGroup,
)

__all__ = [
    "Admission",
    "NomadClient",
    "NomadError",
    "CommandConfig",
    "DockerConfig",
    "Event",
    "EventBatch",
    "FieldDiff",
    "Job",
    "JobDiff",
    "Task",
    "TaskGroup",
]
