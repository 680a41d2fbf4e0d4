"""Typed views of the Nomad objects the approver works with."""

import copy
from dataclasses import dataclass, field
from typing import Any, Optional, Union

DOCKER_DRIVER = "docker"


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def _require_object(data: Any, kind: str) -> dict:
    if not isinstance(data, dict):
        raise ValueError(f"expected {kind} object, got {type(data).__name__}")
    return data


def _object_list(value: Any, kind: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"expected list of {kind}s, got {type(value).__name__}")
    return value


def _as_str_list(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [_as_str(v) for v in value]


@dataclass(frozen=True)
class DockerConfig:
    """Task configuration for the container driver."""

    image: str = ""

    def summary(self) -> str:
        return f"Image: {self.image}"


@dataclass(frozen=True)
class CommandConfig:
    """Task configuration for command-based drivers (exec, raw_exec, java, ...)."""

    command: str = ""
    args: list[str] = field(default_factory=list)

    def summary(self) -> str:
        return f"Command: {self.command}\nArgs: {' '.join(self.args)}"


TaskConfig = Union[DockerConfig, CommandConfig]


def parse_task_config(driver: str, raw: Optional[dict]) -> TaskConfig:
    """Build the driver-specific config variant from a raw Nomad config map.

    Missing or mistyped values become empty strings or lists.
    """
    raw = raw if isinstance(raw, dict) else {}
    if driver == DOCKER_DRIVER:
        return DockerConfig(image=_as_str(raw.get("image")))
    return CommandConfig(
        command=_as_str(raw.get("command")),
        args=_as_str_list(raw.get("args")),
    )


@dataclass
class Task:
    name: str = ""
    driver: str = ""
    config: TaskConfig = field(default_factory=CommandConfig)

    @classmethod
    def from_dict(cls, data: dict) -> "Task":
        data = _require_object(data, "task")
        driver = _as_str(data.get("Driver"))
        return cls(
            name=_as_str(data.get("Name")),
            driver=driver,
            config=parse_task_config(driver, data.get("Config")),
        )


@dataclass
class TaskGroup:
    name: str = ""
    count: int = 0
    tasks: list[Task] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "TaskGroup":
        data = _require_object(data, "task group")
        return cls(
            name=_as_str(data.get("Name")),
            count=data.get("Count") or 0,
            tasks=[Task.from_dict(t) for t in _object_list(data.get("Tasks"), "task")],
        )


@dataclass
class Job:
    """A job snapshot as registered with Nomad.

    ``raw`` keeps the JSON Nomad sent so the snapshot can be re-registered
    unchanged apart from the fields the approver sets.
    """

    id: str
    name: str = ""
    namespace: str = "default"
    version: Optional[int] = None
    status: str = ""
    approvers: list[str] = field(default_factory=list)
    meta: dict[str, str] = field(default_factory=dict)
    task_groups: list[TaskGroup] = field(default_factory=list)
    raw: dict = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> "Job":
        """Parse a Nomad job JSON object.

        Raises
        ------
        ValueError
            If the object is not a job or has no ID.
        """
        data = _require_object(data, "job")
        job_id = data.get("ID")
        if not job_id:
            raise ValueError("job has no ID")
        version = data.get("Version")
        return cls(
            id=_as_str(job_id),
            name=_as_str(data.get("Name")) or _as_str(job_id),
            namespace=_as_str(data.get("Namespace")) or "default",
            version=version if isinstance(version, int) else None,
            status=_as_str(data.get("Status")),
            approvers=_as_str_list(data.get("Approvers")),
            meta=dict(_require_object(data.get("Meta") or {}, "meta")),
            task_groups=[
                TaskGroup.from_dict(tg)
                for tg in _object_list(data.get("TaskGroups"), "task group")
            ],
            raw=data,
        )

    def to_dict(self) -> dict:
        """Return the job JSON for re-registration, with the current meta."""
        data = copy.deepcopy(self.raw)
        data["ID"] = self.id
        data["Meta"] = dict(self.meta) or None
        return data


@dataclass(frozen=True)
class FieldDiff:
    """One changed attribute from a Nomad plan diff."""

    path: str
    old: str
    new: str


@dataclass
class JobDiff:
    fields: list[FieldDiff] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.fields)

    @classmethod
    def from_plan(cls, diff: Optional[dict]) -> "JobDiff":
        """Flatten the ``Diff`` object of a Nomad plan response.

        Only edited, added and deleted fields are kept. Paths are built from
        the task group, task and object names leading to the field.
        """
        fields: list[FieldDiff] = []
        if not diff:
            return cls(fields)

        def walk(node: dict, prefix: str) -> None:
            for f in node.get("Fields") or []:
                if f.get("Type") in (None, "None"):
                    continue
                fields.append(
                    FieldDiff(
                        path=f"{prefix}{f.get('Name', '')}",
                        old=_as_str(f.get("Old")),
                        new=_as_str(f.get("New")),
                    )
                )
            for obj in node.get("Objects") or []:
                walk(obj, f"{prefix}{obj.get('Name', '')}.")

        walk(diff, "")
        for tg in diff.get("TaskGroups") or []:
            tg_prefix = f"{tg.get('Name', '')}."
            walk(tg, tg_prefix)
            for task in tg.get("Tasks") or []:
                walk(task, f"{tg_prefix}{task.get('Name', '')}.")
        return cls(fields)


@dataclass
class Event:
    topic: str = ""
    type: str = ""
    key: str = ""
    payload: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "Event":
        data = _require_object(data, "event")
        return cls(
            topic=_as_str(data.get("Topic")),
            type=_as_str(data.get("Type")),
            key=_as_str(data.get("Key")),
            payload=data.get("Payload") or {},
        )

    def job(self) -> Job:
        """Parse the job carried by this event.

        Raises
        ------
        ValueError
            If the payload carries no job, or the job is malformed.
        """
        if not isinstance(self.payload, dict):
            raise ValueError(f"event {self.type} for {self.key!r} has a malformed payload")
        data = self.payload.get("Job")
        if data is None:
            raise ValueError(f"event {self.type} for {self.key!r} carries no job")
        return Job.from_dict(data)


@dataclass
class EventBatch:
    """One frame from the Nomad event stream.

    A frame is either a heartbeat, a transport error, or a list of events.
    """

    index: int = 0
    events: list[Event] = field(default_factory=list)
    heartbeat: bool = False
    error: Optional[Exception] = None

    @classmethod
    def from_dict(cls, data: dict) -> "EventBatch":
        if not data:
            return cls(heartbeat=True)
        return cls(
            index=data.get("Index") or 0,
            events=[Event.from_dict(e) for e in _object_list(data.get("Events"), "event")],
        )
