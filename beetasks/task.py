"""Tasks, their properties and the changes that can be applied to them."""

from __future__ import annotations

import re
import uuid as uuid_mod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Optional, Union

DependsOnIdentifier = Union[int, uuid_mod.UUID]

_FRACTION = re.compile(r"\.(\d+)")


def _now() -> datetime:
    return datetime.now().astimezone()


def _format_datetime(value: datetime) -> str:
    return value.isoformat()


def _parse_datetime(text: str) -> datetime:
    """Parse an RFC 3339 timestamp, accepting 'Z' and any fraction length."""
    normalised = text.strip()
    if normalised.endswith(("Z", "z")):
        normalised = normalised[:-1] + "+00:00"
    normalised = _FRACTION.sub(
        lambda m: "." + m.group(1)[:6].ljust(6, "0"), normalised, count=1
    )
    parsed = datetime.fromisoformat(normalised)
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


def _optional_datetime(value: Optional[str]) -> Optional[datetime]:
    return None if value is None else _parse_datetime(value)


class TaskStatus(Enum):
    """Life-cycle state of a task."""

    PENDING = "Pending"
    ACTIVE = "Active"
    COMPLETED = "Completed"
    DELETED = "Deleted"

    @classmethod
    def from_string(cls, value: str) -> "TaskStatus":
        """Parse a status name, case-insensitively."""
        lookup = {member.value.lower(): member for member in cls}
        try:
            return lookup[value.lower()]
        except KeyError:
            raise ValueError("Invalid task status name") from None

    def __str__(self) -> str:
        return self.value.lower()


@dataclass(frozen=True, order=True)
class Project:
    """A dotted project name attached to a task."""

    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True, order=True)
class TaskAnnotation:
    """A free-text note attached to a task at a given time."""

    value: str
    time: datetime = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return {"value": self.value, "time": _format_datetime(self.time)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TaskAnnotation":
        return cls(value=data["value"], time=_parse_datetime(data["time"]))


@dataclass(frozen=True, order=True)
class TaskHistory:
    """A description of an event that happened to a task, and when."""

    value: str
    time: datetime = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return {"value": self.value, "time": _format_datetime(self.time)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TaskHistory":
        return cls(value=data["value"], time=_parse_datetime(data["time"]))


@dataclass(frozen=True)
class Coefficient:
    """One urgency coefficient from the configuration."""

    field: str
    coefficient: int
    value: Optional[str] = None


@dataclass
class TaskProperties:
    """User-settable changes to a task. Tags are removed first, then added."""

    summary: Optional[str] = None
    tags_remove: Optional[list[str]] = None
    tags_add: Optional[list[str]] = None
    status: Optional[TaskStatus] = None
    annotation: Optional[str] = None
    annotations: Optional[list[TaskAnnotation]] = None
    active_status: Optional[bool] = None
    project: Optional[Project] = None
    date_due: Optional[datetime] = None
    depends_on: Optional[list[DependsOnIdentifier]] = None

    def add_depends_on(self, identifier: DependsOnIdentifier) -> None:
        if self.depends_on is None:
            self.depends_on = []
        self.depends_on.append(identifier)

    def referenced_tasks(self) -> list[DependsOnIdentifier]:
        return list(self.depends_on) if self.depends_on is not None else []


_REQUIRED_FIELDS = ("status", "uuid", "summary", "tags", "date_created", "sub")


@dataclass
class Task:
    """A single task with its metadata, dependencies and history."""

    id: Optional[int] = None
    status: TaskStatus = TaskStatus.PENDING
    uuid: uuid_mod.UUID = field(default_factory=uuid_mod.uuid4)
    summary: str = ""
    annotations: list[TaskAnnotation] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    date_created: datetime = field(default_factory=_now)
    date_completed: Optional[datetime] = None
    sub: list[uuid_mod.UUID] = field(default_factory=list)
    depends_on: list[uuid_mod.UUID] = field(default_factory=list)
    blocking: list[uuid_mod.UUID] = field(default_factory=list)
    project: Optional[Project] = None
    date_due: Optional[datetime] = None
    urgency: Optional[int] = None
    history: list[TaskHistory] = field(default_factory=list)

    # Tasks with an urgency come first (lowest first), then by creation date.
    def _sort_key(self) -> tuple:
        if self.urgency is None:
            return (1, 0, self.date_created)
        return (0, self.urgency, self.date_created)

    def __lt__(self, other: "Task") -> bool:
        return self._sort_key() < other._sort_key()

    def __le__(self, other: "Task") -> bool:
        return self._sort_key() <= other._sort_key()

    def __gt__(self, other: "Task") -> bool:
        return self._sort_key() > other._sort_key()

    def __ge__(self, other: "Task") -> bool:
        return self._sort_key() >= other._sort_key()

    def _log(self, value: str, time: Optional[datetime] = None) -> None:
        self.history.append(TaskHistory(value=value, time=time or _now()))

    def get_urgency(self, coefficients: Optional[Iterable[Coefficient]] = None) -> int:
        """Return the cached urgency, computing it if needed."""
        if self.urgency is not None:
            return self.urgency
        return self.compute_urgency(coefficients)

    def compute_urgency(
        self, coefficients: Optional[Iterable[Coefficient]] = None
    ) -> int:
        """Compute and store the urgency score from the task's fields."""
        urgency = 0
        blocking_coef = 1
        depends_coef = -1
        active_status_coef = 10

        for coef in coefficients or ():
            if coef.field == "tag":
                if coef.value is None or coef.value in self.tags:
                    urgency += coef.coefficient
            elif coef.field == "depends":
                depends_coef = coef.coefficient
            elif coef.field == "blocking":
                blocking_coef = coef.coefficient
            elif coef.field == "active_status":
                active_status_coef = coef.coefficient
            else:
                raise ValueError(
                    "Error parsing the coefficient field in the configuration file. "
                    f"'{coef.field}' is not a valid 'field' name. "
                    "Valid field names are: 'tag', 'depends', 'blocking'"
                )

        urgency += len(self.blocking) * blocking_coef
        urgency += len(self.depends_on) * depends_coef

        if self.status is TaskStatus.ACTIVE:
            urgency += active_status_coef

        if self.date_due is not None:
            remaining = self.date_due - _now()
            urgency += int(remaining.total_seconds() / 86400)

        self.urgency = urgency
        return urgency

    def extra_uuids(self) -> list[uuid_mod.UUID]:
        """UUIDs this task refers to, sorted and without duplicates."""
        return sorted(set(self.depends_on) | set(self.blocking))

    def apply(
        self,
        props: TaskProperties,
        coefficients: Optional[Iterable[Coefficient]] = None,
    ) -> None:
        """Apply the given properties, recording each change in the history."""
        if props.summary is not None:
            self._log(f"Summary changed from '{self.summary}' to '{props.summary}'.")
            self.summary = props.summary

        if props.date_due is not None:
            self._log(f"Due date set to {props.date_due}")
            self.date_due = props.date_due

        if props.active_status is not None:
            if props.active_status:
                if self.status is not TaskStatus.PENDING:
                    raise ValueError(
                        f"Task '{self.summary}' status cannot be set to 'ACTIVE' "
                        "because its status is already 'ACTIVE'"
                    )
                self.status = TaskStatus.ACTIVE
                self._log("Status changed from 'PENDING' to 'ACTIVE'")
            else:
                if self.status is not TaskStatus.ACTIVE:
                    raise ValueError(
                        f"Task '{self.summary}' status cannot be 'stopped' "
                        "because its status is not 'ACTIVE'"
                    )
                self.status = TaskStatus.PENDING
                self._log("Status changed from 'ACTIVE' to 'PENDING'")

        if props.status is not None:
            if self.status is not props.status:
                self._log(f"Status changed from '{self.status}' to '{props.status}'")
            self.status = props.status

        if props.project is not None:
            self._log(f"Project set to '{props.project}'")
            self.project = props.project

        if props.tags_remove is not None:
            to_remove = set(props.tags_remove)
            removed = [tag for tag in self.tags if tag in to_remove]
            self.tags = [tag for tag in self.tags if tag not in to_remove]
            if removed:
                self._log(f"Removed tag(s) '{', '.join(removed)}'")

        if props.tags_add is not None:
            existing = set(self.tags)
            added = [
                tag
                for tag in dict.fromkeys(props.tags_add)
                if tag not in existing
            ]
            self.tags = list(dict.fromkeys(self.tags)) + added
            if added:
                self._log(f"Added tag(s) '{', '.join(added)}'")

        if props.annotation is not None:
            self._log(f"Added an annotation '{props.annotation}'")
            self.annotations.append(TaskAnnotation(value=props.annotation))

        if props.annotations is not None:
            self._log("The list of annotations have been changed")
            self.annotations = list(props.annotations)

        if props.depends_on is not None:
            # An empty list cancels every dependency.
            deps: dict[uuid_mod.UUID, None] = (
                dict.fromkeys(self.depends_on) if props.depends_on else {}
            )
            for dep in props.depends_on:
                if not isinstance(dep, uuid_mod.UUID):
                    raise ValueError(
                        f"Dependency '{dep}' must be resolved to a UUID "
                        "before being applied to a task"
                    )
                if dep in deps:
                    continue
                self._log(f"Added a UUID to depend on: '{dep}'")
                deps[dep] = None
            self.depends_on = list(deps)

        self.compute_urgency(coefficients)

    def get_field(self, field_name: str) -> Any:
        """Return a field by its serialised name."""
        data = self.to_dict()
        if field_name not in data:
            raise KeyError(f"Could not get the value of '{field_name}'")
        return data[field_name]

    def delete(self) -> None:
        self._log("Deleted task.")
        self.status = TaskStatus.DELETED
        self.id = None
        self.urgency = None

    def done(self) -> None:
        current = _now()
        self._log("Marked task as done", current)
        self.status = TaskStatus.COMPLETED
        self.date_completed = current
        self.id = None
        self.urgency = None

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a JSON-compatible dictionary."""
        return {
            "id": self.id,
            "status": self.status.value,
            "uuid": str(self.uuid),
            "summary": self.summary,
            "annotations": [a.to_dict() for a in self.annotations],
            "tags": list(self.tags),
            "date_created": _format_datetime(self.date_created),
            "date_completed": (
                None
                if self.date_completed is None
                else _format_datetime(self.date_completed)
            ),
            "sub": [str(u) for u in self.sub],
            "depends_on": [str(u) for u in self.depends_on],
            "blocking": [str(u) for u in self.blocking],
            "project": None if self.project is None else {"name": self.project.name},
            "date_due": (
                None if self.date_due is None else _format_datetime(self.date_due)
            ),
            "urgency": self.urgency,
            "history": [h.to_dict() for h in self.history],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        """Build a task from its serialised dictionary form."""
        missing = [name for name in _REQUIRED_FIELDS if name not in data]
        if missing:
            raise ValueError(f"missing field `{missing[0]}`")
        project = data.get("project")
        return cls(
            id=data.get("id"),
            status=TaskStatus(data["status"]),
            uuid=uuid_mod.UUID(data["uuid"]),
            summary=data["summary"],
            annotations=[
                TaskAnnotation.from_dict(a) for a in data.get("annotations") or []
            ],
            tags=list(data["tags"]),
            date_created=_parse_datetime(data["date_created"]),
            date_completed=_optional_datetime(data.get("date_completed")),
            sub=[uuid_mod.UUID(u) for u in data["sub"]],
            depends_on=[uuid_mod.UUID(u) for u in data.get("depends_on") or []],
            blocking=[uuid_mod.UUID(u) for u in data.get("blocking") or []],
            project=None if project is None else Project(project["name"]),
            date_due=_optional_datetime(data.get("date_due")),
            urgency=data.get("urgency"),
            history=[TaskHistory.from_dict(h) for h in data.get("history") or []],
        )