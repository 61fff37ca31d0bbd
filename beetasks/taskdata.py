"""The collection of tasks loaded from storage, and the bookkeeping around it."""

from __future__ import annotations

import copy
import uuid as uuid_mod
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterable, Optional

from beetasks.task import (
    Coefficient,
    Task,
    TaskProperties,
    TaskStatus,
    _now,
)

_OPEN_STATUSES = (TaskStatus.PENDING, TaskStatus.ACTIVE)
_CLOSED_STATUSES = (TaskStatus.COMPLETED, TaskStatus.DELETED)


@dataclass
class TaskData:
    """Tasks keyed by UUID, plus the related tasks and id mappings."""

    # Tasks that may be directly modified.
    tasks: dict[uuid_mod.UUID, Task] = field(default_factory=dict)
    # Saved task states, needed to restore them on undo.
    undos: dict[uuid_mod.UUID, Task] = field(default_factory=dict)
    # ID to UUID of every task, not just the loaded ones.
    id_to_uuid: dict[int, uuid_mod.UUID] = field(default_factory=dict)
    max_id: int = 0
    # Tasks outside the filter that are linked to the filtered ones.
    extra_tasks: dict[uuid_mod.UUID, Task] = field(default_factory=dict)
    coefficients: list[Coefficient] = field(default_factory=list)

    def __iter__(self):
        return iter(self.tasks.values())

    def __len__(self) -> int:
        return len(self.tasks)

    def insert_extra_task(self, task: Task) -> None:
        self.extra_tasks[task.uuid] = task

    def apply(self, task_uuid: uuid_mod.UUID, props: TaskProperties) -> None:
        """Apply properties to a loaded task, resolving dependency ids first."""
        task = self.tasks[task_uuid]
        if props.depends_on is not None:
            props = self.resolve_depends_on(props)
        task.apply(props, self.coefficients)

    def get_owned(self, uuid: uuid_mod.UUID) -> Optional[Task]:
        """Return a copy of the task with this UUID, or None."""
        task = self.tasks.get(uuid)
        return None if task is None else copy.deepcopy(task)

    def set_task(self, task: Task) -> None:
        self.tasks[task.uuid] = copy.deepcopy(task)

    def set_undos(self, tasks: Iterable[Task]) -> None:
        for task in tasks:
            self.undos[task.uuid] = copy.deepcopy(task)

    def task_done(self, uuid: uuid_mod.UUID) -> None:
        self.tasks[uuid].done()

    def task_delete(self, uuid: uuid_mod.UUID) -> None:
        self.tasks[uuid].delete()

    def resolve_depends_on(self, props: TaskProperties) -> TaskProperties:
        """Return a copy of the properties with dependency ids turned into UUIDs."""
        if props.depends_on is None:
            return replace(props)
        resolved: list[uuid_mod.UUID] = []
        for dep in props.depends_on:
            if isinstance(dep, uuid_mod.UUID):
                resolved.append(dep)
                continue
            try:
                resolved.append(self.id_to_uuid[dep])
            except KeyError:
                raise ValueError(
                    f"The given id {dep} doesn't correspond to any known task."
                ) from None
        return replace(props, depends_on=resolved)

    def _lookup_any(self, uuid: uuid_mod.UUID) -> Task:
        task = self.tasks.get(uuid) or self.extra_tasks.get(uuid)
        if task is None:
            raise LookupError(
                f"We were unable to find the task associated with uuid {uuid} "
                "during upkeep phase"
            )
        return task

    def _loaded(self, uuid: uuid_mod.UUID) -> Task:
        try:
            return self.tasks[uuid]
        except KeyError:
            raise LookupError(f"Task with uuid {uuid} is not loaded") from None

    def upkeep(self) -> None:
        """Renumber tasks, refresh urgencies and keep dependency links consistent."""
        next_id = 1
        for task in sorted(self.tasks.values(), key=lambda t: t.date_created):
            if task.status in _OPEN_STATUSES:
                task.id = next_id
                next_id += 1
            else:
                task.id = None

        for task in self.tasks.values():
            task.compute_urgency(self.coefficients)

        # Drop dependencies on tasks that are done or deleted.
        new_depends: dict[uuid_mod.UUID, list[uuid_mod.UUID]] = {}
        for task in self.tasks.values():
            kept = [
                dep
                for dep in dict.fromkeys(task.depends_on)
                if self._lookup_any(dep).status not in _CLOSED_STATUSES
            ]
            new_depends[task.uuid] = kept
        for task_uuid, deps in new_depends.items():
            self.tasks[task_uuid].depends_on = deps

        # Record on each depended-upon task which tasks it blocks.
        blocked_by: dict[uuid_mod.UUID, list[uuid_mod.UUID]] = {}
        for task in self.tasks.values():
            for blocker in task.depends_on:
                blocked_by.setdefault(blocker, []).append(task.uuid)
        for blocker_uuid, blocked in blocked_by.items():
            blocker = self._loaded(blocker_uuid)
            blocker.blocking = sorted(set(blocker.blocking) | set(blocked))

        # Keep only blocked tasks that still depend on their blocker.
        for blocker in self.tasks.values():
            if not blocker.blocking or blocker.status in _CLOSED_STATUSES:
                continue
            blocker.blocking = [
                blocked_uuid
                for blocked_uuid in blocker.blocking
                if blocker.uuid in self._loaded(blocked_uuid).depends_on
            ]

    def filter(self, predicate: Callable[[Task], bool]) -> "TaskData":
        """Return a copy holding only matching tasks, with their neighbours as extras."""
        new_data = TaskData(
            tasks={},
            undos=copy.deepcopy(self.undos),
            id_to_uuid=dict(self.id_to_uuid),
            max_id=self.max_id,
            extra_tasks=copy.deepcopy(self.extra_tasks),
            coefficients=list(self.coefficients),
        )
        extras: list[Task] = []
        for key, task in self.tasks.items():
            if not predicate(task):
                continue
            new_data.tasks[key] = copy.deepcopy(task)
            extras.extend(self.tasks[dep] for dep in task.depends_on)
            extras.extend(self.tasks[blocked] for blocked in task.blocking)
        for task in extras:
            new_data.extra_tasks[task.uuid] = copy.deepcopy(task)
        return new_data

    def add_task(
        self, props: TaskProperties, status: TaskStatus = TaskStatus.PENDING
    ) -> Task:
        """Create a task from properties; the properties' status overrides ``status``."""
        status = props.status if props.status is not None else status
        new_id: Optional[int] = None
        date_completed = None
        if status in _OPEN_STATUSES:
            self.max_id += 1
            new_id = self.max_id
        else:
            date_completed = _now()

        if props.summary is None:
            raise ValueError("A task must have a summary")

        depends_on: list[uuid_mod.UUID] = []
        if props.depends_on is not None:
            depends_on = list(self.resolve_depends_on(props).depends_on or [])

        task = Task(
            id=new_id,
            status=status,
            summary=props.summary,
            tags=list(props.tags_add or []),
            date_completed=date_completed,
            date_due=props.date_due,
            project=props.project,
            depends_on=depends_on,
        )
        self.tasks[task.uuid] = task
        return task

    def to_json_list(self) -> list[dict[str, Any]]:
        """Serialise the tasks as a list ordered by creation date."""
        ordered = sorted(self.tasks.values(), key=lambda t: t.date_created)
        return [task.to_dict() for task in ordered]

    @classmethod
    def from_json_list(cls, items: Iterable[dict[str, Any]]) -> "TaskData":
        """Build task data from a list of serialised tasks."""
        tasks = {task.uuid: task for task in map(Task.from_dict, items)}
        max_id = max((t.id for t in tasks.values() if t.id is not None), default=0)
        return cls(tasks=tasks, max_id=max_id)