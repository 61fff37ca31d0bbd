"""Locating, reading and writing the task and undo files on disk."""

from __future__ import annotations

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Optional

import uuid as uuid_mod

from beetasks.task import Coefficient, Task, TaskProperties
from beetasks.taskdata import TaskData

logger = logging.getLogger(__name__)

DATA_FILENAME = "bee-data.json"
LOGGED_TASKS_FILENAME = "bee-logged-tasks.json"
_KNOWN_FILENAMES = (DATA_FILENAME, LOGGED_TASKS_FILENAME)


def locate_file(
    filename: str,
    find_file_only: bool = True,
    env: Optional[Mapping[str, str]] = None,
    exists: Optional[Callable[[str], bool]] = None,
) -> str:
    """Return where ``filename`` is, or should be, stored.

    With ``find_file_only`` the path must already exist, otherwise
    FileNotFoundError is raised. Lookup order: $BEE_DATA_HOME,
    $XDG_DATA_HOME/bee, $HOME/.local/share/bee, the current directory.
    """
    if filename not in _KNOWN_FILENAMES:
        raise ValueError(f"Invalid filename given to locate_file: '{filename}'")
    env = os.environ if env is None else env
    exists = os.path.exists if exists is None else exists

    bee_data_home = env.get("BEE_DATA_HOME")
    if bee_data_home is not None:
        logger.debug("Read 'BEE_DATA_HOME' env variable as '%s'", bee_data_home)
        file_path = os.path.join(bee_data_home, filename)
        if not find_file_only or exists(file_path):
            return file_path
        raise FileNotFoundError(f"File not found: {file_path}")

    xdg_data_home = env.get("XDG_DATA_HOME")
    if xdg_data_home is not None:
        xdg_path = os.path.join(xdg_data_home, "bee", filename)
        if not find_file_only or exists(xdg_path):
            return xdg_path

    home = env.get("HOME")
    if home is not None:
        home_path = os.path.join(home, ".local", "share", "bee", filename)
        if not find_file_only or exists(home_path):
            return home_path

    if exists(filename) or not find_file_only:
        return filename
    raise FileNotFoundError(f"File not found: {filename}")


def create_path_if_not_exist(path: str) -> None:
    """Create the parent directories of ``path`` and create or truncate the file."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text("", encoding="utf-8")


class JsonStore:
    """Stores tasks and undo records as JSON files."""

    def __init__(
        self,
        env: Optional[Mapping[str, str]] = None,
        exists: Optional[Callable[[str], bool]] = None,
        coefficients: Optional[Iterable[Coefficient]] = None,
    ) -> None:
        self.env = env
        self.exists = exists
        self.coefficients = list(coefficients or [])

    def _locate(self, filename: str, find_file_only: bool) -> str:
        return locate_file(filename, find_file_only, self.env, self.exists)

    def find_data_file(self) -> str:
        """Path of the existing task file; FileNotFoundError if there is none."""
        return self._locate(DATA_FILENAME, True)

    def find_logged_file(self) -> str:
        """Path of the existing undo file; FileNotFoundError if there is none."""
        return self._locate(LOGGED_TASKS_FILENAME, True)

    def _read_data(self) -> TaskData:
        try:
            data_file = self.find_data_file()
        except FileNotFoundError:
            return TaskData(coefficients=list(self.coefficients))
        items = json.loads(Path(data_file).read_text(encoding="utf-8"))
        data = TaskData.from_json_list(items)
        data.coefficients = list(self.coefficients)
        return data

    def load_tasks(
        self,
        predicate: Optional[Callable[[Task], bool]] = None,
        props: Optional[TaskProperties] = None,
    ) -> TaskData:
        """Load the tasks matching ``predicate``, with the tasks they refer to as extras."""
        data = self._read_data()
        data.upkeep()

        id_to_uuid = {
            task.id: task.uuid for task in data.tasks.values() if task.id is not None
        }
        data.id_to_uuid.update(id_to_uuid)

        new_data = data.filter(predicate) if predicate is not None else copy.deepcopy(data)
        logger.debug(
            "Loaded %d tasks (out of %d total tasks).",
            len(new_data.tasks),
            len(data.tasks),
        )

        extra_uuids = [
            extra for task in new_data.tasks.values() for extra in task.extra_uuids()
        ]

        def owned(task_uuid: uuid_mod.UUID) -> Task:
            task = data.get_owned(task_uuid)
            if task is None:
                raise LookupError(f"Could not find task with uuid {task_uuid}")
            return task

        if props is not None:
            for identifier in props.referenced_tasks():
                if isinstance(identifier, uuid_mod.UUID):
                    task_uuid = identifier
                else:
                    try:
                        task_uuid = id_to_uuid[identifier]
                    except KeyError:
                        raise LookupError(
                            f"Could not find task with id {identifier}"
                        ) from None
                logger.debug("Adding extra task with uuid %s from properties", task_uuid)
                new_data.insert_extra_task(owned(task_uuid))

        for extra in extra_uuids:
            task = owned(extra)
            logger.debug("Adding extra task with id %s and uuid %s", task.id, extra)
            new_data.insert_extra_task(task)

        return new_data

    def write_tasks(self, data: TaskData) -> TaskData:
        """Merge ``data`` into the stored tasks, write them and return the result."""
        stored = self.load_tasks()
        for task in data.tasks.values():
            stored.set_task(task)
        stored.upkeep()

        content = json.dumps(stored.to_json_list(), indent=2)
        try:
            data_file = self.find_data_file()
        except FileNotFoundError:
            create_path_if_not_exist(self._locate(DATA_FILENAME, False))
            data_file = self.find_data_file()
        Path(data_file).write_text(content, encoding="utf-8")
        return stored

    def load_undos(self, last_count: int) -> list[Any]:
        """Return the last ``last_count`` undo records, oldest first."""
        try:
            logged_file = self.find_logged_file()
        except FileNotFoundError:
            return []
        undos = json.loads(Path(logged_file).read_text(encoding="utf-8"))
        if last_count >= len(undos):
            return list(undos)
        return undos[len(undos) - last_count:]

    def log_undo(self, count: int, updated_undos: Iterable[Any]) -> None:
        """Replace the last ``count`` undo records with ``updated_undos``."""
        try:
            logged_file = self.find_logged_file()
        except FileNotFoundError:
            create_path_if_not_exist(self._locate(LOGGED_TASKS_FILENAME, False))
            logged_file = self.find_logged_file()

        content = Path(logged_file).read_text(encoding="utf-8")
        undos: list[Any] = json.loads(content) if content else []

        updated = list(updated_undos)
        if len(undos) <= count:
            undos = updated
        else:
            undos[len(undos) - count:] = updated

        Path(logged_file).write_text(json.dumps(undos, indent=2), encoding="utf-8")