# beetasks

A small task-tracking library. It models tasks with statuses, tags, projects,
annotations, due dates and dependencies. It keeps a history of every change and
scores tasks by urgency. Tasks are stored as JSON on disk.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

### `beetasks.task`

This module holds the data model.

- `TaskStatus` has four values: `PENDING`, `ACTIVE`, `COMPLETED` and `DELETED`.
  `TaskStatus.from_string` parses a status name without regard to case. It raises
  `ValueError("Invalid task status name")` for any other name.
- `Project`, `TaskAnnotation` and `TaskHistory` are small immutable records.
- `TaskProperties` describes changes a user can make to a task. These include
  the summary, tags to remove and tags to add, the status, the active/stopped
  state, the project, the due date, annotations and dependencies. A dependency
  is either an integer task id or a `uuid.UUID`.
- `Task` is a single task. It offers these methods:
  - `apply(props, coefficients)` applies a `TaskProperties` and records each
    change in `history`. Tags are removed first, then added. Starting a task
    that is not pending raises `ValueError`, and so does stopping a task that
    is not active. An empty `depends_on` list clears every dependency. The
    dependencies must already be UUIDs.
  - `get_urgency` and `compute_urgency` score a task from a list of
    `Coefficient(field, coefficient, value=None)` entries. The fields are
    `tag`, `depends`, `blocking` and `active_status`. Any other field raises
    `ValueError`. A `tag` coefficient is added when its tag is on the task; it
    is always added when it has no value. By default each blocked task adds 1,
    each dependency adds -1, and an active task adds 10. A due date adds the
    number of whole days left until it.
  - `done()` and `delete()` change the status and clear the id and the urgency.
  - `extra_uuids()` returns the UUIDs that the task depends on or blocks.
  - `get_field(name)` returns one serialised field. It raises `KeyError` for an
    unknown name.
  - `to_dict()` and `Task.from_dict()` convert a task to and from its JSON
    form.
  - Tasks sort by urgency, lowest first. Tasks without an urgency come after
    the others. Ties are broken by creation date.

### `beetasks.taskdata`

This module holds `TaskData`, the collection of tasks keyed by UUID.

- `add_task(props, status)` creates a task. A status set in the properties
  overrides `status`. Open tasks get the next id. A task with no summary raises
  `ValueError`.
- `resolve_depends_on(props)` returns a copy of the properties in which
  integer ids are replaced by UUIDs. An unknown id raises `ValueError`.
- `apply(task_uuid, props)` resolves the dependencies and then applies the
  properties to the task.
- `task_done(uuid)` and `task_delete(uuid)` mark a task as done or deleted.
- `upkeep()` does the following:
  - It numbers open tasks from 1 in order of creation.
  - It recomputes the urgencies.
  - It drops dependencies on tasks that are completed or deleted.
  - It keeps each task's `blocking` list consistent with the tasks that depend
    on it.
- `filter(predicate)` returns a copy that holds only the tasks matching
  `predicate`. The tasks those tasks depend on or block are kept in
  `extra_tasks`.
- `to_json_list()` and `TaskData.from_json_list()` serialise the collection as
  a list ordered by creation date.

### `beetasks.storage`

- `locate_file(filename, find_file_only, env, exists)` decides where
  `bee-data.json` (tasks) or `bee-logged-tasks.json` (undo log) is stored. Any
  other file name raises `ValueError`. When `find_file_only` is set, the file
  must exist, otherwise `FileNotFoundError` is raised. The places are tried in
  this order:
  1. `$BEE_DATA_HOME/<file>`, if `BEE_DATA_HOME` is set. No other place is
     searched in that case.
  2. `$XDG_DATA_HOME/bee/<file>`
  3. `$HOME/.local/share/bee/<file>`
  4. `<file>` in the current directory.
- `create_path_if_not_exist(path)` creates the parent directories and creates
  or truncates the file.
- `JsonStore(env=None, exists=None, coefficients=None)` reads and writes the
  files. It offers these methods:
  - `load_tasks(predicate, props)` loads the tasks and runs `upkeep`. If a
    predicate is given, it keeps only the matching tasks. It also loads the
    tasks those tasks refer to, and the tasks referenced by `props`, as
    extras.
  - `write_tasks(data)` merges `data` into the stored tasks, writes the file
    and returns the result.
  - `load_undos(last_count)` returns the last undo records.
  - `log_undo(count, updated_undos)` replaces the last `count` undo records.

## Example

```python
from beetasks.task import TaskProperties, TaskStatus
from beetasks.storage import JsonStore

store = JsonStore()
data = store.load_tasks(None, None)
props = TaskProperties(summary="Write the report", tags_add=["work"])
data.add_task(props, TaskStatus.PENDING)
store.write_tasks(data)
```

## What it does not do

- There is no command-line program.
- There is no parser for task or filter expressions typed by a user. Build
  `TaskProperties` in code, and select tasks with any Python predicate that
  takes a `Task`.
- No configuration file is read. Urgency coefficients are passed in as
  `Coefficient` objects.
- Undo records are stored and returned as plain JSON values. Nothing here
  interprets them or replays them.