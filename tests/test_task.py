import json
import uuid
from datetime import datetime, timedelta

import pytest

from beetasks.task import (
    Coefficient,
    Project,
    Task,
    TaskAnnotation,
    TaskHistory,
    TaskProperties,
    TaskStatus,
)


def setup_task():
    return Task(
        id=1,
        status=TaskStatus.PENDING,
        summary="Initial summary",
        tags=["initial_tag1", "initial_tag2"],
    )


@pytest.mark.parametrize(
    "text, expected",
    [
        ("pending", TaskStatus.PENDING),
        ("completed", TaskStatus.COMPLETED),
        ("deleted", TaskStatus.DELETED),
        ("PeNdiNg", TaskStatus.PENDING),
        ("CoMplEted", TaskStatus.COMPLETED),
        ("DelEtEd", TaskStatus.DELETED),
        ("active", TaskStatus.ACTIVE),
    ],
)
def test_task_status_from_str(text, expected):
    assert TaskStatus.from_string(text) is expected


def test_task_status_invalid():
    with pytest.raises(ValueError, match="Invalid task status name"):
        TaskStatus.from_string("invalid")


def test_task_status_display():
    assert str(TaskStatus.COMPLETED) == "completed"
    assert str(Project("a.b")) == "a.b"


def test_apply_active():
    props = TaskProperties(active_status=True)
    task = setup_task()
    assert task.history == []
    task.apply(props)
    assert task.status is TaskStatus.ACTIVE
    assert task.history

    for status in (TaskStatus.DELETED, TaskStatus.COMPLETED):
        task = Task(status=status)
        with pytest.raises(ValueError):
            task.apply(props)
        assert task.status is status

    task = Task(status=TaskStatus.ACTIVE)
    with pytest.raises(ValueError):
        task.apply(props)
    assert task.status is TaskStatus.ACTIVE
    assert task.history == []


def test_apply_stop():
    props = TaskProperties(active_status=False)
    task = Task(status=TaskStatus.ACTIVE)
    task.apply(props)
    assert task.status is TaskStatus.PENDING
    assert task.history

    for status in (TaskStatus.DELETED, TaskStatus.COMPLETED):
        task = Task(status=status)
        with pytest.raises(ValueError):
            task.apply(props)
        assert task.status is status

    task = Task(status=TaskStatus.PENDING)
    with pytest.raises(ValueError):
        task.apply(props)
    assert task.status is TaskStatus.PENDING
    assert task.history == []


def test_apply_project():
    task = setup_task()
    project = Project("a.b.c")
    task.apply(TaskProperties(project=project))
    assert task.project == project
    assert task.history


def test_apply_summary():
    task = setup_task()
    task.apply(TaskProperties(summary="New summary"))
    assert task.summary == "New summary"
    assert task.history


def test_apply_status():
    task = setup_task()
    assert task.status is TaskStatus.PENDING
    task.apply(TaskProperties(status=TaskStatus.COMPLETED))
    assert task.status is TaskStatus.COMPLETED
    assert task.history


def test_apply_tags_add():
    task = setup_task()
    task.apply(TaskProperties(tags_add=["new_tag"]))
    assert sorted(task.tags) == ["initial_tag1", "initial_tag2", "new_tag"]
    assert task.history

    task = setup_task()
    task.apply(TaskProperties(tags_add=["initial_tag1"]))
    assert task.history == []
    assert sorted(task.tags) == ["initial_tag1", "initial_tag2"]

    task = setup_task()
    task.apply(TaskProperties(tags_add=["initial_tag1", "new_tag"]))
    assert task.history
    assert "new_tag" in task.history[0].value


def test_apply_tags_remove():
    task = setup_task()
    task.apply(TaskProperties(tags_remove=["initial_tag2"]))
    assert task.tags == ["initial_tag1"]
    assert "initial_tag2" in task.history[0].value

    task = setup_task()
    task.apply(TaskProperties(tags_remove=["not_a_tag"]))
    assert task.history == []


def test_apply_annotation():
    task = setup_task()
    assert task.annotations == []
    task.apply(TaskProperties(annotation="hello there"))
    assert task.annotations[0].value == "hello there"
    assert task.history


def test_apply_annotations_replaces_list():
    task = setup_task()
    task.apply(TaskProperties(annotation="first"))
    replacement = [TaskAnnotation(value="only")]
    task.apply(TaskProperties(annotations=replacement))
    assert [a.value for a in task.annotations] == ["only"]


def test_apply_combined():
    task = setup_task()
    task.apply(
        TaskProperties(
            summary="Updated summary",
            tags_remove=["initial_tag1"],
            tags_add=["additional_tag"],
        )
    )
    assert task.history
    assert task.summary == "Updated summary"
    assert task.tags == ["initial_tag2", "additional_tag"]


def test_apply_no_change():
    task = setup_task()
    task.apply(TaskProperties())
    assert task.history == []
    assert task.summary == "Initial summary"
    assert task.tags == ["initial_tag1", "initial_tag2"]


def test_apply_depends_on():
    task = setup_task()
    uuid_1 = uuid.uuid4()
    uuid_2 = uuid.uuid4()
    props = TaskProperties(depends_on=[uuid_1])

    task.apply(props)
    assert task.depends_on == [uuid_1]
    assert len(task.history) == 1
    task.apply(props)
    assert len(task.history) == 1
    assert task.depends_on == [uuid_1]

    props.depends_on = [uuid_1, uuid_2]
    task.apply(props)
    assert len(task.depends_on) == 2
    assert set(task.depends_on) == {uuid_1, uuid_2}


def test_apply_depends_on_empty_clears():
    task = setup_task()
    task.apply(TaskProperties(depends_on=[uuid.uuid4()]))
    task.apply(TaskProperties(depends_on=[]))
    assert task.depends_on == []


def test_apply_depends_on_unresolved_id_raises():
    task = setup_task()
    with pytest.raises(ValueError):
        task.apply(TaskProperties(depends_on=[3]))


def test_properties_depends_helpers():
    props = TaskProperties()
    assert props.referenced_tasks() == []
    ident = uuid.uuid4()
    props.add_depends_on(6)
    props.add_depends_on(ident)
    assert props.referenced_tasks() == [6, ident]


def test_sort_tasks():
    now = datetime.now().astimezone()
    today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if today_start == now:
        now = now + timedelta(seconds=1)

    cases = [
        (2, 1),
        (2, 2),
        (None, 2),
        (None, None),
    ]
    for urgency_second, urgency_first in cases:
        tasks = [
            Task(id=2, urgency=urgency_second, date_created=now),
            Task(id=1, urgency=urgency_first, date_created=today_start),
        ]
        tasks.sort()
        assert [t.id for t in tasks] == [1, 2]


def test_compute_urgency_defaults():
    task = Task(
        status=TaskStatus.PENDING,
        blocking=[uuid.uuid4()],
        depends_on=[uuid.uuid4(), uuid.uuid4()],
    )
    assert task.compute_urgency() == -1
    active = Task(status=TaskStatus.ACTIVE)
    assert active.compute_urgency() == 10


def test_compute_urgency_coefficients():
    task = Task(
        status=TaskStatus.ACTIVE,
        tags=["work"],
        blocking=[uuid.uuid4()],
        depends_on=[uuid.uuid4()],
    )
    coefficients = [
        Coefficient("tag", 5, "work"),
        Coefficient("tag", 100, "home"),
        Coefficient("tag", 2),
        Coefficient("blocking", 3),
        Coefficient("depends", -4),
        Coefficient("active_status", 1),
    ]
    assert task.compute_urgency(coefficients) == 5 + 2 + 3 - 4 + 1
    assert task.urgency == 7


def test_compute_urgency_due_date():
    due = datetime.now().astimezone() + timedelta(days=3, hours=1)
    task = Task(date_due=due)
    assert task.compute_urgency() == 3


def test_compute_urgency_invalid_field():
    task = Task()
    with pytest.raises(ValueError, match="not a valid 'field' name"):
        task.compute_urgency([Coefficient("colour", 1)])


def test_get_urgency_uses_cache():
    task = Task(urgency=42)
    assert task.get_urgency() == 42
    fresh = Task(status=TaskStatus.ACTIVE)
    assert fresh.get_urgency() == 10


def test_extra_uuids_sorted_and_unique():
    a, b, c = sorted(uuid.uuid4() for _ in range(3))
    task = Task(depends_on=[c, a], blocking=[a, b])
    assert task.extra_uuids() == [a, b, c]


def test_done_and_delete():
    task = Task(id=3, urgency=4)
    task.done()
    assert task.status is TaskStatus.COMPLETED
    assert task.id is None and task.urgency is None
    assert task.date_completed == task.history[-1].time

    task = Task(id=3, urgency=4)
    task.delete()
    assert task.status is TaskStatus.DELETED
    assert task.id is None
    assert task.history[-1].value == "Deleted task."


def test_get_field():
    task = setup_task()
    assert task.get_field("summary") == "Initial summary"
    assert task.get_field("status") == "Pending"
    with pytest.raises(KeyError):
        task.get_field("nope")


def test_round_trip_dict():
    task = setup_task()
    task.apply(
        TaskProperties(
            annotation="note",
            project=Project("p.a"),
            depends_on=[uuid.uuid4()],
            date_due=datetime.now().astimezone() + timedelta(days=1),
        )
    )
    encoded = json.loads(json.dumps(task.to_dict()))
    assert Task.from_dict(encoded) == task


def test_from_dict_defaults_and_long_fraction():
    data = {
        "uuid": "00000000-0000-0000-0000-000000000001",
        "date_created": "2023-05-25T21:25:24.899710123+02:00",
        "status": "Completed",
        "summary": "task1",
        "sub": [],
        "tags": [],
    }
    task = Task.from_dict(data)
    assert task.uuid == uuid.UUID("00000000-0000-0000-0000-000000000001")
    assert task.status is TaskStatus.COMPLETED
    assert task.id is None
    assert task.date_created.microsecond == 899710
    assert task.depends_on == [] and task.history == []


def test_from_dict_missing_field():
    with pytest.raises(ValueError, match="summary"):
        Task.from_dict(
            {
                "uuid": "00000000-0000-0000-0000-000000000001",
                "date_created": "2023-05-25T21:25:24+02:00",
                "status": "Pending",
                "sub": [],
                "tags": [],
            }
        )


def test_history_entry_round_trip():
    entry = TaskHistory(value="Deleted task.")
    assert TaskHistory.from_dict(entry.to_dict()) == entry