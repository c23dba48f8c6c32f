# tests/test_task_list.py

from __future__ import annotations

import json
from pathlib import Path

from bifrost_tasks.core.models import Task
from bifrost_tasks.storage.task_list import TaskList

from .fakes import make_task


def test_add_complete_remove_persist(tmp_path: Path) -> None:
    path = tmp_path / "tasks.json"
    tasks = TaskList(path)
    tasks.add(make_task("t1", text="Buy milk", tags=["shop"], recurring_pattern_id="p1", is_recurring=True))
    tasks.add(make_task("t2", due_date=None))

    assert tasks.complete("t1") is not None
    assert tasks.complete("t1") is None
    assert tasks.complete("missing") is None
    assert tasks.remove("t2") is not None

    raw = json.loads(path.read_text("utf-8"))
    assert raw[0]["dueDate"] == "2025-12-01"
    assert raw[0]["recurringPatternId"] == "p1"
    assert raw[0]["isRecurring"] is True

    reloaded = TaskList(path)
    [task] = reloaded.all()
    assert task.completed
    assert task.tags == ["shop"]
    assert len(reloaded) == 1


def test_corrupt_file_starts_empty(tmp_path: Path) -> None:
    path = tmp_path / "tasks.json"
    path.write_text("{not json", "utf-8")
    assert TaskList(path).all() == []

    path.write_text('{"id": "t1"}', "utf-8")
    assert TaskList(path).all() == []


def test_task_from_dict_tolerates_missing_fields() -> None:
    task = Task.from_dict({"id": "x", "text": "Imported", "createdAt": "not-a-date"})
    assert task.due_date is None
    assert task.priority == "normal"
    assert task.recurring_pattern_id is None
    assert not task.is_recurring
