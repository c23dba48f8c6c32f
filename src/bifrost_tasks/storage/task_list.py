# src/bifrost_tasks/storage/task_list.py

from __future__ import annotations

import contextlib
import json
import logging
import os
from pathlib import Path

from ..core.models import Task

logger = logging.getLogger(__name__)


class TaskList:
    """
    JSON-file task list used by the CLI as the owner of local tasks.

    It is the task accessor handed to the sync scheduler and the sink for
    instances generated by the recurrence monitor. Writes are atomic
    (tmp file + os.replace); load failures start from an empty list.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._tasks: dict[str, Task] = {t.id: t for t in self._load()}

    def _load(self) -> list[Task]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text("utf-8"))
        except (OSError, ValueError):
            logger.exception("Failed to load tasks from %s", self._path)
            return []
        if not isinstance(data, list):
            logger.warning("Task file %s is not a list; ignoring", self._path)
            return []
        out = [Task.from_dict(item) for item in data if isinstance(item, dict) and item.get("id")]
        logger.info("Loaded %d task(s) from %s", len(out), self._path)
        return out

    def save(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(".tmp")
            payload = [t.to_dict() for t in self._tasks.values()]
            tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), "utf-8")
            os.replace(tmp, self._path)
            with contextlib.suppress(Exception):
                os.chmod(self._path, 0o600)
        except OSError:
            logger.exception("Failed to save tasks to %s", self._path)

    def all(self) -> list[Task]:
        return list(self._tasks.values())

    def get(self, task_id: str) -> Task | None:
        return self._tasks.get(task_id)

    def add(self, task: Task) -> None:
        self._tasks[task.id] = task
        self.save()

    def complete(self, task_id: str) -> Task | None:
        task = self._tasks.get(task_id)
        if task is None or task.completed:
            return None
        task.completed = True
        self.save()
        return task

    def remove(self, task_id: str) -> Task | None:
        task = self._tasks.pop(task_id, None)
        if task is not None:
            self.save()
        return task

    def __len__(self) -> int:
        return len(self._tasks)
