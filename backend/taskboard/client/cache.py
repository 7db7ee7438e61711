"""In-memory mirror of the caller's task collection.

The cache is fed from two independent sources: REST responses (through
``TaskApiClient``) and broadcast events (through ``TaskEventListener``). Both
merge by arrival order; there is no timestamp comparison, so whichever update
lands last wins.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

Task = Dict[str, Any]


def _find(tasks: List[Task], task_id: Any) -> int:
    for index, task in enumerate(tasks):
        if task.get("id") == task_id:
            return index
    return -1


@dataclass
class TaskCache:
    tasks: List[Task] = field(default_factory=list)
    loading: bool = False
    error: Optional[str] = None
    selected_task: Optional[Task] = None

    # request lifecycle

    def pending(self):
        self.loading = True
        self.error = None

    def rejected(self, message: Optional[str], default: str):
        self.loading = False
        self.error = message or default

    def _fulfilled(self):
        self.loading = False
        self.error = None

    # REST merges

    def set_tasks(self, tasks: List[Task]):
        self._fulfilled()
        self.tasks = list(tasks)

    def add_task(self, task: Task):
        self._fulfilled()
        # The broadcast for this task may have landed first.
        index = _find(self.tasks, task.get("id"))
        if index == -1:
            self.tasks.insert(0, task)
        else:
            self.tasks[index] = task

    def replace_task(self, task: Task):
        self._fulfilled()
        index = _find(self.tasks, task.get("id"))
        if index != -1:
            self.tasks[index] = task
        if self.selected_task is not None and self.selected_task.get("id") == task.get("id"):
            self.selected_task = task

    def drop_task(self, task_id: Any):
        self._fulfilled()
        self.tasks = [t for t in self.tasks if t.get("id") != task_id]
        if self.selected_task is not None and self.selected_task.get("id") == task_id:
            self.selected_task = None

    def select_task(self, task: Task):
        self._fulfilled()
        self.selected_task = task

    # plain reducers

    def clear_error(self):
        self.error = None

    def clear_tasks(self):
        self.tasks = []
        self.selected_task = None
        self.error = None

    def set_selected_task(self, task: Optional[Task]):
        self.selected_task = task

    # broadcast merges

    def task_created(self, task: Task):
        if _find(self.tasks, task.get("id")) == -1:
            self.tasks.insert(0, task)

    def task_updated(self, task: Task):
        index = _find(self.tasks, task.get("id"))
        if index != -1:
            self.tasks[index] = task

    def task_deleted(self, task_id: Any):
        self.tasks = [t for t in self.tasks if t.get("id") != task_id]

    def apply_event(self, event: str, data: Dict[str, Any]) -> bool:
        """Merge one broadcast frame. Returns False for frames it does not understand."""
        if event == "task_created" and isinstance(data.get("task"), dict):
            self.task_created(data["task"])
        elif event == "task_updated" and isinstance(data.get("task"), dict):
            self.task_updated(data["task"])
        elif event == "task_deleted" and "taskId" in data:
            self.task_deleted(data["taskId"])
        else:
            return False
        return True
