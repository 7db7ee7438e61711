class TaskboardError(Exception):
    """Base class for errors raised by the domain layer."""


class TaskValidationError(TaskboardError):
    """A field violates its length or enum constraint."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TaskNotFound(TaskboardError):
    """No task with that id is owned by the caller (or the id is malformed)."""

    def __init__(self, task_id):
        super().__init__(f"Task {task_id!r} not found")
        self.task_id = task_id
