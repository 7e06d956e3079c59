# src/prioqueue/tasks/errors.py


class TaskQueueError(Exception):
    """Base class for task queue errors"""


class TaskNotFoundError(TaskQueueError):
    def __init__(self, task_id: int) -> None:
        super().__init__(f"task {task_id} not found")
        self.task_id = task_id


class IllegalTransitionError(TaskQueueError):
    pass


class ClaimConflictError(IllegalTransitionError):
    """A task was not pending when a worker tried to claim it."""


class MissingHandlerError(TaskQueueError):
    def __init__(self, name: str) -> None:
        super().__init__(f"no handler registered for task type: {name}")
        self.name = name


class HandlerTimeoutError(TaskQueueError):
    def __init__(self, timeout: float) -> None:
        super().__init__(f"task timed out after {timeout:g}s")
        self.timeout = timeout
