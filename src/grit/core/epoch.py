"""Epoch-based staleness control for task results."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from grit.core.errors import InvariantViolation
from grit.core.messages import Task

if TYPE_CHECKING:
    from grit.core.messages import Command, TaskResult

logger = logging.getLogger(__name__)


class ConsistencyController:
    """Stamps tasks with their issuing epoch and filters their results.

    A result is admitted only if the epoch it was issued under is still the
    current epoch when the result arrives. Anything older is dropped: the
    work it did (cache writes included) stands, only its effect on the
    visible state is suppressed.

    Every result must correspond to exactly one outstanding task. A result
    for an unknown or already-answered task is a programming error; with
    ``strict`` it raises :class:`InvariantViolation`, otherwise it is logged
    and dropped.
    """

    def __init__(self, *, strict: bool = True) -> None:
        self._strict = strict
        self._outstanding: dict[int, Task] = {}
        self.discarded = 0

    def issue(self, command: Command, epoch: int) -> Task:
        task = Task(command=command, epoch=epoch)
        self._outstanding[task.task_id] = task
        return task

    def admit(self, result: TaskResult, current_epoch: int) -> bool:
        """Return True if ``result`` should be applied to state."""
        task = self._outstanding.pop(result.task_id, None)
        if task is None:
            self._violation(f"result for unknown task {result.task_id}: {result!r}")
            return False
        if task.epoch != result.epoch:
            self._violation(
                f"task {task.task_id} issued at epoch {task.epoch} reported epoch {result.epoch}"
            )
            return False
        if result.epoch != current_epoch:
            self.discarded += 1
            logger.debug(
                "Discarding stale result of task %d (epoch %d, current %d)",
                result.task_id,
                result.epoch,
                current_epoch,
            )
            return False
        return True

    @property
    def outstanding(self) -> int:
        return len(self._outstanding)

    def pending_tasks(self) -> tuple[Task, ...]:
        return tuple(self._outstanding.values())

    def _violation(self, detail: str) -> None:
        logger.error("Invariant violated: %s", detail)
        if self._strict:
            raise InvariantViolation(detail)
