"""tools/sonar/waiter.py

Block until a Compute Engine task finishes.

State machine
-------------
::

    POLLING --SUCCESS--> SUCCEEDED
    POLLING --ERROR----> FAILED      (GateFailedError)
    POLLING --deadline-> TIMED_OUT   (GateTimeoutError)

Every ``interval`` seconds the waiter issues one status query and waits for it
to return before scheduling the next. Any status other than SUCCESS/ERROR
(PENDING, IN_PROGRESS, CANCELED, unknown) keeps it polling. The deadline is
measured from entry into POLLING and is checked before every query, so a
server that never finishes cannot keep the run alive past it.

Clock and sleep are injectable so tests can simulate five minutes instantly.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from qualitygate.domain import TASK_SUCCESS, AnalysisTaskRef, TaskInfo
from qualitygate.errors import GateFailedError, GateTimeoutError

from .api import fetch_task
from .transport import SonarHttpClient

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.5
DEFAULT_WAIT_TIMEOUT = 300.0

STATE_IDLE = "IDLE"
STATE_POLLING = "POLLING"
STATE_SUCCEEDED = "SUCCEEDED"
STATE_FAILED = "FAILED"
STATE_TIMED_OUT = "TIMED_OUT"


class TaskWaiter:
    """Poll a status source until the task is terminal or the deadline passes."""

    def __init__(
        self,
        fetch_status: Callable[[], TaskInfo],
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float = DEFAULT_WAIT_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        task_id: Optional[str] = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self._fetch_status = fetch_status
        self.interval = interval
        self.timeout = timeout
        self._clock = clock
        self._sleep = sleep
        self.task_id = task_id

        self.state = STATE_IDLE
        self.polls = 0
        self.last_task: Optional[TaskInfo] = None

    def wait(self) -> TaskInfo:
        """Run the state machine to a terminal state.

        Returns the SUCCESS task. Raises GateFailedError or GateTimeoutError.
        Errors from the status source (transport, auth, decode) propagate
        unchanged and leave the waiter in POLLING.
        """
        self.state = STATE_POLLING
        self.polls = 0
        self.last_task = None
        deadline = self._clock() + self.timeout

        while True:
            remaining = deadline - self._clock()
            if remaining <= 0:
                raise self._timed_out()
            self._sleep(min(self.interval, remaining))
            if self._clock() >= deadline:
                raise self._timed_out()

            task = self._fetch_status()
            self.polls += 1
            self.last_task = task
            logger.debug("Task %s poll #%d: %s", task.task_id or self.task_id, self.polls, task.status)

            if not task.is_terminal:
                continue
            if task.status == TASK_SUCCESS:
                self.state = STATE_SUCCEEDED
                logger.info("Task %s finished successfully after %d polls", task.task_id or self.task_id, self.polls)
                return task

            self.state = STATE_FAILED
            detail = f": {task.error_message}" if task.error_message else ""
            raise GateFailedError(
                f"Analysis task {task.task_id or self.task_id} ended in {task.status}{detail}",
                task_id=task.task_id or self.task_id,
            )

    def _timed_out(self) -> GateTimeoutError:
        self.state = STATE_TIMED_OUT
        last = self.last_task.status if self.last_task else None
        return GateTimeoutError(
            f"Timed out after {self.timeout:g}s waiting for task {self.task_id or '?'} "
            f"(last status: {last or 'none'})",
            task_id=self.task_id,
            last_status=last,
        )


def wait_for_task(
    client: SonarHttpClient,
    token: str,
    ref: AnalysisTaskRef,
    *,
    interval: float = DEFAULT_POLL_INTERVAL,
    timeout: float = DEFAULT_WAIT_TIMEOUT,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> TaskInfo:
    """Wait on a ``ce_task`` reference using the Sonar CE task endpoint."""
    waiter = TaskWaiter(
        lambda: fetch_task(client, token, ref),
        interval=interval,
        timeout=timeout,
        clock=clock,
        sleep=sleep,
        task_id=ref.key,
    )
    return waiter.wait()
