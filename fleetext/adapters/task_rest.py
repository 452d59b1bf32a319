"""REST adapter driving a target's asynchronous package-management tasks.

Protocol:
    1. ``POST .../package-management-tasks/`` creates a task, answer has ``id``.
    2. ``GET .../package-management-tasks/{id}`` is polled on a fixed interval
       (first poll immediately) until ``status`` is ``FINISHED`` or ``FAILED``
       or the timeout elapses.
    3. ``DELETE .../package-management-tasks/{id}`` retires a finished task.
       This is best effort; a failed delete never fails the operation.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Any, Callable, Dict, Optional

from fleetext.adapters.api_errors import ApiError, json_object, raise_for_status
from fleetext.adapters.target_access import TargetAccess
from fleetext.domain.errors import TaskFailedError, TaskSubmissionError, TaskTimeoutError
from fleetext.domain.installation import REMOTE_DOWNLOAD_DIR
from fleetext.domain.ports import TaskOperation, TaskPort
from fleetext.domain.targets import Target

TASKS_PATH = "/mgmt/shared/iapp/package-management-tasks"
FINISHED = "FINISHED"
FAILED = "FAILED"


class TaskRestAdapter(TaskPort):
    def __init__(
        self,
        access: TargetAccess,
        *,
        remote_download_dir: str = REMOTE_DOWNLOAD_DIR,
        poll_interval_s: float = 2.0,
        timeout_s: float = 120.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.access = access
        self.remote_download_dir = remote_download_dir.rstrip("/")
        self.poll_interval_s = poll_interval_s
        self.timeout_s = timeout_s
        self._sleep = sleep
        self._clock = clock
        self._log = logging.getLogger(__name__)

    def build_body(self, operation: TaskOperation, payload: Optional[str]) -> Dict[str, str]:
        body = {"operation": operation.value}
        if operation is TaskOperation.INSTALL:
            if not payload:
                raise ValueError("INSTALL requires the staged artifact file name")
            body["packageFilePath"] = f"{self.remote_download_dir}/{payload}"
        elif operation is TaskOperation.UNINSTALL:
            if not payload:
                raise ValueError("UNINSTALL requires a package name")
            body["packageName"] = payload
        return body

    def submit_task(
        self, target: Target, operation: TaskOperation, payload: Optional[str] = None
    ) -> str:
        ctx = f"submit_task[{operation.value}@{target.key}]"
        body = self.build_body(operation, payload)
        try:
            resp = self.access.session_for(target).post(
                self._url(target, f"{TASKS_PATH}/"), json_body=body
            )
            raise_for_status(resp, ctx)
            task = json_object(resp, ctx)
        except ApiError as exc:
            raise TaskSubmissionError(
                f"{operation.value.lower()} request failed on target {target.key}: {exc}"
            ) from exc
        task_id = str(task.get("id") or "").strip()
        if not task_id:
            raise TaskSubmissionError(
                f"{operation.value.lower()} request did not return a task ID: {task}"
            )
        self._log.info("%s task on %s is: %s", operation.value, target.key, task_id)
        return task_id

    def poll_until_done(
        self, target: Target, task_id: str, timeout_s: Optional[float] = None
    ) -> Any:
        timeout = self.timeout_s if timeout_s is None else timeout_s
        session = self.access.session_for(target)
        start = self._clock()
        polls = 0
        while True:
            ctx = f"poll_task[{task_id}@{target.key}]"
            resp = session.get(self._url(target, f"{TASKS_PATH}/{task_id}"))
            raise_for_status(resp, ctx)
            body = json_object(resp, ctx)
            polls += 1
            status = str(body.get("status") or "")
            self._log.info("extension task %s returned status: %s", task_id, status or "<none>")

            if status == FINISHED:
                result = body["queryResponse"] if "queryResponse" in body else body
                self._delete_task(target, task_id)
                return result
            if status == FAILED:
                raise TaskFailedError(f"Task {task_id} failed returning {body}", body=body)

            self._sleep(self.poll_interval_s)
            if self._clock() - start >= timeout:
                raise TaskTimeoutError(
                    f"Task {task_id} did not reach {FINISHED} status after {polls} polls. "
                    f"Instead returned: {body}",
                    polls=polls,
                    body=body,
                )

    def run_task(
        self,
        target: Target,
        operation: TaskOperation,
        payload: Optional[str] = None,
        timeout_s: Optional[float] = None,
    ) -> Any:
        task_id = self.submit_task(target, operation, payload)
        return self.poll_until_done(target, task_id, timeout_s)

    def expected_polls(self, timeout_s: Optional[float] = None) -> int:
        """Number of polls a never-finishing task receives before timing out."""
        timeout = self.timeout_s if timeout_s is None else timeout_s
        return max(1, math.ceil(timeout / self.poll_interval_s))

    def _delete_task(self, target: Target, task_id: str) -> None:
        try:
            resp = self.access.session_for(target).delete(
                self._url(target, f"{TASKS_PATH}/{task_id}")
            )
            raise_for_status(resp, f"delete_task[{task_id}@{target.key}]")
        except ApiError as exc:
            self._log.warning("Could not delete finished task %s: %s", task_id, exc)

    def _url(self, target: Target, path: str) -> str:
        token = self.access.token_for(target)
        return self.access.url_for(target, path, token)


__all__ = ["FAILED", "FINISHED", "TASKS_PATH", "TaskRestAdapter"]
