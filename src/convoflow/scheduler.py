from __future__ import annotations

from collections import deque
from typing import Any, Awaitable, Callable, Generic, Protocol, TypeVar

import anyio

from .logging import get_logger

logger = get_logger(__name__)

J = TypeVar("J")


class TaskGroup(Protocol):
    def start_soon(
        self, func: Callable[..., Awaitable[object]], *args: Any
    ) -> None: ...


class SubjectScheduler(Generic[J]):
    """Runs jobs one at a time per subject, subjects concurrently.

    Each subject with pending work gets a worker task in ``task_group`` that
    drains the subject's queue in arrival order and exits when it is empty.
    """

    def __init__(
        self,
        *,
        task_group: TaskGroup,
        run_job: Callable[[J], Awaitable[None]],
    ) -> None:
        self._task_group = task_group
        self._run_job = run_job
        self._lock = anyio.Lock()
        self._pending_by_subject: dict[int, deque[J]] = {}
        self._active_subjects: set[int] = set()
        self._closed = False
        self._idle = anyio.Event()
        self._idle.set()

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self, subject_id: int) -> int:
        queue = self._pending_by_subject.get(subject_id)
        return len(queue) if queue is not None else 0

    def close(self) -> None:
        self._closed = True

    async def enqueue(self, subject_id: int, job: J) -> bool:
        async with self._lock:
            if self._closed:
                logger.warning("scheduler.closed", subject_id=subject_id)
                return False
            queue = self._pending_by_subject.get(subject_id)
            if queue is None:
                queue = deque()
                self._pending_by_subject[subject_id] = queue
            queue.append(job)
            if subject_id in self._active_subjects:
                return True
            self._active_subjects.add(subject_id)
            if self._idle.is_set():
                self._idle = anyio.Event()
        self._task_group.start_soon(self._subject_worker, subject_id)
        return True

    async def wait_idle(self) -> None:
        await self._idle.wait()

    def _release(self, subject_id: int) -> None:
        self._active_subjects.discard(subject_id)
        if not self._active_subjects:
            self._idle.set()

    async def _subject_worker(self, subject_id: int) -> None:
        try:
            while True:
                async with self._lock:
                    queue = self._pending_by_subject.get(subject_id)
                    if not queue:
                        self._pending_by_subject.pop(subject_id, None)
                        self._release(subject_id)
                        return
                    job = queue.popleft()
                try:
                    await self._run_job(job)
                except Exception as exc:  # noqa: BLE001
                    logger.exception(
                        "scheduler.job_failed",
                        subject_id=subject_id,
                        error=str(exc),
                        error_type=exc.__class__.__name__,
                    )
        finally:
            # must not await: also runs while the worker is being cancelled
            self._release(subject_id)
