import logging
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class JobResult(BaseModel):
    value: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _run_job(fn: Callable[..., Any], args: tuple) -> JobResult:
    try:
        return JobResult(value=fn(*args))
    except Exception as e:
        logger.debug(f"Job {getattr(fn, '__name__', fn)} failed: {e}")
        return JobResult(error=str(e) or type(e).__name__)


class WorkerPool:
    """Bounded thread pool with an explicit lifecycle.

    Call start() before submitting and stop() when done; stop() cancels every
    job that has not started yet. A failing job resolves to a JobResult with
    `error` set and never affects its siblings. One pool can serve many
    folders at once.
    """

    def __init__(self, max_workers: int):
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self.max_workers = max_workers
        self._executor: ThreadPoolExecutor | None = None

    @property
    def running(self) -> bool:
        return self._executor is not None

    def start(self) -> "WorkerPool":
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="chartfill-worker")
            logger.info(f"Worker pool started with {self.max_workers} workers")
        return self

    def submit_job(self, fn: Callable[..., Any], *args: Any) -> Future:
        """Schedule fn(*args); the future resolves to a JobResult."""
        if self._executor is None:
            raise RuntimeError("Worker pool has not been started")
        return self._executor.submit(_run_job, fn, args)

    def run_all(self, fn: Callable[..., Any], items: list[Any]) -> list[JobResult]:
        """Run fn over items concurrently and wait for every result, in input order."""
        futures = [self.submit_job(fn, item) for item in items]
        return [future.result() for future in futures]

    def stop(self, wait: bool = False) -> None:
        """Tear down the pool, cancelling pending jobs."""
        if self._executor is None:
            return
        self._executor.shutdown(wait=wait, cancel_futures=True)
        self._executor = None
        logger.info("Worker pool stopped")

    def __enter__(self) -> "WorkerPool":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.stop(wait=True)
