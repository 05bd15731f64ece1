"""
Worker model for ingestion.

Placement work is submitted to a process pool and never runs in the
caller's process. Work that needs a caller-owned object (an open stream
cannot be pickled) goes to a thread pool instead.

Every submission returns a Future. Callers either wait on it, or detach
from it; a detached task that fails is logged, not raised, because the
caller has already moved on.
"""

import threading
from concurrent.futures import Future, ProcessPoolExecutor, ThreadPoolExecutor
from concurrent.futures.process import BrokenProcessPool
from dataclasses import dataclass

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Ingestion:
    """An identifier together with the task storing its content."""
    identifier: str
    future: Future

    def wait(self, timeout: float | None = None) -> str:
        """
        Block until the content is stored.

        Returns:
            The identifier.

        Raises:
            Whatever the storing task raised.
        """
        self.future.result(timeout)
        return self.identifier

    @property
    def done(self) -> bool:
        return self.future.done()


class WorkerPool:
    """
    Lazily created process and thread executors shared by one FilePool.

    Args:
        max_workers: Process pool size. None lets the executor decide.
    """

    def __init__(self, max_workers: int | None = None):
        self.max_workers = max_workers
        self._processes: ProcessPoolExecutor | None = None
        self._threads: ThreadPoolExecutor | None = None
        self._lock = threading.Lock()
        self._closed = False

    def _process_pool(self) -> ProcessPoolExecutor:
        with self._lock:
            if self._closed:
                raise RuntimeError("WorkerPool is closed")
            if self._processes is None:
                self._processes = ProcessPoolExecutor(max_workers=self.max_workers)
            return self._processes

    def _thread_pool(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._closed:
                raise RuntimeError("WorkerPool is closed")
            if self._threads is None:
                self._threads = ThreadPoolExecutor(thread_name_prefix="filepool")
            return self._threads

    def submit(self, fn, *args) -> Future:
        """
        Run a picklable function in a worker process.

        A process pool left broken by a crashed worker is replaced, so one
        killed task does not fail every later submission.
        """
        executor = self._process_pool()
        try:
            return executor.submit(fn, *args)
        except BrokenProcessPool:
            logger.warning("Worker process pool broken, starting a new one")
            self._discard(executor)
            return self._process_pool().submit(fn, *args)

    def _discard(self, executor: ProcessPoolExecutor) -> None:
        with self._lock:
            if self._processes is executor:
                self._processes = None
        executor.shutdown(wait=False)

    def submit_local(self, fn, *args) -> Future:
        """Run a function on a worker thread of this process."""
        return self._thread_pool().submit(fn, *args)

    def detach(self, ingestion: Ingestion) -> None:
        """Stop caring about a task's result, logging it if it fails."""
        def _report(future: Future) -> None:
            if future.cancelled():
                logger.warning("Background ingestion cancelled", identifier=ingestion.identifier)
                return
            error = future.exception()
            if error is not None:
                logger.error(
                    "Background ingestion failed",
                    identifier=ingestion.identifier,
                    error=str(error),
                    error_type=type(error).__name__,
                )

        ingestion.future.add_done_callback(_report)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work. With wait=True, let running tasks finish first."""
        with self._lock:
            self._closed = True
            executors = [e for e in (self._processes, self._threads) if e is not None]
        for executor in executors:
            executor.shutdown(wait=wait)
