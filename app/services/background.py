import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

from app.config.settings import settings

logger = logging.getLogger(__name__)


class BackgroundTaskRunner:
    """
    Bounded pool for fire-and-forget work

    submit() blocks while max_pending jobs are queued or running, which gives
    callers backpressure instead of an unbounded queue. Job failures are
    logged and never reach the caller.
    """

    def __init__(self, max_workers: int = None, max_pending: int = None, name: str = "background"):
        self.max_workers = max_workers or settings.PROFICIENCY_WORKERS
        self.max_pending = max_pending or settings.PROFICIENCY_MAX_PENDING
        self.name = name
        self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix=name)
        self._slots = threading.BoundedSemaphore(self.max_pending)
        self._idle = threading.Condition()
        self._pending = 0
        self._failed = 0
        logger.info(f"Background runner '{name}' started: {self.max_workers} workers, "
                    f"{self.max_pending} pending slots")

    @property
    def pending(self) -> int:
        with self._idle:
            return self._pending

    @property
    def failed(self) -> int:
        """Number of jobs that raised since start"""
        with self._idle:
            return self._failed

    def submit(self, job_name: str, fn: Callable, *args, **kwargs) -> Future:
        self._slots.acquire()
        with self._idle:
            self._pending += 1
        try:
            return self._executor.submit(self._run, job_name, fn, args, kwargs)
        except RuntimeError:
            self._release()
            raise

    def _run(self, job_name, fn, args, kwargs):
        try:
            fn(*args, **kwargs)
            logger.debug(f"Background job done: {job_name}")
        except Exception:
            with self._idle:
                self._failed += 1
            logger.exception(f"Background job failed: {job_name}")
        finally:
            self._release()

    def _release(self):
        self._slots.release()
        with self._idle:
            self._pending -= 1
            if self._pending == 0:
                self._idle.notify_all()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no job is pending; False on timeout"""
        with self._idle:
            return self._idle.wait_for(lambda: self._pending == 0, timeout=timeout)

    def shutdown(self, wait: bool = True):
        self._executor.shutdown(wait=wait)
        logger.info(f"Background runner '{self.name}' stopped")


_runner: Optional[BackgroundTaskRunner] = None
_runner_guard = threading.Lock()


def get_background_runner() -> BackgroundTaskRunner:
    """Process-wide runner for proficiency updates, created on first use"""
    global _runner
    with _runner_guard:
        if _runner is None:
            _runner = BackgroundTaskRunner(name="proficiency")
        return _runner


def shutdown_background_runner():
    global _runner
    with _runner_guard:
        if _runner is not None:
            _runner.shutdown(wait=True)
            _runner = None
