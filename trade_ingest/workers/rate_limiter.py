"""
Rate limiter / scheduler shared by all fetch tasks.

Tasks are submitted to a FIFO queue and a dispatcher thread admits them onto
a worker pool, starting at most `queries` tasks within any window of
`per_seconds`. Admission is the only thing that drives polling: a fetch task
resubmits itself when its cycle is over, and stopping the limiter is what
ends the loop.
"""

import threading
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Deque, Optional, TYPE_CHECKING

from trade_ingest.utils.logging_config import get_logger

if TYPE_CHECKING:
    from trade_ingest.config import Config

logger = get_logger("rate_limiter")

Task = Callable[[], None]


class AdmissionWindow:
    """
    Thread-safe sliding-window admission counter.

    Keeps the start times of the last `queries` admissions; a new admission
    is allowed only when fewer than `queries` of them fall inside the last
    `window_seconds`. Unlike a token bucket there is no burst carry-over, so
    no window of that length ever sees more than `queries` admissions.
    """

    def __init__(
        self,
        queries: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            queries: Admissions allowed per window
            window_seconds: Window length in seconds
            clock: Monotonic time source
        """
        if queries < 1:
            raise ValueError("queries must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        self.queries = queries
        self.window = window_seconds
        self._clock = clock
        self._starts: Deque[float] = deque()
        self._lock = threading.Lock()

    def delay(self) -> float:
        """Seconds until the next admission is allowed (0 if allowed now)."""
        with self._lock:
            return self._delay(self._clock())

    def try_acquire(self) -> bool:
        """Record an admission if one is allowed now."""
        with self._lock:
            now = self._clock()
            if self._delay(now) > 0:
                return False
            self._starts.append(now)
            return True

    def wait(self, stop_event: Optional[threading.Event] = None) -> Optional[bool]:
        """
        Block until an admission would be allowed, without recording one.

        Returns:
            True if had to wait, False if open immediately, None if the wait
            was aborted by stop_event
        """
        return self._await(stop_event, record=False)

    def acquire(self, stop_event: Optional[threading.Event] = None) -> Optional[bool]:
        """
        Block until an admission is allowed and record it.

        Args:
            stop_event: Aborts the wait when set

        Returns:
            True if had to wait, False if admitted immediately, None if the
            wait was aborted by stop_event
        """
        return self._await(stop_event, record=True)

    def _await(self, stop_event: Optional[threading.Event], record: bool) -> Optional[bool]:
        waited = False
        while True:
            if stop_event is not None and stop_event.is_set():
                return None
            with self._lock:
                now = self._clock()
                delay = self._delay(now)
                if delay <= 0:
                    if record:
                        self._starts.append(now)
                    return waited

            waited = True
            if stop_event is not None:
                stop_event.wait(delay)
            else:
                time.sleep(delay)

    def _delay(self, now: float) -> float:
        while self._starts and now - self._starts[0] >= self.window:
            self._starts.popleft()
        if len(self._starts) < self.queries:
            return 0.0
        return self._starts[0] + self.window - now


class RateLimiter:
    """
    Admission-controlled task queue executed on a thread pool.

    - submit() never blocks and accepts the same task any number of times
    - tasks are admitted first-in first-out, so a task that requeues itself
      waits behind every task already queued
    - a task is handed over only when a worker is free, and its start is
      recorded on that worker immediately before it runs, so the window
      bounds actual start times

    Usage:
        limiter = RateLimiter(queries=1, per_seconds=1.0, workers=2)
        limiter.start()
        limiter.submit(task)
        ...
        limiter.stop()
    """

    def __init__(
        self,
        queries: int = 1,
        per_seconds: float = 1.0,
        workers: int = 2,
        config: Optional["Config"] = None,
        name: str = "RateLimiter",
    ):
        """
        Args:
            queries: Task starts allowed per window
            per_seconds: Window length in seconds
            workers: Worker threads executing admitted tasks
            config: Optional Config object to load settings from
            name: Thread name prefix
        """
        if config is not None:
            queries = config.rate_limits.queries
            per_seconds = config.rate_limits.window_seconds
            workers = config.workers.fetch
        if workers < 1:
            raise ValueError("workers must be >= 1")

        self._window = AdmissionWindow(queries, per_seconds)
        self._workers = workers
        self._name = name

        self._pending: Deque[Task] = deque()
        self._condition = threading.Condition()
        self._free_workers = threading.Semaphore(workers)
        self._stop_event = threading.Event()
        self._dispatcher: Optional[threading.Thread] = None
        self._executor: Optional[ThreadPoolExecutor] = None

        self._stats_lock = threading.Lock()
        self._submitted = 0
        self._admitted = 0
        self._throttled = 0
        self._rejected = 0
        self._failed = 0

    @property
    def queries(self) -> int:
        return self._window.queries

    @property
    def per_seconds(self) -> float:
        return self._window.window

    @property
    def is_running(self) -> bool:
        return self._dispatcher is not None and not self._stop_event.is_set()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *args):
        self.stop()

    def start(self) -> None:
        """Start the dispatcher thread and the worker pool."""
        if self._stop_event.is_set():
            raise RuntimeError(f"{self._name} has been stopped and cannot be restarted")
        if self._dispatcher is not None:
            return

        self._executor = ThreadPoolExecutor(
            max_workers=self._workers,
            thread_name_prefix=f"{self._name}-worker",
        )
        self._dispatcher = threading.Thread(
            target=self._dispatch,
            daemon=True,
            name=f"{self._name}-dispatcher",
        )
        self._dispatcher.start()
        logger.info(
            f"Started {self._name}: {self.queries} per {self.per_seconds}s, "
            f"{self._workers} workers"
        )

    def submit(self, task: Task) -> bool:
        """
        Queue a task for execution.

        Returns:
            False if the limiter has been stopped and the task was dropped
        """
        if self._stop_event.is_set():
            with self._stats_lock:
                self._rejected += 1
            logger.debug(f"{self._name} stopped, rejecting {task!r}")
            return False

        with self._condition:
            self._pending.append(task)
            self._condition.notify()
        with self._stats_lock:
            self._submitted += 1
        return True

    def pending_count(self) -> int:
        with self._condition:
            return len(self._pending)

    def stop(self, wait: bool = True, timeout: Optional[float] = None) -> int:
        """
        Stop admitting tasks.

        Queued tasks are dropped and later submissions are rejected, which
        ends every self-requeuing task after its current cycle.

        Args:
            wait: Wait for running tasks to finish
            timeout: Maximum seconds to wait for the dispatcher thread

        Returns:
            Number of queued tasks dropped
        """
        self._stop_event.set()
        with self._condition:
            self._condition.notify_all()

        if self._dispatcher is not None:
            self._dispatcher.join(timeout=timeout)

        with self._condition:
            dropped = len(self._pending)
            self._pending.clear()

        if self._executor is not None:
            self._executor.shutdown(wait=wait)

        logger.info(f"Stopped {self._name}, dropped {dropped} queued tasks")
        return dropped

    def get_stats(self) -> dict:
        """Counters since start (or the last clear_stats)."""
        with self._stats_lock:
            stats = {
                "submitted": self._submitted,
                "admitted": self._admitted,
                "throttled": self._throttled,
                "rejected": self._rejected,
                "failed": self._failed,
            }
        stats["pending"] = self.pending_count()
        return stats

    def clear_stats(self) -> None:
        with self._stats_lock:
            self._submitted = 0
            self._admitted = 0
            self._throttled = 0
            self._rejected = 0
            self._failed = 0

    def _dispatch(self) -> None:
        while not self._stop_event.is_set():
            with self._condition:
                while not self._pending and not self._stop_event.is_set():
                    self._condition.wait()
            if self._stop_event.is_set():
                break

            if not self._acquire_worker():
                break

            waited = self._window.wait(self._stop_event)
            if waited is None:
                self._free_workers.release()
                break

            with self._condition:
                task = self._pending.popleft() if self._pending else None
            if task is None:
                self._free_workers.release()
                continue

            started = threading.Event()
            try:
                self._executor.submit(self._execute, task, started, waited)
            except RuntimeError:
                # Executor already shut down
                self._free_workers.release()
                break
            # The next task is not handed over until this one has
            # recorded its start.
            started.wait()

    def _acquire_worker(self) -> bool:
        while not self._stop_event.is_set():
            if self._free_workers.acquire(timeout=0.05):
                return True
        return False

    def _execute(self, task: Task, started: threading.Event, throttled: bool) -> None:
        try:
            waited = self._window.acquire(self._stop_event)
            if waited is None:
                logger.debug(f"{self._name} stopped before {task!r} could start")
                return
            with self._stats_lock:
                self._admitted += 1
                if throttled or waited:
                    self._throttled += 1
            started.set()
            task()
        except Exception:
            with self._stats_lock:
                self._failed += 1
            logger.exception(f"Task {task!r} raised")
        finally:
            started.set()
            self._free_workers.release()
