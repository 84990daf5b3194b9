"""
Cleanup scheduler - runs recording and event cleanup at a fixed interval.

Owned by the application's composition root; nothing starts it on import.
"""

import threading
import time
from typing import Callable, Dict, Optional

from util.logging import logger

from .dao import RetentionStore


class CleanupScheduler:
    """Runs both cleanup passes once at start, then every interval until stopped."""

    def __init__(self, store: RetentionStore, interval_sec: Optional[float] = None,
                 poll_sec: float = 1.0):
        self.store = store
        self.interval_sec = interval_sec if interval_sec is not None else store.settings.cleanup_interval_seconds
        self.poll_sec = min(poll_sec, self.interval_sec)
        self.tasks: Dict[str, Dict] = {}  # task_name -> {func, interval, last_run}
        self.running = False
        self.shutdown_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None
        self._pass_lock = threading.RLock()
        self.last_results: Dict[str, object] = {}

        self.register_task("recordings_cleanup", self.interval_sec, store.cleanup_expired_recordings)
        self.register_task("events_cleanup", self.interval_sec, store.cleanup_expired_events)

    def register_task(self, name: str, interval_sec: float, func: Callable):
        """Register a task to be executed periodically."""
        if not callable(func):
            raise ValueError(f"Task function must be callable: {func}")

        if interval_sec <= 0:
            raise ValueError(f"Interval must be > 0 seconds: {interval_sec}")

        self.tasks[name] = {
            "func": func,
            "interval": interval_sec,
            "last_run": None
        }

    def list_tasks(self):
        """Return list of registered task names."""
        return list(self.tasks.keys())

    def start(self) -> Callable[[], None]:
        """Run an initial pass, then keep running on a daemon thread.

        Returns the cancellation handle.
        """
        if self.running:
            raise RuntimeError("Cleanup scheduler already running")

        self.running = True
        self.shutdown_event = threading.Event()

        logger.log_operation("scheduler.start", "running", {
            "interval_sec": self.interval_sec,
            "tasks": self.list_tasks()
        })

        # Initial pass happens before start() returns, including on a restart
        for name in self.list_tasks():
            self.reset_task(name)
        self._run_due_tasks()

        self._thread = threading.Thread(target=self._loop, name="cleanup-scheduler", daemon=True)
        self._thread.start()
        return self.stop

    def _loop(self):
        try:
            while self.running and not self.shutdown_event.wait(self.poll_sec):
                self._run_due_tasks()
        finally:
            self.running = False

    def stop(self):
        """Stop the scheduler; no task runs after this returns, except one already in flight."""
        if not self.running:
            return

        self.running = False
        if self.shutdown_event:
            self.shutdown_event.set()

        # In-flight passes are synchronous and finish before the lock is released
        with self._pass_lock:
            pass

        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=self.poll_sec + 1.0)

        logger.log_operation("scheduler.stop", "stopped", {"tasks": self.list_tasks()})

    def run_once(self) -> Dict[str, object]:
        """Run every task immediately, regardless of schedule."""
        with self._pass_lock:
            for name, task_info in self.tasks.items():
                self._run_isolated(name, task_info)
            return dict(self.last_results)

    def _run_due_tasks(self):
        with self._pass_lock:
            if not self.running:
                return
            for name, task_info in self.tasks.items():
                if self.should_run_task(name, task_info):
                    self._run_isolated(name, task_info)

    def _run_isolated(self, name: str, task_info: Dict):
        try:
            self.run_task(name, task_info)
        except Exception as e:
            # Error isolation - the next tick retries
            logger.error(f"Cleanup task '{name}' failed: {e}")

    def should_run_task(self, name: str, task_info: Dict) -> bool:
        """Check if a task should run this cycle."""
        if task_info["last_run"] is None:
            return True  # Run immediately if never run

        elapsed = time.monotonic() - task_info["last_run"]
        return elapsed >= task_info["interval"]

    def run_task(self, name: str, task_info: Dict):
        """Execute a task and record timing."""
        start_time = time.monotonic()

        try:
            result = task_info["func"]()
        except Exception as e:
            end_time = time.monotonic()
            # A failed task waits for its next interval like a successful one
            task_info["last_run"] = end_time
            logger.log_scheduler_task(name, start_time, end_time, status="failed",
                                      details={"error": str(e)[:200]})
            raise RuntimeError(f"Task '{name}' failed after {end_time - start_time:.2f}s: {e}") from e

        end_time = time.monotonic()
        task_info["last_run"] = end_time
        self.last_results[name] = result.to_dict() if hasattr(result, "to_dict") else result
        logger.log_scheduler_task(name, start_time, end_time)

    def reset_task(self, name: str):
        """Reset a task's last_run time to force execution on the next tick."""
        if name in self.tasks:
            self.tasks[name]["last_run"] = None

    def get_status(self):
        """Return current scheduler status for monitoring."""
        return {
            "status": "running" if self.running else "stopped",
            "interval_sec": self.interval_sec,
            "tasks": {
                name: {
                    "interval_sec": info["interval"],
                    "last_run": info["last_run"],
                    "next_run": info["last_run"] + info["interval"] if info["last_run"] else None
                }
                for name, info in self.tasks.items()
            },
            "last_results": dict(self.last_results)
        }
