"""Background scheduler for periodic jobs (sensor polls, discovery sweeps, retention)."""
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import schedule

logger = logging.getLogger("hwmonitor.scheduler")


class MonitorScheduler:
    """Runs periodic jobs on independent cadences.

    A single loop thread asks ``schedule`` which jobs are due and hands each to
    a worker pool, so a slow job never delays the others. A job that is still
    running when its next tick comes due is skipped for that tick rather than
    stacked.
    """

    def __init__(self, max_workers=8, tick_seconds=0.1):
        self._scheduler = schedule.Scheduler()
        self._executor = None
        self._max_workers = max_workers
        self._tick = tick_seconds
        self._thread = None
        self._running = False
        self._in_flight = set()
        self._lock = threading.Lock()
        self._jobs = {}

    def every(self, name, interval_seconds, func, run_immediately=True):
        """Register ``func`` to run every ``interval_seconds`` under ``name``."""
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        if name in self._jobs:
            raise ValueError(f"Job already registered: {name}")
        job = self._scheduler.every(interval_seconds).seconds.do(self._dispatch, name, func)
        self._jobs[name] = {"job": job, "func": func, "run_immediately": run_immediately}
        logger.debug(f"Registered job {name} every {interval_seconds}s")
        return job

    def cancel(self, name):
        entry = self._jobs.pop(name, None)
        if entry:
            self._scheduler.cancel_job(entry["job"])

    def job_names(self):
        return list(self._jobs)

    def start(self):
        """Start the loop thread and worker pool."""
        if self._running:
            return
        self._running = True
        self._executor = ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="hwmon-job")

        for name, entry in self._jobs.items():
            if entry["run_immediately"]:
                self._dispatch(name, entry["func"])

        self._thread = threading.Thread(target=self._run_loop, name="hwmon-scheduler", daemon=True)
        self._thread.start()
        logger.info(f"Scheduler started ({len(self._jobs)} jobs)")

    def stop(self, wait=True):
        """Stop scheduling; optionally wait for in-flight jobs to finish."""
        self._running = False
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None
        if self._executor:
            self._executor.shutdown(wait=wait)
            self._executor = None
        logger.info("Scheduler stopped")

    @property
    def running(self):
        return self._running

    def _run_loop(self):
        while self._running:
            self._scheduler.run_pending()
            time.sleep(self._tick)

    def _dispatch(self, name, func):
        with self._lock:
            if name in self._in_flight:
                logger.debug(f"Job {name} still running, skipping tick")
                return
            self._in_flight.add(name)
        try:
            self._executor.submit(self._run_job, name, func)
        except RuntimeError:
            # Executor shut down between the due check and submit
            with self._lock:
                self._in_flight.discard(name)

    def _run_job(self, name, func):
        try:
            func()
        except Exception as e:
            logger.exception(f"Job {name} failed: {e}")
        finally:
            with self._lock:
                self._in_flight.discard(name)

    def run_now(self, name):
        """Run a registered job synchronously on the caller's thread."""
        self._jobs[name]["func"]()
