# sheetnester/tools/nesting/nesting_controller.py

"""
This module contains the NestingController, which runs nesting jobs in the
background and reports their progress.

Only one run is live at a time. Starting a run supersedes the previous one:
its cancel event is set, it stops at the next generation or part boundary,
and any progress it still emits is dropped.
"""

import logging
import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor

from .nesting_logic import nest

logger = logging.getLogger(__name__)


class NestingRun(object):
    """Handle of one background nesting run."""
    def __init__(self, run_id, future, cancel_event):
        self.run_id = run_id
        self.future = future
        self.cancel_event = cancel_event

    def __repr__(self):
        state = "done" if self.future.done() else "running"
        return f"<NestingRun {self.run_id[:8]} {state}>"

    def cancel(self):
        self.cancel_event.set()

    @property
    def cancelled(self):
        return self.cancel_event.is_set()

    def result(self, timeout=None):
        return self.future.result(timeout=timeout)


class NestingController:
    """
    Handles the core logic of running the nesting algorithm off the calling
    thread. Prepared part geometry is cached across runs.
    """
    def __init__(self, log_callback=None):
        self.log_callback = log_callback
        self.processed_shape_cache = {}
        self.last_result = None
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="nesting")
        self._lock = threading.Lock()
        self._current = None

    def log(self, message, level="info"):
        if self.log_callback:
            self.log_callback(message, level=level)
        else:
            getattr(logger, level, logger.info)(message)

    def start(self, parts, width, height, algorithm='guillotine', progress_callback=None, **kwargs):
        """
        Starts a nesting run in the background and returns its NestingRun.
        Progress and completion are delivered to ``progress_callback`` as
        dicts tagged with the run id.
        """
        cancel_event = threading.Event()
        run_id = uuid.uuid4().hex

        with self._lock:
            if self._current is not None and not self._current.future.done():
                self.log(f"Superseding nesting run {self._current.run_id[:8]}.")
                self._current.cancel()

            def report(message):
                with self._lock:
                    is_current = self._current is not None and self._current.run_id == run_id
                if progress_callback and is_current and not cancel_event.is_set():
                    message = dict(message)
                    message["run_id"] = run_id
                    progress_callback(message)

            future = self._executor.submit(
                self._execute_nesting, run_id, parts, width, height, algorithm, cancel_event, report, kwargs)
            self._current = NestingRun(run_id, future, cancel_event)
            return self._current

    def _execute_nesting(self, run_id, parts, width, height, algorithm, cancel_event, report, kwargs):
        """
        Main method to run the entire nesting process. A run that raises
        reports an ERROR message before the exception reaches the caller of
        wait().
        """
        self.log(f"--- NESTING START ({algorithm}, run {run_id[:8]}) ---")
        start_time = time.time()

        try:
            result = nest(parts, width, height, algorithm=algorithm, update_callback=report,
                          cancel_event=cancel_event, processed_shape_cache=self.processed_shape_cache,
                          log_callback=self.log_callback, **kwargs)
        except Exception as e:
            self.log(f"--- NESTING FAILED (run {run_id[:8]}): {e} ---", level="error")
            report({"type": "ERROR", "message": f"{type(e).__name__}: {e}"})
            raise

        elapsed = time.time() - start_time
        self.log(f"--- NESTING DONE in {elapsed:.2f}s: {len(result.placed)} placed, "
                 f"{len(result.failed)} failed, {result.total_bins} sheet(s) ---")
        if not cancel_event.is_set():
            self.last_result = result
        report({"type": "DONE", "cancelled": cancel_event.is_set(), "result": result.to_dict()})
        return result

    def cancel(self):
        with self._lock:
            if self._current is not None:
                self._current.cancel()

    def wait(self, timeout=None):
        """Blocks until the current run finishes and returns its NestingResult."""
        with self._lock:
            current = self._current
        if current is None:
            return None
        return current.result(timeout=timeout)

    def is_running(self):
        with self._lock:
            return self._current is not None and not self._current.future.done()

    def shutdown(self, wait=True):
        self.cancel()
        self._executor.shutdown(wait=wait)
