"""Bounded job pool with immediate slot reuse.

`submit` blocks the caller while every slot is busy and returns as soon as
any running job finishes, so a long encode never holds up the rest of the
queue. The active counter is only changed inside this class, under one
Condition.
"""

import concurrent.futures
import logging
import threading
from typing import Any, Callable, Set


class JobPool:
    def __init__(self, max_slots: int):
        if max_slots < 1:
            raise ValueError("max_slots must be >= 1")
        self.max_slots = max_slots
        self.logger = logging.getLogger(__name__)
        self._active = 0
        self._peak_active = 0
        self._slot_lock = threading.Condition()
        self._futures: Set[concurrent.futures.Future] = set()
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_slots, thread_name_prefix="hevcwatch-job"
        )

    @property
    def active_count(self) -> int:
        with self._slot_lock:
            return self._active

    @property
    def peak_active(self) -> int:
        with self._slot_lock:
            return self._peak_active

    def submit(self, fn: Callable[..., Any], *args: Any) -> concurrent.futures.Future:
        """Waits for a free slot, then starts fn(*args) on a pool thread."""
        with self._slot_lock:
            while self._active >= self.max_slots:
                self._slot_lock.wait()
            self._active += 1
            self._peak_active = max(self._peak_active, self._active)

        try:
            future = self._executor.submit(self._run, fn, *args)
        except Exception:
            self._release()
            raise
        self._futures.add(future)
        return future

    def _run(self, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return fn(*args)
        finally:
            self._release()

    def _release(self):
        with self._slot_lock:
            self._active -= 1
            self._slot_lock.notify_all()

    def drain(self):
        """Blocks until every submitted job has finished."""
        pending = set(self._futures)
        self._futures.clear()
        if not pending:
            return
        concurrent.futures.wait(pending)
        for future in pending:
            exc = future.exception()
            if exc is not None:
                self.logger.error(f"Job raised unexpectedly: {exc}")

    def shutdown(self):
        self._executor.shutdown(wait=True)
