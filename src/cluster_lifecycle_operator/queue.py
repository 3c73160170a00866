"""Deduplicating work queue and the worker pool draining it.

A key is never reconciled by two workers at once: a key added while it is
being processed is marked dirty and queued again once processing finishes.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from collections import deque
from typing import Callable

from .handlers.base import ReconcileResult
from .utils.errors import sanitize_exception

logger = logging.getLogger(__name__)

Key = tuple[str, str]


class WorkQueue:
    """Thread-safe queue of ``(namespace, name)`` keys with delayed and rate-limited adds."""

    def __init__(
        self,
        min_retry_delay: float = 1.0,
        max_retry_delay: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.min_retry_delay = min_retry_delay
        self.max_retry_delay = max_retry_delay
        self._clock = clock
        self._cond = threading.Condition()
        self._queue: deque[Key] = deque()
        self._dirty: set[Key] = set()
        self._processing: set[Key] = set()
        self._failures: dict[Key, int] = {}
        self._delayed: list[tuple[float, int, Key]] = []
        self._seq = itertools.count()
        self._shutting_down = False

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)

    def add(self, key: Key) -> None:
        """Queue ``key`` unless it is already waiting."""
        with self._cond:
            self._add_locked(key)

    def _add_locked(self, key: Key) -> None:
        if self._shutting_down or key in self._dirty:
            return
        self._dirty.add(key)
        if key in self._processing:
            return
        self._queue.append(key)
        self._cond.notify()

    def add_after(self, key: Key, delay: float) -> None:
        """Queue ``key`` once ``delay`` seconds have passed."""
        if delay <= 0:
            self.add(key)
            return
        with self._cond:
            if self._shutting_down:
                return
            heapq.heappush(self._delayed, (self._clock() + delay, next(self._seq), key))
            self._cond.notify()

    def retry_delay(self, key: Key) -> float:
        """Return the backoff delay the next failure of ``key`` would get."""
        with self._cond:
            failures = self._failures.get(key, 0)
        return min(self.min_retry_delay * 2**failures, self.max_retry_delay)

    def add_rate_limited(self, key: Key) -> None:
        """Queue ``key`` after an exponentially growing per-key delay."""
        delay = self.retry_delay(key)
        with self._cond:
            self._failures[key] = self._failures.get(key, 0) + 1
        self.add_after(key, delay)

    def forget(self, key: Key) -> None:
        """Reset the backoff of ``key``."""
        with self._cond:
            self._failures.pop(key, None)

    def num_requeues(self, key: Key) -> int:
        with self._cond:
            return self._failures.get(key, 0)

    def _promote_due_locked(self) -> float | None:
        now = self._clock()
        while self._delayed and self._delayed[0][0] <= now:
            _, _, key = heapq.heappop(self._delayed)
            self._add_locked(key)
        if self._delayed:
            return self._delayed[0][0] - now
        return None

    def get(self, timeout: float | None = None) -> Key | None:
        """Take the next key, blocking until one is ready.

        Returns:
            The key, or None when the queue shuts down or ``timeout`` expires
        """
        with self._cond:
            deadline = None if timeout is None else self._clock() + timeout
            while True:
                next_due = self._promote_due_locked()
                if self._queue:
                    key = self._queue.popleft()
                    self._processing.add(key)
                    self._dirty.discard(key)
                    return key
                if self._shutting_down:
                    return None
                wait = next_due
                if deadline is not None:
                    remaining = deadline - self._clock()
                    if remaining <= 0:
                        return None
                    wait = remaining if wait is None else min(wait, remaining)
                self._cond.wait(wait)

    def done(self, key: Key) -> None:
        """Mark ``key`` as processed, queueing it again if it was added meanwhile."""
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty and not self._shutting_down:
                self._queue.append(key)
                self._cond.notify()

    def shut_down(self) -> None:
        with self._cond:
            self._shutting_down = True
            self._cond.notify_all()


class Controller:
    """Runs reconciliations for queued keys on a pool of worker threads."""

    def __init__(
        self,
        reconcile: Callable[[Key], ReconcileResult],
        queue: WorkQueue,
        workers: int = 5,
        name: str = "clusterdeployment",
    ):
        self.reconcile = reconcile
        self.queue = queue
        self.workers = workers
        self.name = name
        self._threads: list[threading.Thread] = []

    def start(self) -> None:
        for i in range(self.workers):
            thread = threading.Thread(target=self._run_worker, name=f"{self.name}-worker-{i}", daemon=True)
            thread.start()
            self._threads.append(thread)
        logger.info(f"Started {self.workers} {self.name} workers")

    def stop(self, timeout: float | None = 10.0) -> None:
        self.queue.shut_down()
        for thread in self._threads:
            thread.join(timeout)
        self._threads = []
        logger.info(f"Stopped {self.name} workers")

    def _run_worker(self) -> None:
        while self.process_next_item():
            pass

    def process_next_item(self, timeout: float | None = None) -> bool:
        """Reconcile one key. Returns False once the queue is shut down."""
        key = self.queue.get(timeout)
        if key is None:
            return False
        try:
            self._process(key)
        finally:
            self.queue.done(key)
        return True

    def _process(self, key: Key) -> None:
        try:
            result = self.reconcile(key)
        except Exception as e:
            logger.error(f"Error reconciling {self.name} {key[0]}/{key[1]}: {sanitize_exception(e)}")
            self.queue.add_rate_limited(key)
            return

        self.queue.forget(key)
        if result is not None and result.requeue_after is not None:
            self.queue.add_after(key, result.requeue_after)
