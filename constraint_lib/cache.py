"""
Compilation Cache - single-flight memoization of compile results.

Every compile entry point (rule text, annotated member, declaring type) and
the expression resolver keep one CompilationCache. Per key the cache stores a
write-once ``concurrent.futures.Future`` rather than the value itself:

1. The first caller for a key installs a fresh future and runs the compute
   function outside the lock.
2. Concurrent callers for the same key find the future and block on it.
3. On success every caller sees the same result object.
4. On failure the entry is removed so the next call retries, and every
   waiting caller receives the original exception.
"""

import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable, Dict, Hashable

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class CompilationCache:
    """Thread-safe compute-once cache keyed by compile source."""

    def __init__(self, name: str = "cache"):
        """
        Initialize an empty cache.

        Args:
            name: Label used in log records
        """
        self.name = name
        self._entries: Dict[Hashable, Future] = {}
        self._owners: Dict[Hashable, int] = {}
        self._lock = threading.Lock()

    def get_or_compute(self, key: Hashable, compute: Callable[[Any], Any]) -> Any:
        """
        Return the cached value for key, computing it at most once.

        Args:
            key: Hashable compile source
            compute: Function called with key on a miss

        Returns:
            The computed (or previously computed) value

        Raises:
            ConfigurationError: If the calling thread is already computing key
            Exception: Whatever compute raised, re-raised to every waiter
        """
        current = threading.get_ident()
        with self._lock:
            future = self._entries.get(key)
            if future is None:
                future = Future()
                self._entries[key] = future
                self._owners[key] = current
                owner = True
            else:
                owner = False
                if self._owners.get(key) == current:
                    raise ConfigurationError(
                        f"Recursive computation of {key!r} in {self.name}"
                    )

        if not owner:
            return future.result()

        logger.debug("Computing cache entry", extra={'cache': self.name, 'key': repr(key)})
        try:
            value = compute(key)
        except BaseException as e:
            with self._lock:
                if self._entries.get(key) is future:
                    del self._entries[key]
                    self._owners.pop(key, None)
            future.set_exception(e)
            raise

        with self._lock:
            if self._entries.get(key) is future:
                self._owners.pop(key, None)
        future.set_result(value)
        return value

    def contains(self, key: Hashable) -> bool:
        """Return True if key has a completed, successful entry."""
        future = self._entries.get(key)
        return future is not None and future.done() and future.exception() is None

    def size(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        """Drop every entry. In-flight computations still finish for their waiters."""
        with self._lock:
            self._entries.clear()
            self._owners.clear()
