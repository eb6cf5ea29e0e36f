"""
Tests for CompilationCache

Covers compute-once semantics under concurrency and failure eviction.
"""
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from constraint_lib import ConfigurationError
from constraint_lib.cache import CompilationCache


@pytest.fixture
def cache():
    """Create an empty cache."""
    return CompilationCache("test-cache")


class TestGetOrCompute:
    """Test CompilationCache.get_or_compute()."""

    def test_value_is_cached(self, cache):
        """Test that the second call returns the first result without recomputing."""
        calls = []

        def compute(key):
            calls.append(key)
            return [key]

        first = cache.get_or_compute("a", compute)
        second = cache.get_or_compute("a", compute)

        assert first is second
        assert calls == ["a"]
        assert cache.contains("a")
        assert cache.size() == 1

    def test_concurrent_callers_compute_once(self, cache):
        """Test that concurrent callers for one key share a single computation."""
        workers = 8
        barrier = threading.Barrier(workers)
        lock = threading.Lock()
        calls = []

        def compute(key):
            with lock:
                calls.append(key)
            time.sleep(0.05)
            return object()

        def worker(_):
            barrier.wait()
            return cache.get_or_compute("shared", compute)

        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(worker, range(workers)))

        assert len(calls) == 1
        assert all(r is results[0] for r in results)

    def test_failure_is_not_cached(self, cache):
        """Test that a failed computation is evicted and retried on the next call."""
        attempts = []

        def compute(key):
            attempts.append(key)
            if len(attempts) == 1:
                raise ValueError("first attempt fails")
            return "ok"

        with pytest.raises(ValueError):
            cache.get_or_compute("k", compute)
        assert not cache.contains("k")
        assert cache.size() == 0

        assert cache.get_or_compute("k", compute) == "ok"
        assert len(attempts) == 2

    def test_failure_reaches_waiters(self, cache):
        """Test that callers waiting on a failing computation all receive its exception."""
        started = threading.Event()
        release = threading.Event()
        calls = []
        errors = []

        def compute(key):
            calls.append(key)
            started.set()
            release.wait(5)
            raise ValueError("compile failed")

        def caller():
            try:
                cache.get_or_compute("k", compute)
            except ValueError as e:
                errors.append(e)

        owner = threading.Thread(target=caller)
        owner.start()
        assert started.wait(5)

        waiters = [threading.Thread(target=caller) for _ in range(4)]
        for thread in waiters:
            thread.start()
        time.sleep(0.2)
        release.set()

        owner.join(5)
        for thread in waiters:
            thread.join(5)

        assert len(errors) == 5
        assert len(calls) == 1
        assert not cache.contains("k")

    def test_recursive_computation_is_rejected(self, cache):
        """Test that a computation requesting its own key fails instead of deadlocking."""

        def compute(key):
            return cache.get_or_compute(key, compute)

        with pytest.raises(ConfigurationError, match="Recursive computation"):
            cache.get_or_compute("loop", compute)
        assert cache.size() == 0


class TestHousekeeping:
    """Test contains(), size() and clear()."""

    def test_clear(self, cache):
        """Test that clear drops every entry."""
        cache.get_or_compute("a", lambda k: 1)
        cache.get_or_compute("b", lambda k: 2)
        assert cache.size() == 2

        cache.clear()

        assert cache.size() == 0
        assert not cache.contains("a")

    def test_contains_unknown_key(self, cache):
        """Test that contains is False for keys never computed."""
        assert not cache.contains("missing")

    def test_clear_keeps_new_owner_guard(self, cache):
        """Test that a computation failing after clear() leaves the next owner's recursion guard intact."""
        first_started = threading.Event()
        first_release = threading.Event()
        second_started = threading.Event()
        second_release = threading.Event()
        outcome = []

        def failing(key):
            first_started.set()
            first_release.wait(5)
            raise ValueError("stale")

        def recursive(key):
            second_started.set()
            second_release.wait(5)
            try:
                cache.get_or_compute(key, recursive)
            except ConfigurationError:
                return "guarded"
            return "reentered"

        def first():
            with pytest.raises(ValueError):
                cache.get_or_compute("k", failing)

        def second():
            outcome.append(cache.get_or_compute("k", recursive))

        first_thread = threading.Thread(target=first, daemon=True)
        first_thread.start()
        assert first_started.wait(5)
        cache.clear()

        second_thread = threading.Thread(target=second, daemon=True)
        second_thread.start()
        assert second_started.wait(5)

        first_release.set()
        first_thread.join(5)
        second_release.set()
        second_thread.join(5)

        assert outcome == ["guarded"]
        assert cache.contains("k")
