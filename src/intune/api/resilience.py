#!/usr/bin/env python3
"""Resilience and concurrency helpers for the Graph client and report run.

This module provides:
    - Circuit breaker used by GraphClient to fail fast during Graph outages
    - Bounded, order-preserving concurrent processing for assignment fetches
    - Run-level timeout helper

Example:
    circuit = CircuitBreaker(failure_threshold=5, timeout=60)
    if circuit.is_open and not circuit._should_attempt():
        raise CircuitOpenError(...)

    results = await process_concurrent(objects, fetch_assignments, max_concurrent=4)
"""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ============================================
# Circuit Breaker
# ============================================

class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"      # Normal operation, requests pass through
    OPEN = "open"          # Failing, requests rejected immediately
    HALF_OPEN = "half_open"  # Testing if service recovered


class CircuitBreaker:
    """Circuit breaker to prevent hammering Graph while it is failing.

    State Transitions:
        CLOSED -> OPEN: When failure_count >= failure_threshold
        OPEN -> HALF_OPEN: When timeout expires
        HALF_OPEN -> CLOSED: When success_threshold requests succeed
        HALF_OPEN -> OPEN: When a test request fails

    Attributes:
        failure_threshold: Number of failures before opening circuit
        timeout: Seconds to wait before attempting recovery (OPEN -> HALF_OPEN)
        success_threshold: Successes needed in HALF_OPEN to close circuit
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        timeout: float = 60.0,
        success_threshold: int = 2,
        name: str = "default",
    ):
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.success_threshold = success_threshold
        self.name = name

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time: Optional[datetime] = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        """Get current circuit state."""
        return self._state

    @property
    def is_open(self) -> bool:
        """Check if circuit is open (rejecting requests)."""
        return self._state == CircuitState.OPEN

    @property
    def failure_count(self) -> int:
        """Get current failure count."""
        return self._failure_count

    @property
    def reset_at(self) -> Optional[datetime]:
        """When an open circuit will let a test request through."""
        if self._last_failure_time is None:
            return None
        return self._last_failure_time + timedelta(seconds=self.timeout)

    def _should_attempt(self) -> bool:
        """Check if a request should be attempted, moving OPEN to HALF_OPEN on timeout."""
        if self._state == CircuitState.CLOSED:
            return True

        if self._state == CircuitState.OPEN:
            if self._last_failure_time:
                elapsed = (datetime.now(timezone.utc) - self._last_failure_time).total_seconds()
                if elapsed >= self.timeout:
                    logger.info(f"Circuit '{self.name}' transitioning to HALF_OPEN")
                    self._state = CircuitState.HALF_OPEN
                    self._success_count = 0
                    return True
            return False

        return True

    async def _on_success(self):
        """Handle successful request."""
        async with self._lock:
            self._failure_count = 0

            if self._state == CircuitState.HALF_OPEN:
                self._success_count += 1
                if self._success_count >= self.success_threshold:
                    logger.info(
                        f"Circuit '{self.name}' closing after "
                        f"{self._success_count} successes"
                    )
                    self._state = CircuitState.CLOSED
                    self._success_count = 0

    async def _on_failure(self, exception: Exception):
        """Handle failed request."""
        async with self._lock:
            self._failure_count += 1
            self._last_failure_time = datetime.now(timezone.utc)

            if self._state == CircuitState.HALF_OPEN:
                logger.warning(
                    f"Circuit '{self.name}' reopening after test failure: {exception}"
                )
                self._state = CircuitState.OPEN

            elif self._state == CircuitState.CLOSED:
                if self._failure_count >= self.failure_threshold:
                    logger.warning(
                        f"Circuit '{self.name}' opening after "
                        f"{self._failure_count} failures"
                    )
                    self._state = CircuitState.OPEN


# ============================================
# Timeouts
# ============================================

async def with_timeout(
    func: Callable[..., Awaitable[T]],
    timeout_seconds: Optional[float],
    *args,
    **kwargs,
) -> T:
    """Execute async function with an optional timeout.

    Args:
        func: Async function to execute
        timeout_seconds: Maximum execution time in seconds (None = no limit)
        *args: Arguments for func
        **kwargs: Keyword arguments for func

    Raises:
        asyncio.TimeoutError: If the timeout elapses. Pending work inside
            func is cancelled.
    """
    if timeout_seconds is None:
        return await func(*args, **kwargs)
    return await asyncio.wait_for(func(*args, **kwargs), timeout=timeout_seconds)


# ============================================
# Concurrent Processing
# ============================================

async def process_concurrent(
    items: list[T],
    processor: Callable[[T], Awaitable[Any]],
    max_concurrent: int = 10,
    return_exceptions: bool = False,
) -> list[Any]:
    """Process items concurrently with bounded concurrency.

    Uses a semaphore to limit the number of in-flight operations. Results
    come back in the same order as the input items regardless of completion
    order, which is what keeps trail entries in fetch order.

    Args:
        items: List of items to process
        processor: Async function to apply to each item
        max_concurrent: Maximum concurrent operations (1 = sequential)
        return_exceptions: If True, return exceptions in place of results

    Returns:
        List of results in the same order as input items
    """
    semaphore = asyncio.Semaphore(max(1, max_concurrent))

    async def bounded_processor(item: T) -> Any:
        async with semaphore:
            return await processor(item)

    tasks = [bounded_processor(item) for item in items]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)


__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "with_timeout",
    "process_concurrent",
]
