from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import structlog

from app.commerce.errors import ConcurrencyConflictError, ConflictRetryExhaustedError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

CONFLICT_MAX_ATTEMPTS = 2


@dataclass(frozen=True, slots=True)
class VersionedCounter:
    """Use counter guarded by an optimistic concurrency token."""

    count: int = 0
    version: int = 0

    def increment(self, *, expected_version: int) -> VersionedCounter:
        if expected_version != self.version:
            raise ConcurrencyConflictError(
                f"counter version {self.version} does not match expected {expected_version}"
            )
        return VersionedCounter(count=self.count + 1, version=self.version + 1)


async def run_with_conflict_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    operation_name: str,
    max_attempts: int = CONFLICT_MAX_ATTEMPTS,
) -> T:
    """Runs a unit of work, re-running it from scratch after a lost race.

    ``operation`` must open its own transaction so that every attempt re-reads the
    current state. After ``max_attempts`` conflicts the caller gets a generic
    ``ConflictRetryExhaustedError``.
    """
    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except ConcurrencyConflictError:
            logger.warning(
                "commerce_concurrency_conflict",
                operation=operation_name,
                attempt=attempt,
                max_attempts=max_attempts,
            )
    raise ConflictRetryExhaustedError(operation_name)
