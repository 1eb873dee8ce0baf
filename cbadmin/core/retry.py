"""
Retry strategies for CBADMIN requests.

A retry strategy decides, for a request that failed for a given reason,
whether and after how long it should be retried. The management layer never
retries on its own; it hands the strategy to its providers (and uses it for
temporary query and analytics errors).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from ..constants import RETRY_BACKOFF_MAX, RETRY_BACKOFF_MIN


class RetryReason(str, Enum):
    """Why a request is being considered for a retry."""

    UNKNOWN = "unknown"
    SOCKET_NOT_AVAILABLE = "socket_not_available"
    SERVICE_NOT_AVAILABLE = "service_not_available"
    SOCKET_CLOSED_WHILE_IN_FLIGHT = "socket_closed_while_in_flight"
    SERVICE_RESPONSE_CODE_INDICATED = "service_response_code_indicated"
    QUERY_PREPARED_STATEMENT_FAILURE = "query_prepared_statement_failure"
    QUERY_INDEX_NOT_FOUND = "query_index_not_found"
    ANALYTICS_TEMPORARY_FAILURE = "analytics_temporary_failure"

    @property
    def allows_non_idempotent_retry(self) -> bool:
        return self in _NON_IDEMPOTENT_SAFE

    @property
    def always_retry(self) -> bool:
        return self in _ALWAYS_RETRY


_NON_IDEMPOTENT_SAFE = frozenset(
    {
        RetryReason.SOCKET_NOT_AVAILABLE,
        RetryReason.SERVICE_NOT_AVAILABLE,
        RetryReason.QUERY_PREPARED_STATEMENT_FAILURE,
        RetryReason.QUERY_INDEX_NOT_FOUND,
        RetryReason.ANALYTICS_TEMPORARY_FAILURE,
    }
)

_ALWAYS_RETRY = frozenset({RetryReason.SERVICE_RESPONSE_CODE_INDICATED})


class RetryRequest(Protocol):
    """The parts of a request a retry strategy looks at."""

    is_idempotent: bool
    retry_attempts: int


@dataclass(frozen=True)
class RetryAction:
    """Retry after `duration` seconds."""

    duration: float


class RetryStrategy(ABC):
    """Decides whether a failed request is retried."""

    @abstractmethod
    def retry_after(self, request: RetryRequest, reason: RetryReason) -> RetryAction | None:
        """
        Return the action to take, or None to stop retrying.

        Args:
            request: The failed request; retry_attempts counts previous retries
            reason: Why the request failed
        """


class BestEffortRetryStrategy(RetryStrategy):
    """
    Retry with exponential backoff until the request deadline.

    Non-idempotent requests are only retried for reasons that guarantee the
    request never reached the server.
    """

    def __init__(
        self, min_backoff: float = RETRY_BACKOFF_MIN, max_backoff: float = RETRY_BACKOFF_MAX
    ):
        self.min_backoff = min_backoff
        self.max_backoff = max_backoff

    def backoff(self, attempts: int) -> float:
        return min(self.min_backoff * (2**attempts), self.max_backoff)

    def retry_after(self, request: RetryRequest, reason: RetryReason) -> RetryAction | None:
        if request.is_idempotent or reason.allows_non_idempotent_retry or reason.always_retry:
            return RetryAction(self.backoff(request.retry_attempts))
        return None


class FailFastRetryStrategy(RetryStrategy):
    """Never retry."""

    def retry_after(self, request: RetryRequest, reason: RetryReason) -> RetryAction | None:
        return None


def resolve_retry_strategy(
    operation_strategy: RetryStrategy | None, default_strategy: RetryStrategy
) -> RetryStrategy:
    """The per-operation strategy wins; otherwise the manager default is used."""
    return operation_strategy if operation_strategy is not None else default_strategy
