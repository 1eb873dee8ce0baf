"""
Query (N1QL) and analytics statement execution.

Statements are POSTed as JSON to the query or analytics service. Responses
reporting a temporary failure are retried, following the retry strategy's
backoff, until they succeed or the client-side deadline passes.
"""

import asyncio
import json
import logging
import time
from typing import Any

from ..constants import (
    ANALYTICS_SERVICE_PATH,
    ANALYTICS_TEMPORARY_ERROR_CODES,
    DEFAULT_ANALYTICS_TIMEOUT,
    DEFAULT_QUERY_TIMEOUT,
    JSON_CONTENT_TYPE,
    QUERY_INDEX_NOT_FOUND_CODE,
    QUERY_INDEX_NOT_FOUND_MARKER,
    QUERY_SERVICE_PATH,
    QUERY_TEMPORARY_ERROR_CODES,
    ServiceType,
)
from ..core.deadlines import compute_deadline
from ..core.http import HttpProvider, HttpRequest
from ..core.retry import (
    BestEffortRetryStrategy,
    RetryReason,
    RetryStrategy,
    resolve_retry_strategy,
)
from ..exceptions import AnalyticsError, OperationTimeoutError, QueryError, ServiceQueryError
from ..observability.metrics import timed_operation
from .options import AnalyticsOptions, QueryOptions, _ServiceQueryOptions
from .results import AnalyticsResult, QueryMetaData, QueryResult

logger = logging.getLogger(__name__)


def query_retry_reason(errors: list[dict[str, Any]]) -> RetryReason | None:
    """Retry reason for a query error list, or None if it is not temporary."""
    for error in errors:
        code = int(error.get("code", 0))
        if code in QUERY_TEMPORARY_ERROR_CODES:
            return RetryReason.QUERY_PREPARED_STATEMENT_FAILURE
        if code == QUERY_INDEX_NOT_FOUND_CODE and QUERY_INDEX_NOT_FOUND_MARKER in str(
            error.get("msg", "")
        ):
            return RetryReason.QUERY_INDEX_NOT_FOUND
    return None


def analytics_retry_reason(errors: list[dict[str, Any]]) -> RetryReason | None:
    """Retry reason for an analytics error list, or None if it is not temporary."""
    for error in errors:
        if int(error.get("code", 0)) in ANALYTICS_TEMPORARY_ERROR_CODES:
            return RetryReason.ANALYTICS_TEMPORARY_FAILURE
    return None


class QueryService:
    """
    Executes N1QL and analytics statements.

    Args:
        http_provider: Provider used to reach the query and analytics services
        query_timeout: Default client-side timeout for query statements
        analytics_timeout: Default client-side timeout for analytics statements
        default_retry_strategy: Strategy used when an operation supplies none
    """

    def __init__(
        self,
        http_provider: HttpProvider,
        query_timeout: float = DEFAULT_QUERY_TIMEOUT,
        analytics_timeout: float = DEFAULT_ANALYTICS_TIMEOUT,
        default_retry_strategy: RetryStrategy | None = None,
    ):
        self._provider = http_provider
        self._query_timeout = query_timeout
        self._analytics_timeout = analytics_timeout
        self._default_retry_strategy = default_retry_strategy or BestEffortRetryStrategy()

    @timed_operation("query.query")
    async def query(
        self,
        statement: str,
        options: QueryOptions | None = None,
        parent_deadline: float | None = None,
    ) -> QueryResult:
        """
        Run a N1QL statement.

        Raises:
            QueryError: If the service reports a non-temporary error
            OperationTimeoutError: If the statement does not succeed in time
            ServiceNotAvailableError: If no node runs the query service
        """
        return await self._execute(
            statement,
            options or QueryOptions(),
            service=ServiceType.QUERY,
            path=QUERY_SERVICE_PATH,
            default_timeout=self._query_timeout,
            parent_deadline=parent_deadline,
            retry_reason=query_retry_reason,
            error_cls=QueryError,
            result_cls=QueryResult,
        )

    @timed_operation("query.analytics_query")
    async def analytics_query(
        self,
        statement: str,
        options: AnalyticsOptions | None = None,
        parent_deadline: float | None = None,
    ) -> AnalyticsResult:
        """
        Run an analytics statement.

        Raises:
            AnalyticsError: If the service reports a non-temporary error
            OperationTimeoutError: If the statement does not succeed in time
            ServiceNotAvailableError: If no node runs the analytics service
        """
        return await self._execute(
            statement,
            options or AnalyticsOptions(),
            service=ServiceType.ANALYTICS,
            path=ANALYTICS_SERVICE_PATH,
            default_timeout=self._analytics_timeout,
            parent_deadline=parent_deadline,
            retry_reason=analytics_retry_reason,
            error_cls=AnalyticsError,
            result_cls=AnalyticsResult,
        )

    async def _execute(
        self,
        statement: str,
        options: _ServiceQueryOptions,
        *,
        service: ServiceType,
        path: str,
        default_timeout: float,
        parent_deadline: float | None,
        retry_reason,
        error_cls: type[ServiceQueryError],
        result_cls: type[QueryResult],
    ) -> QueryResult:
        deadline = compute_deadline(options.timeout, default_timeout, parent_deadline)
        strategy = resolve_retry_strategy(options.retry_strategy, self._default_retry_strategy)
        client_context_id = options.resolve_client_context_id()
        operation = service.value

        start = time.monotonic()
        retry_attempts = 0
        retry_reasons: list[RetryReason] = []
        endpoint: str | None = None

        def timeout_error() -> OperationTimeoutError:
            return OperationTimeoutError(
                operation=operation,
                operation_id=client_context_id,
                retry_reasons=[r.value for r in retry_reasons],
                retry_attempts=retry_attempts,
                elapsed=time.monotonic() - start,
                remote_address=endpoint,
            )

        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise timeout_error()

            body = options.to_body(statement, client_context_id, remaining)
            request = HttpRequest(
                service=service,
                method="POST",
                path=path,
                body=json.dumps(body).encode("utf-8"),
                content_type=JSON_CONTENT_TYPE,
                is_idempotent=options.read_only,
                retry_strategy=strategy,
                deadline=deadline,
                retry_attempts=retry_attempts,
                retry_reasons=list(retry_reasons),
            )

            try:
                response = await asyncio.wait_for(
                    self._provider.do_http_request(request), timeout=remaining
                )
            except asyncio.TimeoutError as e:
                endpoint = request.endpoint or endpoint
                retry_attempts = request.retry_attempts
                retry_reasons = list(request.retry_reasons)
                raise timeout_error() from e

            endpoint = request.endpoint or response.endpoint or endpoint
            retry_attempts = request.retry_attempts
            retry_reasons = list(request.retry_reasons)

            try:
                data = response.json()
            except ValueError as e:
                raise error_cls(
                    response.text or f"invalid response from {operation} service",
                    client_context_id=client_context_id,
                    endpoint=endpoint,
                    http_status=response.status_code,
                ) from e

            errors = data.get("errors") or []
            if errors:
                reason = retry_reason(errors)
                action = strategy.retry_after(request, reason) if reason else None
                if action is None:
                    raise error_cls(
                        str(errors[0].get("msg", "")),
                        errors=errors,
                        client_context_id=client_context_id,
                        endpoint=endpoint,
                        http_status=response.status_code,
                    )
                if time.monotonic() + action.duration >= deadline:
                    raise timeout_error()

                logger.debug(
                    f"Retrying {operation} statement (client_context_id={client_context_id}) "
                    f"after {reason.value}, backoff {action.duration:.3f}s"
                )
                retry_attempts += 1
                retry_reasons.append(reason)
                await asyncio.sleep(action.duration)
                continue

            if not 200 <= response.status_code < 300:
                raise error_cls(
                    response.text,
                    client_context_id=client_context_id,
                    endpoint=endpoint,
                    http_status=response.status_code,
                )

            raw_rows = [
                json.dumps(row, separators=(",", ":")).encode("utf-8")
                for row in data.get("results") or []
            ]
            return result_cls(
                raw_rows,
                QueryMetaData.from_server(data),
                endpoint=endpoint,
                serializer=options.serializer,
            )
