"""
Deadline composition and request dispatch helpers.

Every management operation turns its timeout into an absolute deadline,
sends its request through dispatch_request(), and checks the status with
expect_status(). Timeouts are converted into OperationTimeoutError here so
that every manager reports them the same way.
"""

import asyncio
import logging
import time

from ..exceptions import HTTPStatusError, OperationTimeoutError
from .http import HttpProvider, HttpRequest, HttpResponse

logger = logging.getLogger(__name__)


def compute_deadline(
    timeout: float | None, default_timeout: float, parent_deadline: float | None = None
) -> float:
    """
    Absolute monotonic deadline for an operation.

    Args:
        timeout: Per-operation timeout in seconds (overrides default_timeout)
        default_timeout: Manager or cluster timeout for the service
        parent_deadline: Deadline of an enclosing operation; the earlier one wins
    """
    effective = timeout if timeout is not None and timeout > 0 else default_timeout
    deadline = time.monotonic() + effective
    if parent_deadline is not None:
        deadline = min(deadline, parent_deadline)
    return deadline


def remaining_time(deadline: float) -> float:
    """Seconds left before deadline, never negative."""
    return max(deadline - time.monotonic(), 0.0)


async def dispatch_request(
    provider: HttpProvider,
    request: HttpRequest,
    operation: str,
    operation_id: str | None = None,
) -> HttpResponse:
    """
    Send a request, bounding it by its deadline.

    Args:
        provider: HTTP provider to send through
        request: Request carrying an absolute deadline
        operation: Operation family reported on timeout ("mgmt", "view", ...)
        operation_id: Id reported on timeout (defaults to request.unique_id)

    Raises:
        OperationTimeoutError: If the deadline passes first
    """
    start = time.monotonic()
    timeout = remaining_time(request.deadline) if request.deadline is not None else None
    try:
        return await asyncio.wait_for(provider.do_http_request(request), timeout=timeout)
    except asyncio.TimeoutError as e:
        elapsed = time.monotonic() - start
        logger.debug(
            f"{operation} request {request.method} {request.path} timed out "
            f"after {elapsed:.3f}s (endpoint={request.endpoint})"
        )
        raise OperationTimeoutError(
            operation=operation,
            operation_id=operation_id or request.unique_id,
            retry_reasons=[reason.value for reason in request.retry_reasons],
            retry_attempts=request.retry_attempts,
            elapsed=elapsed,
            remote_address=request.endpoint,
        ) from e


def expect_status(
    response: HttpResponse,
    expected: int | tuple[int, ...],
    error_cls: type[HTTPStatusError] = HTTPStatusError,
    **context,
) -> None:
    """
    Raise error_cls with the response body as message unless the status matches.

    Args:
        response: Response to check
        expected: Accepted status code(s)
        error_cls: HTTPStatusError subclass to raise
        **context: Extra context for the error (bucket_name, username, ...)
    """
    accepted = (expected,) if isinstance(expected, int) else expected
    if response.status_code in accepted:
        return
    raise error_cls(response.text, status_code=response.status_code, context=context or None)


def expect_success(
    response: HttpResponse, error_cls: type[HTTPStatusError] = HTTPStatusError, **context
) -> None:
    """Like expect_status, accepting any 2xx status."""
    if 200 <= response.status_code < 300:
        return
    raise error_cls(response.text, status_code=response.status_code, context=context or None)
