"""
Shared plumbing for HTTP-backed managers.
"""

import json
import logging
from typing import Any
from urllib.parse import urlencode

from ..constants import FORM_CONTENT_TYPE, JSON_CONTENT_TYPE, ServiceType
from .deadlines import compute_deadline, dispatch_request
from .http import HttpProvider, HttpRequest, HttpResponse
from .retry import BestEffortRetryStrategy, RetryStrategy, resolve_retry_strategy

logger = logging.getLogger(__name__)


class HttpManager:
    """
    Base class for managers that talk to one HTTP service.

    Subclasses set `service` and `operation_name` and call _send() for each
    request; _send() composes the deadline, resolves the retry strategy and
    converts timeouts.
    """

    service: ServiceType = ServiceType.MANAGEMENT
    operation_name: str = "mgmt"

    def __init__(
        self,
        http_provider: HttpProvider,
        default_timeout: float,
        default_retry_strategy: RetryStrategy | None = None,
    ):
        self._provider = http_provider
        self._default_timeout = default_timeout
        self._default_retry_strategy = default_retry_strategy or BestEffortRetryStrategy()

    async def _send(
        self,
        method: str,
        path: str,
        *,
        form: dict[str, Any] | list[tuple[str, Any]] | None = None,
        json_body: Any = None,
        timeout: float | None = None,
        retry_strategy: RetryStrategy | None = None,
        is_idempotent: bool | None = None,
        service: ServiceType | None = None,
        parent_deadline: float | None = None,
    ) -> HttpResponse:
        body = None
        content_type = None
        if form is not None:
            body = urlencode(form).encode("utf-8")
            content_type = FORM_CONTENT_TYPE
        elif json_body is not None:
            body = json.dumps(json_body).encode("utf-8")
            content_type = JSON_CONTENT_TYPE

        request = HttpRequest(
            service=service or self.service,
            method=method,
            path=path,
            body=body,
            content_type=content_type,
            is_idempotent=method == "GET" if is_idempotent is None else is_idempotent,
            retry_strategy=resolve_retry_strategy(retry_strategy, self._default_retry_strategy),
            deadline=compute_deadline(timeout, self._default_timeout, parent_deadline),
        )
        logger.debug(f"{method} {path} ({request.service.value}, id={request.unique_id})")
        return await dispatch_request(self._provider, request, self.operation_name)
