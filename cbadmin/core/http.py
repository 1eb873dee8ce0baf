"""
HTTP transport seam for CBADMIN.

Managers describe what they want as an HttpRequest and hand it to an
HttpProvider. The provider owns endpoint selection, authentication and
transport-level retries; it stamps the endpoint and retry bookkeeping back
onto the request so callers can report them in errors.

HttpxProvider is the default provider, built on httpx.AsyncClient.
"""

import asyncio
import json
import logging
import random
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from ..constants import DEFAULT_SERVICE_PORTS, ServiceType
from ..exceptions import ServiceNotAvailableError
from .retry import BestEffortRetryStrategy, RetryReason, RetryStrategy

if TYPE_CHECKING:
    from ..config import ClusterConfig

logger = logging.getLogger(__name__)


@dataclass
class HttpRequest:
    """
    A request for one of the cluster's HTTP services.

    Attributes:
        service: Service the request targets
        method: HTTP method
        path: Path (with query string, if any) relative to the service root
        body: Encoded request body
        content_type: Content-Type of the body
        is_idempotent: Whether the request may be replayed safely
        retry_strategy: Strategy the provider consults on transport errors
        unique_id: Request id reported in timeout errors
        deadline: Absolute time.monotonic() deadline
        endpoint: Base URL the provider sent the last attempt to
        retry_attempts: Retries performed by the provider
        retry_reasons: Reasons for those retries
    """

    service: ServiceType
    method: str
    path: str
    body: bytes | None = None
    content_type: str | None = None
    is_idempotent: bool = False
    retry_strategy: RetryStrategy | None = None
    unique_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    deadline: float | None = None
    endpoint: str | None = None
    retry_attempts: int = 0
    retry_reasons: list[RetryReason] = field(default_factory=list)

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without one."""
        if self.deadline is None:
            return None
        return self.deadline - time.monotonic()


@dataclass
class HttpResponse:
    endpoint: str
    status_code: int
    body: bytes = b""

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.body)


class HttpProvider(ABC):
    """Sends HttpRequests to the cluster."""

    @abstractmethod
    async def do_http_request(self, request: HttpRequest) -> HttpResponse:
        """
        Send a request and return the response.

        Raises:
            ServiceNotAvailableError: If no node serves request.service
            asyncio.TimeoutError: If request.deadline passes
        """

    async def aclose(self) -> None:
        """Release any resources held by the provider."""


class HttpxProvider(HttpProvider):
    """
    HttpProvider backed by httpx.AsyncClient.

    Each service maps to a list of base URLs; every attempt picks one at
    random. Transport failures on requests the retry strategy allows to be
    replayed are retried with the strategy's backoff until the deadline.
    """

    def __init__(
        self,
        endpoints: dict[ServiceType, list[str]],
        username: str = "",
        password: str = "",
        retry_strategy: RetryStrategy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._endpoints = {service: list(urls) for service, urls in endpoints.items()}
        self._retry_strategy = retry_strategy or BestEffortRetryStrategy()
        auth = httpx.BasicAuth(username, password) if username else None
        self._client = httpx.AsyncClient(auth=auth, transport=transport)

    @classmethod
    def from_config(
        cls,
        config: "ClusterConfig",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "HttpxProvider":
        """Build a provider with one endpoint per host for every HTTP service."""
        scheme = "https" if config.tls else "http"
        endpoints: dict[ServiceType, list[str]] = {}
        for service, port in DEFAULT_SERVICE_PORTS.items():
            if config.tls:
                port += 10000
            endpoints[service] = [f"{scheme}://{host}:{port}" for host in config.hosts]
        return cls(
            endpoints,
            username=config.username,
            password=config.password,
            transport=transport,
        )

    def endpoints(self, service: ServiceType) -> list[str]:
        return list(self._endpoints.get(service, []))

    async def do_http_request(self, request: HttpRequest) -> HttpResponse:
        endpoints = self._endpoints.get(request.service)
        if not endpoints:
            raise ServiceNotAvailableError(
                f"No node in the cluster runs the {request.service.value} service",
                service=request.service.value,
            )

        strategy = request.retry_strategy or self._retry_strategy
        headers = {"Content-Type": request.content_type} if request.content_type else None

        while True:
            endpoint = random.choice(endpoints)
            request.endpoint = endpoint

            remaining = request.remaining()
            if remaining is not None and remaining <= 0:
                raise asyncio.TimeoutError()

            try:
                response = await self._client.request(
                    request.method,
                    endpoint + request.path,
                    content=request.body,
                    headers=headers,
                    timeout=remaining,
                )
            except httpx.TimeoutException as e:
                raise asyncio.TimeoutError() from e
            except httpx.TransportError as e:
                reason = (
                    RetryReason.SOCKET_NOT_AVAILABLE
                    if isinstance(e, httpx.ConnectError)
                    else RetryReason.SOCKET_CLOSED_WHILE_IN_FLIGHT
                )
                action = strategy.retry_after(request, reason)
                if action is None:
                    raise ServiceNotAvailableError(
                        f"Request to {endpoint} failed: {e}",
                        service=request.service.value,
                    ) from e

                remaining = request.remaining()
                if remaining is not None and action.duration >= remaining:
                    raise asyncio.TimeoutError() from e

                logger.debug(
                    f"Retrying {request.method} {request.path} after {reason.value} "
                    f"(attempt {request.retry_attempts + 1}, backoff {action.duration:.3f}s)"
                )
                request.retry_attempts += 1
                request.retry_reasons.append(reason)
                await asyncio.sleep(action.duration)
                continue

            return HttpResponse(
                endpoint=endpoint,
                status_code=response.status_code,
                body=response.content,
            )

    async def aclose(self) -> None:
        await self._client.aclose()
