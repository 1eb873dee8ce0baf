"""
Cluster facade.

Cluster wires the HTTP and KV providers to the managers and services built
on top of them:

    async with Cluster(ClusterConfig.from_env()) as cluster:
        buckets = await cluster.buckets().get_all_buckets()
        report = await cluster.bucket("travel-sample").ping()
"""

import asyncio
import time
import uuid
from typing import Iterable

from ..config import ClusterConfig
from ..constants import DEFAULT_PING_SERVICES, PING_PATHS, ServiceType
from ..exceptions import CBAdminError, OperationTimeoutError, ServiceNotAvailableError
from ..indexes.query import QueryIndexManager
from ..indexes.views import ViewIndexManager
from ..management.buckets import BucketManager
from ..management.users import UserManager
from ..observability.health import EndpointPingReport, PingReport, PingState
from ..observability.logging import clear_operation_context, get_logger, set_operation_context
from ..query.options import AnalyticsOptions, QueryOptions, ViewOptions
from ..query.results import AnalyticsResult, QueryResult, ViewResult
from ..query.service import QueryService
from ..query.views import ViewQueryService
from ..subdoc.collection import Collection
from .deadlines import compute_deadline, remaining_time
from .http import HttpProvider, HttpRequest, HttpxProvider
from .kv import KvProvider
from .retry import BestEffortRetryStrategy, FailFastRetryStrategy, RetryStrategy

contextual_logger = get_logger(__name__)


class Cluster:
    """
    Entry point to a cluster.

    Args:
        config: Connection configuration
        http_provider: HTTP provider; built from config with httpx when None
        kv_provider: KV engine; sub-document operations and KV pings need one
        retry_strategy: Default retry strategy for every operation
    """

    def __init__(
        self,
        config: ClusterConfig,
        http_provider: HttpProvider | None = None,
        kv_provider: KvProvider | None = None,
        retry_strategy: RetryStrategy | None = None,
    ):
        self.config = config
        self._http = http_provider or HttpxProvider.from_config(config)
        self._kv = kv_provider
        self._retry_strategy = retry_strategy or BestEffortRetryStrategy()
        self._query_service = QueryService(
            self._http,
            query_timeout=config.query_timeout,
            analytics_timeout=config.analytics_timeout,
            default_retry_strategy=self._retry_strategy,
        )

    @property
    def http_provider(self) -> HttpProvider:
        return self._http

    @property
    def kv_provider(self) -> KvProvider | None:
        return self._kv

    @property
    def retry_strategy(self) -> RetryStrategy:
        return self._retry_strategy

    def service_timeout(self, service: ServiceType) -> float:
        """Default client-side timeout for requests to a service."""
        return {
            ServiceType.KEY_VALUE: self.config.kv_timeout,
            ServiceType.QUERY: self.config.query_timeout,
            ServiceType.ANALYTICS: self.config.analytics_timeout,
            ServiceType.SEARCH: self.config.search_timeout,
            ServiceType.VIEWS: self.config.view_timeout,
        }.get(service, self.config.management_timeout)

    def buckets(self) -> BucketManager:
        return BucketManager(self._http, self.config.management_timeout, self._retry_strategy)

    def users(self) -> UserManager:
        return UserManager(self._http, self.config.management_timeout, self._retry_strategy)

    def query_indexes(self) -> QueryIndexManager:
        return QueryIndexManager(
            self._query_service, self.config.management_timeout, self._retry_strategy
        )

    async def query(self, statement: str, options: QueryOptions | None = None) -> QueryResult:
        return await self._query_service.query(statement, options)

    async def analytics_query(
        self, statement: str, options: AnalyticsOptions | None = None
    ) -> AnalyticsResult:
        return await self._query_service.analytics_query(statement, options)

    def bucket(self, name: str) -> "Bucket":
        return Bucket(self, name)

    async def close(self) -> None:
        try:
            await self._http.aclose()
        finally:
            if self._kv is not None:
                await self._kv.aclose()

    async def __aenter__(self) -> "Cluster":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class Bucket:
    """A bucket of the cluster: views, ping and collections."""

    def __init__(self, cluster: Cluster, name: str):
        self._cluster = cluster
        self.name = name

    def view_indexes(self) -> ViewIndexManager:
        return ViewIndexManager(
            self.name,
            self._cluster.http_provider,
            self._cluster.config.management_timeout,
            self._cluster.retry_strategy,
        )

    async def view_query(
        self, design_document: str, view_name: str, options: ViewOptions | None = None
    ) -> ViewResult:
        service = ViewQueryService(
            self._cluster.http_provider,
            self._cluster.config.view_timeout,
            self._cluster.retry_strategy,
        )
        token = set_operation_context(bucket_name=self.name, service=ServiceType.VIEWS.value)
        try:
            return await service.view_query(self.name, design_document, view_name, options)
        finally:
            clear_operation_context(token)

    def scope(self, name: str) -> "Scope":
        return Scope(self, name)

    def collection(self, name: str) -> Collection:
        """A collection of the default scope."""
        return self.scope("_default").collection(name)

    def default_collection(self) -> Collection:
        return self.collection("_default")

    async def ping(
        self,
        service_types: Iterable[ServiceType] | None = None,
        report_id: str | None = None,
    ) -> PingReport:
        """
        Ping the services of the bucket's cluster.

        HTTP services are pinged concurrently with the KV endpoints, each
        bounded by its service timeout. HTTP failures are reported in the
        result rather than raised.

        Raises:
            ServiceNotAvailableError: If KV is requested and no KV provider exists
            OperationTimeoutError: If the KV ping does not complete in time
        """
        requested = list(service_types or [])
        report = PingReport(id=report_id or str(uuid.uuid4()))
        token = set_operation_context(bucket_name=self.name, service="ping", report_id=report.id)
        try:
            return await self._ping(requested, report)
        finally:
            clear_operation_context(token)

    async def _ping(self, requested: list[ServiceType], report: PingReport) -> PingReport:
        services = requested or list(DEFAULT_PING_SERVICES)
        ping_kv = ServiceType.KEY_VALUE in services
        if ping_kv and self._cluster.kv_provider is None:
            if requested:
                raise ServiceNotAvailableError(
                    "No KV provider is configured", service=ServiceType.KEY_VALUE.value
                )
            contextual_logger.debug("Skipping KV ping: no KV provider is configured")
            ping_kv = False

        http_services = [s for s in services if s in PING_PATHS]
        http_results, kv_results = await asyncio.gather(
            asyncio.gather(*(self._ping_http(s, report.id) for s in http_services)),
            self._ping_kv(report) if ping_kv else _no_results(),
        )

        for entry in kv_results:
            report.add(entry)
        for entry in http_results:
            report.add(entry)
        return report

    async def _ping_kv(self, report: PingReport) -> list[EndpointPingReport]:
        timeout = self._cluster.service_timeout(ServiceType.KEY_VALUE)
        deadline = compute_deadline(None, timeout)
        start = time.monotonic()
        try:
            reply = await asyncio.wait_for(
                self._cluster.kv_provider.ping(self.name, report.id, deadline),
                timeout=remaining_time(deadline),
            )
        except asyncio.TimeoutError as e:
            raise OperationTimeoutError(
                operation="kv", operation_id=report.id, elapsed=time.monotonic() - start
            ) from e

        report.config_rev = reply.config_rev
        return [
            EndpointPingReport(
                service=ServiceType.KEY_VALUE,
                remote_addr=result.endpoint,
                state=PingState.ERROR if result.error else PingState.OK,
                latency=result.latency,
                scope=result.scope,
                error=result.error,
            )
            for result in reply.services
        ]

    async def _ping_http(self, service: ServiceType, report_id: str) -> EndpointPingReport:
        timeout = self._cluster.service_timeout(service)
        request = HttpRequest(
            service=service,
            method="GET",
            path=PING_PATHS[service],
            is_idempotent=True,
            retry_strategy=FailFastRetryStrategy(),
            unique_id=report_id,
            deadline=compute_deadline(None, timeout),
        )
        start = time.monotonic()
        error: str | None = None
        try:
            response = await asyncio.wait_for(
                self._cluster.http_provider.do_http_request(request),
                timeout=remaining_time(request.deadline),
            )
            if response.status_code != 200:
                error = f"unexpected status code {response.status_code}"
        except asyncio.TimeoutError:
            error = "timeout"
        except CBAdminError as e:
            error = str(e)
        latency = time.monotonic() - start

        if error is not None:
            contextual_logger.debug(
                f"Ping of {service.value} at {request.endpoint} failed: {error}"
            )
            return EndpointPingReport(
                service=service,
                remote_addr=request.endpoint or "",
                state=PingState.ERROR,
                error=error,
            )
        return EndpointPingReport(
            service=service,
            remote_addr=request.endpoint or "",
            state=PingState.OK,
            latency=latency,
        )


async def _no_results() -> list[EndpointPingReport]:
    return []


class Scope:
    def __init__(self, bucket: Bucket, name: str):
        self._bucket = bucket
        self.name = name

    def collection(self, name: str) -> Collection:
        """
        Raises:
            ServiceNotAvailableError: If the cluster has no KV provider
        """
        cluster = self._bucket._cluster
        if cluster.kv_provider is None:
            raise ServiceNotAvailableError(
                "No KV provider is configured", service=ServiceType.KEY_VALUE.value
            )
        return Collection(
            self._bucket.name,
            cluster.kv_provider,
            scope_name=self.name,
            collection_name=name,
            kv_timeout=cluster.config.kv_timeout,
            default_retry_strategy=cluster.retry_strategy,
        )
