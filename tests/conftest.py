"""
Pytest configuration and shared fixtures for CBADMIN tests.

This module provides:
- A scripted in-memory HTTP provider
- A scripted in-memory KV provider
- Cluster configuration and cluster fixtures
"""

import inspect
import json
from typing import Any, Callable, List, Optional
from urllib.parse import parse_qsl

import pytest

from cbadmin.config import ClusterConfig
from cbadmin.core.cluster import Cluster
from cbadmin.core.http import HttpProvider, HttpRequest, HttpResponse
from cbadmin.core.kv import (
    KvPingReply,
    KvProvider,
    LookupInReply,
    LookupInRequest,
    MutateInReply,
    MutateInRequest,
    MutationToken,
)
from cbadmin.observability.metrics import get_metrics_collector

# ============================================================================
# FAKE PROVIDERS
# ============================================================================


def json_response(data: Any, status_code: int = 200, endpoint: str = "") -> HttpResponse:
    return HttpResponse(
        endpoint=endpoint, status_code=status_code, body=json.dumps(data).encode("utf-8")
    )


def text_response(text: str, status_code: int = 200, endpoint: str = "") -> HttpResponse:
    return HttpResponse(endpoint=endpoint, status_code=status_code, body=text.encode("utf-8"))


def form_fields(request: HttpRequest) -> List[tuple]:
    """Decode a form-encoded request body into (name, value) pairs."""
    return parse_qsl((request.body or b"").decode("utf-8"), keep_blank_values=True)


def json_body(request: HttpRequest) -> Any:
    return json.loads(request.body)


class FakeHttpProvider(HttpProvider):
    """
    HttpProvider that records requests and replays scripted outcomes.

    Each queued item is an HttpResponse, an exception to raise, or a callable
    taking the request and returning (or awaiting to) either. A handler, when
    set, is used once the queue is empty.
    """

    def __init__(self, endpoint: str = "http://localhost:8091"):
        self.endpoint = endpoint
        self.requests: List[HttpRequest] = []
        self.queue: List[Any] = []
        self.handler: Optional[Callable] = None
        self.closed = False

    def add(self, *items: Any) -> "FakeHttpProvider":
        self.queue.extend(items)
        return self

    def add_json(self, data: Any, status_code: int = 200) -> "FakeHttpProvider":
        return self.add(json_response(data, status_code))

    def add_text(self, text: str, status_code: int = 200) -> "FakeHttpProvider":
        return self.add(text_response(text, status_code))

    async def do_http_request(self, request: HttpRequest) -> HttpResponse:
        self.requests.append(request)
        request.endpoint = self.endpoint
        if self.queue:
            item = self.queue.pop(0)
        elif self.handler is not None:
            item = self.handler
        else:
            raise AssertionError(f"Unexpected request {request.method} {request.path}")

        if callable(item) and not isinstance(item, HttpResponse):
            item = item(request)
            if inspect.isawaitable(item):
                item = await item
        if isinstance(item, BaseException):
            raise item
        if not item.endpoint:
            item.endpoint = self.endpoint
        return item

    async def aclose(self) -> None:
        self.closed = True

    @property
    def last_request(self) -> HttpRequest:
        return self.requests[-1]


class FakeKvProvider(KvProvider):
    """KvProvider returning scripted replies and recording every call."""

    def __init__(self):
        self.lookup_requests: List[LookupInRequest] = []
        self.mutate_requests: List[MutateInRequest] = []
        self.observe_calls: List[dict] = []
        self.ping_calls: List[tuple] = []
        self.lookup_reply: Any = LookupInReply(cas=1, ops=[])
        self.mutate_reply: Any = MutateInReply(
            cas=2, mutation_token=MutationToken(12, 34, 56, "default"), ops=[]
        )
        self.ping_reply: Any = KvPingReply()
        self.closed = False

    @staticmethod
    async def _resolve(reply: Any, request: Any) -> Any:
        if callable(reply):
            reply = reply(request)
            if inspect.isawaitable(reply):
                reply = await reply
        if isinstance(reply, BaseException):
            raise reply
        return reply

    async def lookup_in(self, bucket_name: str, request: LookupInRequest) -> LookupInReply:
        self.lookup_requests.append(request)
        return await self._resolve(self.lookup_reply, request)

    async def mutate_in(self, bucket_name: str, request: MutateInRequest) -> MutateInReply:
        self.mutate_requests.append(request)
        return await self._resolve(self.mutate_reply, request)

    async def ping(self, bucket_name: str, report_id: str, deadline: float) -> KvPingReply:
        self.ping_calls.append((bucket_name, report_id))
        return await self._resolve(self.ping_reply, report_id)

    async def observe_durability(
        self, bucket_name, key, cas, mutation_token, persist_to, replicate_to, deadline
    ) -> None:
        self.observe_calls.append(
            {
                "bucket_name": bucket_name,
                "key": key,
                "cas": cas,
                "mutation_token": mutation_token,
                "persist_to": persist_to,
                "replicate_to": replicate_to,
            }
        )

    async def aclose(self) -> None:
        self.closed = True


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def http_provider() -> FakeHttpProvider:
    return FakeHttpProvider()


@pytest.fixture
def kv_provider() -> FakeKvProvider:
    return FakeKvProvider()


@pytest.fixture
def cluster_config() -> ClusterConfig:
    return ClusterConfig.load(
        connection_string="couchbase://localhost",
        username="Administrator",
        password="password",
    )


@pytest.fixture
def cluster(cluster_config, http_provider, kv_provider) -> Cluster:
    return Cluster(cluster_config, http_provider=http_provider, kv_provider=kv_provider)


@pytest.fixture(autouse=True)
def reset_metrics():
    """Start every test with an empty global metrics collector."""
    get_metrics_collector().reset()
    yield
    get_metrics_collector().reset()
