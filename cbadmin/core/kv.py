"""
Key-value engine seam for CBADMIN.

The binary protocol lives outside this package. Sub-document and ping
operations describe their work with the types below and call a KvProvider,
which reports document-level failures by raising KeyValueError and per-path
failures inside the reply.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from ..constants import DurabilityLevel, ServiceType, SubDocOpType, SubdocDocFlag, SubdocFlag
from .retry import RetryStrategy


@dataclass
class SubDocOp:
    """One encoded sub-document path operation."""

    op: SubDocOpType
    path: str = ""
    flags: SubdocFlag = SubdocFlag.NONE
    value: bytes | None = None


@dataclass
class SubDocOpResult:
    """
    Outcome of one path operation.

    error holds the engine status name (for example "path_not_found") when
    the path failed.
    """

    value: bytes | None = None
    error: str | None = None


@dataclass(frozen=True)
class MutationToken:
    vbucket_id: int
    vbucket_uuid: int
    seq_no: int
    bucket_name: str


@dataclass
class LookupInRequest:
    key: str
    ops: list[SubDocOp]
    flags: SubdocDocFlag = SubdocDocFlag.NONE
    scope_name: str = "_default"
    collection_name: str = "_default"
    deadline: float | None = None
    retry_strategy: RetryStrategy | None = None


@dataclass
class MutateInRequest:
    key: str
    ops: list[SubDocOp]
    flags: SubdocDocFlag = SubdocDocFlag.NONE
    cas: int = 0
    expiry: int = 0
    durability_level: DurabilityLevel = DurabilityLevel.NONE
    durability_timeout_ms: int = 0
    scope_name: str = "_default"
    collection_name: str = "_default"
    deadline: float | None = None
    retry_strategy: RetryStrategy | None = None


@dataclass
class LookupInReply:
    cas: int
    ops: list[SubDocOpResult]


@dataclass
class MutateInReply:
    cas: int
    mutation_token: MutationToken | None
    ops: list[SubDocOpResult]


@dataclass
class PingServiceResult:
    """Ping outcome for one KV endpoint; latency is in seconds."""

    endpoint: str
    latency: float
    error: str | None = None
    scope: str | None = None
    service: ServiceType = ServiceType.KEY_VALUE


@dataclass
class KvPingReply:
    config_rev: int = 0
    services: list[PingServiceResult] = field(default_factory=list)


class KvProvider(ABC):
    """Executes key-value operations against a bucket."""

    @abstractmethod
    async def lookup_in(self, bucket_name: str, request: LookupInRequest) -> LookupInReply:
        """Run a multi-path lookup."""

    @abstractmethod
    async def mutate_in(self, bucket_name: str, request: MutateInRequest) -> MutateInReply:
        """Run a multi-path mutation."""

    @abstractmethod
    async def ping(self, bucket_name: str, report_id: str, deadline: float) -> KvPingReply:
        """Ping every KV endpoint of the bucket."""

    @abstractmethod
    async def observe_durability(
        self,
        bucket_name: str,
        key: str,
        cas: int,
        mutation_token: MutationToken | None,
        persist_to: int,
        replicate_to: int,
        deadline: float,
    ) -> None:
        """Wait until a mutation is persisted/replicated to the requested nodes."""

    async def aclose(self) -> None:
        """Release any resources held by the provider."""
