"""
Collection-level sub-document operations.

Collection.lookup_in() and Collection.mutate_in() encode specs, call the
KV provider within the operation deadline, and wrap the reply in result
objects that decode path values lazily.
"""

import asyncio
import logging
import time
from typing import Any, Sequence

from ..constants import (
    DEFAULT_KV_TIMEOUT,
    EXPIRY_XATTR_PATH,
    MAX_LOOKUP_IN_SPECS,
    DurabilityLevel,
    SubdocDocFlag,
)
from ..core.deadlines import compute_deadline, remaining_time
from ..core.kv import (
    KvProvider,
    LookupInRequest,
    MutateInRequest,
    MutationToken,
    SubDocOp,
    SubDocOpResult,
)
from ..core.retry import RetryStrategy
from ..exceptions import (
    InvalidArgumentsError,
    KeyValueError,
    OperationTimeoutError,
    SubdocPathError,
)
from ..observability.metrics import timed_operation
from ..serializers import DEFAULT_SERIALIZER, Serializer
from .specs import LookupInSpec, MutateInSpec

logger = logging.getLogger(__name__)


def encode_multi_value(value: Any, serializer: Serializer) -> bytes:
    """
    Serialize a list of array elements without the enclosing brackets.

    Raises:
        InvalidArgumentsError: If the value does not serialize to a JSON array
    """
    data = serializer.serialize(value)
    if len(data) < 2 or data[:1] != b"[":
        raise InvalidArgumentsError("not a JSON array")
    return data[1:-1]


def encode_mutation(spec: MutateInSpec, serializer: Serializer) -> SubDocOp:
    if not spec.has_value:
        return SubDocOp(op=spec.op, path=spec.path, flags=spec.flags)
    if spec.multi_value:
        value = encode_multi_value(spec.value, serializer)
    else:
        value = serializer.serialize(spec.value)
    return SubDocOp(op=spec.op, path=spec.path, flags=spec.flags, value=value)


class _SubdocResult:
    def __init__(
        self, key: str, contents: list[SubDocOpResult], serializer: Serializer
    ) -> None:
        self.key = key
        self._contents = contents
        self._serializer = serializer

    def __len__(self) -> int:
        return len(self._contents)

    def _entry(self, index: int) -> SubDocOpResult:
        if not 0 <= index < len(self._contents):
            raise InvalidArgumentsError(
                f"no result at index {index}", context={"key": self.key}
            )
        return self._contents[index]

    def content_as(self, index: int) -> Any:
        """
        Decode the value returned for the spec at index.

        Raises:
            SubdocPathError: If that path operation failed
        """
        entry = self._entry(index)
        if entry.error:
            raise SubdocPathError(
                f"sub-document operation {index} failed: {entry.error}",
                key=self.key,
                status=entry.error,
            )
        if entry.value is None:
            return None
        return self._serializer.deserialize(entry.value)


class LookupInResult(_SubdocResult):
    """
    Result of lookup_in.

    Attributes:
        cas: Document CAS
        expiry: Document expiry time (epoch seconds) when requested, else None
    """

    def __init__(
        self,
        key: str,
        cas: int,
        contents: list[SubDocOpResult],
        serializer: Serializer,
        expiry: int | None = None,
    ) -> None:
        super().__init__(key, contents, serializer)
        self.cas = cas
        self.expiry = expiry

    def exists(self, index: int) -> bool:
        """True when the path operation at index succeeded."""
        if not 0 <= index < len(self._contents):
            return False
        return self._contents[index].error is None


class MutateInResult(_SubdocResult):
    def __init__(
        self,
        key: str,
        cas: int,
        mutation_token: MutationToken | None,
        contents: list[SubDocOpResult],
        serializer: Serializer,
    ) -> None:
        super().__init__(key, contents, serializer)
        self.cas = cas
        self.mutation_token = mutation_token


class Collection:
    """
    A collection of a bucket, exposing sub-document operations.

    Args:
        bucket_name: Owning bucket
        kv_provider: KV engine used to execute operations
        scope_name: Scope name
        collection_name: Collection name
        kv_timeout: Default timeout for KV operations (seconds)
        default_retry_strategy: Strategy used when an operation supplies none
    """

    def __init__(
        self,
        bucket_name: str,
        kv_provider: KvProvider,
        scope_name: str = "_default",
        collection_name: str = "_default",
        kv_timeout: float = DEFAULT_KV_TIMEOUT,
        default_retry_strategy: RetryStrategy | None = None,
    ):
        self.bucket_name = bucket_name
        self.scope_name = scope_name
        self.name = collection_name
        self._kv = kv_provider
        self._kv_timeout = kv_timeout
        self._default_retry_strategy = default_retry_strategy

    async def _call(self, key: str, deadline: float, coro):
        start = time.monotonic()
        try:
            return await asyncio.wait_for(coro, timeout=remaining_time(deadline))
        except asyncio.TimeoutError as e:
            raise OperationTimeoutError(
                operation="kv", operation_id=key, elapsed=time.monotonic() - start
            ) from e
        except KeyValueError as e:
            if e.key is not None:
                raise
            raise KeyValueError(e.message, key=key, status=e.status) from e

    @timed_operation("kv.lookup_in")
    async def lookup_in(
        self,
        key: str,
        specs: Sequence[LookupInSpec],
        with_expiry: bool = False,
        timeout: float | None = None,
        serializer: Serializer | None = None,
        retry_strategy: RetryStrategy | None = None,
    ) -> LookupInResult:
        """
        Read several paths of a document in one round trip.

        Raises:
            InvalidArgumentsError: If more than 16 specs are given
            KeyValueError: If the document cannot be read
            OperationTimeoutError: If the lookup does not complete in time
        """
        if len(specs) > MAX_LOOKUP_IN_SPECS:
            raise InvalidArgumentsError(
                f"too many lookup_in specs, maximum {MAX_LOOKUP_IN_SPECS}",
                context={"key": key, "spec_count": len(specs)},
            )
        serializer = serializer or DEFAULT_SERIALIZER

        ops = [spec.to_op() for spec in specs]
        if with_expiry:
            ops.insert(0, LookupInSpec.get(EXPIRY_XATTR_PATH, is_xattr=True).to_op())

        deadline = compute_deadline(timeout, self._kv_timeout)
        request = LookupInRequest(
            key=key,
            ops=ops,
            scope_name=self.scope_name,
            collection_name=self.name,
            deadline=deadline,
            retry_strategy=retry_strategy or self._default_retry_strategy,
        )
        reply = await self._call(key, deadline, self._kv.lookup_in(self.bucket_name, request))

        contents = list(reply.ops)
        expiry = None
        if with_expiry:
            expiry_result = _SubdocResult(key, contents[:1], serializer)
            expiry = int(expiry_result.content_as(0) or 0)
            contents = contents[1:]

        return LookupInResult(key, reply.cas, contents, serializer, expiry=expiry)

    @timed_operation("kv.mutate_in")
    async def mutate_in(
        self,
        key: str,
        specs: Sequence[MutateInSpec],
        expiry: int = 0,
        cas: int = 0,
        insert_document: bool = False,
        upsert_document: bool = False,
        access_deleted: bool = False,
        durability_level: DurabilityLevel = DurabilityLevel.NONE,
        persist_to: int = 0,
        replicate_to: int = 0,
        timeout: float | None = None,
        serializer: Serializer | None = None,
        retry_strategy: RetryStrategy | None = None,
    ) -> MutateInResult:
        """
        Apply several path mutations atomically.

        Args:
            insert_document: Create the document; fail if it exists
            upsert_document: Create the document if it does not exist
            access_deleted: Allow operating on a deleted document's xattrs
            durability_level: Synchronous durability requirement
            persist_to: Wait for persistence on this many nodes afterwards
            replicate_to: Wait for replication to this many nodes afterwards

        Raises:
            InvalidArgumentsError: If the arguments are inconsistent
            KeyValueError: If the mutation is rejected
            OperationTimeoutError: If the mutation does not complete in time
        """
        if insert_document and upsert_document:
            raise InvalidArgumentsError(
                "insert_document and upsert_document cannot both be set", context={"key": key}
            )
        if durability_level != DurabilityLevel.NONE and (persist_to or replicate_to):
            raise InvalidArgumentsError(
                "durability_level cannot be combined with persist_to/replicate_to",
                context={"key": key},
            )
        serializer = serializer or DEFAULT_SERIALIZER

        flags = SubdocDocFlag.NONE
        if insert_document:
            flags |= SubdocDocFlag.ADD_DOC
        if upsert_document:
            flags |= SubdocDocFlag.MKDOC
        if access_deleted:
            flags |= SubdocDocFlag.ACCESS_DELETED

        ops = [encode_mutation(spec, serializer) for spec in specs]

        deadline = compute_deadline(timeout, self._kv_timeout)
        durability_timeout_ms = 0
        if durability_level != DurabilityLevel.NONE:
            durability_timeout_ms = int(remaining_time(deadline) * 1000)

        request = MutateInRequest(
            key=key,
            ops=ops,
            flags=flags,
            cas=cas,
            expiry=expiry,
            durability_level=durability_level,
            durability_timeout_ms=durability_timeout_ms,
            scope_name=self.scope_name,
            collection_name=self.name,
            deadline=deadline,
            retry_strategy=retry_strategy or self._default_retry_strategy,
        )
        reply = await self._call(key, deadline, self._kv.mutate_in(self.bucket_name, request))
        result = MutateInResult(key, reply.cas, reply.mutation_token, list(reply.ops), serializer)

        if persist_to or replicate_to:
            logger.debug(
                f"Observing durability of '{key}' (persist_to={persist_to}, "
                f"replicate_to={replicate_to})"
            )
            await self._call(
                key,
                deadline,
                self._kv.observe_durability(
                    self.bucket_name,
                    key,
                    reply.cas,
                    reply.mutation_token,
                    persist_to,
                    replicate_to,
                    deadline,
                ),
            )

        return result
