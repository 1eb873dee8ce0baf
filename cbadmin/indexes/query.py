"""
N1QL (GSI) index management.

Indexes are created, dropped, listed and built by issuing N1QL statements
through the QueryService; watch_indexes() polls system:indexes until the
requested indexes are online.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from ..constants import (
    DEFAULT_QUERY_TIMEOUT,
    DEFERRED_INDEX_STATES,
    INDEX_STATE_ONLINE,
    PRIMARY_INDEX_NAME,
    WATCH_INITIAL_INTERVAL,
    WATCH_INTERVAL_STEP,
    WATCH_MAX_INTERVAL,
)
from ..core.deadlines import compute_deadline
from ..core.retry import RetryStrategy
from ..exceptions import (
    InvalidArgumentsError,
    OperationTimeoutError,
    QueryError,
    QueryIndexError,
)
from ..observability.metrics import timed_operation
from ..query.options import QueryOptions
from ..query.service import QueryService

logger = logging.getLogger(__name__)

GET_ALL_INDEXES_STATEMENT = "SELECT `indexes`.* FROM system:indexes WHERE keyspace_id=?"


@dataclass
class QueryIndex:
    """An entry of system:indexes."""

    name: str
    is_primary: bool = False
    type: str = ""
    state: str = ""
    keyspace: str = ""
    namespace: str = ""
    index_key: list[str] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "QueryIndex":
        return cls(
            name=row.get("name", ""),
            is_primary=bool(row.get("is_primary", False)),
            type=row.get("using", ""),
            state=row.get("state", ""),
            keyspace=row.get("keyspace_id", ""),
            namespace=row.get("namespace_id", ""),
            index_key=list(row.get("index_key") or []),
        )


def _quote(identifier: str) -> str:
    return f"`{identifier}`"


def build_create_statement(
    bucket_name: str,
    index_name: str = "",
    fields: list[str] | None = None,
    condition: str = "",
    deferred: bool = False,
) -> str:
    """CREATE [PRIMARY] INDEX statement; no fields means a primary index."""
    parts = ["CREATE INDEX" if fields else "CREATE PRIMARY INDEX"]
    if index_name:
        parts.append(_quote(index_name))
    parts.append(f"ON {_quote(bucket_name)}")
    statement = " ".join(parts)
    if fields:
        statement += " (" + ", ".join(_quote(f) for f in fields) + ")"
    if condition:
        statement += f" WHERE {condition}"
    if deferred:
        statement += ' WITH {"defer_build": true}'
    return statement


def build_drop_statement(bucket_name: str, index_name: str = "") -> str:
    if not index_name:
        return f"DROP PRIMARY INDEX ON {_quote(bucket_name)}"
    return f"DROP INDEX {_quote(bucket_name)}.{_quote(index_name)}"


def check_indexes_online(indexes: list[QueryIndex], names: list[str]) -> bool:
    """
    True when every named index is online.

    Raises:
        QueryIndexError: If a named index does not exist
    """
    by_name = {index.name: index for index in indexes}
    missing = [name for name in names if name not in by_name]
    if missing:
        raise QueryIndexError(
            "the index specified does not exist",
            index_missing=True,
            context={"index_names": ",".join(missing)},
        )
    return all(by_name[name].state == INDEX_STATE_ONLINE for name in names)


class QueryIndexManager:
    """
    Manages N1QL indexes of a bucket.

    Args:
        query_service: Executor used to run index statements
        default_timeout: Default timeout for each operation (seconds)
        default_retry_strategy: Strategy used when an operation supplies none
    """

    def __init__(
        self,
        query_service: QueryService,
        default_timeout: float = DEFAULT_QUERY_TIMEOUT,
        default_retry_strategy: RetryStrategy | None = None,
    ):
        self._query_service = query_service
        self._default_timeout = default_timeout
        self._default_retry_strategy = default_retry_strategy

    def _options(
        self, retry_strategy: RetryStrategy | None, **kwargs: Any
    ) -> QueryOptions:
        return QueryOptions(retry_strategy=retry_strategy or self._default_retry_strategy, **kwargs)

    async def _create(
        self,
        bucket_name: str,
        index_name: str,
        fields: list[str] | None,
        condition: str,
        ignore_if_exists: bool,
        deferred: bool,
        timeout: float | None,
        retry_strategy: RetryStrategy | None,
    ) -> None:
        statement = build_create_statement(bucket_name, index_name, fields, condition, deferred)
        deadline = compute_deadline(timeout, self._default_timeout)
        try:
            await self._query_service.query(
                statement, self._options(retry_strategy), parent_deadline=deadline
            )
        except QueryError as e:
            if "already exist" not in str(e):
                raise
            if ignore_if_exists:
                logger.debug(f"Index '{index_name or PRIMARY_INDEX_NAME}' already exists")
                return
            raise QueryIndexError(
                e.message,
                status_code=409,
                index_exists=True,
                context={"bucket_name": bucket_name, "index_name": index_name},
            ) from e
        logger.info(f"Created index '{index_name or PRIMARY_INDEX_NAME}' on '{bucket_name}'")

    @timed_operation("query_indexes.create_index")
    async def create_index(
        self,
        bucket_name: str,
        index_name: str,
        fields: list[str],
        ignore_if_exists: bool = False,
        deferred: bool = False,
        timeout: float | None = None,
        retry_strategy: RetryStrategy | None = None,
    ) -> None:
        """
        Create a secondary index over fields.

        Raises:
            InvalidArgumentsError: If the name or fields are missing
            QueryIndexError: If the index exists and ignore_if_exists is False
        """
        if not index_name:
            raise InvalidArgumentsError("an invalid index name was specified")
        if not fields:
            raise InvalidArgumentsError("you must specify at least one field to index")
        await self._create(
            bucket_name, index_name, fields, "", ignore_if_exists, deferred, timeout, retry_strategy
        )

    @timed_operation("query_indexes.create_index_where")
    async def create_index_where(
        self,
        bucket_name: str,
        index_name: str,
        fields: list[str],
        condition: str,
        ignore_if_exists: bool = False,
        deferred: bool = False,
        timeout: float | None = None,
        retry_strategy: RetryStrategy | None = None,
    ) -> None:
        """Create a partial secondary index restricted by a WHERE condition."""
        if not index_name:
            raise InvalidArgumentsError("an invalid index name was specified")
        if not fields:
            raise InvalidArgumentsError("you must specify at least one field to index")
        await self._create(
            bucket_name,
            index_name,
            fields,
            condition,
            ignore_if_exists,
            deferred,
            timeout,
            retry_strategy,
        )

    @timed_operation("query_indexes.create_primary_index")
    async def create_primary_index(
        self,
        bucket_name: str,
        custom_name: str = "",
        ignore_if_exists: bool = False,
        deferred: bool = False,
        timeout: float | None = None,
        retry_strategy: RetryStrategy | None = None,
    ) -> None:
        await self._create(
            bucket_name, custom_name, None, "", ignore_if_exists, deferred, timeout, retry_strategy
        )

    async def _drop(
        self,
        bucket_name: str,
        index_name: str,
        ignore_if_not_exists: bool,
        timeout: float | None,
        retry_strategy: RetryStrategy | None,
    ) -> None:
        statement = build_drop_statement(bucket_name, index_name)
        deadline = compute_deadline(timeout, self._default_timeout)
        try:
            await self._query_service.query(
                statement, self._options(retry_strategy), parent_deadline=deadline
            )
        except QueryError as e:
            if "not found" not in str(e):
                raise
            if ignore_if_not_exists:
                logger.debug(f"Index '{index_name or PRIMARY_INDEX_NAME}' not found")
                return
            raise QueryIndexError(
                e.message,
                index_missing=True,
                context={"bucket_name": bucket_name, "index_name": index_name},
            ) from e
        logger.info(f"Dropped index '{index_name or PRIMARY_INDEX_NAME}' on '{bucket_name}'")

    @timed_operation("query_indexes.drop_index")
    async def drop_index(
        self,
        bucket_name: str,
        index_name: str,
        ignore_if_not_exists: bool = False,
        timeout: float | None = None,
        retry_strategy: RetryStrategy | None = None,
    ) -> None:
        if not index_name:
            raise InvalidArgumentsError("an invalid index name was specified")
        await self._drop(bucket_name, index_name, ignore_if_not_exists, timeout, retry_strategy)

    @timed_operation("query_indexes.drop_primary_index")
    async def drop_primary_index(
        self,
        bucket_name: str,
        ignore_if_not_exists: bool = False,
        timeout: float | None = None,
        retry_strategy: RetryStrategy | None = None,
    ) -> None:
        await self._drop(bucket_name, "", ignore_if_not_exists, timeout, retry_strategy)

    async def _get_all(
        self,
        bucket_name: str,
        deadline: float,
        retry_strategy: RetryStrategy | None,
    ) -> list[QueryIndex]:
        result = await self._query_service.query(
            GET_ALL_INDEXES_STATEMENT,
            self._options(retry_strategy, positional_parameters=[bucket_name], read_only=True),
            parent_deadline=deadline,
        )
        return [QueryIndex.from_row(row) for row in result.rows()]

    @timed_operation("query_indexes.get_all_indexes")
    async def get_all_indexes(
        self,
        bucket_name: str,
        timeout: float | None = None,
        retry_strategy: RetryStrategy | None = None,
    ) -> list[QueryIndex]:
        deadline = compute_deadline(timeout, self._default_timeout)
        return await self._get_all(bucket_name, deadline, retry_strategy)

    @timed_operation("query_indexes.build_deferred_indexes")
    async def build_deferred_indexes(
        self,
        bucket_name: str,
        timeout: float | None = None,
        retry_strategy: RetryStrategy | None = None,
    ) -> list[str]:
        """
        Build every deferred or pending index of the bucket.

        Returns:
            Names of the indexes a build was requested for
        """
        deadline = compute_deadline(timeout, self._default_timeout)
        indexes = await self._get_all(bucket_name, deadline, retry_strategy)
        deferred = [index.name for index in indexes if index.state in DEFERRED_INDEX_STATES]
        if not deferred:
            return []

        statement = (
            f"BUILD INDEX ON {_quote(bucket_name)}(" + ", ".join(_quote(n) for n in deferred) + ")"
        )
        await self._query_service.query(
            statement, self._options(retry_strategy), parent_deadline=deadline
        )
        logger.info(f"Requested build of {len(deferred)} deferred index(es) on '{bucket_name}'")
        return deferred

    @timed_operation("query_indexes.watch_indexes")
    async def watch_indexes(
        self,
        bucket_name: str,
        index_names: list[str],
        timeout: float,
        watch_primary: bool = False,
        retry_strategy: RetryStrategy | None = None,
    ) -> None:
        """
        Wait until the named indexes are online.

        Raises:
            InvalidArgumentsError: If no timeout is given
            QueryIndexError: If one of the indexes does not exist
            OperationTimeoutError: If the indexes are not online in time
        """
        if not timeout or timeout <= 0:
            raise InvalidArgumentsError("a timeout value must be supplied to watch")

        watch_list = list(index_names)
        if watch_primary:
            watch_list.append(PRIMARY_INDEX_NAME)

        start = time.monotonic()
        deadline = compute_deadline(timeout, self._default_timeout)
        interval = WATCH_INITIAL_INTERVAL
        while True:
            indexes = await self._get_all(bucket_name, deadline, retry_strategy)
            if check_indexes_online(indexes, watch_list):
                logger.debug(f"Indexes online on '{bucket_name}': {watch_list}")
                return

            interval = min(interval + WATCH_INTERVAL_STEP, WATCH_MAX_INTERVAL)
            if time.monotonic() + interval > deadline:
                raise OperationTimeoutError(
                    "timed out waiting for indexes to come online",
                    operation="n1ql",
                    elapsed=time.monotonic() - start,
                )
            await asyncio.sleep(interval)
