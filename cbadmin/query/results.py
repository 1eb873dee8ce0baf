"""
Result types for query, analytics and view requests.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from ..exceptions import NoResultsError
from ..serializers import DEFAULT_SERIALIZER, Serializer

logger = logging.getLogger(__name__)

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: str | None) -> timedelta:
    """
    Parse a server duration string such as "1.2ms", "3m4.5s" or "0s".

    Raises:
        ValueError: If the string is not a valid duration
    """
    if not value:
        return timedelta(0)

    text = value.strip()
    sign = 1
    if text[0] in "+-":
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if text == "0":
        return timedelta(0)

    seconds = 0.0
    position = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        seconds += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        position = match.end()

    if position != len(text) or position == 0:
        raise ValueError(f"invalid duration '{value}'")
    return timedelta(seconds=sign * seconds)


def format_duration(seconds: float) -> str:
    """
    Format seconds as a whole-millisecond duration string ("20ms").

    Never below "1ms", since a zero timeout disables the server-side limit.
    """
    return f"{max(int(round(seconds * 1000)), 1)}ms"


def _metric_duration(data: dict[str, Any], key: str) -> timedelta:
    try:
        return parse_duration(data.get(key))
    except (ValueError, AttributeError) as e:
        logger.debug(f"Ignoring metric {key}: {e}")
        return timedelta(0)


@dataclass
class QueryMetrics:
    elapsed_time: timedelta = timedelta(0)
    execution_time: timedelta = timedelta(0)
    result_count: int = 0
    result_size: int = 0
    mutation_count: int = 0
    sort_count: int = 0
    error_count: int = 0
    warning_count: int = 0
    processed_objects: int = 0

    @classmethod
    def from_server(cls, data: dict[str, Any] | None) -> "QueryMetrics":
        data = data or {}
        return cls(
            elapsed_time=_metric_duration(data, "elapsedTime"),
            execution_time=_metric_duration(data, "executionTime"),
            result_count=int(data.get("resultCount", 0)),
            result_size=int(data.get("resultSize", 0)),
            mutation_count=int(data.get("mutationCount", 0)),
            sort_count=int(data.get("sortCount", 0)),
            error_count=int(data.get("errorCount", 0)),
            warning_count=int(data.get("warningCount", 0)),
            processed_objects=int(data.get("processedObjects", 0)),
        )


@dataclass
class QueryWarning:
    code: int
    message: str


@dataclass
class QueryMetaData:
    request_id: str = ""
    client_context_id: str = ""
    status: str = ""
    metrics: QueryMetrics = field(default_factory=QueryMetrics)
    signature: Any = None
    warnings: list[QueryWarning] = field(default_factory=list)

    @classmethod
    def from_server(cls, data: dict[str, Any]) -> "QueryMetaData":
        return cls(
            request_id=data.get("requestID", ""),
            client_context_id=data.get("clientContextID", ""),
            status=data.get("status", ""),
            metrics=QueryMetrics.from_server(data.get("metrics")),
            signature=data.get("signature"),
            warnings=[
                QueryWarning(code=int(w.get("code", 0)), message=w.get("msg", ""))
                for w in data.get("warnings") or []
            ],
        )


class QueryResult:
    """
    Rows and metadata of a completed query.

    Rows are kept as raw JSON values and decoded with the serializer on
    access, so a custom serializer sees the bytes of each row.
    """

    def __init__(
        self,
        raw_rows: list[bytes],
        metadata: QueryMetaData,
        endpoint: str | None = None,
        serializer: Serializer | None = None,
    ):
        self._raw_rows = raw_rows
        self._metadata = metadata
        self._serializer = serializer or DEFAULT_SERIALIZER
        self.endpoint = endpoint

    def __len__(self) -> int:
        return len(self._raw_rows)

    def __iter__(self):
        return iter(self.rows())

    def rows(self) -> list[Any]:
        return [self._serializer.deserialize(raw) for raw in self._raw_rows]

    def one(self) -> Any:
        """
        Return the first row.

        Raises:
            NoResultsError: If the query returned no rows
        """
        if not self._raw_rows:
            raise NoResultsError(
                "No results returned",
                context={"client_context_id": self._metadata.client_context_id},
            )
        return self._serializer.deserialize(self._raw_rows[0])

    def metadata(self) -> QueryMetaData:
        return self._metadata


class AnalyticsResult(QueryResult):
    """Rows and metadata of a completed analytics query."""


@dataclass
class ViewRow:
    id: str | None
    key: Any
    value: Any


@dataclass
class ViewResult:
    rows: list[ViewRow] = field(default_factory=list)
    total_rows: int = 0
    debug: Any = None

    @classmethod
    def from_server(cls, data: dict[str, Any]) -> "ViewResult":
        return cls(
            rows=[
                ViewRow(id=r.get("id"), key=r.get("key"), value=r.get("value"))
                for r in data.get("rows") or []
            ],
            total_rows=int(data.get("total_rows", 0)),
            debug=data.get("debug_info"),
        )
