"""
Options for view, query and analytics requests.
"""

import json
import uuid
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any
from urllib.parse import urlencode

from ..constants import DEV_DDOC_PREFIX
from ..core.retry import RetryStrategy
from ..exceptions import InvalidArgumentsError
from ..serializers import Serializer
from .results import format_duration


class ViewScanConsistency(IntEnum):
    NOT_BOUNDED = 1
    REQUEST_PLUS = 2
    UPDATE_AFTER = 3


class ViewOrdering(IntEnum):
    ASCENDING = 1
    DESCENDING = 2


class ViewErrorMode(IntEnum):
    CONTINUE = 1
    STOP = 2


class DesignDocumentNamespace(IntEnum):
    PRODUCTION = 0
    DEVELOPMENT = 1


def strip_dev_prefix(name: str) -> str:
    return name[len(DEV_DDOC_PREFIX) :] if name.startswith(DEV_DDOC_PREFIX) else name


def design_document_name(name: str, namespace: DesignDocumentNamespace) -> str:
    """Server-side name of a design document in the given namespace."""
    if namespace == DesignDocumentNamespace.PRODUCTION:
        return strip_dev_prefix(name)
    return name if name.startswith(DEV_DDOC_PREFIX) else DEV_DDOC_PREFIX + name


_STALE_VALUES = {
    ViewScanConsistency.REQUEST_PLUS: "false",
    ViewScanConsistency.NOT_BOUNDED: "ok",
    ViewScanConsistency.UPDATE_AFTER: "update_after",
}

_ORDER_VALUES = {
    ViewOrdering.ASCENDING: "false",
    ViewOrdering.DESCENDING: "true",
}

_ON_ERROR_VALUES = {
    ViewErrorMode.CONTINUE: "continue",
    ViewErrorMode.STOP: "stop",
}


def _compact_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


@dataclass
class ViewOptions:
    """
    Options for a view query.

    Unset values (None, 0, empty) are left out of the request so the
    server defaults apply.
    """

    scan_consistency: ViewScanConsistency | None = None
    skip: int = 0
    limit: int = 0
    order: ViewOrdering | None = None
    reduce: bool = False
    group: bool = False
    group_level: int = 0
    key: Any = None
    keys: list[Any] = field(default_factory=list)
    start_key: Any = None
    end_key: Any = None
    inclusive_end: bool = False
    start_key_doc_id: str = ""
    end_key_doc_id: str = ""
    namespace: DesignDocumentNamespace = DesignDocumentNamespace.PRODUCTION
    on_error: ViewErrorMode | None = None
    debug: bool = False
    raw: dict[str, str] = field(default_factory=dict)
    timeout: float | None = None
    retry_strategy: RetryStrategy | None = None

    def to_query_params(self) -> dict[str, str]:
        """
        Encode the options as view query string parameters.

        Raises:
            InvalidArgumentsError: If an enum option holds an unknown value
        """
        params: dict[str, str] = {}

        if self.scan_consistency:
            if self.scan_consistency not in _STALE_VALUES:
                raise InvalidArgumentsError("unexpected stale option")
            params["stale"] = _STALE_VALUES[self.scan_consistency]

        if self.skip:
            params["skip"] = str(self.skip)

        if self.limit:
            params["limit"] = str(self.limit)

        if self.order:
            if self.order not in _ORDER_VALUES:
                raise InvalidArgumentsError("unexpected order option")
            params["descending"] = _ORDER_VALUES[self.order]

        params["reduce"] = "false"
        if self.reduce:
            params["reduce"] = "true"
            params["group"] = "true" if self.group else "false"
            if self.group_level:
                params["group_level"] = str(self.group_level)

        if self.key is not None:
            params["key"] = _compact_json(self.key)

        if self.keys:
            params["keys"] = _compact_json(list(self.keys))

        if self.start_key is not None:
            params["startkey"] = _compact_json(self.start_key)

        if self.end_key is not None:
            params["endkey"] = _compact_json(self.end_key)

        if self.start_key is not None or self.end_key is not None:
            params["inclusive_end"] = "true" if self.inclusive_end else "false"

        if self.start_key_doc_id:
            params["startkey_docid"] = self.start_key_doc_id

        if self.end_key_doc_id:
            params["endkey_docid"] = self.end_key_doc_id

        if self.on_error:
            if self.on_error not in _ON_ERROR_VALUES:
                raise InvalidArgumentsError("unexpected onerror option")
            params["on_error"] = _ON_ERROR_VALUES[self.on_error]

        if self.debug:
            params["debug"] = "true"

        params.update(self.raw)
        return params

    def to_query_string(self) -> str:
        return urlencode(self.to_query_params())


class QueryScanConsistency(str, Enum):
    NOT_BOUNDED = "not_bounded"
    REQUEST_PLUS = "request_plus"


@dataclass
class _ServiceQueryOptions:
    positional_parameters: list[Any] = field(default_factory=list)
    named_parameters: dict[str, Any] = field(default_factory=dict)
    client_context_id: str = ""
    server_side_timeout: float | None = None
    read_only: bool = False
    raw: dict[str, Any] = field(default_factory=dict)
    timeout: float | None = None
    retry_strategy: RetryStrategy | None = None
    serializer: Serializer | None = None

    def resolve_client_context_id(self) -> str:
        return self.client_context_id or str(uuid.uuid4())

    def to_body(self, statement: str, client_context_id: str, remaining: float) -> dict[str, Any]:
        """
        Build the JSON request body.

        Args:
            statement: Statement text
            client_context_id: Id echoed back by the server
            remaining: Client-side time left; the server-side timeout never
                exceeds it
        """
        server_timeout = remaining
        if self.server_side_timeout is not None and self.server_side_timeout < remaining:
            server_timeout = self.server_side_timeout

        body: dict[str, Any] = {
            "statement": statement,
            "client_context_id": client_context_id,
            "timeout": format_duration(server_timeout),
        }
        if self.positional_parameters:
            body["args"] = list(self.positional_parameters)
        for name, value in self.named_parameters.items():
            body[name if name.startswith("$") else f"${name}"] = value
        if self.read_only:
            body["readonly"] = True
        body.update(self._service_fields())
        body.update(self.raw)
        return body

    def _service_fields(self) -> dict[str, Any]:
        return {}


@dataclass
class QueryOptions(_ServiceQueryOptions):
    scan_consistency: QueryScanConsistency | None = None

    def _service_fields(self) -> dict[str, Any]:
        fields: dict[str, Any] = {}
        if self.scan_consistency:
            fields["scan_consistency"] = QueryScanConsistency(self.scan_consistency).value
        return fields


@dataclass
class AnalyticsOptions(_ServiceQueryOptions):
    priority: bool = False

    def _service_fields(self) -> dict[str, Any]:
        return {"priority": -1} if self.priority else {}
