"""
View (design document) index management.

Design documents are read and written through the views (CAPI) service at
/{bucket}/_design/{name}; listing goes through the management service.
Development documents carry a "dev_" name prefix which is hidden from
callers: names passed in and returned are always unprefixed, and the
namespace argument selects production or development.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import quote

import jsonschema

from ..constants import DDOC_ID_PREFIX, DEV_DDOC_PREFIX, ServiceType
from ..core.deadlines import compute_deadline, expect_status
from ..core.http import HttpProvider
from ..core.manager import HttpManager
from ..core.retry import RetryStrategy
from ..exceptions import ConfigurationError, ViewIndexError
from ..observability.metrics import timed_operation
from ..query.options import DesignDocumentNamespace, design_document_name, strip_dev_prefix

logger = logging.getLogger(__name__)

DESIGN_DOCUMENT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "views": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "properties": {
                    "map": {"type": "string"},
                    "reduce": {"type": "string"},
                },
                "additionalProperties": False,
            },
        },
    },
    "required": ["name", "views"],
}


@dataclass
class View:
    map: str = ""
    reduce: str = ""

    @property
    def has_reduce(self) -> bool:
        return bool(self.reduce)

    def to_json(self) -> dict[str, str]:
        data = {}
        if self.map:
            data["map"] = self.map
        if self.reduce:
            data["reduce"] = self.reduce
        return data


@dataclass
class DesignDocument:
    name: str
    views: dict[str, View] = field(default_factory=dict)

    def to_json(self) -> dict[str, Any]:
        if not self.views:
            return {}
        return {"views": {name: view.to_json() for name, view in self.views.items()}}

    @classmethod
    def from_json(cls, name: str, data: dict[str, Any] | None) -> "DesignDocument":
        views = (data or {}).get("views") or {}
        return cls(
            name=name,
            views={
                view_name: View(map=v.get("map", ""), reduce=v.get("reduce", ""))
                for view_name, v in views.items()
            },
        )


def validate_design_document(data: dict[str, Any]) -> None:
    """
    Validate a design document definition ({"name": ..., "views": {...}}).

    Raises:
        ConfigurationError: If the definition does not match the schema
    """
    try:
        jsonschema.validate(instance=data, schema=DESIGN_DOCUMENT_SCHEMA)
    except jsonschema.ValidationError as e:
        path = ".".join(str(p) for p in e.absolute_path) or "<root>"
        raise ConfigurationError(
            f"Invalid design document at '{path}': {e.message}", config_key=path
        ) from e


def load_design_document(file_path: Path) -> DesignDocument:
    """Load and validate a design document definition from a JSON file."""
    try:
        with open(file_path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in design document file: {e}") from e
    validate_design_document(data)
    return DesignDocument.from_json(data["name"], data)


class ViewIndexManager(HttpManager):
    """Manages the design documents of one bucket."""

    service = ServiceType.VIEWS
    operation_name = "view"

    def __init__(
        self,
        bucket_name: str,
        http_provider: HttpProvider,
        default_timeout: float,
        default_retry_strategy: RetryStrategy | None = None,
    ):
        super().__init__(http_provider, default_timeout, default_retry_strategy)
        self.bucket_name = bucket_name

    def _ddoc_path(self, server_name: str) -> str:
        return (
            f"/{quote(self.bucket_name, safe='')}/{DDOC_ID_PREFIX}{quote(server_name, safe='')}"
        )

    async def _get(
        self,
        name: str,
        namespace: DesignDocumentNamespace,
        timeout: float | None,
        retry_strategy: RetryStrategy | None,
        parent_deadline: float | None = None,
    ) -> DesignDocument:
        server_name = design_document_name(name, namespace)
        response = await self._send(
            "GET",
            self._ddoc_path(server_name),
            timeout=timeout,
            retry_strategy=retry_strategy,
            parent_deadline=parent_deadline,
        )
        if response.status_code != 200:
            raise ViewIndexError(
                response.text,
                status_code=response.status_code,
                index_missing=response.status_code == 404,
                context={"design_document": server_name},
            )
        return DesignDocument.from_json(strip_dev_prefix(server_name), response.json())

    async def _upsert(
        self,
        ddoc: DesignDocument,
        namespace: DesignDocumentNamespace,
        timeout: float | None,
        retry_strategy: RetryStrategy | None,
        parent_deadline: float | None = None,
    ) -> None:
        server_name = design_document_name(ddoc.name, namespace)
        response = await self._send(
            "PUT",
            self._ddoc_path(server_name),
            json_body=ddoc.to_json(),
            timeout=timeout,
            retry_strategy=retry_strategy,
            is_idempotent=True,
            parent_deadline=parent_deadline,
        )
        expect_status(response, 201, ViewIndexError, design_document=server_name)
        logger.info(f"Upserted design document '{server_name}' on '{self.bucket_name}'")

    @timed_operation("views.get_design_document")
    async def get_design_document(
        self,
        name: str,
        namespace: DesignDocumentNamespace = DesignDocumentNamespace.PRODUCTION,
        timeout: float | None = None,
        retry_strategy: RetryStrategy | None = None,
    ) -> DesignDocument:
        """
        Fetch a design document.

        Raises:
            ViewIndexError: index_missing is set when the document does not exist
        """
        return await self._get(name, namespace, timeout, retry_strategy)

    @timed_operation("views.get_all_design_documents")
    async def get_all_design_documents(
        self,
        namespace: DesignDocumentNamespace = DesignDocumentNamespace.PRODUCTION,
        timeout: float | None = None,
        retry_strategy: RetryStrategy | None = None,
    ) -> list[DesignDocument]:
        response = await self._send(
            "GET",
            f"/pools/default/buckets/{quote(self.bucket_name, safe='')}/ddocs",
            timeout=timeout,
            retry_strategy=retry_strategy,
            service=ServiceType.MANAGEMENT,
        )
        expect_status(response, 200, ViewIndexError, bucket_name=self.bucket_name)

        want_production = namespace == DesignDocumentNamespace.PRODUCTION
        ddocs = []
        for row in response.json().get("rows") or []:
            doc = row.get("doc") or {}
            doc_id = (doc.get("meta") or {}).get("id", "")
            server_name = doc_id
            if server_name.startswith(DDOC_ID_PREFIX):
                server_name = server_name[len(DDOC_ID_PREFIX) :]
            is_production = not server_name.startswith(DEV_DDOC_PREFIX)
            if is_production == want_production:
                ddocs.append(
                    DesignDocument.from_json(strip_dev_prefix(server_name), doc.get("json"))
                )
        return ddocs

    @timed_operation("views.upsert_design_document")
    async def upsert_design_document(
        self,
        ddoc: DesignDocument,
        namespace: DesignDocumentNamespace = DesignDocumentNamespace.PRODUCTION,
        timeout: float | None = None,
        retry_strategy: RetryStrategy | None = None,
    ) -> None:
        await self._upsert(ddoc, namespace, timeout, retry_strategy)

    @timed_operation("views.drop_design_document")
    async def drop_design_document(
        self,
        name: str,
        namespace: DesignDocumentNamespace = DesignDocumentNamespace.PRODUCTION,
        timeout: float | None = None,
        retry_strategy: RetryStrategy | None = None,
    ) -> None:
        server_name = design_document_name(name, namespace)
        response = await self._send(
            "DELETE", self._ddoc_path(server_name), timeout=timeout, retry_strategy=retry_strategy
        )
        if response.status_code != 200:
            raise ViewIndexError(
                response.text,
                status_code=response.status_code,
                index_missing=response.status_code == 404,
                context={"design_document": server_name},
            )
        logger.info(f"Dropped design document '{server_name}' on '{self.bucket_name}'")

    @timed_operation("views.publish_design_document")
    async def publish_design_document(
        self,
        name: str,
        timeout: float | None = None,
        retry_strategy: RetryStrategy | None = None,
    ) -> None:
        """
        Copy a development design document into production.

        Raises:
            ViewIndexError: index_missing is set when the development document
                does not exist
        """
        deadline = compute_deadline(timeout, self._default_timeout)
        try:
            dev_ddoc = await self._get(
                name,
                DesignDocumentNamespace.DEVELOPMENT,
                None,
                retry_strategy,
                parent_deadline=deadline,
            )
        except ViewIndexError as e:
            if e.index_missing:
                dev_name = design_document_name(name, DesignDocumentNamespace.DEVELOPMENT)
                raise ViewIndexError(
                    "Development design document does not exist",
                    status_code=e.status_code,
                    index_missing=True,
                    context={"design_document": dev_name},
                ) from e
            raise

        await self._upsert(
            DesignDocument(name=strip_dev_prefix(name), views=dev_ddoc.views),
            DesignDocumentNamespace.PRODUCTION,
            None,
            retry_strategy,
            parent_deadline=deadline,
        )
