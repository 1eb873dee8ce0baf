"""
View query execution.
"""

import logging
from urllib.parse import quote

from ..constants import DDOC_ID_PREFIX, ServiceType
from ..core.deadlines import expect_status
from ..core.manager import HttpManager
from ..exceptions import ViewIndexError
from ..observability.metrics import timed_operation
from .options import ViewOptions, design_document_name
from .results import ViewResult

logger = logging.getLogger(__name__)


def view_query_path(
    bucket_name: str, design_document: str, view_name: str, options: ViewOptions
) -> str:
    """CAPI path of a view query, including the encoded options."""
    server_name = design_document_name(design_document, options.namespace)
    path = (
        f"/{quote(bucket_name, safe='')}/{DDOC_ID_PREFIX}{quote(server_name, safe='')}"
        f"/_view/{quote(view_name, safe='')}"
    )
    query_string = options.to_query_string()
    return f"{path}?{query_string}" if query_string else path


class ViewQueryService(HttpManager):
    """Runs view queries against the views service of one bucket."""

    service = ServiceType.VIEWS
    operation_name = "view"

    @timed_operation("views.view_query")
    async def view_query(
        self,
        bucket_name: str,
        design_document: str,
        view_name: str,
        options: ViewOptions | None = None,
    ) -> ViewResult:
        """
        Query a view.

        Raises:
            InvalidArgumentsError: If an option holds an unknown value
            ViewIndexError: If the service rejects the query
            OperationTimeoutError: If the query does not complete in time
        """
        options = options or ViewOptions()
        path = view_query_path(bucket_name, design_document, view_name, options)
        response = await self._send(
            "GET", path, timeout=options.timeout, retry_strategy=options.retry_strategy
        )
        expect_status(
            response,
            200,
            ViewIndexError,
            design_document=design_document,
            view_name=view_name,
        )
        result = ViewResult.from_server(response.json())
        logger.debug(
            f"View {design_document}/{view_name} on '{bucket_name}' returned "
            f"{len(result.rows)} row(s)"
        )
        return result
