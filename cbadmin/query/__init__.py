"""
Query, analytics and view request options, execution and results.
"""

from .options import (
    AnalyticsOptions,
    DesignDocumentNamespace,
    QueryOptions,
    QueryScanConsistency,
    ViewErrorMode,
    ViewOptions,
    ViewOrdering,
    ViewScanConsistency,
    design_document_name,
)
from .results import (
    AnalyticsResult,
    QueryMetaData,
    QueryMetrics,
    QueryResult,
    ViewResult,
    ViewRow,
    format_duration,
    parse_duration,
)
from .service import QueryService
from .views import ViewQueryService, view_query_path

__all__ = [
    "AnalyticsOptions",
    "DesignDocumentNamespace",
    "QueryOptions",
    "QueryScanConsistency",
    "ViewErrorMode",
    "ViewOptions",
    "ViewOrdering",
    "design_document_name",
    "ViewScanConsistency",
    "AnalyticsResult",
    "QueryMetaData",
    "QueryMetrics",
    "QueryResult",
    "ViewResult",
    "ViewRow",
    "format_duration",
    "parse_duration",
    "QueryService",
    "ViewQueryService",
    "view_query_path",
]
