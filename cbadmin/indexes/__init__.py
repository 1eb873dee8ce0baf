"""
Index management for N1QL (GSI) indexes and view design documents.
"""

from .query import QueryIndex, QueryIndexManager
from .views import (
    DesignDocument,
    View,
    ViewIndexManager,
    design_document_name,
    load_design_document,
    validate_design_document,
)

__all__ = [
    "QueryIndex",
    "QueryIndexManager",
    "DesignDocument",
    "View",
    "ViewIndexManager",
    "design_document_name",
    "load_design_document",
    "validate_design_document",
]
