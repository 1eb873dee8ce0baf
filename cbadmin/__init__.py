"""
CBADMIN - Couchbase cluster administration

Async management client for buckets, RBAC users and groups, N1QL and view
indexes, query/analytics execution, sub-document operations and ping
diagnostics.
"""

# Configuration
from .config import ClusterConfig
# Cluster facade
from .core.cluster import Bucket, Cluster, Scope
# Transport seams
from .core.http import HttpProvider, HttpxProvider
from .core.kv import KvProvider
from .core.retry import BestEffortRetryStrategy, FailFastRetryStrategy, RetryStrategy
# Index management
from .indexes import DesignDocument, QueryIndexManager, View, ViewIndexManager
# Management
from .management import (
    BucketManager,
    BucketSettings,
    CreateBucketSettings,
    LegacyClusterManager,
    UserManager,
)
# Query
from .query import AnalyticsOptions, QueryOptions, ViewOptions
# Sub-document
from .subdoc import Collection, LookupInSpec, MutateInSpec, MutationMacro

__version__ = "0.1.0"

__all__ = [
    # Core
    "ClusterConfig",
    "Cluster",
    "Bucket",
    "Scope",
    "HttpProvider",
    "HttpxProvider",
    "KvProvider",
    "RetryStrategy",
    "BestEffortRetryStrategy",
    "FailFastRetryStrategy",
    # Management
    "BucketManager",
    "BucketSettings",
    "CreateBucketSettings",
    "UserManager",
    "LegacyClusterManager",
    # Indexes
    "QueryIndexManager",
    "ViewIndexManager",
    "DesignDocument",
    "View",
    # Query
    "QueryOptions",
    "AnalyticsOptions",
    "ViewOptions",
    # Sub-document
    "Collection",
    "LookupInSpec",
    "MutateInSpec",
    "MutationMacro",
]
