"""
Constants for CBADMIN.

This module contains all shared constants used across the codebase to avoid
magic numbers and improve maintainability.
"""

from enum import Enum, IntEnum, IntFlag
from typing import Final

# ============================================================================
# SERVICE CONSTANTS
# ============================================================================


class ServiceType(str, Enum):
    """Cluster services reachable through the HTTP or KV providers."""

    MANAGEMENT = "mgmt"
    VIEWS = "capi"
    QUERY = "n1ql"
    SEARCH = "fts"
    ANALYTICS = "cbas"
    KEY_VALUE = "kv"


DEFAULT_SERVICE_PORTS: Final[dict] = {
    ServiceType.MANAGEMENT: 8091,
    ServiceType.VIEWS: 8092,
    ServiceType.QUERY: 8093,
    ServiceType.SEARCH: 8094,
    ServiceType.ANALYTICS: 8095,
}
"""Plain-text HTTP port of each HTTP service."""

PING_PATHS: Final[dict] = {
    ServiceType.QUERY: "/admin/ping",
    ServiceType.SEARCH: "/api/ping",
    ServiceType.ANALYTICS: "/admin/ping",
}
"""Ping endpoint of each HTTP service that supports pinging."""

DEFAULT_PING_SERVICES: Final[tuple] = (
    ServiceType.KEY_VALUE,
    ServiceType.QUERY,
    ServiceType.SEARCH,
    ServiceType.ANALYTICS,
)
"""Services pinged when the caller does not name any."""

QUERY_SERVICE_PATH: Final[str] = "/query/service"
ANALYTICS_SERVICE_PATH: Final[str] = "/analytics/service"

FORM_CONTENT_TYPE: Final[str] = "application/x-www-form-urlencoded"
JSON_CONTENT_TYPE: Final[str] = "application/json"

# ============================================================================
# TIMEOUT CONSTANTS (seconds)
# ============================================================================

DEFAULT_KV_TIMEOUT: Final[float] = 2.5
DEFAULT_MANAGEMENT_TIMEOUT: Final[float] = 75.0
DEFAULT_QUERY_TIMEOUT: Final[float] = 75.0
DEFAULT_ANALYTICS_TIMEOUT: Final[float] = 75.0
DEFAULT_SEARCH_TIMEOUT: Final[float] = 75.0
DEFAULT_VIEW_TIMEOUT: Final[float] = 75.0

# ============================================================================
# INDEX MANAGEMENT CONSTANTS
# ============================================================================

WATCH_INITIAL_INTERVAL: Final[float] = 0.05
"""First poll interval used while watching query indexes (seconds)."""

WATCH_INTERVAL_STEP: Final[float] = 0.5
"""Amount the watch poll interval grows by after each round (seconds)."""

WATCH_MAX_INTERVAL: Final[float] = 1.0
"""Upper bound for the watch poll interval (seconds)."""

PRIMARY_INDEX_NAME: Final[str] = "#primary"

INDEX_STATE_ONLINE: Final[str] = "online"
DEFERRED_INDEX_STATES: Final[tuple] = ("deferred", "pending")

# ============================================================================
# BUCKET CONSTANTS
# ============================================================================

MIN_RAM_QUOTA_MB: Final[int] = 100
"""Smallest memory quota accepted for a bucket."""

LEGACY_PROXY_PORT: Final[int] = 11210

# ============================================================================
# VIEW CONSTANTS
# ============================================================================

DEV_DDOC_PREFIX: Final[str] = "dev_"
DDOC_ID_PREFIX: Final[str] = "_design/"

# ============================================================================
# SUB-DOCUMENT CONSTANTS
# ============================================================================

MAX_LOOKUP_IN_SPECS: Final[int] = 16
"""Maximum number of lookup specs in a single lookup_in call."""

EXPIRY_XATTR_PATH: Final[str] = "$document.exptime"


class SubDocOpType(IntEnum):
    """Sub-document opcodes understood by the KV engine."""

    GET = 0xC5
    EXISTS = 0xC6
    DICT_ADD = 0xC7
    DICT_SET = 0xC8
    DELETE = 0xC9
    REPLACE = 0xCA
    ARRAY_PUSH_LAST = 0xCB
    ARRAY_PUSH_FIRST = 0xCC
    ARRAY_INSERT = 0xCD
    ARRAY_ADD_UNIQUE = 0xCE
    COUNTER = 0xCF
    GET_COUNT = 0xD2
    GET_DOC = 0x00
    SET_DOC = 0x01
    DELETE_DOC = 0x04


class SubdocFlag(IntFlag):
    """Per-path sub-document flags."""

    NONE = 0x00
    CREATE_PATH = 0x01
    XATTR = 0x04
    EXPAND_MACROS = 0x10


class SubdocDocFlag(IntFlag):
    """Whole-document sub-document flags."""

    NONE = 0x00
    MKDOC = 0x01
    ADD_DOC = 0x02
    ACCESS_DELETED = 0x04


class DurabilityLevel(IntEnum):
    """Synchronous durability requirement for a mutation."""

    NONE = 0
    MAJORITY = 1
    MAJORITY_AND_PERSIST_ON_MASTER = 2
    PERSIST_TO_MAJORITY = 3

# ============================================================================
# QUERY / ANALYTICS RETRY CONSTANTS
# ============================================================================

ANALYTICS_TEMPORARY_ERROR_CODES: Final[frozenset] = frozenset({21002, 23000, 23003, 23007})
"""Analytics error codes that indicate a transient condition."""

QUERY_TEMPORARY_ERROR_CODES: Final[frozenset] = frozenset({4040, 4050, 4070})
"""Query error codes for stale prepared statements."""

QUERY_INDEX_NOT_FOUND_CODE: Final[int] = 5000
QUERY_INDEX_NOT_FOUND_MARKER: Final[str] = "queryport.indexNotFound"

# Retry backoff (seconds)
RETRY_BACKOFF_MIN: Final[float] = 0.001
RETRY_BACKOFF_MAX: Final[float] = 0.5
