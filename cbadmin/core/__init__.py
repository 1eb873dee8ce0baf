"""
Core transport seams, deadlines and retry strategies.
"""

from .deadlines import compute_deadline, dispatch_request, expect_status, expect_success
from .http import HttpProvider, HttpRequest, HttpResponse, HttpxProvider
from .kv import (
    KvPingReply,
    KvProvider,
    LookupInReply,
    LookupInRequest,
    MutateInReply,
    MutateInRequest,
    MutationToken,
    PingServiceResult,
    SubDocOp,
    SubDocOpResult,
)
from .retry import (
    BestEffortRetryStrategy,
    FailFastRetryStrategy,
    RetryAction,
    RetryReason,
    RetryStrategy,
)

__all__ = [
    "compute_deadline",
    "dispatch_request",
    "expect_status",
    "expect_success",
    "HttpProvider",
    "HttpRequest",
    "HttpResponse",
    "HttpxProvider",
    "KvProvider",
    "KvPingReply",
    "LookupInReply",
    "LookupInRequest",
    "MutateInReply",
    "MutateInRequest",
    "MutationToken",
    "PingServiceResult",
    "SubDocOp",
    "SubDocOpResult",
    "RetryStrategy",
    "RetryReason",
    "RetryAction",
    "BestEffortRetryStrategy",
    "FailFastRetryStrategy",
]
