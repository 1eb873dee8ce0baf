"""
Cluster management: buckets, RBAC users and groups, and the legacy
host-list cluster manager.
"""

from .buckets import (
    BucketManager,
    BucketSettings,
    BucketType,
    CompressionMode,
    ConflictResolutionType,
    CreateBucketSettings,
    EvictionPolicyType,
)
from .legacy import (
    LegacyBucketSettings,
    LegacyBucketType,
    LegacyClusterManager,
    LegacyUser,
    UserRole,
    UserSettings,
)
from .users import (
    AuthDomain,
    Group,
    Origin,
    Role,
    RoleAndDescription,
    RoleAndOrigins,
    User,
    UserAndMetadata,
    UserManager,
)

__all__ = [
    "BucketManager",
    "BucketSettings",
    "BucketType",
    "CompressionMode",
    "ConflictResolutionType",
    "CreateBucketSettings",
    "EvictionPolicyType",
    "LegacyClusterManager",
    "LegacyBucketSettings",
    "LegacyBucketType",
    "LegacyUser",
    "UserRole",
    "UserSettings",
    "UserManager",
    "AuthDomain",
    "Group",
    "Origin",
    "Role",
    "RoleAndDescription",
    "RoleAndOrigins",
    "User",
    "UserAndMetadata",
]
