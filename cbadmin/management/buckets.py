"""
Bucket management.

Reads and writes bucket definitions through the cluster management REST
API (/pools/default/buckets).
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any
from urllib.parse import quote

from ..constants import MIN_RAM_QUOTA_MB
from ..core.deadlines import expect_status
from ..core.manager import HttpManager
from ..core.retry import RetryStrategy
from ..exceptions import BucketManagerError, InvalidArgumentsError
from ..observability.metrics import timed_operation

logger = logging.getLogger(__name__)

BUCKETS_PATH = "/pools/default/buckets"


class BucketType(str, Enum):
    COUCHBASE = "membase"
    MEMCACHED = "memcached"
    EPHEMERAL = "ephemeral"


class ConflictResolutionType(str, Enum):
    TIMESTAMP = "lww"
    SEQUENCE_NUMBER = "seqno"


class EvictionPolicyType(str, Enum):
    FULL = "fullEviction"
    VALUE_ONLY = "valueOnly"


class CompressionMode(str, Enum):
    OFF = "off"
    PASSIVE = "passive"
    ACTIVE = "active"


@dataclass
class BucketSettings:
    """
    Settings of a bucket.

    Attributes:
        name: Bucket name (required)
        flush_enabled: Whether the bucket may be flushed
        replica_index_disabled: Disable replica indexes (inverted so the
            default matches the server default)
        ram_quota_mb: Memory quota in megabytes (at least 100)
        num_replicas: Replicas per vbucket
        bucket_type: Kind of bucket; None when the server reported a type
            this library does not know
        eviction_policy: Optional eviction policy
        max_ttl: Maximum document TTL in seconds (0 means unset)
        compression_mode: Optional compression mode
    """

    name: str
    flush_enabled: bool = False
    replica_index_disabled: bool = False
    ram_quota_mb: int = 0
    num_replicas: int = 0
    bucket_type: BucketType | None = BucketType.COUCHBASE
    eviction_policy: EvictionPolicyType | None = None
    max_ttl: int = 0
    compression_mode: CompressionMode | None = None

    @classmethod
    def from_server(cls, data: dict[str, Any]) -> "BucketSettings":
        """Decode one entry of the /pools/default/buckets response."""
        ram_quota = int((data.get("quota") or {}).get("rawRAM") or 0)
        if ram_quota > 0:
            ram_quota = ram_quota // 1024 // 1024

        raw_type = data.get("bucketType", "")
        try:
            bucket_type: BucketType | None = BucketType(raw_type)
        except ValueError:
            logger.debug(f"Unrecognized bucket type '{raw_type}' for bucket {data.get('name')}")
            bucket_type = None

        return cls(
            name=data.get("name", ""),
            flush_enabled=bool((data.get("controllers") or {}).get("flush")),
            replica_index_disabled=not data.get("replicaIndex", False),
            ram_quota_mb=ram_quota,
            num_replicas=int(data.get("replicaNumber") or 0),
            bucket_type=bucket_type,
            eviction_policy=_optional_enum(EvictionPolicyType, data.get("evictionPolicy")),
            max_ttl=int(data.get("maxTTL") or 0),
            compression_mode=_optional_enum(CompressionMode, data.get("compressionMode")),
        )

    def to_form(self) -> list[tuple[str, str]]:
        """
        Encode the settings as management form fields.

        Raises:
            InvalidArgumentsError: If the settings cannot describe a valid bucket
        """
        if not self.name:
            raise InvalidArgumentsError("Name invalid, must be set.")
        if self.ram_quota_mb < MIN_RAM_QUOTA_MB:
            raise InvalidArgumentsError(
                f"Memory quota invalid, must be greater than {MIN_RAM_QUOTA_MB}MB",
                context={"bucket_name": self.name, "ram_quota_mb": self.ram_quota_mb},
            )

        form = [
            ("name", self.name),
            ("flushEnabled", "1" if self.flush_enabled else "0"),
            ("replicaIndex", "0" if self.replica_index_disabled else "1"),
        ]

        if self.bucket_type in (BucketType.COUCHBASE, BucketType.EPHEMERAL):
            form.append(("bucketType", self.bucket_type.value))
            form.append(("replicaNumber", str(self.num_replicas)))
        elif self.bucket_type == BucketType.MEMCACHED:
            if self.num_replicas > 0:
                raise InvalidArgumentsError(
                    "replicas cannot be used with memcached buckets",
                    context={"bucket_name": self.name},
                )
            form.append(("bucketType", self.bucket_type.value))
        else:
            raise InvalidArgumentsError(
                "Unrecognized bucket type", context={"bucket_name": self.name}
            )

        form.append(("ramQuotaMB", str(self.ram_quota_mb)))

        if self.eviction_policy:
            form.append(("evictionPolicy", EvictionPolicyType(self.eviction_policy).value))
        if self.max_ttl > 0:
            form.append(("maxTTL", str(self.max_ttl)))
        if self.compression_mode:
            form.append(("compressionMode", CompressionMode(self.compression_mode).value))

        return form


@dataclass
class CreateBucketSettings(BucketSettings):
    conflict_resolution_type: ConflictResolutionType | None = None

    def to_form(self) -> list[tuple[str, str]]:
        form = super().to_form()
        if self.conflict_resolution_type:
            form.append(
                (
                    "conflictResolutionType",
                    ConflictResolutionType(self.conflict_resolution_type).value,
                )
            )
        return form


def _optional_enum(enum_cls, value):
    if not value:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        logger.debug(f"Unrecognized {enum_cls.__name__} value '{value}'")
        return None


def _bucket_path(bucket_name: str) -> str:
    return f"{BUCKETS_PATH}/{quote(bucket_name, safe='')}"


class BucketManager(HttpManager):
    """
    Creates, updates, inspects, flushes and removes buckets.

    Every operation accepts an optional timeout (seconds) overriding the
    management timeout, and an optional retry strategy overriding the
    manager default.
    """

    @timed_operation("buckets.get_bucket")
    async def get_bucket(
        self,
        bucket_name: str,
        timeout: float | None = None,
        retry_strategy: RetryStrategy | None = None,
    ) -> BucketSettings:
        response = await self._send(
            "GET", _bucket_path(bucket_name), timeout=timeout, retry_strategy=retry_strategy
        )
        expect_status(response, 200, BucketManagerError, bucket_name=bucket_name)
        return BucketSettings.from_server(response.json())

    @timed_operation("buckets.get_all_buckets")
    async def get_all_buckets(
        self, timeout: float | None = None, retry_strategy: RetryStrategy | None = None
    ) -> dict[str, BucketSettings]:
        response = await self._send(
            "GET", BUCKETS_PATH, timeout=timeout, retry_strategy=retry_strategy
        )
        expect_status(response, 200, BucketManagerError)

        buckets = {}
        for entry in response.json():
            settings = BucketSettings.from_server(entry)
            buckets[settings.name] = settings
        return buckets

    @timed_operation("buckets.create_bucket")
    async def create_bucket(
        self,
        settings: CreateBucketSettings,
        timeout: float | None = None,
        retry_strategy: RetryStrategy | None = None,
    ) -> None:
        form = settings.to_form()
        response = await self._send(
            "POST", BUCKETS_PATH, form=form, timeout=timeout, retry_strategy=retry_strategy
        )
        expect_status(response, 202, BucketManagerError, bucket_name=settings.name)
        logger.info(f"Created bucket '{settings.name}'")

    @timed_operation("buckets.update_bucket")
    async def update_bucket(
        self,
        settings: BucketSettings,
        timeout: float | None = None,
        retry_strategy: RetryStrategy | None = None,
    ) -> None:
        form = settings.to_form()
        response = await self._send(
            "POST",
            _bucket_path(settings.name),
            form=form,
            timeout=timeout,
            retry_strategy=retry_strategy,
        )
        expect_status(response, 200, BucketManagerError, bucket_name=settings.name)
        logger.info(f"Updated bucket '{settings.name}'")

    @timed_operation("buckets.drop_bucket")
    async def drop_bucket(
        self,
        bucket_name: str,
        timeout: float | None = None,
        retry_strategy: RetryStrategy | None = None,
    ) -> None:
        response = await self._send(
            "DELETE", _bucket_path(bucket_name), timeout=timeout, retry_strategy=retry_strategy
        )
        expect_status(response, 200, BucketManagerError, bucket_name=bucket_name)
        logger.info(f"Dropped bucket '{bucket_name}'")

    @timed_operation("buckets.flush_bucket")
    async def flush_bucket(
        self,
        bucket_name: str,
        timeout: float | None = None,
        retry_strategy: RetryStrategy | None = None,
    ) -> None:
        response = await self._send(
            "POST",
            f"{_bucket_path(bucket_name)}/controller/doFlush",
            timeout=timeout,
            retry_strategy=retry_strategy,
        )
        expect_status(response, 200, BucketManagerError, bucket_name=bucket_name)
        logger.info(f"Flushed bucket '{bucket_name}'")
