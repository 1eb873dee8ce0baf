"""
Legacy cluster manager.

A self-contained management client that predates the provider-based
managers: it talks to a list of management hosts directly with httpx and
basic authentication, without deadlines or retry strategies. Kept for
callers that only have a host list and credentials.
"""

import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import quote, urlencode

import httpx

from ..constants import FORM_CONTENT_TYPE, LEGACY_PROXY_PORT
from ..exceptions import LegacyClientError

logger = logging.getLogger(__name__)


class LegacyBucketType(str, Enum):
    COUCHBASE = "couchbase"
    MEMCACHED = "memcached"
    EPHEMERAL = "ephemeral"


_SERVER_BUCKET_TYPES = {
    "membase": LegacyBucketType.COUCHBASE,
    "memcached": LegacyBucketType.MEMCACHED,
    "ephemeral": LegacyBucketType.EPHEMERAL,
}


@dataclass
class LegacyBucketSettings:
    name: str
    bucket_type: LegacyBucketType = LegacyBucketType.COUCHBASE
    flush_enabled: bool = False
    index_replicas: bool = False
    password: str = ""
    quota_mb: int = 0
    replicas: int = 0


@dataclass(frozen=True)
class UserRole:
    role: str
    bucket_name: str = ""


@dataclass
class LegacyUser:
    id: str
    name: str = ""
    type: str = ""
    roles: list[UserRole] = field(default_factory=list)


@dataclass
class UserSettings:
    name: str = ""
    password: str = ""
    roles: list[UserRole] = field(default_factory=list)


def _bucket_from_server(data: dict[str, Any]) -> LegacyBucketSettings:
    raw_type = data.get("bucketType", "")
    if raw_type not in _SERVER_BUCKET_TYPES:
        raise LegacyClientError(
            f"Unrecognized bucket type '{raw_type}'", context={"bucket_name": data.get("name")}
        )
    password = data.get("saslPassword", "") if data.get("authType") == "sasl" else ""
    return LegacyBucketSettings(
        name=data.get("name", ""),
        bucket_type=_SERVER_BUCKET_TYPES[raw_type],
        flush_enabled=bool((data.get("controllers") or {}).get("flush")),
        index_replicas=bool(data.get("replicaIndex", False)),
        password=password,
        quota_mb=int((data.get("quota") or {}).get("ram") or 0),
        replicas=int(data.get("replicaNumber") or 0),
    )


class LegacyClusterManager:
    """
    Bucket and user administration against a fixed list of management hosts.

    Example:
        async with LegacyClusterManager(["http://10.0.0.1:8091"], "admin", "pw") as cm:
            buckets = await cm.get_buckets()
    """

    def __init__(
        self,
        hosts: list[str],
        username: str,
        password: str,
        client: httpx.AsyncClient | None = None,
    ):
        if not hosts:
            raise LegacyClientError("At least one management host is required")
        self._hosts = [h.rstrip("/") for h in hosts]
        self._auth = httpx.BasicAuth(username, password)
        self._client = client or httpx.AsyncClient()
        self._owns_client = client is None

    async def __aenter__(self) -> "LegacyClusterManager":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(
        self, method: str, path: str, form: list[tuple] | None = None
    ) -> httpx.Response:
        url = random.choice(self._hosts) + path
        headers = None
        content = None
        if form is not None:
            headers = {"Content-Type": FORM_CONTENT_TYPE}
            content = urlencode(form).encode("utf-8")
        try:
            return await self._client.request(
                method, url, content=content, headers=headers, auth=self._auth
            )
        except httpx.HTTPError as e:
            raise LegacyClientError(f"{method} {url} failed: {e}", context={"url": url}) from e

    @staticmethod
    def _check(response: httpx.Response, expected: int | None = None) -> None:
        if expected is not None:
            ok = response.status_code == expected
        else:
            ok = 200 <= response.status_code < 300
        if not ok:
            raise LegacyClientError(response.text, context={"status_code": response.status_code})

    async def get_buckets(self) -> list[LegacyBucketSettings]:
        response = await self._request("GET", "/pools/default/buckets")
        self._check(response, 200)
        return [_bucket_from_server(b) for b in response.json()]

    async def insert_bucket(self, settings: LegacyBucketSettings) -> None:
        form = [
            ("name", settings.name),
            ("bucketType", LegacyBucketType(settings.bucket_type).value),
            ("flushEnabled", "1" if settings.flush_enabled else "0"),
            ("replicaNumber", str(settings.replicas)),
            ("authType", "sasl"),
            ("saslPassword", settings.password),
            ("ramQuotaMB", str(settings.quota_mb)),
            ("proxyPort", str(LEGACY_PROXY_PORT)),
        ]
        response = await self._request("POST", "/pools/default/buckets", form=form)
        self._check(response, 202)
        logger.info(f"Inserted bucket '{settings.name}'")

    async def update_bucket(self, settings: LegacyBucketSettings) -> None:
        await self.insert_bucket(settings)

    async def remove_bucket(self, name: str) -> None:
        response = await self._request("DELETE", f"/pools/default/buckets/{quote(name, safe='')}")
        self._check(response, 200)
        logger.info(f"Removed bucket '{name}'")

    async def get_users(self) -> list[LegacyUser]:
        response = await self._request("GET", "/settings/rbac/users")
        self._check(response)
        return [
            LegacyUser(
                id=u.get("id", ""),
                name=u.get("name", ""),
                type=u.get("type", ""),
                roles=[
                    UserRole(role=r.get("role", ""), bucket_name=r.get("bucket_name", "") or "")
                    for r in u.get("roles") or []
                ],
            )
            for u in response.json()
        ]

    async def upsert_user(self, name: str, settings: UserSettings) -> None:
        form = [
            ("name", settings.name),
            ("password", settings.password),
            ("roles", ",".join(f"{r.role}[{r.bucket_name}]" for r in settings.roles)),
        ]
        response = await self._request(
            "PUT", f"/settings/rbac/users/local/{quote(name, safe='')}", form=form
        )
        self._check(response)
        logger.info(f"Upserted user '{name}'")

    async def remove_user(self, name: str) -> None:
        response = await self._request(
            "DELETE", f"/settings/rbac/users/local/{quote(name, safe='')}"
        )
        self._check(response)
        logger.info(f"Removed user '{name}'")
