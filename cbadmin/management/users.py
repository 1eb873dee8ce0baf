"""
RBAC user and group management.

Users live under /settings/rbac/users/{domain}/{name}, groups under
/settings/rbac/groups/{name}. Every operation succeeds on any 2xx status.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from urllib.parse import quote

from ..core.deadlines import expect_success
from ..core.manager import HttpManager
from ..core.retry import RetryStrategy
from ..exceptions import InvalidArgumentsError, UserManagerError
from ..observability.metrics import timed_operation

logger = logging.getLogger(__name__)

USERS_PATH = "/settings/rbac/users"
GROUPS_PATH = "/settings/rbac/groups"
ROLES_PATH = "/settings/rbac/roles"


class AuthDomain(str, Enum):
    LOCAL = "local"
    EXTERNAL = "external"


@dataclass(frozen=True)
class Role:
    """A permission, optionally scoped to a bucket."""

    name: str
    bucket: str = ""

    def encode(self) -> str:
        """Form encoding: role[bucket], or the bare role name without a bucket."""
        return f"{self.name}[{self.bucket}]" if self.bucket else self.name

    @classmethod
    def from_server(cls, data: dict[str, Any]) -> "Role":
        return cls(name=data.get("role", ""), bucket=data.get("bucket_name", "") or "")


@dataclass
class RoleAndDescription:
    role: Role
    display_name: str = ""
    description: str = ""


@dataclass(frozen=True)
class Origin:
    """
    Why a user holds a role.

    type "user" means the role was assigned directly; type "group" means it
    was inherited from the group called `name`.
    """

    type: str
    name: str = ""


@dataclass
class RoleAndOrigins:
    role: Role
    origins: list[Origin] = field(default_factory=list)


@dataclass
class User:
    """
    A user definition.

    roles holds only the roles assigned directly to the user. password is
    write-only and never populated by reads.
    """

    username: str
    display_name: str = ""
    roles: list[Role] = field(default_factory=list)
    groups: list[str] = field(default_factory=list)
    password: str = ""


@dataclass
class UserAndMetadata:
    domain: AuthDomain
    user: User
    effective_roles: list[Role] = field(default_factory=list)
    effective_roles_and_origins: list[RoleAndOrigins] = field(default_factory=list)
    external_groups: list[str] = field(default_factory=list)
    password_changed: datetime | None = None

    @classmethod
    def from_server(cls, data: dict[str, Any]) -> "UserAndMetadata":
        """Decode one user document from the RBAC API."""
        direct_roles: list[Role] = []
        effective_roles: list[Role] = []
        effective_roles_and_origins: list[RoleAndOrigins] = []

        for role_data in data.get("roles") or []:
            role = Role.from_server(role_data)
            raw_origins = role_data.get("origins")
            origins = [
                Origin(type=o.get("type", ""), name=o.get("name", "")) for o in raw_origins or []
            ]
            effective_roles.append(role)
            effective_roles_and_origins.append(RoleAndOrigins(role=role, origins=origins))
            if raw_origins is None or any(o.type == "user" for o in origins):
                direct_roles.append(role)

        domain_value = data.get("domain") or AuthDomain.LOCAL.value
        try:
            domain = AuthDomain(domain_value)
        except ValueError:
            logger.debug(f"Unrecognized auth domain '{domain_value}'")
            domain = AuthDomain.EXTERNAL

        return cls(
            domain=domain,
            user=User(
                username=data.get("id", ""),
                display_name=data.get("name", ""),
                roles=direct_roles,
                groups=list(data.get("groups") or []),
            ),
            effective_roles=effective_roles,
            effective_roles_and_origins=effective_roles_and_origins,
            external_groups=list(data.get("external_groups") or []),
            password_changed=_parse_timestamp(data.get("password_change_date")),
        )


@dataclass
class Group:
    name: str
    description: str = ""
    roles: list[Role] = field(default_factory=list)
    ldap_group_reference: str = ""

    @classmethod
    def from_server(cls, data: dict[str, Any]) -> "Group":
        return cls(
            name=data.get("id", ""),
            description=data.get("description", ""),
            roles=[Role.from_server(r) for r in data.get("roles") or []],
            ldap_group_reference=data.get("ldap_group_ref", ""),
        )


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug(f"Could not parse password change date '{value}'")
        return None


def _domain_value(domain: AuthDomain | None) -> str:
    return AuthDomain(domain or AuthDomain.LOCAL).value


def _require_group_name(group_name: str) -> None:
    if not group_name:
        raise InvalidArgumentsError("group name cannot be empty")


class UserManager(HttpManager):
    """Manages RBAC users, groups and the role catalogue."""

    @timed_operation("users.get_all_users")
    async def get_all_users(
        self,
        domain: AuthDomain | None = None,
        timeout: float | None = None,
        retry_strategy: RetryStrategy | None = None,
    ) -> list[UserAndMetadata]:
        response = await self._send(
            "GET",
            f"{USERS_PATH}/{_domain_value(domain)}",
            timeout=timeout,
            retry_strategy=retry_strategy,
        )
        expect_success(response, UserManagerError)
        return [UserAndMetadata.from_server(u) for u in response.json()]

    @timed_operation("users.get_user")
    async def get_user(
        self,
        username: str,
        domain: AuthDomain | None = None,
        timeout: float | None = None,
        retry_strategy: RetryStrategy | None = None,
    ) -> UserAndMetadata:
        response = await self._send(
            "GET",
            f"{USERS_PATH}/{_domain_value(domain)}/{quote(username, safe='')}",
            timeout=timeout,
            retry_strategy=retry_strategy,
        )
        expect_success(response, UserManagerError, username=username)
        return UserAndMetadata.from_server(response.json())

    @timed_operation("users.upsert_user")
    async def upsert_user(
        self,
        user: User,
        domain: AuthDomain | None = None,
        timeout: float | None = None,
        retry_strategy: RetryStrategy | None = None,
    ) -> None:
        form = [("name", user.display_name)]
        if user.password:
            form.append(("password", user.password))
        if user.groups:
            form.append(("groups", ",".join(user.groups)))
        form.append(("roles", ",".join(role.encode() for role in user.roles)))

        response = await self._send(
            "PUT",
            f"{USERS_PATH}/{_domain_value(domain)}/{quote(user.username, safe='')}",
            form=form,
            timeout=timeout,
            retry_strategy=retry_strategy,
            is_idempotent=True,
        )
        expect_success(response, UserManagerError, username=user.username)
        logger.info(f"Upserted user '{user.username}'")

    @timed_operation("users.drop_user")
    async def drop_user(
        self,
        username: str,
        domain: AuthDomain | None = None,
        timeout: float | None = None,
        retry_strategy: RetryStrategy | None = None,
    ) -> None:
        response = await self._send(
            "DELETE",
            f"{USERS_PATH}/{_domain_value(domain)}/{quote(username, safe='')}",
            timeout=timeout,
            retry_strategy=retry_strategy,
        )
        expect_success(response, UserManagerError, username=username)
        logger.info(f"Dropped user '{username}'")

    @timed_operation("users.get_roles")
    async def get_roles(
        self, timeout: float | None = None, retry_strategy: RetryStrategy | None = None
    ) -> list[RoleAndDescription]:
        response = await self._send(
            "GET", ROLES_PATH, timeout=timeout, retry_strategy=retry_strategy
        )
        expect_success(response, UserManagerError)
        return [
            RoleAndDescription(
                role=Role.from_server(r),
                display_name=r.get("string", ""),
                description=r.get("desc", ""),
            )
            for r in response.json()
        ]

    @timed_operation("users.get_group")
    async def get_group(
        self,
        group_name: str,
        timeout: float | None = None,
        retry_strategy: RetryStrategy | None = None,
    ) -> Group:
        _require_group_name(group_name)
        response = await self._send(
            "GET",
            f"{GROUPS_PATH}/{quote(group_name, safe='')}",
            timeout=timeout,
            retry_strategy=retry_strategy,
        )
        expect_success(response, UserManagerError, group_name=group_name)
        return Group.from_server(response.json())

    @timed_operation("users.get_all_groups")
    async def get_all_groups(
        self, timeout: float | None = None, retry_strategy: RetryStrategy | None = None
    ) -> list[Group]:
        response = await self._send(
            "GET", GROUPS_PATH, timeout=timeout, retry_strategy=retry_strategy
        )
        expect_success(response, UserManagerError)
        return [Group.from_server(g) for g in response.json()]

    @timed_operation("users.upsert_group")
    async def upsert_group(
        self,
        group: Group,
        timeout: float | None = None,
        retry_strategy: RetryStrategy | None = None,
    ) -> None:
        _require_group_name(group.name)
        form = [
            ("description", group.description),
            ("ldap_group_ref", group.ldap_group_reference),
            ("roles", ",".join(role.encode() for role in group.roles)),
        ]
        response = await self._send(
            "PUT",
            f"{GROUPS_PATH}/{quote(group.name, safe='')}",
            form=form,
            timeout=timeout,
            retry_strategy=retry_strategy,
            is_idempotent=True,
        )
        expect_success(response, UserManagerError, group_name=group.name)
        logger.info(f"Upserted group '{group.name}'")

    @timed_operation("users.drop_group")
    async def drop_group(
        self,
        group_name: str,
        timeout: float | None = None,
        retry_strategy: RetryStrategy | None = None,
    ) -> None:
        _require_group_name(group_name)
        response = await self._send(
            "DELETE",
            f"{GROUPS_PATH}/{quote(group_name, safe='')}",
            timeout=timeout,
            retry_strategy=retry_strategy,
        )
        expect_success(response, UserManagerError, group_name=group_name)
        logger.info(f"Dropped group '{group_name}'")
