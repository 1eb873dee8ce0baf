"""
Configuration management for CBADMIN.

ClusterConfig is a Pydantic model that can be built from keyword arguments,
from environment variables, or from both (keyword arguments win). Invalid
values surface as ConfigurationError rather than pydantic's ValidationError.
"""

import os
from typing import Any
from urllib.parse import urlsplit

from pydantic import BaseModel, Field, ValidationError, field_validator

from .constants import (
    DEFAULT_ANALYTICS_TIMEOUT,
    DEFAULT_KV_TIMEOUT,
    DEFAULT_MANAGEMENT_TIMEOUT,
    DEFAULT_QUERY_TIMEOUT,
    DEFAULT_SEARCH_TIMEOUT,
    DEFAULT_VIEW_TIMEOUT,
)
from .exceptions import ConfigurationError

ENV_PREFIX = "CBADMIN_"

_ENV_FIELDS = {
    "connection_string": "CONNECTION_STRING",
    "username": "USERNAME",
    "password": "PASSWORD",
    "kv_timeout": "KV_TIMEOUT",
    "management_timeout": "MANAGEMENT_TIMEOUT",
    "query_timeout": "QUERY_TIMEOUT",
    "analytics_timeout": "ANALYTICS_TIMEOUT",
    "search_timeout": "SEARCH_TIMEOUT",
    "view_timeout": "VIEW_TIMEOUT",
}


class ClusterConfig(BaseModel):
    """
    Cluster connection configuration.

    Example:
        # Using environment variables
        config = ClusterConfig.from_env()

        # Or using direct parameters
        config = ClusterConfig.load(
            connection_string="couchbase://10.0.0.1,10.0.0.2",
            username="Administrator",
            password="password",
        )
    """

    connection_string: str = Field(..., min_length=1, description="couchbase:// or http:// hosts")
    username: str = Field("", description="RBAC username")
    password: str = Field("", description="RBAC password")
    kv_timeout: float = Field(DEFAULT_KV_TIMEOUT, gt=0)
    management_timeout: float = Field(DEFAULT_MANAGEMENT_TIMEOUT, gt=0)
    query_timeout: float = Field(DEFAULT_QUERY_TIMEOUT, gt=0)
    analytics_timeout: float = Field(DEFAULT_ANALYTICS_TIMEOUT, gt=0)
    search_timeout: float = Field(DEFAULT_SEARCH_TIMEOUT, gt=0)
    view_timeout: float = Field(DEFAULT_VIEW_TIMEOUT, gt=0)
    use_tls: bool = False

    model_config = {"frozen": True}

    @field_validator("connection_string")
    @classmethod
    def _check_scheme(cls, value: str) -> str:
        scheme = value.split("://", 1)[0] if "://" in value else "couchbase"
        if scheme not in ("couchbase", "couchbases", "http", "https"):
            raise ValueError(f"unsupported connection string scheme '{scheme}'")
        return value

    @property
    def hosts(self) -> list[str]:
        """Host names (without ports) listed in the connection string."""
        rest = self.connection_string.split("://", 1)[-1]
        rest = rest.split("/", 1)[0].split("?", 1)[0]
        hosts = []
        for entry in rest.split(","):
            entry = entry.strip()
            if not entry:
                continue
            hosts.append(urlsplit(f"//{entry}").hostname or entry)
        return hosts

    @property
    def tls(self) -> bool:
        return self.use_tls or self.connection_string.startswith(("couchbases://", "https://"))

    @classmethod
    def load(cls, **values: Any) -> "ClusterConfig":
        """
        Build a configuration, converting validation failures.

        Raises:
            ConfigurationError: If a value is missing or invalid
        """
        try:
            return cls(**values)
        except ValidationError as e:
            first = e.errors()[0]
            key = ".".join(str(p) for p in first.get("loc", ()))
            raise ConfigurationError(
                f"Invalid cluster configuration: {first.get('msg')}",
                config_key=key or None,
                config_value=first.get("input") if key != "password" else None,
            ) from e

    @classmethod
    def from_env(cls, **overrides: Any) -> "ClusterConfig":
        """
        Build a configuration from CBADMIN_* environment variables.

        Args:
            **overrides: Values that take precedence over the environment
        """
        values: dict[str, Any] = {}
        for field_name, suffix in _ENV_FIELDS.items():
            raw = os.getenv(ENV_PREFIX + suffix)
            if raw is not None and raw != "":
                values[field_name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        if "connection_string" not in values:
            raise ConfigurationError(
                "connection_string is required (set CBADMIN_CONNECTION_STRING "
                "environment variable or pass directly)",
                config_key="connection_string",
            )
        return cls.load(**values)
