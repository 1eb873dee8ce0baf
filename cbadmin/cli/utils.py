"""
Utility functions for CLI commands.

This module provides shared utilities for CLI operations: building the
cluster from the group options, running coroutines against it, and
formatting results.
"""

import asyncio
import dataclasses
import json
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar

import click

from ..config import ClusterConfig
from ..core.cluster import Cluster
from ..exceptions import CBAdminError, ConfigurationError
from ..observability.logging import set_correlation_id

T = TypeVar("T")


def to_jsonable(value: Any) -> Any:
    """Convert dataclasses, enums and time values into JSON-compatible data."""
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, dict):
        return {str(to_jsonable(k)): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_jsonable(v) for v in value]
    return value


def _pretty_lines(data: Any, indent: int = 0) -> list[str]:
    pad = "  " * indent
    lines = []
    if isinstance(data, dict):
        for key, value in data.items():
            if isinstance(value, (dict, list)) and value:
                lines.append(f"{pad}{key}:")
                lines.extend(_pretty_lines(value, indent + 1))
            else:
                lines.append(f"{pad}{key}: {value}")
    elif isinstance(data, list):
        for item in data:
            if isinstance(item, dict):
                lines.append(f"{pad}-")
                lines.extend(_pretty_lines(item, indent + 1))
            else:
                lines.append(f"{pad}- {item}")
    else:
        lines.append(f"{pad}{data}")
    return lines


def format_output(data: Any, format_type: str) -> str:
    """
    Format a command result for output.

    Args:
        data: Result to format
        format_type: Output format ('json' or 'pretty')

    Returns:
        Formatted string representation
    """
    data = to_jsonable(data)
    if format_type == "pretty":
        return "\n".join(_pretty_lines(data))
    return json.dumps(data, indent=2, ensure_ascii=False)


def load_config(ctx: click.Context) -> ClusterConfig:
    """
    Build the cluster configuration from the group options and environment.

    Raises:
        click.ClickException: If the configuration is invalid
    """
    options = ctx.obj.get("connection", {})
    try:
        return ClusterConfig.from_env(**options)
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e


def run_with_cluster(ctx: click.Context, func: Callable[[Cluster], Awaitable[T]]) -> T:
    """
    Connect to the cluster, run func against it and close it.

    A "cluster_factory" entry in the context object replaces the default
    Cluster constructor.

    Raises:
        click.ClickException: If the operation fails
    """
    config = load_config(ctx)
    factory = ctx.obj.get("cluster_factory") or Cluster

    async def _run() -> T:
        set_correlation_id()
        async with factory(config) as cluster:
            return await func(cluster)

    try:
        return asyncio.run(_run())
    except CBAdminError as e:
        raise click.ClickException(str(e)) from e


def echo_result(ctx: click.Context, data: Any) -> None:
    click.echo(format_output(data, ctx.obj.get("format", "json")))
