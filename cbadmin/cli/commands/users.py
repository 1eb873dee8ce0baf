"""
User and group commands for CLI.
"""

import click

from ...management.users import AuthDomain
from ..utils import echo_result, run_with_cluster


@click.group()
def users() -> None:
    """Inspect RBAC users."""


@users.command("list")
@click.option(
    "--domain",
    type=click.Choice([d.value for d in AuthDomain]),
    default=AuthDomain.LOCAL.value,
    show_default=True,
    help="Authentication domain",
)
@click.pass_context
def list_users(ctx: click.Context, domain: str) -> None:
    """List the users of an authentication domain."""
    result = run_with_cluster(
        ctx, lambda cluster: cluster.users().get_all_users(domain=AuthDomain(domain))
    )
    echo_result(ctx, result)


@users.command("roles")
@click.pass_context
def list_roles(ctx: click.Context) -> None:
    """List the roles the cluster supports."""
    result = run_with_cluster(ctx, lambda cluster: cluster.users().get_roles())
    echo_result(ctx, result)


@click.group()
def groups() -> None:
    """Inspect RBAC groups."""


@groups.command("list")
@click.pass_context
def list_groups(ctx: click.Context) -> None:
    result = run_with_cluster(ctx, lambda cluster: cluster.users().get_all_groups())
    echo_result(ctx, result)
