"""
Bucket commands for CLI.
"""

import click

from ..utils import echo_result, run_with_cluster


@click.group()
def buckets() -> None:
    """Inspect and flush buckets."""


@buckets.command("list")
@click.pass_context
def list_buckets(ctx: click.Context) -> None:
    """
    List every bucket with its settings.

    Examples:
        cbadmin buckets list
        cbadmin --format pretty buckets list
    """
    result = run_with_cluster(ctx, lambda cluster: cluster.buckets().get_all_buckets())
    echo_result(ctx, list(result.values()))


@buckets.command("get")
@click.argument("name")
@click.pass_context
def get_bucket(ctx: click.Context, name: str) -> None:
    """Show the settings of bucket NAME."""
    result = run_with_cluster(ctx, lambda cluster: cluster.buckets().get_bucket(name))
    echo_result(ctx, result)


@buckets.command("flush")
@click.argument("name")
@click.confirmation_option(prompt="This deletes every document in the bucket. Continue?")
@click.pass_context
def flush_bucket(ctx: click.Context, name: str) -> None:
    """Delete every document of bucket NAME (flush must be enabled)."""
    run_with_cluster(ctx, lambda cluster: cluster.buckets().flush_bucket(name))
    click.echo(click.style(f"Bucket '{name}' flushed", fg="green"))
