"""
N1QL index commands for CLI.
"""

import click

from ..utils import echo_result, run_with_cluster


@click.group()
def indexes() -> None:
    """Inspect and build N1QL indexes."""


@indexes.command("list")
@click.argument("bucket")
@click.pass_context
def list_indexes(ctx: click.Context, bucket: str) -> None:
    """List the indexes of BUCKET."""
    result = run_with_cluster(ctx, lambda cluster: cluster.query_indexes().get_all_indexes(bucket))
    echo_result(ctx, result)


@indexes.command("build-deferred")
@click.argument("bucket")
@click.pass_context
def build_deferred(ctx: click.Context, bucket: str) -> None:
    """Build every deferred index of BUCKET."""
    built = run_with_cluster(
        ctx, lambda cluster: cluster.query_indexes().build_deferred_indexes(bucket)
    )
    if not built:
        click.echo("No deferred indexes to build")
        return
    echo_result(ctx, built)


@indexes.command("watch")
@click.argument("bucket")
@click.argument("names", nargs=-1)
@click.option("--timeout", type=float, default=60.0, show_default=True, help="Seconds to wait")
@click.option("--primary", is_flag=True, help="Also wait for the primary index")
@click.pass_context
def watch(ctx: click.Context, bucket: str, names: tuple, timeout: float, primary: bool) -> None:
    """
    Wait until the named indexes of BUCKET are online.

    Examples:
        cbadmin indexes watch travel-sample idx_name idx_city --timeout 120
        cbadmin indexes watch travel-sample --primary
    """
    if not names and not primary:
        raise click.UsageError("Name at least one index or pass --primary")
    run_with_cluster(
        ctx,
        lambda cluster: cluster.query_indexes().watch_indexes(
            bucket, list(names), timeout=timeout, watch_primary=primary
        ),
    )
    click.echo(click.style("Indexes are online", fg="green"))
