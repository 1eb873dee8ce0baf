"""
Design document commands for CLI.
"""

from pathlib import Path

import click

from ...exceptions import ConfigurationError
from ...indexes.views import load_design_document
from ...query.options import DesignDocumentNamespace
from ..utils import run_with_cluster


@click.group()
def views() -> None:
    """Manage view design documents."""


@views.command("upsert")
@click.argument("bucket")
@click.argument("design_file", type=click.Path(exists=True, path_type=Path))
@click.option("--development", is_flag=True, help="Write to the development namespace")
@click.pass_context
def upsert(ctx: click.Context, bucket: str, design_file: Path, development: bool) -> None:
    """
    Create or replace a design document from a JSON file.

    DESIGN_FILE holds {"name": ..., "views": {"by_name": {"map": ...}}}.
    """
    try:
        ddoc = load_design_document(design_file)
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    namespace = (
        DesignDocumentNamespace.DEVELOPMENT if development else DesignDocumentNamespace.PRODUCTION
    )
    run_with_cluster(
        ctx,
        lambda cluster: cluster.bucket(bucket).view_indexes().upsert_design_document(
            ddoc, namespace
        ),
    )
    click.echo(click.style(f"Design document '{ddoc.name}' saved", fg="green"))


@views.command("publish")
@click.argument("bucket")
@click.argument("name")
@click.pass_context
def publish(ctx: click.Context, bucket: str, name: str) -> None:
    """Copy development design document NAME into production."""
    run_with_cluster(
        ctx, lambda cluster: cluster.bucket(bucket).view_indexes().publish_design_document(name)
    )
    click.echo(click.style(f"Design document '{name}' published", fg="green"))
