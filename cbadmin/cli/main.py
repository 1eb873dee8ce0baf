"""
Command-line entry point.

The group options describe the cluster connection; each falls back to the
matching CBADMIN_* environment variable.
"""

import logging

import click

from .. import __version__
from .commands.buckets import buckets
from .commands.indexes import indexes
from .commands.ping import ping
from .commands.users import groups, users
from .commands.views import views


@click.group()
@click.version_option(version=__version__, prog_name="cbadmin")
@click.option(
    "--connection-string",
    envvar="CBADMIN_CONNECTION_STRING",
    help="couchbase://host1,host2 (or http://)",
)
@click.option("--username", envvar="CBADMIN_USERNAME", default=None, help="RBAC username")
@click.option("--password", envvar="CBADMIN_PASSWORD", default=None, help="RBAC password")
@click.option(
    "--format",
    "format_type",
    type=click.Choice(["json", "pretty"]),
    default="json",
    show_default=True,
    help="Output format",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(
    ctx: click.Context,
    connection_string: str | None,
    username: str | None,
    password: str | None,
    format_type: str,
    verbose: bool,
) -> None:
    """Administer a Couchbase cluster."""
    ctx.ensure_object(dict)
    ctx.obj["connection"] = {
        "connection_string": connection_string,
        "username": username,
        "password": password,
    }
    ctx.obj["format"] = format_type
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


cli.add_command(buckets)
cli.add_command(users)
cli.add_command(groups)
cli.add_command(indexes)
cli.add_command(views)
cli.add_command(ping)


if __name__ == "__main__":
    cli()
