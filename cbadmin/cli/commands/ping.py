"""
Ping command for CLI.
"""

import sys

import click

from ...constants import DEFAULT_PING_SERVICES, PING_PATHS, ServiceType
from ...observability.health import PingState
from ..utils import echo_result, run_with_cluster


@click.command()
@click.argument("bucket")
@click.option(
    "--service",
    "services",
    multiple=True,
    type=click.Choice([s.value for s in DEFAULT_PING_SERVICES if s in PING_PATHS]),
    help="HTTP service to ping (repeatable; default: all)",
)
@click.option("--report-id", default=None, help="Id to stamp on the report")
@click.pass_context
def ping(ctx: click.Context, bucket: str, services: tuple, report_id: str | None) -> None:
    """
    Ping the services of BUCKET's cluster.

    Exits with status 1 when any endpoint reports an error.

    Examples:
        cbadmin ping travel-sample
        cbadmin ping travel-sample --service n1ql --service fts
    """
    service_types = [ServiceType(s) for s in services] or None
    report = run_with_cluster(
        ctx,
        lambda cluster: cluster.bucket(bucket).ping(
            service_types=service_types, report_id=report_id
        ),
    )
    echo_result(ctx, report)
    if report.state != PingState.OK:
        sys.exit(1)
