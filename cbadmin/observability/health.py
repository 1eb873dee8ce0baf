"""
Ping diagnostics for CBADMIN.

Types describing the outcome of pinging each service endpoint of a bucket,
plus the aggregation rules used to derive an overall state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from ..constants import ServiceType


class PingState(str, Enum):
    """State of one pinged endpoint."""

    OK = "ok"
    ERROR = "error"


@dataclass
class EndpointPingReport:
    """Result of pinging a single endpoint."""

    service: ServiceType
    remote_addr: str
    state: PingState
    latency: float = 0.0
    scope: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "service": self.service.value,
            "remote": self.remote_addr,
            "state": self.state.value,
            "latency_us": int(self.latency * 1_000_000),
            "scope": self.scope,
            "error": self.error,
        }


@dataclass
class PingReport:
    """
    Result of a bucket ping.

    Attributes:
        id: Report id (supplied by the caller or generated)
        config_rev: Cluster configuration revision seen by the KV engine
        services: Endpoint reports grouped by service
    """

    id: str
    config_rev: int = 0
    services: dict[ServiceType, list[EndpointPingReport]] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def add(self, report: EndpointPingReport) -> None:
        self.services.setdefault(report.service, []).append(report)

    @property
    def state(self) -> PingState:
        """ERROR if any endpoint errored, else OK."""
        states = {r.state for reports in self.services.values() for r in reports}
        if PingState.ERROR in states:
            return PingState.ERROR
        return PingState.OK

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "config_rev": self.config_rev,
            "state": self.state.value,
            "timestamp": self.timestamp.isoformat(),
            "services": {
                service.value: [r.to_dict() for r in reports]
                for service, reports in self.services.items()
            },
        }
