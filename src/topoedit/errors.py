"""Error taxonomy.

Graph-shape anomalies (cycles, duplicate codes, disconnected parts) are valid
states and never raise. Refused connections are reported as a
``ConnectionResult`` outcome rather than an exception; only malformed import
payloads surface as exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TopoEditError(ValueError):
    """Base class for errors raised by topoedit."""


class TopologyImportError(TopoEditError):
    """The import payload could not be parsed into a topology."""


class ConnectionRejection(Enum):
    SELF_LOOP = "self_loop"
    DUPLICATE = "duplicate"
    MISSING_ENDPOINT = "missing_endpoint"


@dataclass
class ConnectionResult:
    """Outcome of ``GraphStore.add_edge``."""

    ok: bool
    edge_id: str | None = None
    reason: ConnectionRejection | None = None

    def __bool__(self) -> bool:
        return self.ok
