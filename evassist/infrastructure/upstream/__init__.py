"""Charging-network (Ampeco) upstream access."""

from evassist.infrastructure.upstream.client import ResilientExternalClient
from evassist.infrastructure.upstream.models import Failure, UpstreamResult
from evassist.infrastructure.upstream.operations import OPERATIONS, UpstreamOperation, get_operation
from evassist.infrastructure.upstream.transport import AmpecoTransport, parse_retry_after

__all__ = [
    "OPERATIONS",
    "AmpecoTransport",
    "Failure",
    "ResilientExternalClient",
    "UpstreamOperation",
    "UpstreamResult",
    "get_operation",
    "parse_retry_after",
]
