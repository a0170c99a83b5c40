"""
Upstream Operation Registry

Static catalogue of the charging-network REST operations the assistant may
perform. Each operation is an HTTP verb + path template, the argument
placement (path / query / body), its cache lifetime class and whether its
rate limit is charged to the caller or to the service as a whole.

Author: System Architect
Date: 2026-01-12
"""

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

from evassist.core.config.constants import TTLClass

SERVICE_PRINCIPAL_PREFIX = "service"


@dataclass(frozen=True)
class RenderedRequest:
    method: str
    path: str
    params: dict[str, Any] | None
    json_body: dict[str, Any] | None


@dataclass(frozen=True)
class UpstreamOperation:
    """
    One REST resource of the charging network.

    path_template placeholders are filled from args of the same name and
    URL-quoted. query_params/body_params map argument names to wire names;
    None-valued arguments are omitted.
    """

    name: str
    method: str
    path_template: str
    ttl_class: TTLClass = TTLClass.NONE
    query_params: dict[str, str] = field(default_factory=dict)
    body_params: dict[str, str] = field(default_factory=dict)
    per_principal: bool = True

    @property
    def cacheable(self) -> bool:
        return self.method == "GET" and self.ttl_class != TTLClass.NONE

    def render(self, args: dict[str, Any]) -> RenderedRequest:
        """Build the concrete request. Raises KeyError on a missing path arg."""
        path = self.path_template.format(
            **{key: quote(str(value), safe="") for key, value in args.items()}
        )
        params = {
            wire: args[arg] for arg, wire in self.query_params.items() if args.get(arg) is not None
        }
        body = None
        if self.method != "GET":
            body = {
                wire: args[arg] for arg, wire in self.body_params.items() if args.get(arg) is not None
            }
        return RenderedRequest(self.method, path, params or None, body)


_CHARGE_POINT_ACTIONS = "/public-api/actions/charge-point/v1.0/{charge_point_id}"

OPERATIONS: dict[str, UpstreamOperation] = {
    op.name: op
    for op in (
        UpstreamOperation(
            name="get_station_status",
            method="GET",
            path_template="/api/v1/stations/{station_id}",
            ttl_class=TTLClass.VOLATILE,
        ),
        UpstreamOperation(
            name="list_stations",
            method="GET",
            path_template="/api/v1/stations",
            ttl_class=TTLClass.DEFAULT,
            per_principal=False,
        ),
        UpstreamOperation(
            name="get_active_session",
            method="GET",
            path_template="/api/v1/stations/{station_id}/active-session",
            ttl_class=TTLClass.REALTIME,
        ),
        UpstreamOperation(
            name="get_session_history",
            method="GET",
            path_template="/api/v1/sessions",
            ttl_class=TTLClass.DEFAULT,
            query_params={"user_id": "userId", "limit": "limit"},
        ),
        UpstreamOperation(
            name="get_tariff",
            method="GET",
            path_template="/api/v1/stations/{station_id}/tariff",
            ttl_class=TTLClass.STATIC,
        ),
        UpstreamOperation(
            name="reset_station",
            method="POST",
            path_template="/api/v1/stations/{station_id}/reset",
            body_params={"reset_type": "type"},
        ),
        UpstreamOperation(
            name="unlock_connector",
            method="POST",
            path_template="/api/v1/evses/{evse_id}/unlock",
        ),
        UpstreamOperation(
            name="start_charging",
            method="POST",
            path_template=_CHARGE_POINT_ACTIONS + "/start",
            body_params={"evse_id": "evseId", "user_id": "userId", "id_tag": "idTag"},
        ),
        UpstreamOperation(
            name="stop_charging",
            method="POST",
            path_template=_CHARGE_POINT_ACTIONS + "/stop",
            body_params={"reason": "reason"},
        ),
    )
}


def get_operation(name: str) -> UpstreamOperation:
    return OPERATIONS[name]
