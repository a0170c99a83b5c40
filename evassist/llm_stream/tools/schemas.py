"""
Tool Argument Schemas

Every tool's argument shape is a pydantic model tagged by a literal `tool`
field. The union of all of them is validated through one discriminated
TypeAdapter, so a tool name always selects exactly one argument shape and
unexpected or mistyped fields are rejected (extra="forbid", strict=True).

Author: System Architect
Date: 2026-01-12
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

StationId = Annotated[str, Field(min_length=1, max_length=64, description="Station / charge point id, e.g. '35'")]


class ToolArgs(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True, frozen=True)

    def upstream_args(self) -> dict[str, Any]:
        return self.model_dump(exclude={"tool"})


class GetStationStatusArgs(ToolArgs):
    """Live status of a charging station and its connectors."""

    tool: Literal["get_station_status"] = "get_station_status"
    station_id: StationId


class FindStationArgs(ToolArgs):
    """Find the station and connector behind a socket number printed on the charger."""

    tool: Literal["find_station"] = "find_station"
    socket_number: str = Field(..., min_length=1, max_length=64, description="Socket number, e.g. '35-1'")

    def upstream_args(self) -> dict[str, Any]:
        return {}


class GetActiveSessionArgs(ToolArgs):
    """The charging session currently running at a station, if any."""

    tool: Literal["get_active_session"] = "get_active_session"
    station_id: StationId


class GetSessionHistoryArgs(ToolArgs):
    """Recent charging sessions of a user."""

    tool: Literal["get_session_history"] = "get_session_history"
    user_id: str = Field(..., min_length=1, max_length=128, description="User id or email")
    limit: int = Field(default=5, ge=1, le=20, description="Number of sessions (default 5)")


class GetTariffArgs(ToolArgs):
    """Pricing of a station."""

    tool: Literal["get_tariff"] = "get_tariff"
    station_id: StationId


class ResetStationArgs(ToolArgs):
    """Reboot a station. Soft reset first; hard reset only if soft did not help."""

    tool: Literal["reset_station"] = "reset_station"
    station_id: StationId
    reset_type: Literal["soft", "hard"] = "soft"


class UnlockConnectorArgs(ToolArgs):
    """Release a cable stuck in a connector."""

    tool: Literal["unlock_connector"] = "unlock_connector"
    evse_id: str = Field(..., min_length=1, max_length=64, description="EVSE (connector) id")


class StartChargingArgs(ToolArgs):
    """Start a charging session remotely."""

    tool: Literal["start_charging"] = "start_charging"
    charge_point_id: StationId
    evse_id: str = Field(..., min_length=1, max_length=64, description="EVSE (connector) id")
    user_id: str | None = Field(default=None, max_length=128)
    id_tag: str | None = Field(default=None, max_length=128, description="RFID / authorization tag")


class StopChargingArgs(ToolArgs):
    """Stop the charging session running on a charge point."""

    tool: Literal["stop_charging"] = "stop_charging"
    charge_point_id: StationId
    reason: str | None = Field(default=None, max_length=128)


ANY_TOOL_ARGS = Annotated[
    Union[
        GetStationStatusArgs,
        FindStationArgs,
        GetActiveSessionArgs,
        GetSessionHistoryArgs,
        GetTariffArgs,
        ResetStationArgs,
        UnlockConnectorArgs,
        StartChargingArgs,
        StopChargingArgs,
    ],
    Field(discriminator="tool"),
]

tool_args_adapter: TypeAdapter[ToolArgs] = TypeAdapter(ANY_TOOL_ARGS)

ARGS_BY_TOOL: dict[str, type[ToolArgs]] = {
    model.model_fields["tool"].default: model
    for model in (
        GetStationStatusArgs,
        FindStationArgs,
        GetActiveSessionArgs,
        GetSessionHistoryArgs,
        GetTariffArgs,
        ResetStationArgs,
        UnlockConnectorArgs,
        StartChargingArgs,
        StopChargingArgs,
    )
}


def openai_tool_schema(name: str, args_model: type[ToolArgs]) -> dict[str, Any]:
    """Function-calling schema of one tool, without the internal `tool` tag."""
    schema = args_model.model_json_schema()
    properties = {k: v for k, v in schema.get("properties", {}).items() if k != "tool"}
    required = [k for k in schema.get("required", []) if k != "tool"]
    parameters: dict[str, Any] = {
        "type": "object",
        "properties": properties,
        "additionalProperties": False,
    }
    if required:
        parameters["required"] = required
    if "$defs" in schema:
        parameters["$defs"] = schema["$defs"]
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": (args_model.__doc__ or name).strip(),
            "parameters": parameters,
        },
    }
