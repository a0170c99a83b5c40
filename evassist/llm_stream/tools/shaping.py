"""
Tool Result Shaping

Turns raw charging-network payloads into compact, support-friendly
summaries for the model. Raw payloads are opaque and vary per tenant, so
every accessor tolerates missing fields.

Author: System Architect
Date: 2026-01-12
"""

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from evassist.llm_stream.tools.schemas import ToolArgs

DEFAULT_CURRENCY = "ILS"


def _unwrap(payload: Any) -> Any:
    """Ampeco wraps most resources in {"data": ...}."""
    if isinstance(payload, dict) and "data" in payload and len(payload) <= 2:
        return payload["data"]
    return payload


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _records(value: Any) -> list[dict[str, Any]]:
    """Dict items of a list payload; null, scalars and foreign items are dropped."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _money(amount: Any, currency: str | None) -> str | None:
    if not isinstance(amount, int | float):
        return None
    return f"{amount:.2f} {currency or DEFAULT_CURRENCY}"


def _kwh(value: Any) -> str | None:
    return f"{value:.2f} kWh" if isinstance(value, int | float) else None


def _kw(value: Any) -> str | None:
    return f"{value} kW" if isinstance(value, int | float) else None


def _parse_time(value: Any) -> datetime | None:
    if not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def format_duration(start: Any, end: Any = None, now: datetime | None = None) -> str | None:
    started = _parse_time(start)
    if started is None:
        return None
    finished = _parse_time(end) or now or datetime.now(timezone.utc)
    minutes = max(0, int((finished - started).total_seconds() // 60))
    return f"{minutes // 60}h {minutes % 60}m"


def _evse_summary(evse: dict[str, Any]) -> dict[str, Any]:
    status = evse.get("status")
    return {
        "evse_id": evse.get("id"),
        "socket_number": evse.get("socketNumber") or evse.get("uid"),
        "status": status,
        "connector_type": evse.get("connectorType"),
        "power_output": _kw(evse.get("maxPower")),
        "is_available": status == "Available",
        "is_charging": status == "Charging",
        "is_faulted": status == "Faulted",
        "error_code": evse.get("errorCode"),
    }


def shape_station_status(args: ToolArgs, payload: Any) -> dict[str, Any]:
    station = _as_dict(_unwrap(payload))
    location = station.get("location")
    return {
        "station_id": station.get("id", getattr(args, "station_id", None)),
        "name": station.get("name"),
        "location": location.get("address") if isinstance(location, dict) else location,
        "status": station.get("status"),
        "connectors": [_evse_summary(e) for e in _records(station.get("evses"))],
        "last_update": station.get("lastHeartbeat") or station.get("updatedAt"),
    }


def shape_find_station(args: ToolArgs, payload: Any) -> dict[str, Any]:
    """Search the station list for an EVSE whose socketNumber or uid matches."""
    socket_number = str(getattr(args, "socket_number", "")).strip()
    data = _unwrap(payload)
    stations = data.get("stations") if isinstance(data, dict) else data
    for station in _records(stations):
        for evse in _records(station.get("evses")):
            if socket_number in (str(evse.get("socketNumber", "")), str(evse.get("uid", ""))):
                return {
                    "found": True,
                    "station_id": station.get("id"),
                    "name": station.get("name"),
                    "connector": _evse_summary(evse),
                }
    return {"found": False, "socket_number": socket_number, "message": "No station uses this socket number"}


def shape_active_session(args: ToolArgs, payload: Any) -> dict[str, Any]:
    session = _unwrap(payload)
    if not isinstance(session, dict) or not session.get("id"):
        return {"has_active_session": False, "message": "No active charging session at this station"}
    currency = session.get("currency")
    return {
        "has_active_session": True,
        "session_id": session.get("id"),
        "start_time": session.get("startTime"),
        "duration": format_duration(session.get("startTime")),
        "energy_consumed": _kwh(session.get("energyConsumed")) or "Calculating...",
        "estimated_cost": _money(session.get("cost"), currency) or "Calculating...",
        "charging_rate": _kw(session.get("currentPower")),
        "user_id": session.get("userId"),
    }


def shape_session_history(args: ToolArgs, payload: Any) -> dict[str, Any]:
    data = _unwrap(payload)
    sessions = data.get("sessions") if isinstance(data, dict) else data
    shaped = [
        {
            "session_id": s.get("id"),
            "start_time": s.get("startTime"),
            "station_name": s.get("stationName"),
            "socket_number": s.get("socketNumber"),
            "energy_consumed": _kwh(s.get("energyConsumed")),
            "duration": format_duration(s.get("startTime"), s.get("endTime")) if s.get("endTime") else None,
            "cost": _money(s.get("cost"), s.get("currency")),
            "status": s.get("status") or "Completed",
        }
        for s in _records(sessions)
    ]
    if not shaped:
        return {"sessions": [], "message": "No charging sessions found for this user"}
    return {"sessions": shaped, "total_sessions": len(shaped)}


def shape_tariff(args: ToolArgs, payload: Any) -> dict[str, Any]:
    tariff = _as_dict(_unwrap(payload))
    currency = tariff.get("currency") or DEFAULT_CURRENCY
    return {
        "station_id": getattr(args, "station_id", None),
        "tariff_name": tariff.get("name") or "Standard tariff",
        "currency": currency,
        "price_per_kwh": _money(tariff.get("pricePerKwh"), currency),
        "session_start_fee": _money(tariff.get("sessionStartFee"), currency),
        "parking_fee_per_hour": _money(tariff.get("parkingFee"), currency),
        "minimum_charge": _money(tariff.get("minimumCharge"), currency),
        "free_parking_minutes": tariff.get("freeParkingMinutes") or 0,
        "description": tariff.get("description"),
    }


def _action(message: str) -> Callable[[ToolArgs, Any], dict[str, Any]]:
    def shape(args: ToolArgs, payload: Any) -> dict[str, Any]:
        return {"success": True, "message": message, **args.upstream_args(), "response": _unwrap(payload)}

    return shape


SHAPERS: dict[str, Callable[[ToolArgs, Any], dict[str, Any]]] = {
    "get_station_status": shape_station_status,
    "find_station": shape_find_station,
    "get_active_session": shape_active_session,
    "get_session_history": shape_session_history,
    "get_tariff": shape_tariff,
    "reset_station": _action("Reset command sent, the station restarts within a few minutes"),
    "unlock_connector": _action("Unlock command sent, the cable can be removed now"),
    "start_charging": _action("Charging session started, plug in the vehicle if not connected"),
    "stop_charging": _action("Charging session stopped, the cable can be unplugged after a few seconds"),
}
