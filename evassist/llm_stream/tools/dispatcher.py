#!/usr/bin/env python3
"""
Tool Dispatcher

Static registry of tools the model may invoke. Each tool maps to exactly
one upstream operation and one argument shape. invoke() never raises for
tool-level problems: unknown names, bad arguments and upstream failures all
come back as a ToolResult carrying a typed Failure, which the turn loop
turns into a natural-language note for the model.

Author: System Architect
Date: 2026-01-12
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import orjson
from pydantic import ValidationError

from evassist.core.config.constants import FailureKind, Stage
from evassist.core.exceptions import InvalidToolArgsError, ToolError, UnknownToolError
from evassist.core.logging.logger import get_logger, log_stage
from evassist.infrastructure.upstream.client import ResilientExternalClient
from evassist.infrastructure.upstream.models import Failure
from evassist.infrastructure.upstream.operations import UpstreamOperation, get_operation
from evassist.llm_stream.tools.schemas import (
    ARGS_BY_TOOL,
    ToolArgs,
    openai_tool_schema,
    tool_args_adapter,
)
from evassist.llm_stream.tools.shaping import SHAPERS

logger = get_logger(__name__)

FALLBACK_MESSAGES: dict[FailureKind, str] = {
    FailureKind.INVALID_ARGS: (
        "The tool could not run because its arguments were invalid. "
        "Ask the user for the missing or correct details."
    ),
    FailureKind.RATE_LIMITED: (
        "Live data is temporarily rate limited. Tell the user to try again in a minute."
    ),
    FailureKind.CIRCUIT_OPEN: (
        "The charging network is temporarily unavailable. Apologize, say live data "
        "cannot be checked right now and offer general guidance."
    ),
    FailureKind.UPSTREAM_TRANSIENT: (
        "The charging network did not respond. Apologize, say live data is temporarily "
        "unavailable and offer general guidance."
    ),
    FailureKind.UPSTREAM_PERMANENT: (
        "The charging network rejected the request (for example an unknown station). "
        "Apologize and ask the user to double-check the station or socket number."
    ),
    FailureKind.UNKNOWN_TOOL: "That tool does not exist. Answer without it.",
}

STALE_DATA_NOTE = (
    "Live data is unavailable, this is the last known information and may be outdated. "
    "Tell the user so."
)


@dataclass(frozen=True)
class ToolSpec:
    name: str
    operation: UpstreamOperation
    args_model: type[ToolArgs]
    shaper: Callable[[ToolArgs, Any], dict[str, Any]]

    def schema(self) -> dict[str, Any]:
        return openai_tool_schema(self.name, self.args_model)


@dataclass(frozen=True)
class ToolResult:
    tool: str
    output: dict[str, Any] | None = None
    failure: Failure | None = None
    stale: bool = False
    from_cache: bool = False

    @property
    def ok(self) -> bool:
        return self.output is not None

    def to_model_content(self) -> str:
        """JSON text fed back to the model as the tool message."""
        if self.output is not None:
            content: dict[str, Any] = {"data": self.output}
            if self.stale:
                content["note"] = STALE_DATA_NOTE
        else:
            failure = self.failure or Failure(FailureKind.UPSTREAM_TRANSIENT, "Unknown failure")
            content = {"error": failure.kind.value, "message": FALLBACK_MESSAGES[failure.kind]}
            if failure.retry_after is not None:
                content["retry_after_seconds"] = round(failure.retry_after)
        return orjson.dumps(content).decode()


def build_registry() -> dict[str, ToolSpec]:
    operation_by_tool = {"find_station": "list_stations"}
    return {
        name: ToolSpec(
            name=name,
            operation=get_operation(operation_by_tool.get(name, name)),
            args_model=model,
            shaper=SHAPERS[name],
        )
        for name, model in ARGS_BY_TOOL.items()
    }


class ToolDispatcher:
    """
    STAGE-4.1: Tool dispatch

    Usage:
        result = await dispatcher.invoke("get_station_status", '{"station_id": "35"}', "user-1")
        if not result.ok:
            ...
    """

    def __init__(self, client: ResilientExternalClient, registry: dict[str, ToolSpec] | None = None):
        self.client = client
        self.registry = registry if registry is not None else build_registry()

    def tool_schemas(self) -> list[dict[str, Any]]:
        return [spec.schema() for spec in self.registry.values()]

    def parse_arguments(self, name: str, raw_args: str | dict[str, Any] | None) -> ToolArgs:
        """
        Validate arguments for a registered tool.

        Raises:
            UnknownToolError: name not registered
            InvalidToolArgsError: arguments missing, mistyped or unexpected
        """
        if name not in self.registry:
            raise UnknownToolError(f"Unknown tool '{name}'", details={"tool": name})

        if raw_args is None or raw_args == "":
            args: Any = {}
        elif isinstance(raw_args, str):
            try:
                args = orjson.loads(raw_args)
            except orjson.JSONDecodeError as e:
                raise InvalidToolArgsError.from_exception(e, message="Arguments are not valid JSON", tool=name) from e
        else:
            args = raw_args

        if not isinstance(args, dict):
            raise InvalidToolArgsError("Arguments must be a JSON object", details={"tool": name})
        if "tool" in args:
            raise InvalidToolArgsError("Unexpected argument 'tool'", details={"tool": name})

        try:
            return tool_args_adapter.validate_python({**args, "tool": name})
        except ValidationError as e:
            raise InvalidToolArgsError(
                f"Invalid arguments for '{name}'",
                details={"tool": name, "errors": e.errors(include_url=False, include_context=False)},
            ) from e

    async def invoke(self, name: str, raw_args: str | dict[str, Any] | None, principal: str) -> ToolResult:
        try:
            args = self.parse_arguments(name, raw_args)
        except ToolError as e:
            log_stage(
                logger,
                Stage.TOOL_DISPATCH,
                "Tool call rejected",
                level="error" if isinstance(e, UnknownToolError) else "warning",
                tool=name,
                reason=e.message,
            )
            return ToolResult(tool=name, failure=Failure(e.kind, e.message))

        spec = self.registry[name]
        log_stage(logger, Stage.TOOL_DISPATCH, "Tool invoked", tool=name, operation=spec.operation.name)
        upstream = await self.client.call(spec.operation, args.upstream_args(), principal)

        if upstream.payload is None and upstream.failure is not None:
            return ToolResult(tool=name, failure=upstream.failure)
        try:
            output = spec.shaper(args, upstream.payload)
        except Exception as e:
            log_stage(
                logger,
                Stage.TOOL_DISPATCH,
                "Upstream payload could not be shaped",
                level="error",
                tool=name,
                error_type=type(e).__name__,
                error=str(e),
            )
            return ToolResult(
                tool=name, failure=Failure(FailureKind.UPSTREAM_PERMANENT, "Unexpected response shape")
            )
        return ToolResult(
            tool=name,
            output=output,
            failure=upstream.failure,
            stale=upstream.stale,
            from_cache=upstream.from_cache,
        )
