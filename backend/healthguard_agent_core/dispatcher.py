from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .errors import MalformedToolArgumentsError
from .models import ExecutionContext, ModelReply, ToolCallRequest, ToolCallResult
from .registry import ToolDefinition, ToolRegistry
from .session import ChatSessionManager


logger = logging.getLogger(__name__)


@dataclass
class DispatchOutcome:
    summary_text: str = ""
    results: list[ToolCallResult] = field(default_factory=list)
    unmatched: list[ToolCallRequest] = field(default_factory=list)


def _declared_arguments(tool: ToolDefinition, arguments: dict[str, Any]) -> dict[str, Any]:
    declared = set(tool.declared_fields)
    return {key: value for key, value in arguments.items() if key in declared}


class ToolCallDispatcher:
    def __init__(self, registry: ToolRegistry) -> None:
        self.registry = registry

    def dispatch(self, ctx: ExecutionContext, requests: list[ToolCallRequest]) -> DispatchOutcome:
        outcome = DispatchOutcome()
        lines: list[str] = []
        for request in requests:
            tool = self.registry.get(request.name)
            if tool is None:
                logger.info("skipping unregistered tool call %s", request.name)
                outcome.unmatched.append(request)
                continue
            acknowledgement, result = self._run(ctx, tool, request)
            lines.append(acknowledgement)
            outcome.results.append(result)
        outcome.summary_text = "".join(f"{line}\n" for line in lines)
        return outcome

    def unmatched(self, requests: list[ToolCallRequest]) -> list[ToolCallRequest]:
        return [request for request in requests if self.registry.get(request.name) is None]

    def follow_up(self, session: ChatSessionManager, outcome: DispatchOutcome) -> ModelReply | None:
        if not outcome.results:
            return None
        reply = session.submit_tool_results(outcome.results)
        if reply.tool_calls:
            # Only one follow-up leg per turn; further calls are not executed.
            logger.info("ignoring %d tool calls in follow-up reply", len(reply.tool_calls))
        return reply

    def _run(
        self,
        ctx: ExecutionContext,
        tool: ToolDefinition,
        request: ToolCallRequest,
    ) -> tuple[str, ToolCallResult]:
        arguments = _declared_arguments(tool, request.arguments)
        try:
            tool_output = tool.handler(ctx, arguments)
            return self._success(tool, request, tool_output)
        except MalformedToolArgumentsError as exc:
            logger.info("tool %s rejected arguments: %s", tool.name, exc)
            return self._failure(tool, request, "malformed_arguments", str(exc))
        except Exception as exc:
            logger.exception("tool %s raised", tool.name)
            return self._failure(tool, request, "tool_exception", str(exc))

    @staticmethod
    def _success(
        tool: ToolDefinition,
        request: ToolCallRequest,
        tool_output: dict[str, Any],
    ) -> tuple[str, ToolCallResult]:
        if not isinstance(tool_output, dict):
            raise TypeError(f"{tool.name} returned {type(tool_output).__name__}, expected a result envelope")
        data = tool_output.get("data") or {}
        status = tool_output.get("status", "succeeded")
        confirmation = data.get("confirmation") or f"{tool.name} completed"
        acknowledgement = data.get("acknowledgement") or f"({confirmation})"
        payload: dict[str, Any] = {"result": confirmation}
        if tool_output.get("errors"):
            payload["errors"] = tool_output["errors"]
        return acknowledgement, ToolCallResult(id=request.id, name=tool.name, payload=payload, status=status)

    @staticmethod
    def _failure(
        tool: ToolDefinition,
        request: ToolCallRequest,
        code: str,
        message: str,
    ) -> tuple[str, ToolCallResult]:
        confirmation = f"{tool.name} failed: {message}"
        result = ToolCallResult(
            id=request.id,
            name=tool.name,
            payload={"result": confirmation, "errors": [{"code": code, "message": message}]},
            status="failed",
        )
        return f"(I couldn't complete {tool.name}: {message})", result
