from __future__ import annotations

from conftest import FROZEN_NOW
from model_doubles import RecordedModelClient, make_reply

from healthguard_agent_core import (
    ChatSessionManager,
    ExecutionContext,
    MalformedToolArgumentsError,
    ToolCallDispatcher,
    ToolCallRequest,
    ToolDefinition,
    ToolRegistry,
)


def _ctx() -> ExecutionContext:
    return ExecutionContext(turn_id="turn-1", now=FROZEN_NOW)


def _reminder(call_id: str, title: str = "Take Aspirin", **extra) -> ToolCallRequest:
    args = {"title": title, "time": "20:00", "type": "medication", **extra}
    return ToolCallRequest(id=call_id, name="createReminder", arguments=args)


def test_only_recognized_requests_produce_results(registry):
    requests = [
        _reminder("c1"),
        ToolCallRequest(id="c2", name="orderPizza", arguments={}),
        _reminder("c3", title="Lunch time"),
        ToolCallRequest(id="c4", name="deleteRecords", arguments={"all": True}),
    ]
    outcome = ToolCallDispatcher(registry).dispatch(_ctx(), requests)

    assert [result.id for result in outcome.results] == ["c1", "c3"]
    assert [request.name for request in outcome.unmatched] == ["orderPizza", "deleteRecords"]
    assert outcome.summary_text == "(I've set a reminder for: Take Aspirin)\n(I've set a reminder for: Lunch time)\n"


def test_follow_up_round_trip_happens_only_with_results(registry):
    client = RecordedModelClient([make_reply("continuation")])
    session = ChatSessionManager(client)
    session.open("briefing", registry.declarations(), [])
    dispatcher = ToolCallDispatcher(registry)

    empty = dispatcher.dispatch(_ctx(), [ToolCallRequest(id="x", name="unknown")])
    assert dispatcher.follow_up(session, empty) is None
    assert client.calls == []

    outcome = dispatcher.dispatch(_ctx(), [_reminder("c1"), _reminder("c2", title="Dinner")])
    reply = dispatcher.follow_up(session, outcome)
    assert reply.text == "continuation"
    assert len(client.calls) == 1
    parts = client.calls[0]["contents"][-1]["parts"]
    assert [part["functionResponse"]["id"] for part in parts] == ["c1", "c2"]


def test_confirmation_ignores_undeclared_arguments(registry):
    seen: list[dict] = []
    original = registry.resolve("createReminder").handler

    def spy(ctx, payload):
        seen.append(dict(payload))
        return original(ctx, payload)

    registry.resolve("createReminder").handler = spy
    outcome = ToolCallDispatcher(registry).dispatch(_ctx(), [_reminder("c1", patient_ssn="123-45-6789")])

    assert seen == [{"title": "Take Aspirin", "time": "20:00", "type": "medication"}]
    assert outcome.results[0].payload == {"result": "Reminder set for Take Aspirin at 20:00"}
    assert "123-45-6789" not in str(outcome.results[0].payload)


def test_malformed_arguments_yield_failure_result_instead_of_raising(registry):
    ctx = _ctx()
    outcome = ToolCallDispatcher(registry).dispatch(
        ctx, [ToolCallRequest(id="bad", name="createReminder", arguments={"title": "Walk", "type": "exercise", "time": "9:00"})]
    )

    assert len(outcome.results) == 1
    result = outcome.results[0]
    assert result.id == "bad"
    assert result.status == "failed"
    assert result.payload["errors"][0]["code"] == "malformed_arguments"
    assert "createReminder failed" in result.payload["result"]
    assert outcome.summary_text.startswith("(I couldn't complete createReminder")
    assert ctx.reminders == []


def test_unexpected_handler_exception_becomes_failure_result():
    def explode(ctx, payload):
        raise RuntimeError("disk full")

    def reject(ctx, payload):
        raise MalformedToolArgumentsError("bad")

    tools = ToolRegistry(enable_search=False)
    tools.register(ToolDefinition("explode", explode))
    tools.register(ToolDefinition("reject", reject))
    outcome = ToolCallDispatcher(tools).dispatch(
        _ctx(), [ToolCallRequest(id="1", name="explode"), ToolCallRequest(id="2", name="reject")]
    )

    assert [result.payload["errors"][0]["code"] for result in outcome.results] == ["tool_exception", "malformed_arguments"]
    assert all(result.status == "failed" for result in outcome.results)


def test_registry_declarations_include_schema_and_search(registry):
    declarations = registry.declarations()
    function_decl = declarations[0]["functionDeclarations"][0]
    assert function_decl["name"] == "createReminder"
    assert function_decl["parameters"]["required"] == ["title", "time", "type"]
    assert function_decl["parameters"]["properties"]["type"]["enum"] == ["medication", "diet", "appointment", "general"]
    assert declarations[1] == {"googleSearch": {}}
    assert ToolRegistry(enable_search=False).declarations() == []


def test_handler_returning_non_envelope_becomes_failure_result():
    tools = ToolRegistry(enable_search=False)
    tools.register(ToolDefinition("plain", lambda ctx, payload: "done"))
    tools.register(ToolDefinition("odd_data", lambda ctx, payload: {"status": "succeeded", "data": ["x"]}))
    outcome = ToolCallDispatcher(tools).dispatch(
        _ctx(), [ToolCallRequest(id="1", name="plain"), ToolCallRequest(id="2", name="odd_data")]
    )

    assert [result.status for result in outcome.results] == ["failed", "failed"]
    assert [result.payload["errors"][0]["code"] for result in outcome.results] == ["tool_exception", "tool_exception"]
    assert outcome.summary_text.startswith("(I couldn't complete plain")


def test_unmatched_lists_unregistered_names(registry):
    requests = [_reminder("c1"), ToolCallRequest(id="c2", name="exportRecords")]
    assert [request.id for request in ToolCallDispatcher(registry).unmatched(requests)] == ["c2"]
