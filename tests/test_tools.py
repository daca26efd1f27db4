from dataclasses import fields

import pytest

from formcall.bot.contracts import EVENT_END_CALL, EVENT_TOOL_CALL, AgentTool, ConversationalAgent
from formcall.bot.tools import build_form_tools, register_tools


class FakeAgent(ConversationalAgent):
    async def answer(self, text):
        pass

    async def greet(self):
        pass


def test_no_tools_for_empty_form():
    assert build_form_tools([]) == []
    assert build_form_tools(None) == []


def test_update_form_field_tool(contact_fields):
    tools = build_form_tools(contact_fields)

    assert len(tools) == 1
    tool = tools[0]
    assert tool.name == "updateFormField"
    assert tool.description == "Update a form field with user-provided information"
    assert tool.parameters["required"] == ["fieldName", "value"]
    assert tool.parameters["properties"]["fieldName"]["type"] == "string"
    assert tool.parameters["properties"]["value"]["type"] == "string"
    assert tool.emit_output is True
    assert tool.callback(fieldName="city", value="Paris") == {}


def test_register_tools_with_end_call(contact_fields):
    agent = FakeAgent("instructions")
    tools = register_tools(agent, contact_fields)
    assert [tool.name for tool in tools] == ["updateFormField", "endCall"]
    assert set(agent.tools) == {"updateFormField", "endCall"}


def test_register_tools_without_end_call(contact_fields):
    agent = FakeAgent("instructions")
    register_tools(agent, contact_fields, auto_end_call=False)
    assert list(agent.tools) == ["updateFormField"]


def test_register_tools_empty_form_only_end_call():
    agent = FakeAgent("instructions")
    register_tools(agent, [])
    assert list(agent.tools) == ["endCall"]


@pytest.mark.asyncio
class TestInvokeTool:

    async def test_update_form_field_is_forwarded(self, contact_fields):
        agent = FakeAgent("instructions")
        register_tools(agent, contact_fields)
        calls = []
        agent.events.on(EVENT_TOOL_CALL, lambda *args: calls.append(args))

        output = await agent.invoke_tool("updateFormField", '{"fieldName": "city", "value": "Paris"}')

        assert output == {}
        assert calls == [("updateFormField", {"fieldName": "city", "value": "Paris"}, {})]

    async def test_end_call_emits_signal(self, contact_fields):
        agent = FakeAgent("instructions")
        register_tools(agent, contact_fields)
        ended = []
        forwarded = []
        agent.events.on(EVENT_END_CALL, lambda: ended.append(True))
        agent.events.on(EVENT_TOOL_CALL, lambda *args: forwarded.append(args))

        await agent.invoke_tool("endCall", "{}")

        assert ended == [True]
        assert forwarded == []

    async def test_unknown_tool(self):
        agent = FakeAgent("instructions")
        output = await agent.invoke_tool("deleteForm", "{}")
        assert "error" in output

    async def test_invalid_arguments(self, contact_fields):
        agent = FakeAgent("instructions")
        register_tools(agent, contact_fields)
        output = await agent.invoke_tool("updateFormField", "{not json")
        assert output == {"error": "Invalid JSON arguments"}

    @pytest.mark.parametrize("arguments", ["[]", '"Paris"', "42"])
    async def test_non_object_arguments(self, contact_fields, arguments):
        agent = FakeAgent("instructions")
        register_tools(agent, contact_fields)
        calls = []
        agent.events.on(EVENT_TOOL_CALL, lambda *args: calls.append(args))

        output = await agent.invoke_tool("updateFormField", arguments)

        assert output == {"error": "Tool arguments must be a JSON object"}
        assert calls == []

    async def test_arguments_rejected_by_callback(self):
        agent = FakeAgent("instructions")
        agent.add_tool(AgentTool("lookup", "Look up a value", {}, lambda key: key))

        output = await agent.invoke_tool("lookup", '{"other": "x"}')

        assert output == {"error": "Invalid arguments for lookup"}

    async def test_close_releases_listeners(self):
        agent = FakeAgent("instructions")
        agent.events.on(EVENT_TOOL_CALL, lambda *args: None)
        await agent.close()
        assert agent.events.listener_count(EVENT_TOOL_CALL) == 0


def test_agent_tool_fields():
    tool = AgentTool("lookup", "Look up a value", {"type": "object"}, lambda: {})

    assert [f.name for f in fields(AgentTool)] == ["name", "description", "parameters", "callback", "emit_output"]
    assert tool.emit_output is False
