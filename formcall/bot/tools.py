"""
Tools registered with the conversational agent.

The form update tool is the server half of the tool-call bridge: the agent
invokes it with a field name and an extracted value, the callback acknowledges
with an empty object, and the invocation is forwarded to the client which
applies it to the live form.
"""

from typing import Iterable, List, Optional

from formcall.bot.contracts import AgentTool, ConversationalAgent
from formcall.config.constants import TOOL_END_CALL, TOOL_UPDATE_FORM_FIELD
from formcall.models.form_schema import FormField

UPDATE_FORM_FIELD_PARAMETERS = {
    "type": "object",
    "properties": {
        "fieldName": {
            "type": "string",
            "description": "The name of the field to update",
        },
        "value": {
            "type": "string",
            "description": "The value provided by the user",
        },
    },
    "required": ["fieldName", "value"],
}

END_CALL_PARAMETERS = {"type": "object", "properties": {}}


def _acknowledge(**_parameters) -> dict:
    return {}


def update_form_field_tool() -> AgentTool:
    return AgentTool(
        name=TOOL_UPDATE_FORM_FIELD,
        description="Update a form field with user-provided information",
        parameters=UPDATE_FORM_FIELD_PARAMETERS,
        callback=_acknowledge,
        emit_output=True,
    )


def end_call_tool() -> AgentTool:
    return AgentTool(
        name=TOOL_END_CALL,
        description=(
            "End the call once the conversation is over, "
            "after saying thank you and goodbye"
        ),
        parameters=END_CALL_PARAMETERS,
        callback=_acknowledge,
    )


def build_form_tools(fields: Optional[Iterable[FormField]]) -> List[AgentTool]:
    """Return the form tools for a field list: none when the form is empty."""
    if not list(fields or []):
        return []
    return [update_form_field_tool()]


def register_tools(
    agent: ConversationalAgent,
    fields: Optional[Iterable[FormField]],
    auto_end_call: bool = True,
) -> List[AgentTool]:
    """
    Register the form tools, and optionally the end-call tool, with an agent.

    Returns:
        The registered tools
    """
    tools = build_form_tools(fields)
    if auto_end_call:
        tools.append(end_call_tool())
    for tool in tools:
        agent.add_tool(tool)
    return tools
