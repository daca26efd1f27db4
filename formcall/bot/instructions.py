"""
Instruction text for the conversational agent.

The agent is steered by a system instruction derived from the form schema
received in the handshake. The text is a pure function of the field list so
that the same form always produces exactly the same instructions.
"""

from typing import Iterable, List, Optional

from formcall.config.constants import TOOL_UPDATE_FORM_FIELD
from formcall.models.form_schema import FormField

GENERIC_INSTRUCTIONS = (
    "You are a helpful voice assistant designed to collect information "
    "from users through conversation."
)

PREAMBLE = (
    GENERIC_INSTRUCTIONS
    + "\n\nYour goal is to gather the following information through natural conversation:\n\n"
)

POSTAMBLE = f"""

Instructions:
1. Be friendly, conversational, and natural
2. Ask for information in a logical order (required fields first, then optional)
3. Don't ask for all fields at once - gather them progressively through conversation
4. When you successfully collect a piece of information, use the {TOOL_UPDATE_FORM_FIELD} tool to save it
5. If a user provides information for multiple fields at once, extract and save each piece separately
6. Keep responses concise and engaging
7. After collecting all required fields, end the conversation, say thank you and goodbye. Don't ask for anything else.

Start by greeting the user and beginning to collect the required information naturally."""


def describe_field(field: FormField) -> str:
    """Render one field as a line of the instruction text."""
    required = "REQUIRED" if field.required else "optional"
    return f'- {field.label} ({required}): {field.type.value} field, name: "{field.name}"'


def build_instructions(fields: Optional[Iterable[FormField]]) -> str:
    """
    Build the agent instructions for a list of form fields.

    Args:
        fields: The validated form fields, in any order

    Returns:
        The generic instruction when there are no fields, otherwise the
        preamble, one line per field sorted by order, and the postamble
    """
    ordered: List[FormField] = sorted(fields or [], key=lambda field: field.order)
    if not ordered:
        return GENERIC_INSTRUCTIONS

    descriptions = "\n".join(describe_field(field) for field in ordered)
    return PREAMBLE + descriptions + POSTAMBLE
