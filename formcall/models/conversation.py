"""
Conversation transcript of a call.

A transcript entry is one of three variants, discriminated by its ``kind``:
a spoken message, a tool invocation made by the agent, or the result returned
for that invocation. Entries are appended to a ConversationLog and never
modified or removed afterwards.
"""

from typing import Annotated, Any, Dict, Iterator, List, Literal, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from formcall.models.openai_schemas import MessageRole


class MessageEntry(BaseModel):
    """A message spoken by the user or the assistant."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["message"] = "message"
    role: MessageRole
    content: str


class ToolInvocationEntry(BaseModel):
    """A capability invocation made by the agent."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["toolInvocation"] = "toolInvocation"
    toolName: str
    parameters: Dict[str, Any] = Field(default_factory=dict)


class ToolResultEntry(BaseModel):
    """The acknowledgement returned for a tool invocation."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["toolResult"] = "toolResult"
    toolName: str
    output: Any = None


ConversationEntry = Annotated[
    Union[MessageEntry, ToolInvocationEntry, ToolResultEntry],
    Field(discriminator="kind"),
]

_entry_adapter = TypeAdapter(ConversationEntry)


def parse_entry(data: Dict[str, Any]) -> ConversationEntry:
    """Validate a serialized transcript entry into its variant."""
    return _entry_adapter.validate_python(data)


def render_entry(entry: ConversationEntry) -> str:
    """Render a transcript entry as a single display line."""
    if entry.kind == "message":
        return f"{entry.role.value}: {entry.content}"
    if entry.kind == "toolInvocation":
        return f"-> {entry.toolName}({entry.parameters})"
    if entry.kind == "toolResult":
        return f"<- {entry.toolName}: {entry.output}"
    raise ValueError(f"Unknown conversation entry kind: {entry.kind}")


class ConversationLog:
    """Append-only, ordered list of transcript entries."""

    def __init__(self):
        self._entries: List[ConversationEntry] = []

    def append(self, entry: ConversationEntry) -> None:
        self._entries.append(entry)

    def add_message(self, role: MessageRole, content: str) -> MessageEntry:
        entry = MessageEntry(role=role, content=content)
        self.append(entry)
        return entry

    def add_tool_call(
        self, tool_name: str, parameters: Dict[str, Any], output: Any
    ) -> Tuple[ToolInvocationEntry, ToolResultEntry]:
        """Append an invocation entry immediately followed by its result entry."""
        invocation = ToolInvocationEntry(toolName=tool_name, parameters=parameters)
        result = ToolResultEntry(toolName=tool_name, output=output)
        self.append(invocation)
        self.append(result)
        return invocation, result

    @property
    def entries(self) -> Tuple[ConversationEntry, ...]:
        return tuple(self._entries)

    def messages(self) -> List[MessageEntry]:
        return [entry for entry in self._entries if entry.kind == "message"]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ConversationEntry]:
        return iter(tuple(self._entries))
