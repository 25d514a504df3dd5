import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Session:
    """Per-session conversation state. messages[0] is always the system message."""

    session_id: str
    messages: List[Dict[str, Any]] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    last_activity: datetime = field(default_factory=utcnow)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)


@dataclass
class ToolCallRequest:
    """A tool invocation requested by the model; arguments is the raw JSON text."""

    id: str
    name: str
    arguments: str = ""

    def to_message_entry(self) -> Dict[str, Any]:
        """Render the request in the chat-completions assistant message format."""
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass
class AssistantReply:
    """One model response: plain text plus any tool calls it asked for."""

    content: str = ""
    tool_calls: List[ToolCallRequest] = field(default_factory=list)

    def to_message(self) -> Dict[str, Any]:
        message: Dict[str, Any] = {"role": "assistant", "content": self.content or None}
        if self.tool_calls:
            message["tool_calls"] = [tc.to_message_entry() for tc in self.tool_calls]
        return message


@dataclass
class DispatchResult:
    """Outcome of a completed dispatch loop."""

    text: str
    structured_result: Dict[str, Any] | None = None
    messages: List[Dict[str, Any]] = field(default_factory=list)
    rounds: int = 0
    tool_calls_count: int = 0

    @property
    def response(self) -> Any:
        """The structured success payload when one was captured, else the text."""
        if self.structured_result is not None:
            return self.structured_result
        return self.text


@dataclass
class PromptResult:
    """What a processed request returns to the transport layer."""

    session_id: str
    response: Any
