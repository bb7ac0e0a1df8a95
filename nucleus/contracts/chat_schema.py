# ==============================
# Chat Contracts
# ==============================
"""
Conversation contracts shared by the orchestrator and the model backend.

A conversation is an ordered, append-only list of Message objects owned by a single
orchestrator invocation.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from nucleus.contracts.tool_schema import ToolCall


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class Message(BaseModel):
    model_config = ConfigDict(extra="forbid")

    role: Role
    content: str = ""
    requested_calls: List[ToolCall] = Field(default_factory=list)
    tool_name: Optional[str] = Field(default=None, description="Set on tool-role messages.")

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=Role.USER, content=content)

    @classmethod
    def tool(cls, content: str, *, tool_name: str) -> "Message":
        return cls(role=Role.TOOL, content=content, tool_name=tool_name)

    def to_backend(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.requested_calls:
            out["tool_calls"] = [
                {"function": {"name": c.name, "arguments": c.arguments}} for c in self.requested_calls
            ]
        if self.tool_name:
            out["tool_name"] = self.tool_name
        return out


class ChatResponse(BaseModel):
    """One assistant turn returned by the chat backend."""
    model_config = ConfigDict(extra="forbid")

    model: str = ""
    content: str = ""
    tool_calls: List[ToolCall] = Field(default_factory=list)
    usage: Dict[str, Any] = Field(default_factory=dict)

    def to_message(self) -> Message:
        return Message(role=Role.ASSISTANT, content=self.content, requested_calls=list(self.tool_calls))


class TerminationReason(str, Enum):
    FINAL_ANSWER = "final_answer"
    MAX_TOOL_ITERATIONS = "max_tool_iterations"


class ChatOutcome(BaseModel):
    """Result of one orchestrated query."""
    model_config = ConfigDict(extra="forbid")

    query_id: str
    answer: str
    reason: TerminationReason
    iterations: int = Field(default=0, description="Completed tool-execution rounds.")
    tool_calls: int = Field(default=0, description="Total capability calls dispatched.")
    context_used: bool = Field(default=False, description="Whether retrieved context was injected.")
    messages: List[Message] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.reason == TerminationReason.FINAL_ANSWER

    def summary(self) -> Dict[str, Any]:
        return {
            "query_id": self.query_id,
            "answer": self.answer,
            "reason": self.reason.value,
            "iterations": self.iterations,
            "tool_calls": self.tool_calls,
            "context_used": self.context_used,
        }
