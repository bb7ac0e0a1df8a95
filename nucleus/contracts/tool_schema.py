# ==============================
# Tool Contracts
# ==============================
"""
Tool contracts for nucleus.

These models define the stable envelope and metadata for capability execution.
No module should invent its own tool result shape; use ToolResult.

Intended usage:
- ToolRegistry.execute returns ToolResult; only query cancellation raises
- The orchestrator renders ToolResult into a tool-role message for the model
"""

# ==============================
# Imports
# ==============================
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ==============================
# Enums
# ==============================
class Permission(IntEnum):
    """Monotonically ordered permission levels: NONE < READ < WRITE < ALL."""
    NONE = 0
    READ = 1
    WRITE = 2
    ALL = 3

    def allows(self, required: "Permission") -> bool:
        return int(self) >= int(required)

    @classmethod
    def parse(cls, value: Union[str, int, "Permission"]) -> "Permission":
        if isinstance(value, Permission):
            return value
        if isinstance(value, int):
            return cls(value)
        norm = str(value).strip().upper()
        if norm.isdigit():
            return cls(int(norm))
        try:
            return cls[norm]
        except KeyError:
            raise ValueError(f"Unknown permission level: {value!r}") from None

    @property
    def label(self) -> str:
        return self.name.lower()


class ToolErrorCode(str, Enum):
    """Standard error codes for capability failures."""
    INVALID_INPUT = "invalid_input"
    EXECUTION_FAILED = "execution_failed"
    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"


# ==============================
# Models
# ==============================
class ToolCall(BaseModel):
    """A capability invocation requested by the model backend."""
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., description="Requested tool name.")
    arguments: Dict[str, Any] = Field(default_factory=dict, description="Loose JSON-shaped arguments.")


class ToolMeta(BaseModel):
    """Metadata describing a single tool call."""
    model_config = ConfigDict(extra="forbid")

    tool_name: str = Field(..., description="Requested tool name.")
    request_id: str = Field(default_factory=lambda: uuid4().hex, description="Unique id for this tool call.")
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    latency_ms: Optional[int] = Field(default=None, description="Measured latency in milliseconds.")


class ToolError(BaseModel):
    """Structured error for tool failures. Errors are data, not control flow."""
    model_config = ConfigDict(extra="forbid")

    code: ToolErrorCode = Field(..., description="Standard tool error code.")
    message: str = Field(..., description="Human readable message.")
    details: Dict[str, Any] = Field(default_factory=dict, description="Optional structured details.")


class ToolResult(BaseModel):
    """
    Standard envelope for tool results.

    Pattern:
      ok: bool
      output: str | None
      error: ToolError | None
      meta: ToolMeta
    """
    model_config = ConfigDict(extra="forbid")

    ok: bool = Field(..., description="True if tool succeeded.")
    output: Optional[str] = Field(default=None, description="Textual tool output.")
    error: Optional[ToolError] = Field(default=None, description="Tool error if ok=False.")
    meta: ToolMeta = Field(..., description="Tool execution metadata.")

    @model_validator(mode="after")
    def _enforce_error_contract(self) -> "ToolResult":
        if self.ok and self.error is not None:
            raise ValueError("Tool error must be None when ok=True")
        if not self.ok and self.error is None:
            raise ValueError("Tool error is required when ok=False")
        return self

    @classmethod
    def success(cls, output: str, *, meta: ToolMeta) -> "ToolResult":
        return cls(ok=True, output=output, error=None, meta=meta)

    @classmethod
    def fail(
        cls,
        *,
        code: ToolErrorCode,
        message: str,
        meta: ToolMeta,
        details: Optional[Dict[str, Any]] = None,
    ) -> "ToolResult":
        err = ToolError(code=code, message=message, details=details or {})
        return cls(ok=False, output=None, error=err, meta=meta)

    def as_text(self) -> str:
        """Text handed back to the model as the tool-role message content."""
        if self.ok:
            return self.output or ""
        assert self.error is not None
        return f"Error [{self.error.code.value}]: {self.error.message}"


class ToolSpec(BaseModel):
    """
    Tool specification used for registration and discovery.

    This is not the runtime result; it is metadata about a tool and its contract.
    """
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., description="Unique tool name in registry.")
    description: str = Field(..., description="Short description of what the tool does.")
    parameters: Dict[str, Any] = Field(default_factory=dict, description="JSON schema of the arguments.")
    required_permission: Permission = Field(default=Permission.READ)
    side_effects: bool = Field(default=False, description="Whether the tool changes external state.")

    def to_backend(self) -> Dict[str, Any]:
        """Function-tool shape understood by the chat backend."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(mode="python")
        data["required_permission"] = self.required_permission.label
        return data


def tool_names(specs: List[ToolSpec]) -> List[str]:
    return [s.name for s in specs]
