# ==============================
# Base Tool Contract
# ==============================
"""
Base tool contract for nucleus.

Rules:
- Tools are executed ONLY through ToolRegistry.execute.
- Tools do not read env vars directly. Config is injected.
- Arguments are validated against params_model before run(); its JSON schema is
  what the model is shown as the tool's parameters.
- Tools return plain text. Failures are raised as ToolInputError / ToolExecutionError
  and turned into ToolResult errors by the registry.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Type

from pydantic import BaseModel, ValidationError

from nucleus.contracts.tool_schema import Permission, ToolSpec
from nucleus.orchestrator.context import QueryContext


class ToolInputError(Exception):
    """Arguments were malformed or semantically invalid."""


class ToolExecutionError(Exception):
    """The tool ran but could not complete (missing file, non-zero exit, ...)."""


class BaseTool(ABC):
    """
    Base class for all capabilities.

    Naming:
- Each concrete tool must provide a stable 'name' the model calls it by.
    """

    name: str
    description: str
    params_model: Type[BaseModel]
    required_permission: Permission = Permission.READ
    side_effects: bool = False

    def __init__(self, *, config: Optional[Dict[str, Any]] = None) -> None:
        self.config = config or {}

    def spec(self) -> ToolSpec:
        schema = self.params_model.model_json_schema()
        schema.pop("title", None)
        return ToolSpec(
            name=self.name,
            description=self.description,
            parameters=schema,
            required_permission=self.required_permission,
            side_effects=self.side_effects,
        )

    def validate(self, arguments: Dict[str, Any]) -> BaseModel:
        try:
            return self.params_model.model_validate(arguments)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}" for err in e.errors()
            )
            raise ToolInputError(f"Invalid arguments for {self.name}: {problems}") from e

    @abstractmethod
    def run(self, params: Any, ctx: QueryContext) -> str:
        """
        Execute the tool.

        params:
- instance of params_model, already validated

        ctx:
- query context (deadline, cancellation, trace hook)
        """
        raise NotImplementedError
