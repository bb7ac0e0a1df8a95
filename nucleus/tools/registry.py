# ==============================
# Tool Registry
# ==============================
"""
Permission-aware tool registry.

Design:
- Registry stores name -> tool instance; a duplicate name replaces the earlier entry.
- A tool is visible only when its required_permission <= the granted permission.
- Visibility is enforced twice: when listing specs for the model and again on
  execute. A call to a hidden tool fails exactly like a call to an unknown one.
- execute() returns a ToolResult envelope for every tool outcome; only query
  cancellation propagates as an exception.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

from nucleus.contracts.errors import QueryCancelled
from nucleus.contracts.tool_schema import Permission, ToolErrorCode, ToolMeta, ToolResult, ToolSpec
from nucleus.orchestrator.context import QueryContext
from nucleus.tools.base import BaseTool, ToolExecutionError, ToolInputError

logger = logging.getLogger("nucleus.tools")


class ToolRegistry:
    def __init__(self, *, granted: Permission = Permission.READ) -> None:
        self.granted = granted
        self._tools: Dict[str, BaseTool] = {}

    def register(self, tool: BaseTool) -> None:
        norm = _norm(tool.name)
        if norm in self._tools:
            logger.warning("tool %s registered twice; keeping the latest registration", norm)
        self._tools[norm] = tool

    def get(self, name: str) -> Optional[BaseTool]:
        return self._tools.get(_norm(name))

    def has(self, name: str) -> bool:
        return _norm(name) in self._tools

    def names(self) -> List[str]:
        return sorted(self._tools)

    def list_available(self, granted: Optional[Permission] = None) -> List[ToolSpec]:
        level = self.granted if granted is None else granted
        return [
            tool.spec()
            for _, tool in sorted(self._tools.items())
            if level.allows(tool.required_permission)
        ]

    def execute(self, name: str, arguments: Dict[str, Any], ctx: Optional[QueryContext] = None) -> ToolResult:
        ctx = ctx or QueryContext()
        meta = ToolMeta(tool_name=name)
        started = time.time()

        tool = self.get(name)
        if tool is None:
            result = ToolResult.fail(code=ToolErrorCode.NOT_FOUND, message=f"Tool not found: {name}", meta=meta)
        elif not self.granted.allows(tool.required_permission):
            # hidden tools look unregistered to the caller
            logger.info(
                "refused hidden tool %s: requires %s, granted %s",
                name,
                tool.required_permission.label,
                self.granted.label,
            )
            result = ToolResult.fail(
                code=ToolErrorCode.NOT_FOUND,
                message=f"Tool not found: {name}",
                meta=meta,
                details={"required": tool.required_permission.label, "granted": self.granted.label},
            )
        else:
            result = self._run(tool, arguments, ctx, meta)

        elapsed_ms = int((time.time() - started) * 1000)
        result = result.model_copy(update={"meta": meta.model_copy(update={"latency_ms": elapsed_ms})})
        ctx.emit(
            "tool.executed",
            {
                "tool": name,
                "ok": result.ok,
                "error": result.error.code.value if result.error else None,
                "latency_ms": elapsed_ms,
            },
        )
        return result

    def _run(self, tool: BaseTool, arguments: Dict[str, Any], ctx: QueryContext, meta: ToolMeta) -> ToolResult:
        try:
            params = tool.validate(arguments or {})
            output = tool.run(params, ctx)
        except QueryCancelled:
            raise
        except ToolInputError as e:
            return ToolResult.fail(code=ToolErrorCode.INVALID_INPUT, message=str(e), meta=meta)
        except TimeoutError as e:
            return ToolResult.fail(code=ToolErrorCode.TIMEOUT, message=str(e) or "Tool timed out", meta=meta)
        except ToolExecutionError as e:
            return ToolResult.fail(code=ToolErrorCode.EXECUTION_FAILED, message=str(e), meta=meta)
        except Exception as e:
            logger.exception("tool %s raised unexpectedly", tool.name)
            return ToolResult.fail(
                code=ToolErrorCode.EXECUTION_FAILED,
                message=f"Tool {tool.name} failed: {e}",
                meta=meta,
                details={"exc": repr(e)},
            )
        return ToolResult.success(str(output), meta=meta)


def _norm(name: str) -> str:
    return name.strip().lower().replace(" ", "_")
