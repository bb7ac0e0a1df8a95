# ==============================
# Command Execution Tool
# ==============================
"""
exec_command runs a program (no shell) and reports stdout / stderr / exit code.

Requires the ALL permission. Side effects are not rolled back.
"""

from __future__ import annotations

import os
import subprocess
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from nucleus.contracts.tool_schema import Permission
from nucleus.orchestrator.context import QueryContext
from nucleus.tools.base import BaseTool, ToolExecutionError

_OUTPUT_LIMIT = 20_000


class ExecCommandParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    command: str = Field(..., min_length=1, description="Program to run (e.g. 'git', 'grep', 'ls')")
    args: List[str] = Field(default_factory=list, description="Command arguments")
    cwd: Optional[str] = Field(default=None, description="Working directory")
    env: Dict[str, str] = Field(default_factory=dict, description="Extra environment variables")


class ExecCommandTool(BaseTool):
    name = "exec_command"
    description = "Execute a program available on this machine, such as git, grep or ls."
    params_model = ExecCommandParams
    required_permission = Permission.ALL
    side_effects = True

    def run(self, params: ExecCommandParams, ctx: QueryContext) -> str:
        timeout = ctx.timeout_for(float(self.config.get("timeout_seconds", 30.0)))
        env = dict(os.environ)
        env.update(params.env)
        try:
            proc = subprocess.run(
                [params.command, *params.args],
                cwd=params.cwd or self.config.get("base_dir") or None,
                env=env,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise TimeoutError(f"{params.command} timed out after {timeout:.1f}s") from e
        except OSError as e:
            raise ToolExecutionError(f"Cannot run {params.command}: {e.strerror or e}") from e
        return (
            f"stdout: {_clip(proc.stdout)}\n"
            f"stderr: {_clip(proc.stderr)}\n"
            f"exit_code: {proc.returncode}"
        )


def _clip(text: str) -> str:
    if len(text) <= _OUTPUT_LIMIT:
        return text
    return text[:_OUTPUT_LIMIT] + "... [truncated]"
