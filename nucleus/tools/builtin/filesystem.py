# ==============================
# Filesystem Tools
# ==============================
"""
read_file / list_directory (READ) and write_file (WRITE).

config keys:
- base_dir: relative paths resolve against it (default: cwd)
- allowed_roots: if non-empty, every resolved path must sit under one of them
- max_read_bytes: read_file truncates beyond this size
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from nucleus.contracts.tool_schema import Permission
from nucleus.orchestrator.context import QueryContext
from nucleus.tools.base import BaseTool, ToolExecutionError, ToolInputError

_LIST_LIMIT = 500


class _FilesystemTool(BaseTool):
    def _resolve(self, raw: str) -> Path:
        if not raw or not raw.strip():
            raise ToolInputError("path must not be empty")
        base = Path(self.config.get("base_dir") or Path.cwd())
        p = Path(raw).expanduser()
        if not p.is_absolute():
            p = base / p
        p = p.resolve()
        roots: List[str] = list(self.config.get("allowed_roots") or [])
        if roots and not any(_is_within(p, Path(r).expanduser().resolve()) for r in roots):
            raise ToolExecutionError(f"Path is outside the allowed roots: {p}")
        return p


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True


# ==============================
# read_file
# ==============================
class ReadFileParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str = Field(..., description="Path of the file to read")


class ReadFileTool(_FilesystemTool):
    name = "read_file"
    description = "Read the text content of a file."
    params_model = ReadFileParams
    required_permission = Permission.READ

    def run(self, params: ReadFileParams, ctx: QueryContext) -> str:
        path = self._resolve(params.path)
        if not path.exists():
            raise ToolExecutionError(f"File not found: {path}")
        if not path.is_file():
            raise ToolExecutionError(f"Not a file: {path}")
        limit = int(self.config.get("max_read_bytes", 200_000))
        try:
            with path.open("rb") as fh:
                raw = fh.read(limit + 1)
        except OSError as e:
            raise ToolExecutionError(f"Cannot read {path}: {e.strerror or e}") from e
        text = raw[:limit].decode("utf-8", errors="replace")
        if len(raw) > limit:
            text += f"\n... [truncated after {limit} bytes]"
        return text


# ==============================
# list_directory
# ==============================
class ListDirectoryParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str = Field(default=".", description="Directory to list")
    recursive: bool = Field(default=False, description="List nested entries as well")


class ListDirectoryTool(_FilesystemTool):
    name = "list_directory"
    description = "List the files and subdirectories of a directory."
    params_model = ListDirectoryParams
    required_permission = Permission.READ

    def run(self, params: ListDirectoryParams, ctx: QueryContext) -> str:
        path = self._resolve(params.path)
        if not path.is_dir():
            raise ToolExecutionError(f"Directory not found: {path}")
        try:
            entries = sorted(path.rglob("*") if params.recursive else path.iterdir())
        except OSError as e:
            raise ToolExecutionError(f"Cannot list {path}: {e.strerror or e}") from e

        lines: List[str] = []
        for entry in entries[:_LIST_LIMIT]:
            rel = entry.relative_to(path).as_posix()
            lines.append(f"{rel}/" if entry.is_dir() else rel)
        if len(entries) > _LIST_LIMIT:
            lines.append(f"... ({len(entries) - _LIST_LIMIT} more entries)")
        if not lines:
            return f"{path} is empty"
        return "\n".join(lines)


# ==============================
# write_file
# ==============================
class WriteFileParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str = Field(..., description="Path of the file to write")
    content: str = Field(..., description="Text to write")
    append: bool = Field(default=False, description="Append instead of overwriting")


class WriteFileTool(_FilesystemTool):
    """
    Overwriting is idempotent; append is not. Writes are not rolled back if the
    surrounding query is later cancelled.
    """

    name = "write_file"
    description = "Write text to a file, creating parent directories as needed."
    params_model = WriteFileParams
    required_permission = Permission.WRITE
    side_effects = True

    def run(self, params: WriteFileParams, ctx: QueryContext) -> str:
        path = self._resolve(params.path)
        if path.is_dir():
            raise ToolExecutionError(f"Path is a directory: {path}")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a" if params.append else "w", encoding="utf-8") as fh:
                fh.write(params.content)
        except OSError as e:
            raise ToolExecutionError(f"Cannot write {path}: {e.strerror or e}") from e
        verb = "Appended" if params.append else "Wrote"
        return f"{verb} {len(params.content)} characters to {path}"


def filesystem_config(
    *, base_dir: Optional[str], allowed_roots: List[str], max_read_bytes: int
) -> Dict[str, Any]:
    return {"base_dir": base_dir, "allowed_roots": allowed_roots, "max_read_bytes": max_read_bytes}
