# ==============================
# Built-in Tool Registration
# ==============================
from __future__ import annotations

from typing import Optional

from nucleus.config.schema import Settings
from nucleus.knowledge.retriever import Retriever
from nucleus.tools.builtin.commands import ExecCommandTool
from nucleus.tools.builtin.filesystem import ListDirectoryTool, ReadFileTool, WriteFileTool, filesystem_config
from nucleus.tools.builtin.knowledge import SearchKnowledgeTool
from nucleus.tools.registry import ToolRegistry


def build_registry(settings: Settings, *, retriever: Optional[Retriever] = None) -> ToolRegistry:
    """Registry holding every built-in tool, gated by policies.granted_permission."""
    registry = ToolRegistry(granted=settings.policies.granted_permission)
    register_builtin_tools(registry, settings=settings, retriever=retriever)
    return registry


def register_builtin_tools(
    registry: ToolRegistry,
    *,
    settings: Settings,
    retriever: Optional[Retriever] = None,
) -> None:
    base_dir = str(settings.repo_root_path())
    fs_config = filesystem_config(
        base_dir=base_dir,
        allowed_roots=settings.policies.allowed_roots,
        max_read_bytes=settings.policies.max_read_bytes,
    )
    registry.register(ReadFileTool(config=fs_config))
    registry.register(ListDirectoryTool(config=fs_config))
    registry.register(WriteFileTool(config=fs_config))
    registry.register(
        ExecCommandTool(config={"base_dir": base_dir, "timeout_seconds": settings.policies.command_timeout_seconds})
    )
    if retriever is not None:
        registry.register(SearchKnowledgeTool(retriever))
