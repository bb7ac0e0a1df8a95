# ==============================
# Tests: Built-in Tools
# ==============================
from __future__ import annotations

import sys
from pathlib import Path

from fakes import letter_embedding
from nucleus.config.schema import Settings
from nucleus.contracts.tool_schema import Permission, ToolErrorCode, tool_names
from nucleus.knowledge.base import Document
from nucleus.tools.builtin.commands import ExecCommandTool
from nucleus.tools.builtin.filesystem import ListDirectoryTool, ReadFileTool, filesystem_config
from nucleus.tools.builtin.register import build_registry
from nucleus.tools.registry import ToolRegistry


def _all_registry(settings: Settings, retriever) -> ToolRegistry:
    registry = build_registry(settings, retriever=retriever)
    registry.granted = Permission.ALL
    return registry


def test_default_grant_exposes_read_tools_only(registry: ToolRegistry) -> None:
    assert tool_names(registry.list_available()) == ["list_directory", "read_file", "search_knowledge"]
    assert registry.has("write_file")
    assert registry.has("exec_command")


def test_read_file_relative_to_repo_root(registry: ToolRegistry, tmp_path: Path) -> None:
    (tmp_path / "notes.txt").write_text("hello notes", encoding="utf-8")
    res = registry.execute("read_file", {"path": "notes.txt"})
    assert res.ok
    assert res.output == "hello notes"


def test_read_missing_file_fails(registry: ToolRegistry) -> None:
    res = registry.execute("read_file", {"path": "absent.txt"})
    assert res.error.code == ToolErrorCode.EXECUTION_FAILED
    assert "File not found" in res.error.message


def test_read_file_truncates_large_files(tmp_path: Path) -> None:
    (tmp_path / "big.txt").write_text("x" * 100, encoding="utf-8")
    tool = ReadFileTool(config=filesystem_config(base_dir=str(tmp_path), allowed_roots=[], max_read_bytes=10))
    reg = ToolRegistry()
    reg.register(tool)
    out = reg.execute("read_file", {"path": "big.txt"}).output
    assert out.startswith("x" * 10)
    assert "truncated after 10 bytes" in out


def test_allowed_roots_confine_paths(tmp_path: Path) -> None:
    inside = tmp_path / "inside"
    inside.mkdir()
    (tmp_path / "secret.txt").write_text("s", encoding="utf-8")
    reg = ToolRegistry()
    reg.register(
        ReadFileTool(
            config=filesystem_config(base_dir=str(inside), allowed_roots=[str(inside)], max_read_bytes=1000)
        )
    )
    res = reg.execute("read_file", {"path": "../secret.txt"})
    assert res.error.code == ToolErrorCode.EXECUTION_FAILED
    assert "outside the allowed roots" in res.error.message


def test_list_directory_marks_subdirectories(tmp_path: Path) -> None:
    (tmp_path / "b.txt").write_text("b", encoding="utf-8")
    (tmp_path / "a").mkdir()
    (tmp_path / "a" / "inner.txt").write_text("i", encoding="utf-8")
    reg = ToolRegistry()
    reg.register(ListDirectoryTool(config={"base_dir": str(tmp_path)}))

    assert reg.execute("list_directory", {}).output.splitlines() == ["a/", "b.txt"]
    recursive = reg.execute("list_directory", {"recursive": True}).output.splitlines()
    assert recursive == ["a/", "a/inner.txt", "b.txt"]


def test_list_empty_directory(tmp_path: Path) -> None:
    (tmp_path / "void").mkdir()
    reg = ToolRegistry()
    reg.register(ListDirectoryTool(config={"base_dir": str(tmp_path)}))
    assert reg.execute("list_directory", {"path": "void"}).output.endswith("is empty")


def test_write_file_requires_write_permission(registry: ToolRegistry, tmp_path: Path) -> None:
    res = registry.execute("write_file", {"path": "out.txt", "content": "x"})
    assert res.error.code == ToolErrorCode.NOT_FOUND
    assert not (tmp_path / "out.txt").exists()


def test_write_file_writes_and_appends(write_registry: ToolRegistry, tmp_path: Path) -> None:
    res = write_registry.execute("write_file", {"path": "sub/out.txt", "content": "abc"})
    assert res.ok
    assert res.output.startswith("Wrote 3 characters")
    write_registry.execute("write_file", {"path": "sub/out.txt", "content": "def", "append": True})
    assert (tmp_path / "sub" / "out.txt").read_text(encoding="utf-8") == "abcdef"


def test_exec_command_reports_streams_and_exit_code(settings: Settings, retriever) -> None:
    registry = _all_registry(settings, retriever)
    res = registry.execute(
        "exec_command",
        {"command": sys.executable, "args": ["-c", "import sys; print('out'); sys.stderr.write('err'); sys.exit(3)"]},
    )
    assert res.ok
    assert "stdout: out" in res.output
    assert "stderr: err" in res.output
    assert res.output.endswith("exit_code: 3")


def test_exec_command_timeout(tmp_path: Path) -> None:
    reg = ToolRegistry(granted=Permission.ALL)
    reg.register(ExecCommandTool(config={"base_dir": str(tmp_path), "timeout_seconds": 0.5}))
    res = reg.execute("exec_command", {"command": sys.executable, "args": ["-c", "import time; time.sleep(10)"]})
    assert res.error.code == ToolErrorCode.TIMEOUT


def test_exec_command_missing_program(settings: Settings, retriever) -> None:
    registry = _all_registry(settings, retriever)
    res = registry.execute("exec_command", {"command": "definitely-not-a-real-program-xyz"})
    assert res.error.code == ToolErrorCode.EXECUTION_FAILED


def test_search_knowledge_tool(registry: ToolRegistry, store) -> None:
    assert registry.execute("search_knowledge", {"query": "tea"}).output == "No matching knowledge found."

    store.add_or_replace(
        Document(
            id="knowledge::0",
            content="green tea notes",
            embedding=letter_embedding("green tea notes"),
            metadata={"source": "notes"},
        )
    )
    res = registry.execute("search_knowledge", {"query": "green tea notes", "top_k": 1})
    assert res.ok
    assert res.output.startswith("[1] notes (score 1.000)")


def test_search_knowledge_rejects_empty_query(registry: ToolRegistry) -> None:
    res = registry.execute("search_knowledge", {"query": ""})
    assert res.error.code == ToolErrorCode.INVALID_INPUT
