# ==============================
# Integration: CLI
# ==============================
from __future__ import annotations

import json
from pathlib import Path

import pytest

from fakes import FakeModels, answer, calls
from gateway.cli.main import build_components, cmd_add, cmd_chat, cmd_clear, cmd_index, cmd_stats, cmd_tools, main
from nucleus.config.loader import load_settings
from nucleus.knowledge.persistence import STORE_FILENAME

pytestmark = pytest.mark.integration


def _components(repo_root: Path, models: FakeModels):
    settings, _ = load_settings(repo_root=str(repo_root), env={"NUCLEUS__LOGGING__CONSOLE": "false"})
    return build_components(settings, models=models)


def _json_out(capsys) -> dict:
    return json.loads(capsys.readouterr().out)


def test_chat_prints_summary(gateway_env: Path, capsys) -> None:
    comp = _components(gateway_env, FakeModels([answer("42")]))

    code = cmd_chat(comp.orchestrator, message="meaning of life?")

    assert code == 0
    out = _json_out(capsys)
    assert out["answer"] == "42"
    assert out["reason"] == "final_answer"


def test_chat_exits_1_when_loop_bound_hit(gateway_env: Path, capsys) -> None:
    comp = _components(gateway_env, FakeModels([calls(("list_directory", {}))]))

    code = cmd_chat(comp.orchestrator, message="loop forever")

    assert code == 1
    assert _json_out(capsys)["reason"] == "max_tool_iterations"


def test_chat_backend_failure_exits_1(gateway_env: Path, capsys) -> None:
    comp = _components(gateway_env, FakeModels(fail_chat=True))

    code = cmd_chat(comp.orchestrator, message="hello")

    assert code == 1
    out = _json_out(capsys)
    assert out["ok"] is False
    assert out["error"]["code"] == "backend_unavailable"


def test_chat_stream_prints_text(gateway_env: Path, capsys) -> None:
    comp = _components(gateway_env, FakeModels(fragments=["stream", "ed"]))

    code = cmd_chat(comp.orchestrator, message="hello", stream=True)

    assert code == 0
    assert capsys.readouterr().out == "streamed\n"


def test_index_add_stats_clear(gateway_env: Path, tmp_path: Path, capsys) -> None:
    kb = tmp_path / "kb"
    kb.mkdir()
    (kb / "a.md").write_text("a" * 600, encoding="utf-8")
    comp = _components(gateway_env, FakeModels())

    assert cmd_index(comp.indexer, paths=[str(kb)]) == 0
    assert _json_out(capsys)["chunks_created"] == 2

    assert cmd_add(comp.indexer, text="remember this", source="cli") == 0
    assert _json_out(capsys) == {"id": "knowledge::0", "source": "cli"}

    assert cmd_stats(comp.store) == 0
    stats = _json_out(capsys)
    assert stats["total_documents"] == 3
    assert stats["total_sources"] == 2

    assert cmd_clear(comp.store) == 0
    assert _json_out(capsys) == {"removed": 3}
    assert (gateway_env / "data" / "nucleus_vectordb" / STORE_FILENAME).exists()


def test_index_missing_path_exits_1(gateway_env: Path, tmp_path: Path, capsys) -> None:
    comp = _components(gateway_env, FakeModels())

    assert cmd_index(comp.indexer, paths=[str(tmp_path / "missing")]) == 1
    assert _json_out(capsys)["error"]["code"] == "read_failed"


def test_tools_lists_read_capabilities(gateway_env: Path, capsys) -> None:
    comp = _components(gateway_env, FakeModels())

    assert cmd_tools(comp.orchestrator) == 0
    out = _json_out(capsys)
    assert out["granted"] == "read"
    assert [t["name"] for t in out["tools"]] == ["list_directory", "read_file", "search_knowledge"]


def test_main_stats_uses_environment_config(gateway_env: Path, capsys) -> None:
    assert main(["stats"]) == 0
    out = _json_out(capsys)
    assert out["total_documents"] == 0
    assert out["store_path"].startswith(str(gateway_env.resolve()))


def test_main_tools_honours_granted_permission(gateway_env: Path, monkeypatch, capsys) -> None:
    monkeypatch.setenv("NUCLEUS__POLICIES__GRANTED_PERMISSION", "all")
    assert main(["tools"]) == 0
    names = [t["name"] for t in _json_out(capsys)["tools"]]
    assert "exec_command" in names
    assert "write_file" in names


def test_main_rejects_unknown_command(gateway_env: Path) -> None:
    with pytest.raises(SystemExit):
        main(["explode"])
