# ==============================
# Testing Fixtures
# ==============================
from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))
sys.path.insert(0, str(Path(__file__).resolve().parent))

from fakes import FakeModels
from nucleus.config.schema import KnowledgeConfig, Settings
from nucleus.contracts.tool_schema import Permission
from nucleus.knowledge.indexer import KnowledgeIndexer
from nucleus.knowledge.retriever import Retriever
from nucleus.knowledge.vector_store import InMemoryVectorStore
from nucleus.orchestrator.context import QueryContext
from nucleus.tools.builtin.register import build_registry
from nucleus.tools.registry import ToolRegistry


@pytest.fixture
def fake_models() -> FakeModels:
    """Scripted model backend with deterministic embeddings."""
    return FakeModels()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings.model_validate(
        {
            "app": {"paths": {"repo_root": str(tmp_path)}},
            "knowledge": {"storage_path": str(tmp_path / "store"), "chunk_size": 64, "chunk_overlap": 8},
            "logging": {"console": False},
        }
    )


@pytest.fixture
def store(tmp_path: Path) -> InMemoryVectorStore:
    return InMemoryVectorStore(storage_dir=tmp_path / "store")


@pytest.fixture
def indexer(store: InMemoryVectorStore, fake_models: FakeModels) -> KnowledgeIndexer:
    return KnowledgeIndexer(
        store=store,
        models=fake_models,
        config=KnowledgeConfig(chunk_size=64, chunk_overlap=8),
    )


@pytest.fixture
def retriever(store: InMemoryVectorStore, fake_models: FakeModels) -> Retriever:
    return Retriever(store, fake_models, top_k=3)


@pytest.fixture
def registry(settings: Settings, retriever: Retriever) -> ToolRegistry:
    """Built-in tools under the default READ grant."""
    return build_registry(settings, retriever=retriever)


@pytest.fixture
def write_registry(settings: Settings, retriever: Retriever) -> ToolRegistry:
    registry = build_registry(settings, retriever=retriever)
    registry.granted = Permission.WRITE
    return registry


@pytest.fixture
def trace_sink() -> List[Dict[str, Any]]:
    """Collects (kind, payload) trace events emitted through a QueryContext."""
    return []


@pytest.fixture
def query_ctx(trace_sink: List[Dict[str, Any]]) -> QueryContext:
    return QueryContext(trace=lambda kind, payload: trace_sink.append({"kind": kind, **payload}))
