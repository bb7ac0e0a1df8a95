# ==============================
# Integration fixtures
# ==============================
from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterator

import pytest
from fastapi.testclient import TestClient

from fakes import FakeModels, make_orchestrator
from gateway.api import deps as gateway_deps
from gateway.api.http_app import create_app
from nucleus.config.schema import KnowledgeConfig
from nucleus.knowledge.indexer import KnowledgeIndexer
from nucleus.knowledge.retriever import Retriever
from nucleus.knowledge.vector_store import InMemoryVectorStore
from nucleus.tools.builtin.register import build_registry


@pytest.fixture
def gateway_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """
    Points the config loader at an empty repo root under tmp_path so tests never
    read the working tree's configs/ or touch its data/ directory.
    """
    repo_root = tmp_path / "repo"
    repo_root.mkdir()
    monkeypatch.setenv("NUCLEUS__APP__PATHS__REPO_ROOT", repo_root.as_posix())
    monkeypatch.setenv("NUCLEUS__LOGGING__CONSOLE", "false")
    gateway_deps.reset_caches()
    yield repo_root
    gateway_deps.reset_caches()


@pytest.fixture
def gateway_models() -> FakeModels:
    return FakeModels(fragments=["Hel", "lo"])


@pytest.fixture
def api_client(gateway_env: Path, gateway_models: FakeModels) -> TestClient:
    """FastAPI test client wired to a fake model backend and a temp store."""
    settings = gateway_deps.get_settings()
    store = InMemoryVectorStore.open(settings.storage_dir())
    retriever = Retriever(store, gateway_models, top_k=settings.knowledge.top_k)
    registry = build_registry(settings, retriever=retriever)
    indexer = KnowledgeIndexer(
        store=store, models=gateway_models, config=KnowledgeConfig(chunk_size=64, chunk_overlap=8)
    )
    orchestrator = make_orchestrator(gateway_models, registry=registry, retriever=retriever)

    app = create_app()
    overrides: Dict = {
        gateway_deps.get_vector_store: lambda: store,
        gateway_deps.get_indexer: lambda: indexer,
        gateway_deps.get_registry: lambda: registry,
        gateway_deps.get_orchestrator: lambda: orchestrator,
    }
    app.dependency_overrides.update(overrides)
    return TestClient(app)
