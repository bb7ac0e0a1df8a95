# ==============================
# Tests: Knowledge Indexer
# ==============================
from __future__ import annotations

from pathlib import Path

import pytest

from fakes import FakeModels
from nucleus.config.schema import KnowledgeConfig
from nucleus.contracts.errors import BackendUnavailable, KnowledgeReadError
from nucleus.knowledge.chunking import normalize_source
from nucleus.knowledge.indexer import KnowledgeIndexer
from nucleus.knowledge.persistence import STORE_FILENAME
from nucleus.knowledge.vector_store import InMemoryVectorStore


def _tree(root: Path) -> Path:
    (root / "docs").mkdir(parents=True)
    (root / "docs" / "guide.md").write_text("Alpha guide. " * 20, encoding="utf-8")
    (root / "docs" / "short.txt").write_text("tiny", encoding="utf-8")
    (root / "src").mkdir()
    (root / "src" / "app.py").write_text("print('hello world')\n", encoding="utf-8")
    (root / "node_modules").mkdir()
    (root / "node_modules" / "dep.js").write_text("module.exports = 1", encoding="utf-8")
    (root / "image.bin").write_bytes(b"\x89PNG\x00\x00\x01binary")
    (root / "empty.md").write_text("", encoding="utf-8")
    return root


def test_index_file_creates_one_document_per_chunk(indexer: KnowledgeIndexer, store, tmp_path: Path) -> None:
    path = tmp_path / "notes.md"
    path.write_text("n" * 150, encoding="utf-8")

    created = indexer.index_file(path)

    # size 64, overlap 8 -> windows at 0, 56, 112
    assert created == 3
    source = normalize_source(str(path))
    assert sorted(store.ids()) == [f"{source}:::{i}" for i in range(3)]
    doc = store.get(f"{source}:::1")
    assert doc.metadata["source"] == source
    assert doc.metadata["chunk_index"] == "1"
    assert doc.metadata["extension"] == "md"
    assert doc.embedding


def test_reindexing_unchanged_file_is_idempotent(indexer: KnowledgeIndexer, store, tmp_path: Path) -> None:
    path = tmp_path / "notes.md"
    path.write_text("repeatable content " * 10, encoding="utf-8")

    first = indexer.index_file(path)
    ids_before = sorted(store.ids())
    second = indexer.index_file(path)

    assert first == second
    assert sorted(store.ids()) == ids_before
    assert store.count() == first


def test_index_directory_walks_prunes_and_skips(indexer: KnowledgeIndexer, store, tmp_path: Path) -> None:
    root = _tree(tmp_path / "project")

    result = indexer.index_directory(root)

    assert result.ok
    assert result.files_indexed == 3
    assert result.chunks_created == store.count()
    sources = {d.split(":::")[0] for d in store.ids()}
    assert normalize_source(str(root / "src" / "app.py")) in sources
    assert not any("node_modules" in s for s in sources)
    assert not any(s.endswith("image.bin") for s in sources)
    assert any(s.endswith("empty.md") for s in result.skipped)


def test_extension_allow_list(store, fake_models: FakeModels, tmp_path: Path) -> None:
    root = _tree(tmp_path / "project")
    indexer = KnowledgeIndexer(
        store=store,
        models=fake_models,
        config=KnowledgeConfig(chunk_size=64, chunk_overlap=8, extensions=[".MD"]),
    )

    result = indexer.index_directory(root)

    assert result.files_indexed == 1
    assert all(d.split(":::")[0].endswith(".md") for d in store.ids())


def test_exclude_patterns_match_substrings(store, fake_models: FakeModels, tmp_path: Path) -> None:
    root = _tree(tmp_path / "project")
    indexer = KnowledgeIndexer(
        store=store,
        models=fake_models,
        config=KnowledgeConfig(chunk_size=64, chunk_overlap=8, exclude_patterns=["docs"]),
    )

    indexer.index_directory(root)

    assert not any("/docs/" in d for d in store.ids())
    assert any("node_modules" in d for d in store.ids())


def test_missing_directory_raises(indexer: KnowledgeIndexer, tmp_path: Path) -> None:
    with pytest.raises(KnowledgeReadError):
        indexer.index_directory(tmp_path / "missing")


def test_file_root_is_not_a_directory(indexer: KnowledgeIndexer, tmp_path: Path) -> None:
    path = tmp_path / "file.txt"
    path.write_text("x", encoding="utf-8")
    with pytest.raises(KnowledgeReadError):
        indexer.index_directory(path)


def test_index_directories_continues_past_failed_root(indexer: KnowledgeIndexer, tmp_path: Path) -> None:
    root = _tree(tmp_path / "project")

    result = indexer.index_directories([tmp_path / "missing", root])

    assert result.files_indexed == 3
    assert len(result.errors) == 1
    assert not result.ok


def test_index_directories_raises_when_every_root_fails(indexer: KnowledgeIndexer, tmp_path: Path) -> None:
    with pytest.raises(KnowledgeReadError):
        indexer.index_directories([tmp_path / "a", tmp_path / "b"])


def test_backend_failure_aborts_indexing(store, tmp_path: Path) -> None:
    indexer = KnowledgeIndexer(store=store, models=FakeModels(fail_embed=True), config=KnowledgeConfig())
    path = tmp_path / "notes.md"
    path.write_text("content", encoding="utf-8")
    with pytest.raises(BackendUnavailable):
        indexer.index_file(path)
    assert store.count() == 0


class _NanModels(FakeModels):
    def embed(self, text, ctx=None):
        return [float("nan"), 1.0]


@pytest.mark.parametrize("entry", ["file", "knowledge"])
def test_non_finite_embedding_is_rejected(store, tmp_path: Path, entry: str) -> None:
    indexer = KnowledgeIndexer(store=store, models=_NanModels(), config=KnowledgeConfig())
    path = tmp_path / "notes.md"
    path.write_text("content", encoding="utf-8")
    with pytest.raises(BackendUnavailable):
        if entry == "file":
            indexer.index_file(path)
        else:
            indexer.add_knowledge("content")
    assert store.count() == 0


def test_index_directories_accepts_file_roots(indexer: KnowledgeIndexer, store, tmp_path: Path) -> None:
    root = _tree(tmp_path / "project")
    readme = tmp_path / "README.md"
    readme.write_text("Read me first.", encoding="utf-8")

    result = indexer.index_directories([readme, root, tmp_path / "project" / "image.bin"])

    assert result.ok
    assert result.files_indexed == 4
    assert f"{normalize_source(str(readme))}:::0" in store.ids()
    assert str(tmp_path / "project" / "image.bin") in result.skipped


def test_autosave_persists_after_indexing(indexer: KnowledgeIndexer, tmp_path: Path) -> None:
    path = tmp_path / "notes.md"
    path.write_text("persist me please", encoding="utf-8")

    indexer.index_file(path)

    assert (tmp_path / "store" / STORE_FILENAME).exists()
    assert InMemoryVectorStore.open(tmp_path / "store").count() == 1


def test_add_knowledge_ids_continue_past_existing(indexer: KnowledgeIndexer, store, fake_models, tmp_path) -> None:
    first = indexer.add_knowledge("Deploys happen on Fridays", source="notes")
    second = indexer.add_knowledge("Reviews need two approvals")
    assert first.id == "knowledge::0"
    assert second.id == "knowledge::1"
    assert first.source == "notes"

    # a fresh indexer over the reloaded store keeps counting
    reopened = InMemoryVectorStore.open(tmp_path / "store")
    again = KnowledgeIndexer(store=reopened, models=fake_models, config=indexer.config)
    assert again.add_knowledge("Third fact").id == "knowledge::2"


def test_add_knowledge_rejects_blank_text(indexer: KnowledgeIndexer) -> None:
    with pytest.raises(ValueError):
        indexer.add_knowledge("   ")


def test_default_chunking_splits_600_byte_file_in_two(store, fake_models: FakeModels, tmp_path: Path) -> None:
    root = tmp_path / "kb"
    root.mkdir()
    (root / "a.md").write_text("a" * 600, encoding="utf-8")
    indexer = KnowledgeIndexer(store=store, models=fake_models, config=KnowledgeConfig())

    first = indexer.index_directory(root)
    count = store.count()
    second = indexer.index_directory(root)

    assert first.chunks_created == 2
    assert count == 2
    assert second.chunks_created == 2
    assert store.count() == count
