# ==============================
# Tests: Retriever
# ==============================
from __future__ import annotations

import pytest

from fakes import FakeModels, letter_embedding
from nucleus.contracts.errors import QueryCancelled, RetrievalFailed
from nucleus.knowledge.base import Document
from nucleus.knowledge.retriever import CONTEXT_HEADER, Retriever
from nucleus.knowledge.vector_store import InMemoryVectorStore
from nucleus.orchestrator.context import QueryContext


def _seed(store: InMemoryVectorStore) -> None:
    for i, text in enumerate(["apples and bananas", "zzz yyy xxx", "banana bread recipe"]):
        store.add_or_replace(
            Document(
                id=f"/kb/doc{i}.md:::0",
                content=text,
                embedding=letter_embedding(text),
                metadata={"source": f"/kb/doc{i}.md"},
            )
        )


def test_empty_store_returns_nothing_without_embedding(store, fake_models: FakeModels) -> None:
    retriever = Retriever(store, fake_models)
    assert retriever.search("anything") == []
    assert retriever.retrieve_context("anything") == ""
    assert fake_models.embed_calls == []


def test_search_returns_most_similar_first(store, fake_models: FakeModels) -> None:
    _seed(store)
    results = Retriever(store, fake_models, top_k=2).search("bananas")
    assert len(results) == 2
    assert results[0].document.content in {"apples and bananas", "banana bread recipe"}
    assert all(r.document.content != "zzz yyy xxx" for r in results)


def test_context_block_lists_sources_and_scores(store, fake_models: FakeModels) -> None:
    _seed(store)
    context = Retriever(store, fake_models, top_k=1).retrieve_context("zzz")
    assert context.startswith("\n\n" + CONTEXT_HEADER)
    assert "[1] source: /kb/doc1.md (score 1.000)" in context
    assert "zzz yyy xxx" in context


def test_search_wraps_backend_failure(store) -> None:
    _seed(store)
    retriever = Retriever(store, FakeModels(fail_embed=True))
    with pytest.raises(RetrievalFailed):
        retriever.search("bananas")


def test_retrieve_context_degrades_to_empty(store) -> None:
    _seed(store)
    retriever = Retriever(store, FakeModels(fail_embed=True))
    assert retriever.retrieve_context("bananas") == ""


def test_cancellation_is_not_swallowed(store) -> None:
    _seed(store)

    class CancellingModels(FakeModels):
        def embed(self, text, ctx=None):
            ctx.check()
            return super().embed(text, ctx)

    ctx = QueryContext()
    ctx.cancel()
    with pytest.raises(QueryCancelled):
        Retriever(store, CancellingModels()).retrieve_context("bananas", ctx)
