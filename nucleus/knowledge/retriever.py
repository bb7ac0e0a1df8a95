# ==============================
# Retriever
# ==============================
"""
Query-time retrieval over the VectorStore.

- search(): embed the query and return the top-k results. Raises RetrievalFailed.
- retrieve_context(): best-effort wrapper used by the orchestrator. Any failure
  or an empty store yields "" and a warning; it never blocks an answer.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from nucleus.contracts.errors import NucleusError, QueryCancelled, RetrievalFailed
from nucleus.knowledge.base import SearchResult, VectorStore
from nucleus.orchestrator.context import QueryContext

logger = logging.getLogger("nucleus.knowledge.retriever")

CONTEXT_HEADER = "Relevant context from the knowledge base:"


class Retriever:
    def __init__(self, store: VectorStore, models: Any, *, top_k: int = 5) -> None:
        self.store = store
        self.models = models
        self.top_k = top_k

    def search(self, query: str, *, top_k: Optional[int] = None, ctx: Optional[QueryContext] = None) -> List[SearchResult]:
        k = top_k or self.top_k
        if self.store.count() == 0:
            return []
        try:
            embedding = self.models.embed(query, ctx)
            return self.store.search(embedding, k)
        except QueryCancelled:
            raise
        except NucleusError as e:
            raise RetrievalFailed(f"Could not embed query: {e.message}", details=e.details) from e
        except Exception as e:
            raise RetrievalFailed(f"Search failed: {e}") from e

    def retrieve_context(self, query: str, ctx: Optional[QueryContext] = None) -> str:
        try:
            results = self.search(query, ctx=ctx)
        except RetrievalFailed as e:
            logger.warning("retrieval degraded to empty context: %s", e.message)
            return ""
        if not results:
            return ""
        return format_context(results)


def format_context(results: List[SearchResult]) -> str:
    """Context block appended to the user's message, most relevant first."""
    lines = ["", "", CONTEXT_HEADER]
    for i, r in enumerate(results, start=1):
        lines.append(f"[{i}] source: {r.document.source} (score {r.score:.3f})")
        lines.append(r.document.content)
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"
