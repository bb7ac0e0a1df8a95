# ==============================
# In-Memory Vector Store
# ==============================
"""
In-memory document store with cosine-similarity search and JSON persistence.

Concurrency:
- One lock guards the id -> Document map. Writers (add/replace/clear/load/save)
  hold it for their whole operation, including the temp-write-then-rename of save.
- search copies the current documents under the lock and scores outside it.
  Documents are immutable, so readers always see whole documents.

Search is a linear scan; fine for the tens of thousands of chunks a local
knowledge base holds.
"""

from __future__ import annotations

import logging
import math
import threading
from pathlib import Path
from typing import Dict, List, Optional

from nucleus.knowledge.base import Document, SearchResult, VectorStore, VectorStoreStats
from nucleus.knowledge.persistence import STORE_FILENAME, load_snapshot, save_snapshot

logger = logging.getLogger("nucleus.knowledge.store")


def cosine_similarity(a: List[float], b: List[float]) -> float:
    """Returns 0.0 for mismatched lengths or zero-magnitude vectors."""
    if len(a) != len(b) or not a:
        return 0.0
    dot = math.fsum(x * y for x, y in zip(a, b))
    mag_a = math.sqrt(math.fsum(x * x for x in a))
    mag_b = math.sqrt(math.fsum(y * y for y in b))
    if mag_a == 0.0 or mag_b == 0.0:
        return 0.0
    return dot / (mag_a * mag_b)


class InMemoryVectorStore(VectorStore):
    def __init__(self, storage_dir: Optional[Path] = None) -> None:
        self._docs: Dict[str, Document] = {}
        self._lock = threading.RLock()
        self.persistence_path: Optional[Path] = (Path(storage_dir) / STORE_FILENAME) if storage_dir else None

    @classmethod
    def open(cls, storage_dir: Path) -> "InMemoryVectorStore":
        """Create a persistent store and load whatever was saved before."""
        store = cls(storage_dir)
        loaded = store.load()
        logger.info("vector store loaded: %d documents from %s", loaded, store.persistence_path)
        return store

    # ------------------------------------------------------------------ writes
    def add_or_replace(self, document: Document) -> bool:
        with self._lock:
            replaced = document.id in self._docs
            self._docs[document.id] = document
        return replaced

    def clear(self) -> None:
        with self._lock:
            self._docs.clear()

    def clear_and_save(self) -> int:
        """Empty the store and persist that under one lock hold. Returns documents removed."""
        with self._lock:
            removed = len(self._docs)
            self._docs.clear()
            if self.persistence_path is not None:
                self.save()
        return removed

    def save(self, path: Optional[Path] = None) -> Path:
        target = self._resolve(path)
        with self._lock:
            save_snapshot(list(self._docs.values()), target)
            count = len(self._docs)
        logger.info("vector store saved: %d documents to %s", count, target)
        return target

    def load(self, path: Optional[Path] = None) -> int:
        target = self._resolve(path)
        with self._lock:
            try:
                docs = load_snapshot(target)
            except Exception:
                self._docs.clear()
                raise
            self._docs = {d.id: d for d in docs}
            return len(self._docs)

    # ------------------------------------------------------------------ reads
    def search(self, query_embedding: List[float], k: int) -> List[SearchResult]:
        if k <= 0:
            return []
        with self._lock:
            docs = list(self._docs.values())
        if not docs:
            return []
        scored = [SearchResult(document=d, score=cosine_similarity(query_embedding, d.embedding)) for d in docs]
        scored.sort(key=lambda r: r.score, reverse=True)
        return scored[:k]

    def get(self, doc_id: str) -> Optional[Document]:
        with self._lock:
            return self._docs.get(doc_id)

    def count(self) -> int:
        with self._lock:
            return len(self._docs)

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._docs.keys())

    def stats(self) -> VectorStoreStats:
        with self._lock:
            sources = {d.source for d in self._docs.values()}
            total = len(self._docs)
        return VectorStoreStats(
            total_documents=total,
            total_sources=len(sources),
            store_path=str(self.persistence_path) if self.persistence_path else None,
        )

    def _resolve(self, path: Optional[Path]) -> Path:
        if path is not None:
            return Path(path)
        if self.persistence_path is None:
            raise ValueError("No persistence path configured; pass an explicit path.")
        return self.persistence_path
