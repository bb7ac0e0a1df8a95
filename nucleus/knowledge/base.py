# ==============================
# Knowledge Layer Contracts
# ==============================
"""
Core knowledge abstractions.

Design goals:
- Keep minimal and stable.
- No HTTP / model calls here; embeddings are produced by the caller.
- Provide a small, typed interface for:
  - Storage (add_or_replace by id, clear, persistence)
  - Retrieval (query embedding -> ranked documents with source metadata)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Document(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    content: str
    embedding: List[float] = Field(default_factory=list)
    metadata: Dict[str, str] = Field(default_factory=dict)

    @property
    def source(self) -> str:
        return self.metadata.get("source", self.id)


class SearchResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    document: Document
    score: float


class VectorStoreStats(BaseModel):
    total_documents: int
    total_sources: int
    store_path: Optional[str] = None


class IndexResult(BaseModel):
    """Outcome of one indexing call. ok is False when any file failed to read."""

    files_indexed: int = 0
    chunks_created: int = 0
    skipped: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def merge(self, other: "IndexResult") -> "IndexResult":
        return IndexResult(
            files_indexed=self.files_indexed + other.files_indexed,
            chunks_created=self.chunks_created + other.chunks_created,
            skipped=self.skipped + other.skipped,
            errors=self.errors + other.errors,
        )


class VectorStore(ABC):
    """
    Storage contract for embedded documents.

    Implementations must serialize writers and hand readers a consistent snapshot.
    """

    @abstractmethod
    def add_or_replace(self, document: Document) -> bool:
        """Insert or overwrite by id. Returns True when an existing id was replaced."""
        raise NotImplementedError

    @abstractmethod
    def search(self, query_embedding: List[float], k: int) -> List[SearchResult]:
        raise NotImplementedError

    @abstractmethod
    def save(self, path: Optional[Path] = None) -> Path:
        raise NotImplementedError

    @abstractmethod
    def load(self, path: Optional[Path] = None) -> int:
        raise NotImplementedError

    @abstractmethod
    def count(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def ids(self) -> List[str]:
        raise NotImplementedError

    @abstractmethod
    def stats(self) -> VectorStoreStats:
        raise NotImplementedError
