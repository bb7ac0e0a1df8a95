# ==============================
# Knowledge Indexer
# ==============================
"""
Walks files / directories, chunks their text, embeds each chunk and writes the
result into a VectorStore.

Rules:
- Document ids are "<absolute source path>:::<chunk index>", so re-indexing an
  unchanged file overwrites the same ids instead of adding duplicates.
- Files whose extension is not in the allow-list are skipped, not failed.
  An empty allow-list means every text file.
- A path containing any exclude pattern as a substring is skipped.
- Inside a directory walk, per-file failures are logged and collected; the walk
  continues. Only a missing / unreadable root aborts.
- The store is saved after every public indexing call when autosave is on.

Stale entries for files deleted from disk are NOT removed by re-indexing; they
persist until clear().
"""

from __future__ import annotations

import logging
import math
import os
import time
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence

from nucleus.config.schema import KnowledgeConfig
from nucleus.contracts.errors import BackendUnavailable, KnowledgeReadError
from nucleus.knowledge.base import Document, IndexResult, VectorStore
from nucleus.knowledge.chunking import chunk_text, document_id, normalize_source
from nucleus.orchestrator.context import QueryContext

logger = logging.getLogger("nucleus.knowledge.indexer")

KNOWLEDGE_ID_PREFIX = "knowledge::"
_BINARY_SNIFF_BYTES = 8192


class KnowledgeIndexer:
    def __init__(self, *, store: VectorStore, models: Any, config: Optional[KnowledgeConfig] = None) -> None:
        self.store = store
        self.models = models
        self.config = config or KnowledgeConfig()

    # ------------------------------------------------------------------ API
    def index_file(self, path: str | Path, ctx: Optional[QueryContext] = None) -> int:
        """Index one file. Returns chunks created (0 when skipped)."""
        created = self._index_file(Path(path), ctx)
        self._autosave()
        return created

    def index_directory(self, path: str | Path, ctx: Optional[QueryContext] = None) -> IndexResult:
        result = self._index_directory(Path(path), ctx)
        self._autosave()
        return result

    def index_directories(self, paths: Sequence[str | Path], ctx: Optional[QueryContext] = None) -> IndexResult:
        """
        Index several roots in order; a root may be a directory or a single file.
        A failing root does not stop the others; the first hard error is raised
        only when every root failed.
        """
        total = IndexResult()
        first_error: Optional[KnowledgeReadError] = None
        failures = 0
        for p in paths:
            try:
                total = total.merge(self._index_root(Path(p), ctx))
            except KnowledgeReadError as e:
                logger.warning("indexing %s failed: %s", p, e.message)
                failures += 1
                first_error = first_error or e
                total = total.merge(IndexResult(errors=[f"{p}: {e.message}"]))
        if paths and failures == len(paths) and first_error is not None:
            raise first_error
        self._autosave()
        return total

    def add_knowledge(self, text: str, *, source: str = "direct", ctx: Optional[QueryContext] = None) -> Document:
        """Embed and store a piece of text that did not come from a file."""
        if not text.strip():
            raise ValueError("knowledge text must not be empty")
        doc = Document(
            id=f"{KNOWLEDGE_ID_PREFIX}{self._next_knowledge_index()}",
            content=text,
            embedding=self._embed(text, ctx),
            metadata={"source": source, "kind": "direct", "indexed_at": str(int(time.time()))},
        )
        self.store.add_or_replace(doc)
        self._autosave()
        return doc

    def save(self) -> Path:
        return self.store.save()

    # ------------------------------------------------------------------ internals
    def _index_file(self, path: Path, ctx: Optional[QueryContext]) -> int:
        if ctx is not None:
            ctx.check()
        if not self._extension_allowed(path):
            logger.debug("skipping %s: extension not allowed", path)
            return 0

        text = _read_text(path)
        if text is None:
            logger.debug("skipping %s: not a text file", path)
            return 0

        source = normalize_source(str(path))
        chunks = chunk_text(text, chunk_size=self.config.chunk_size, overlap=self.config.chunk_overlap)
        indexed_at = str(int(time.time()))
        for idx, chunk in enumerate(chunks):
            embedding = self._embed(chunk, ctx)
            self.store.add_or_replace(
                Document(
                    id=document_id(source, idx),
                    content=chunk,
                    embedding=embedding,
                    metadata={
                        "source": source,
                        "chunk_index": str(idx),
                        "extension": path.suffix.lower().lstrip("."),
                        "indexed_at": indexed_at,
                    },
                )
            )
        logger.debug("indexed %s: %d chunks", path, len(chunks))
        return len(chunks)

    def _index_root(self, root: Path, ctx: Optional[QueryContext]) -> IndexResult:
        if not root.is_file():
            return self._index_directory(root, ctx)
        created = self._index_file(root, ctx)
        if created:
            return IndexResult(files_indexed=1, chunks_created=created)
        return IndexResult(skipped=[str(root)])

    def _index_directory(self, root: Path, ctx: Optional[QueryContext]) -> IndexResult:
        if not root.exists():
            raise KnowledgeReadError(f"Directory not found: {root}", details={"path": str(root)})
        if not root.is_dir():
            raise KnowledgeReadError(f"Not a directory: {root}", details={"path": str(root)})

        result = IndexResult()
        for file_path in self._walk(root):
            if self._excluded(file_path):
                result.skipped.append(str(file_path))
                continue
            try:
                created = self._index_file(file_path, ctx)
            except KnowledgeReadError as e:
                logger.warning("skipping unreadable file %s: %s", file_path, e.message)
                result.errors.append(f"{file_path}: {e.message}")
                continue
            if created:
                result.files_indexed += 1
                result.chunks_created += created
            else:
                result.skipped.append(str(file_path))
        logger.info(
            "indexed directory %s: files=%d chunks=%d skipped=%d errors=%d",
            root,
            result.files_indexed,
            result.chunks_created,
            len(result.skipped),
            len(result.errors),
        )
        return result

    def _embed(self, text: str, ctx: Optional[QueryContext]) -> List[float]:
        embedding = self.models.embed(text, ctx)
        if not all(math.isfinite(x) for x in embedding):
            raise BackendUnavailable("Embedding backend returned a non-finite vector")
        return embedding

    def _walk(self, root: Path) -> Iterable[Path]:
        def _onerror(err: OSError) -> None:
            if Path(err.filename or "") == root:
                raise KnowledgeReadError(f"Cannot read directory {root}: {err}", details={"path": str(root)}) from err
            logger.warning("cannot read %s: %s", err.filename, err.strerror)

        for dirpath, dirnames, filenames in os.walk(root, onerror=_onerror):
            # prune excluded directories before descending
            dirnames[:] = sorted(d for d in dirnames if not self._excluded(Path(dirpath) / d))
            for name in sorted(filenames):
                yield Path(dirpath) / name

    def _excluded(self, path: Path) -> bool:
        full = str(path)
        return any(p and p in full for p in self.config.exclude_patterns)

    def _extension_allowed(self, path: Path) -> bool:
        if not self.config.extensions:
            return True
        return path.suffix.lower().lstrip(".") in self.config.extensions

    def _next_knowledge_index(self) -> int:
        highest = -1
        for doc_id in self.store.ids():
            if doc_id.startswith(KNOWLEDGE_ID_PREFIX):
                tail = doc_id[len(KNOWLEDGE_ID_PREFIX) :]
                if tail.isdigit():
                    highest = max(highest, int(tail))
        return highest + 1

    def _autosave(self) -> None:
        if self.config.autosave and getattr(self.store, "persistence_path", None) is not None:
            self.store.save()


def _read_text(path: Path) -> Optional[str]:
    """Return decoded text, None for binary / non-UTF-8 content."""
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise KnowledgeReadError(f"Cannot read {path}: {e.strerror or e}", details={"path": str(path)}) from e
    if b"\x00" in raw[:_BINARY_SNIFF_BYTES]:
        return None
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return None
