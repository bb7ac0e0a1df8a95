# ==============================
# Vector Store Persistence
# ==============================
"""
Snapshot file format for the vector store.

File layout (JSON):
  {"version": 1, "documents": [{"id", "content", "embedding", "metadata"}, ...]}

Writes go to a temp file in the target directory and are renamed over the
destination, so a crash mid-save leaves the previous file intact.
"""

from __future__ import annotations

import json
import logging
import math
import os
import tempfile
from pathlib import Path
from typing import List

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from nucleus.contracts.errors import PersistenceFailed, SnapshotVersionError
from nucleus.knowledge.base import Document

SNAPSHOT_VERSION = 1
STORE_FILENAME = "vector_store.json"

logger = logging.getLogger("nucleus.knowledge.persistence")


class StoreSnapshot(BaseModel):
    model_config = ConfigDict(extra="forbid")

    version: int = SNAPSHOT_VERSION
    documents: List[Document] = Field(default_factory=list)


def save_snapshot(documents: List[Document], path: Path) -> None:
    # JSON has no NaN/inf; such a file would not load back
    bad = [d.id for d in documents if not all(math.isfinite(x) for x in d.embedding)]
    if bad:
        raise PersistenceFailed(
            f"Refusing to save vector store to {path}: non-finite embedding in {bad[0]}",
            details={"path": str(path), "documents": bad},
        )
    snapshot = StoreSnapshot(documents=documents)
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(snapshot.model_dump_json(indent=2))
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as e:
        raise PersistenceFailed(f"Failed to save vector store to {path}: {e}", details={"path": str(path)}) from e
    finally:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
    logger.debug("snapshot saved", extra={"path": str(path)})


def load_snapshot(path: Path) -> List[Document]:
    """Missing file yields no documents; anything unreadable raises PersistenceFailed."""
    if not path.exists():
        return []
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise PersistenceFailed(f"Failed to read vector store {path}: {e}", details={"path": str(path)}) from e

    if not isinstance(raw, dict):
        raise PersistenceFailed(f"Malformed vector store {path}: expected a JSON object")

    version = raw.get("version")
    if not isinstance(version, int):
        raise PersistenceFailed(f"Malformed vector store {path}: missing schema version")
    if version > SNAPSHOT_VERSION:
        raise SnapshotVersionError(
            f"Vector store {path} has schema version {version}; this build reads up to {SNAPSHOT_VERSION}",
            details={"path": str(path), "version": version},
        )

    try:
        snapshot = StoreSnapshot.model_validate(raw)
    except ValidationError as e:
        raise PersistenceFailed(f"Malformed vector store {path}: {e}", details={"path": str(path)}) from e
    return snapshot.documents
