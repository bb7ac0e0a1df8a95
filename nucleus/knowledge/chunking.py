# ==============================
# Chunking
# ==============================
"""
Character-window chunking with overlap.

Each chunk is content[offset : offset + chunk_size]; the cursor advances by
chunk_size - chunk_overlap until a window reaches the end of the content.
Chunks are not stripped, so dropping the first chunk_overlap characters of every
chunk after the first and concatenating reproduces the content exactly.
"""

from __future__ import annotations

import os
from typing import List


def chunk_text(text: str, *, chunk_size: int, overlap: int) -> List[str]:
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if overlap < 0 or overlap >= chunk_size:
        raise ValueError("overlap must be >= 0 and less than chunk_size")

    chunks: List[str] = []
    n = len(text)
    step = chunk_size - overlap
    i = 0
    while i < n:
        j = min(n, i + chunk_size)
        chunks.append(text[i:j])
        if j == n:
            break
        i += step
    return chunks


def normalize_source(path: str) -> str:
    return os.path.abspath(path).replace(os.sep, "/")


def document_id(source: str, chunk_index: int) -> str:
    return f"{source}:::{chunk_index}"
