# ==============================
# Error Contracts
# ==============================
"""
Raised error types for nucleus.

Propagation rules:
- Capability failures never raise past ToolRegistry.execute; they become ToolResult data.
- RetrievalFailed is caught by the Retriever and degrades to empty context.
- PersistenceFailed, BackendUnavailable and QueryCancelled reach the caller of the
  orchestrator / indexer as a failed operation.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    INVALID_INPUT = "invalid_input"
    EXECUTION_FAILED = "execution_failed"
    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"
    RETRIEVAL_FAILED = "retrieval_failed"
    PERSISTENCE_FAILED = "persistence_failed"
    BACKEND_UNAVAILABLE = "backend_unavailable"
    READ_FAILED = "read_failed"
    CANCELLED = "cancelled"
    TIMEOUT = "timeout"


class NucleusError(Exception):
    code: ErrorCode = ErrorCode.EXECUTION_FAILED

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code.value, "message": self.message, "details": self.details}


class RetrievalFailed(NucleusError):
    code = ErrorCode.RETRIEVAL_FAILED


class PersistenceFailed(NucleusError):
    code = ErrorCode.PERSISTENCE_FAILED


class SnapshotVersionError(PersistenceFailed):
    """Persisted store was written by a newer, incompatible schema version."""


class BackendUnavailable(NucleusError):
    code = ErrorCode.BACKEND_UNAVAILABLE


class KnowledgeReadError(NucleusError):
    code = ErrorCode.READ_FAILED


class QueryCancelled(NucleusError):
    code = ErrorCode.CANCELLED


class QueryTimeout(QueryCancelled):
    code = ErrorCode.TIMEOUT
