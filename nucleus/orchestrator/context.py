# ==============================
# Query Context
# ==============================
"""
Per-query execution context.

Carries:
- query_id for logs and trace events
- an optional monotonic deadline bounding every backend / file operation
- a cancel flag another thread may set to abort the query
- an optional trace hook (kind, payload) for observers and tests

One QueryContext belongs to one query; it is never shared across queries.
"""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from nucleus.contracts.errors import QueryCancelled, QueryTimeout

TraceHook = Callable[[str, Dict[str, Any]], None]


def _new_query_id() -> str:
    return f"q_{uuid.uuid4().hex[:12]}"


@dataclass
class QueryContext:
    query_id: str = field(default_factory=_new_query_id)
    deadline: Optional[float] = None
    cancel_event: threading.Event = field(default_factory=threading.Event)
    trace: Optional[TraceHook] = None

    @classmethod
    def with_timeout(cls, seconds: Optional[float], **kwargs: Any) -> "QueryContext":
        deadline = (time.monotonic() + seconds) if seconds else None
        return cls(deadline=deadline, **kwargs)

    def cancel(self) -> None:
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return self.deadline - time.monotonic()

    def check(self) -> None:
        if self.cancel_event.is_set():
            raise QueryCancelled("Query was cancelled", details={"query_id": self.query_id})
        left = self.remaining()
        if left is not None and left <= 0:
            raise QueryTimeout("Query deadline exceeded", details={"query_id": self.query_id})

    def timeout_for(self, default: float) -> float:
        """Per-call timeout: the configured default, capped by the time left."""
        self.check()
        left = self.remaining()
        if left is None:
            return default
        return max(0.001, min(default, left))

    def emit(self, kind: str, payload: Dict[str, Any]) -> None:
        if self.trace is None:
            return
        self.trace(kind, {"query_id": self.query_id, **payload})
