# ==============================
# Chat & Knowledge Routes
# ==============================
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterator, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from nucleus.contracts.errors import ErrorCode, NucleusError
from nucleus.knowledge.indexer import KnowledgeIndexer
from nucleus.knowledge.vector_store import InMemoryVectorStore
from nucleus.orchestrator.context import QueryContext
from nucleus.orchestrator.engine import ChatOrchestrator
from nucleus.tools.registry import ToolRegistry
from gateway.api.deps import get_indexer, get_orchestrator, get_registry, get_vector_store

logger = logging.getLogger("nucleus.gateway")

router = APIRouter()

_HTTP_STATUS = {
    ErrorCode.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.READ_FAILED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.PERMISSION_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorCode.BACKEND_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.CANCELLED: status.HTTP_409_CONFLICT,
    ErrorCode.TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
}


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1)
    use_tools: bool = Field(default=True)
    timeout_seconds: Optional[float] = Field(default=None, gt=0, description="Overrides chat.query_timeout_seconds")


class KnowledgeRequest(BaseModel):
    text: str = Field(..., min_length=1)
    source: str = Field(default="direct")


class IndexRequest(BaseModel):
    paths: List[str] = Field(..., min_length=1)


def _ok(data: Dict[str, Any], *, meta: Dict[str, Any] | None = None) -> Dict[str, Any]:
    return {"ok": True, "data": data, "error": None, "meta": meta or {}}


def _error(
    *,
    http_status: int,
    code: str,
    message: str,
    details: Dict[str, Any] | None = None,
    meta: Dict[str, Any] | None = None,
) -> Dict[str, Any]:
    payload = {
        "ok": False,
        "data": None,
        "error": {"code": code, "message": message, "details": details or {}},
        "meta": meta or {},
    }
    raise HTTPException(status_code=http_status, detail=payload)


def _raise_nucleus(err: NucleusError, *, meta: Dict[str, Any] | None = None) -> None:
    http_status = _HTTP_STATUS.get(err.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    _error(http_status=http_status, code=err.code.value, message=err.message, details=err.details, meta=meta)


def _ndjson(event: Dict[str, Any]) -> str:
    return json.dumps(event, ensure_ascii=False) + "\n"


def _context(orchestrator: ChatOrchestrator, timeout_seconds: Optional[float]) -> QueryContext:
    return QueryContext.with_timeout(timeout_seconds or orchestrator.query_timeout_seconds)


# ==============================
# Chat
# ==============================


@router.post("/chat")
def chat(req: ChatRequest, orchestrator: ChatOrchestrator = Depends(get_orchestrator)) -> Dict[str, Any]:
    ctx = _context(orchestrator, req.timeout_seconds)
    try:
        outcome = orchestrator.ask(req.message, use_tools=req.use_tools, ctx=ctx)
    except NucleusError as e:
        _raise_nucleus(e, meta={"query_id": ctx.query_id})
    return _ok(outcome.summary(), meta={"query_id": ctx.query_id})


@router.post("/chat/stream")
def chat_stream(req: ChatRequest, orchestrator: ChatOrchestrator = Depends(get_orchestrator)) -> StreamingResponse:
    ctx = _context(orchestrator, req.timeout_seconds)

    def _events() -> Iterator[str]:
        fragments = orchestrator.stream_answer(req.message, ctx=ctx)
        try:
            for fragment in fragments:
                yield _ndjson({"type": "chunk", "content": fragment, "error": None})
        except NucleusError as e:
            logger.warning("stream %s failed: %s", ctx.query_id, e.message)
            yield _ndjson({"type": "error", "content": None, "error": e.to_dict()})
            return
        finally:
            fragments.close()
        yield _ndjson({"type": "done", "content": None, "error": None})

    return StreamingResponse(_events(), media_type="application/x-ndjson")


# ==============================
# Knowledge
# ==============================


@router.post("/knowledge")
def add_knowledge(req: KnowledgeRequest, indexer: KnowledgeIndexer = Depends(get_indexer)) -> Dict[str, Any]:
    try:
        doc = indexer.add_knowledge(req.text, source=req.source)
    except ValueError as e:
        _error(http_status=status.HTTP_400_BAD_REQUEST, code=ErrorCode.INVALID_INPUT.value, message=str(e))
    except NucleusError as e:
        _raise_nucleus(e)
    return _ok({"id": doc.id, "source": doc.source})


@router.post("/index")
def index_paths(req: IndexRequest, indexer: KnowledgeIndexer = Depends(get_indexer)) -> Dict[str, Any]:
    try:
        result = indexer.index_directories(req.paths)
    except NucleusError as e:
        _raise_nucleus(e, meta={"paths": req.paths})
    return _ok(result.model_dump(), meta={"paths": req.paths})


@router.get("/stats")
def stats(store: InMemoryVectorStore = Depends(get_vector_store)) -> Dict[str, Any]:
    return _ok(store.stats().model_dump())


@router.delete("/knowledge")
def clear_knowledge(store: InMemoryVectorStore = Depends(get_vector_store)) -> Dict[str, Any]:
    try:
        removed = store.clear_and_save()
    except NucleusError as e:
        _raise_nucleus(e)
    return _ok({"removed": removed})


@router.get("/tools")
def list_tools(registry: ToolRegistry = Depends(get_registry)) -> Dict[str, Any]:
    tools = [spec.to_dict() for spec in registry.list_available()]
    return _ok({"tools": tools, "granted": registry.granted.label})
