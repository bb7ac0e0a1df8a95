# ==============================
# Ollama Provider
# ==============================
"""
Ollama HTTP provider adapter.

Important:
- No environment reads here; base_url and timeouts are injected.
- Chat is always consumed as a stream of NDJSON lines so a cancelled or expired
  query can stop reading and close the connection promptly.
- Every transport / protocol failure is mapped to BackendUnavailable.

Endpoints:
- POST {base_url}/api/chat   {model, messages, tools?, stream: true, options}
- POST {base_url}/api/embed  {model, input} -> {"embeddings": [[...]]}
"""

from __future__ import annotations

import json
import logging
import math
from typing import Any, Dict, Iterator, List, Optional, Tuple

import requests
from pydantic import BaseModel, ConfigDict, Field

from nucleus.contracts.chat_schema import ChatResponse
from nucleus.contracts.errors import BackendUnavailable
from nucleus.contracts.tool_schema import ToolCall
from nucleus.orchestrator.context import QueryContext

logger = logging.getLogger("nucleus.models.ollama")


class OllamaChatRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    model: str = Field(..., description="Model name (router sets this)")
    messages: List[Dict[str, Any]] = Field(default_factory=list)
    tools: List[Dict[str, Any]] = Field(default_factory=list)
    temperature: float = Field(default=0.6)

    def payload(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": self.model,
            "messages": self.messages,
            "stream": True,
            "options": {"temperature": self.temperature},
        }
        if self.tools:
            body["tools"] = self.tools
        return body


class OllamaChunk(BaseModel):
    """One decoded NDJSON line of a streamed chat response."""
    model_config = ConfigDict(extra="ignore")

    content: str = ""
    tool_calls: List[ToolCall] = Field(default_factory=list)
    done: bool = False
    usage: Dict[str, Any] = Field(default_factory=dict)


class OllamaProvider:
    """
    Provider boundary for a local Ollama server.

    config shape (example):
{
  "base_url": "http://localhost:11434",
  "timeout_seconds": 120,
  "connect_timeout_seconds": 10
}
    """

    def __init__(self, *, config: Optional[Dict[str, Any]] = None, session: Optional[Any] = None) -> None:
        self.config = config or {}
        self.base_url = str(self.config.get("base_url", "http://localhost:11434")).rstrip("/")
        self.timeout_seconds = float(self.config.get("timeout_seconds", 120.0))
        self.connect_timeout_seconds = float(self.config.get("connect_timeout_seconds", 10.0))
        self.session = session or requests.Session()

    # ------------------------------------------------------------------ chat
    def stream(self, request: OllamaChatRequest, ctx: Optional[QueryContext] = None) -> Iterator[OllamaChunk]:
        """
        Yield decoded chunks. Closing the generator closes the HTTP response.
        """
        ctx = ctx or QueryContext()
        url = f"{self.base_url}/api/chat"
        timeout = self._timeout(ctx)
        try:
            resp = self.session.post(url, json=request.payload(), stream=True, timeout=timeout)
        except requests.exceptions.RequestException as e:
            raise BackendUnavailable(f"Chat request to {url} failed: {e}", details={"model": request.model}) from e

        with resp:
            _raise_for_status(resp, url)
            lines = resp.iter_lines(decode_unicode=True)
            while True:
                ctx.check()
                try:
                    line = next(lines)
                except StopIteration:
                    return
                except requests.exceptions.RequestException as e:
                    raise BackendUnavailable(f"Chat stream from {url} broke: {e}") from e
                if not line:
                    continue
                chunk = _decode_chunk(line)
                yield chunk
                if chunk.done:
                    return

    def complete(self, request: OllamaChatRequest, ctx: Optional[QueryContext] = None) -> ChatResponse:
        parts: List[str] = []
        calls: List[ToolCall] = []
        usage: Dict[str, Any] = {}
        for chunk in self.stream(request, ctx):
            if chunk.content:
                parts.append(chunk.content)
            calls.extend(chunk.tool_calls)
            if chunk.usage:
                usage = chunk.usage
        logger.debug("chat completed: model=%s tool_calls=%d", request.model, len(calls))
        return ChatResponse(model=request.model, content="".join(parts), tool_calls=calls, usage=usage)

    # ------------------------------------------------------------------ embeddings
    def embed(self, *, model: str, text: str, ctx: Optional[QueryContext] = None) -> List[float]:
        ctx = ctx or QueryContext()
        url = f"{self.base_url}/api/embed"
        try:
            resp = self.session.post(url, json={"model": model, "input": text}, timeout=self._timeout(ctx))
        except requests.exceptions.RequestException as e:
            raise BackendUnavailable(f"Embedding request to {url} failed: {e}", details={"model": model}) from e
        _raise_for_status(resp, url)
        try:
            data = resp.json()
        except ValueError as e:
            raise BackendUnavailable(f"Embedding response from {url} is not JSON") from e
        embeddings = data.get("embeddings") if isinstance(data, dict) else None
        if not embeddings or not isinstance(embeddings[0], list) or not embeddings[0]:
            raise BackendUnavailable(f"Embedding response from {url} has no vector", details={"model": model})
        try:
            vector = [float(x) for x in embeddings[0]]
        except (TypeError, ValueError) as e:
            raise BackendUnavailable(f"Embedding response from {url} has non-numeric values", details={"model": model}) from e
        if not all(math.isfinite(x) for x in vector):
            raise BackendUnavailable(f"Embedding response from {url} has non-finite values", details={"model": model})
        return vector

    def _timeout(self, ctx: QueryContext) -> Tuple[float, float]:
        read = ctx.timeout_for(self.timeout_seconds)
        return (min(self.connect_timeout_seconds, read), read)


# ==============================
# Helpers
# ==============================
def _raise_for_status(resp: Any, url: str) -> None:
    status = getattr(resp, "status_code", 200)
    if status < 400:
        return
    body = (getattr(resp, "text", "") or "")[:500]
    raise BackendUnavailable(f"Backend {url} returned HTTP {status}", details={"status": status, "body": body})


def _decode_chunk(line: str) -> OllamaChunk:
    try:
        data = json.loads(line)
    except ValueError as e:
        raise BackendUnavailable(f"Malformed chat stream line: {line[:200]!r}") from e
    if not isinstance(data, dict):
        raise BackendUnavailable("Malformed chat stream line: expected an object")
    if data.get("error"):
        raise BackendUnavailable(f"Backend error: {data['error']}")

    message = data.get("message") or {}
    if not isinstance(message, dict):
        raise BackendUnavailable("Malformed chat stream line: message is not an object")
    calls: List[ToolCall] = []
    for raw in message.get("tool_calls") or []:
        fn = raw.get("function") if isinstance(raw, dict) else None
        if not isinstance(fn, dict):
            continue
        name = str(fn.get("name") or "").strip()
        if not name:
            continue
        calls.append(ToolCall(name=name, arguments=_parse_arguments(fn.get("arguments"))))

    usage: Dict[str, Any] = {}
    if data.get("done"):
        usage = {
            "prompt_tokens": data.get("prompt_eval_count", 0),
            "completion_tokens": data.get("eval_count", 0),
        }
    return OllamaChunk(
        content=str(message.get("content") or ""),
        tool_calls=calls,
        done=bool(data.get("done", False)),
        usage=usage,
    )


def _parse_arguments(raw: Any) -> Dict[str, Any]:
    # some models emit arguments as a JSON string instead of an object
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str):
        try:
            value = json.loads(raw) if raw.strip() else {}
        except ValueError:
            return {"_raw": raw}
        return value if isinstance(value, dict) else {"_raw": value}
    return {"_raw": raw}
