# ==============================
# Model Router
# ==============================
"""
Model routing for nucleus.

Goals:
- Centralize all model selection decisions behind a single interface.
- Avoid vendor-specific imports outside providers/.
- No env reads here. Configuration is injected by the caller.

Every component that needs the model backend (orchestrator, indexer, retriever)
talks to a ModelRouter through three calls:
- chat(messages, tools, ctx) -> ChatResponse
- stream_chat(messages, ctx) -> iterator of text fragments
- embed(text, ctx) -> embedding vector
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

from nucleus.config.schema import Settings
from nucleus.contracts.chat_schema import ChatResponse, Message
from nucleus.contracts.tool_schema import ToolSpec
from nucleus.models.providers.ollama_provider import OllamaChatRequest, OllamaProvider
from nucleus.orchestrator.context import QueryContext

PURPOSE_CHAT = "chat"
PURPOSE_EMBEDDING = "embedding"


@dataclass(frozen=True)
class ModelSelection:
    provider: str
    model: str


class ModelRouter:
    """
    Minimal model router.

    Config shape (example):
{
  "provider": "ollama",
  "chat_model": "qwen3:0.6b",
  "embedding_model": "nomic-embed-text",
  "temperature": 0.6
}
    """

    def __init__(self, *, config: Optional[Dict[str, Any]] = None, providers: Optional[Dict[str, Any]] = None) -> None:
        self.config = config or {}
        self.providers = providers or {"ollama": OllamaProvider(config=self.config.get("ollama", {}))}

    @classmethod
    def from_settings(cls, settings: Settings, *, providers: Optional[Dict[str, Any]] = None) -> "ModelRouter":
        return cls(config=settings.models.model_dump(), providers=providers)

    def select(self, *, purpose: str, override_model: Optional[str] = None) -> ModelSelection:
        provider = str(self.config.get("provider", "ollama"))
        if override_model:
            return ModelSelection(provider=provider, model=override_model)
        if purpose == PURPOSE_EMBEDDING:
            model = str(self.config.get("embedding_model", "nomic-embed-text"))
        else:
            model = str(self.config.get("chat_model", "qwen3:0.6b"))
        return ModelSelection(provider=provider, model=model)

    # ------------------------------------------------------------------ API
    def chat(
        self,
        messages: List[Message],
        tools: Optional[List[ToolSpec]] = None,
        ctx: Optional[QueryContext] = None,
    ) -> ChatResponse:
        sel = self.select(purpose=PURPOSE_CHAT)
        req = self._chat_request(sel.model, messages, tools)
        return self._get_provider(sel.provider).complete(req, ctx)

    def stream_chat(self, messages: List[Message], ctx: Optional[QueryContext] = None) -> Iterator[str]:
        sel = self.select(purpose=PURPOSE_CHAT)
        req = self._chat_request(sel.model, messages, None)
        chunks = self._get_provider(sel.provider).stream(req, ctx)
        try:
            for chunk in chunks:
                if chunk.content:
                    yield chunk.content
        finally:
            chunks.close()

    def embed(self, text: str, ctx: Optional[QueryContext] = None) -> List[float]:
        sel = self.select(purpose=PURPOSE_EMBEDDING)
        return self._get_provider(sel.provider).embed(model=sel.model, text=text, ctx=ctx)

    def _chat_request(self, model: str, messages: List[Message], tools: Optional[List[ToolSpec]]) -> OllamaChatRequest:
        return OllamaChatRequest(
            model=model,
            messages=[m.to_backend() for m in messages],
            tools=[t.to_backend() for t in (tools or [])],
            temperature=float(self.config.get("temperature", 0.6)),
        )

    def _get_provider(self, name: str) -> Any:
        p = self.providers.get(name)
        if p is None:
            raise KeyError(f"Unknown model provider: {name}")
        return p
