# ==============================
# Chat Orchestrator
# ==============================
"""
Drives one tool-augmented conversation per query:

  retrieve context -> ask model -> run requested tools -> feed results back -> ...

until the model answers without requesting tools, or the tool-round bound is hit.

Failure policy:
- Tool failures become tool-role messages; the model decides how to recover.
- Retrieval failures degrade to no context (handled by Retriever).
- BackendUnavailable and QueryCancelled propagate to the caller.

Tool calls within a round run sequentially in the order the model gave them.
"""

from __future__ import annotations

import logging
from typing import Any, Iterator, List, Optional, Tuple

from nucleus.config.schema import DEFAULT_SYSTEM_PROMPT, Settings
from nucleus.contracts.chat_schema import ChatOutcome, Message, Role, TerminationReason
from nucleus.contracts.tool_schema import ToolSpec, tool_names
from nucleus.knowledge.base import VectorStore
from nucleus.knowledge.retriever import Retriever
from nucleus.logging.logger import LogContext, with_context
from nucleus.models.router import ModelRouter
from nucleus.orchestrator.context import QueryContext
from nucleus.orchestrator.state import LoopState, can_transition
from nucleus.tools.builtin.register import build_registry
from nucleus.tools.registry import ToolRegistry

logger = logging.getLogger("nucleus.orchestrator")

MAX_ITERATIONS_ANSWER = "Stopped: exceeded maximum tool iterations ({limit}) without a final answer."


class ChatOrchestrator:
    def __init__(
        self,
        *,
        models: Any,
        registry: Optional[ToolRegistry] = None,
        retriever: Optional[Retriever] = None,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        max_tool_iterations: int = 8,
        query_timeout_seconds: Optional[float] = None,
    ) -> None:
        if max_tool_iterations < 1:
            raise ValueError("max_tool_iterations must be >= 1")
        self.models = models
        self.registry = registry
        self.retriever = retriever
        self.system_prompt = system_prompt
        self.max_tool_iterations = max_tool_iterations
        self.query_timeout_seconds = query_timeout_seconds

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        store: VectorStore,
        models: Optional[Any] = None,
    ) -> "ChatOrchestrator":
        models = models or ModelRouter.from_settings(settings)
        retriever = Retriever(store, models, top_k=settings.knowledge.top_k)
        return cls(
            models=models,
            registry=build_registry(settings, retriever=retriever),
            retriever=retriever,
            system_prompt=settings.chat.system_prompt,
            max_tool_iterations=settings.chat.max_tool_iterations,
            query_timeout_seconds=settings.chat.query_timeout_seconds,
        )

    # ------------------------------------------------------------------ API
    def ask(self, query: str, *, use_tools: bool = True, ctx: Optional[QueryContext] = None) -> ChatOutcome:
        ctx = ctx or QueryContext.with_timeout(self.query_timeout_seconds)
        log = with_context(logger, LogContext(query_id=ctx.query_id))
        specs = self._specs() if use_tools else []
        messages, context_used = self._initial_messages(query, specs, ctx)

        state = LoopState.AWAITING_MODEL
        rounds = 0
        dispatched = 0
        while True:
            ctx.check()
            ctx.emit("model.requested", {"round": rounds, "messages": len(messages)})
            response = self.models.chat(messages, specs, ctx)

            if not specs or not response.tool_calls:
                state = self._advance(state, LoopState.FINAL_ANSWER, ctx)
                messages.append(Message(role=Role.ASSISTANT, content=response.content))
                state = self._advance(state, LoopState.TERMINATED, ctx)
                log.info("query answered after %d tool rounds", rounds)
                return ChatOutcome(
                    query_id=ctx.query_id,
                    answer=response.content,
                    reason=TerminationReason.FINAL_ANSWER,
                    iterations=rounds,
                    tool_calls=dispatched,
                    context_used=context_used,
                    messages=messages,
                )

            state = self._advance(state, LoopState.CAPABILITY_CALLS_REQUESTED, ctx)
            if rounds >= self.max_tool_iterations:
                state = self._advance(state, LoopState.TERMINATED, ctx)
                log.warning("query stopped: exceeded %d tool iterations", self.max_tool_iterations)
                return ChatOutcome(
                    query_id=ctx.query_id,
                    answer=MAX_ITERATIONS_ANSWER.format(limit=self.max_tool_iterations),
                    reason=TerminationReason.MAX_TOOL_ITERATIONS,
                    iterations=rounds,
                    tool_calls=dispatched,
                    context_used=context_used,
                    messages=messages,
                )

            messages.append(response.to_message())
            state = self._advance(state, LoopState.EXECUTING_CAPABILITIES, ctx)
            for call in response.tool_calls:
                ctx.check()
                result = self.registry.execute(call.name, call.arguments, ctx)
                if not result.ok:
                    log.info("tool %s failed: %s", call.name, result.as_text())
                messages.append(Message.tool(result.as_text(), tool_name=call.name))
                dispatched += 1
            rounds += 1
            state = self._advance(state, LoopState.AWAITING_MODEL, ctx)

    def stream_answer(self, query: str, *, ctx: Optional[QueryContext] = None) -> Iterator[str]:
        """
        Plain chat (no tools) delivered as text fragments. Closing the iterator
        early closes the backend stream.
        """
        ctx = ctx or QueryContext.with_timeout(self.query_timeout_seconds)
        messages, _ = self._initial_messages(query, [], ctx)
        fragments = self.models.stream_chat(messages, ctx)
        try:
            for fragment in fragments:
                yield fragment
        finally:
            close = getattr(fragments, "close", None)
            if close is not None:
                close()

    # ------------------------------------------------------------------ internals
    def _specs(self) -> List[ToolSpec]:
        if self.registry is None:
            return []
        return self.registry.list_available()

    def _initial_messages(self, query: str, specs: List[ToolSpec], ctx: QueryContext) -> Tuple[List[Message], bool]:
        system = self.system_prompt
        if specs:
            system = f"{system}\n\nYou have access to these tools: {', '.join(tool_names(specs))}"
        context = self.retriever.retrieve_context(query, ctx) if self.retriever is not None else ""
        ctx.emit("retrieval.completed", {"context_chars": len(context)})
        return [Message.system(system), Message.user(query + context)], bool(context)

    @staticmethod
    def _advance(current: LoopState, nxt: LoopState, ctx: QueryContext) -> LoopState:
        if not can_transition(current, nxt):
            raise RuntimeError(f"Illegal orchestrator transition {current.value} -> {nxt.value}")
        ctx.emit("state", {"from": current.value, "to": nxt.value})
        return nxt
