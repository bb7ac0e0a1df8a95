# ==============================
# Knowledge Search Tool
# ==============================
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from nucleus.contracts.errors import RetrievalFailed
from nucleus.contracts.tool_schema import Permission
from nucleus.knowledge.retriever import Retriever
from nucleus.orchestrator.context import QueryContext
from nucleus.tools.base import BaseTool, ToolExecutionError


class SearchKnowledgeParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    query: str = Field(..., min_length=1, description="What to look for")
    top_k: Optional[int] = Field(default=None, ge=1, le=50, description="Number of results")


class SearchKnowledgeTool(BaseTool):
    name = "search_knowledge"
    description = "Search the local knowledge base for passages relevant to a query."
    params_model = SearchKnowledgeParams
    required_permission = Permission.READ

    def __init__(self, retriever: Retriever) -> None:
        super().__init__()
        self.retriever = retriever

    def run(self, params: SearchKnowledgeParams, ctx: QueryContext) -> str:
        try:
            results = self.retriever.search(params.query, top_k=params.top_k, ctx=ctx)
        except RetrievalFailed as e:
            raise ToolExecutionError(e.message) from e
        if not results:
            return "No matching knowledge found."
        out = []
        for i, r in enumerate(results, start=1):
            out.append(f"[{i}] {r.document.source} (score {r.score:.3f})\n{r.document.content}")
        return "\n\n".join(out)
