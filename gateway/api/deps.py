# ==============================
# API Dependencies / Singletons
# ==============================
from __future__ import annotations

from functools import lru_cache

from nucleus.config.loader import load_settings
from nucleus.config.schema import Settings
from nucleus.knowledge.indexer import KnowledgeIndexer
from nucleus.knowledge.retriever import Retriever
from nucleus.knowledge.vector_store import InMemoryVectorStore
from nucleus.logging.logger import bootstrap_logger
from nucleus.models.router import ModelRouter
from nucleus.orchestrator.engine import ChatOrchestrator
from nucleus.tools.builtin.register import build_registry
from nucleus.tools.registry import ToolRegistry


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings, _ = load_settings()
    bootstrap_logger(settings)
    return settings


@lru_cache(maxsize=1)
def get_vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore.open(get_settings().storage_dir())


@lru_cache(maxsize=1)
def get_models() -> ModelRouter:
    return ModelRouter.from_settings(get_settings())


@lru_cache(maxsize=1)
def get_retriever() -> Retriever:
    settings = get_settings()
    return Retriever(get_vector_store(), get_models(), top_k=settings.knowledge.top_k)


@lru_cache(maxsize=1)
def get_indexer() -> KnowledgeIndexer:
    return KnowledgeIndexer(store=get_vector_store(), models=get_models(), config=get_settings().knowledge)


@lru_cache(maxsize=1)
def get_registry() -> ToolRegistry:
    return build_registry(get_settings(), retriever=get_retriever())


@lru_cache(maxsize=1)
def get_orchestrator() -> ChatOrchestrator:
    settings = get_settings()
    return ChatOrchestrator(
        models=get_models(),
        registry=get_registry(),
        retriever=get_retriever(),
        system_prompt=settings.chat.system_prompt,
        max_tool_iterations=settings.chat.max_tool_iterations,
        query_timeout_seconds=settings.chat.query_timeout_seconds,
    )


def reset_caches() -> None:
    for dep in (
        get_orchestrator,
        get_registry,
        get_indexer,
        get_retriever,
        get_models,
        get_vector_store,
        get_settings,
    ):
        dep.cache_clear()
