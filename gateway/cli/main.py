# ==============================
# CLI Entrypoint
# ==============================
"""
CLI for nucleus.

Supported commands:
  nucleus chat "how is the indexer tested?"
  nucleus chat --stream "explain cosine similarity"
  nucleus chat --no-tools --timeout 30 "hello"
  nucleus index ./src ./docs
  nucleus add "Deploys happen on Fridays" --source notes
  nucleus stats
  nucleus clear
  nucleus tools

Every command prints JSON (except streamed chat, which prints text as it
arrives) and exits 0 on success, 1 on failure.
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import dataclass
from typing import Any, List, Optional

from nucleus.config.loader import load_settings
from nucleus.config.schema import Settings
from nucleus.contracts.errors import NucleusError
from nucleus.knowledge.indexer import KnowledgeIndexer
from nucleus.knowledge.vector_store import InMemoryVectorStore
from nucleus.logging.logger import bootstrap_logger
from nucleus.models.router import ModelRouter
from nucleus.orchestrator.context import QueryContext
from nucleus.orchestrator.engine import ChatOrchestrator


@dataclass
class Components:
    store: InMemoryVectorStore
    indexer: KnowledgeIndexer
    orchestrator: ChatOrchestrator


def build_components(settings: Settings, *, models: Optional[Any] = None) -> Components:
    store = InMemoryVectorStore.open(settings.storage_dir())
    models = models or ModelRouter.from_settings(settings)
    return Components(
        store=store,
        indexer=KnowledgeIndexer(store=store, models=models, config=settings.knowledge),
        orchestrator=ChatOrchestrator.from_settings(settings, store=store, models=models),
    )


def _print_json(obj: Any) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False, default=str))


def _print_error(err: NucleusError) -> int:
    _print_json({"ok": False, "error": err.to_dict()})
    return 1


def cmd_chat(
    orchestrator: ChatOrchestrator,
    *,
    message: str,
    use_tools: bool = True,
    stream: bool = False,
    timeout: Optional[float] = None,
) -> int:
    ctx = QueryContext.with_timeout(timeout or orchestrator.query_timeout_seconds)
    try:
        if stream:
            for fragment in orchestrator.stream_answer(message, ctx=ctx):
                sys.stdout.write(fragment)
                sys.stdout.flush()
            sys.stdout.write("\n")
            return 0
        outcome = orchestrator.ask(message, use_tools=use_tools, ctx=ctx)
    except NucleusError as e:
        return _print_error(e)
    _print_json(outcome.summary())
    return 0 if outcome.ok else 1


def cmd_index(indexer: KnowledgeIndexer, *, paths: List[str]) -> int:
    try:
        result = indexer.index_directories(paths)
    except NucleusError as e:
        return _print_error(e)
    _print_json(result.model_dump())
    return 0 if result.ok else 1


def cmd_add(indexer: KnowledgeIndexer, *, text: str, source: str = "direct") -> int:
    if not text.strip():
        raise SystemExit("Knowledge text must not be empty.")
    try:
        doc = indexer.add_knowledge(text, source=source)
    except NucleusError as e:
        return _print_error(e)
    _print_json({"id": doc.id, "source": doc.source})
    return 0


def cmd_stats(store: InMemoryVectorStore) -> int:
    _print_json(store.stats().model_dump())
    return 0


def cmd_clear(store: InMemoryVectorStore) -> int:
    try:
        removed = store.clear_and_save()
    except NucleusError as e:
        return _print_error(e)
    _print_json({"removed": removed})
    return 0


def cmd_tools(orchestrator: ChatOrchestrator) -> int:
    registry = orchestrator.registry
    tools = [spec.to_dict() for spec in registry.list_available()] if registry is not None else []
    granted = registry.granted.label if registry is not None else "none"
    _print_json({"granted": granted, "tools": tools})
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(prog="nucleus")
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_chat = sub.add_parser("chat")
    ap_chat.add_argument("message")
    ap_chat.add_argument("--stream", action="store_true", help="Print the answer as it is generated (no tools)")
    ap_chat.add_argument("--no-tools", action="store_true", help="Plain chat without capabilities")
    ap_chat.add_argument("--timeout", type=float, default=None, help="Query deadline in seconds")

    ap_index = sub.add_parser("index")
    ap_index.add_argument("paths", nargs="+")

    ap_add = sub.add_parser("add")
    ap_add.add_argument("text")
    ap_add.add_argument("--source", default="direct")

    sub.add_parser("stats")
    sub.add_parser("clear")
    sub.add_parser("tools")

    args = ap.parse_args(argv)

    try:
        settings, _ = load_settings()
    except ValueError as e:
        raise SystemExit(str(e)) from e
    bootstrap_logger(settings)
    try:
        comp = build_components(settings)
    except NucleusError as e:
        return _print_error(e)

    if args.cmd == "chat":
        return cmd_chat(
            comp.orchestrator,
            message=args.message,
            use_tools=not args.no_tools,
            stream=args.stream,
            timeout=args.timeout,
        )
    if args.cmd == "index":
        return cmd_index(comp.indexer, paths=args.paths)
    if args.cmd == "add":
        return cmd_add(comp.indexer, text=args.text, source=args.source)
    if args.cmd == "stats":
        return cmd_stats(comp.store)
    if args.cmd == "clear":
        return cmd_clear(comp.store)
    if args.cmd == "tools":
        return cmd_tools(comp.orchestrator)

    raise SystemExit("Unknown command")


if __name__ == "__main__":
    raise SystemExit(main())
