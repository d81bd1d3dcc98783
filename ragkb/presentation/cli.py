
import argparse
import asyncio
import json
import logging
import sys
from typing import Awaitable, Callable

from ragkb.config.settings import Settings, settings
from ragkb.container import Container, build_container
from ragkb.core.errors import RagError
from ragkb.core.models.chat import ChatHistory
from ragkb.core.models.document import Candidate
from ragkb.core.protocols.reranker import RerankerProtocol
from ragkb.core.services.chat_service import ChatService
from ragkb.core.services.rag_service import RagService

logger = logging.getLogger(__name__)


def _format_candidate(rank: int, c: Candidate) -> str:
    score = f"{c.rerank_score:.3f}" if c.rerank_score is not None else "-"
    preview = c.text[:120].replace("\n", " ")
    return f"{rank:>2}. [{c.filename}] rerank={score} distance={c.similarity_distance:.4f} {preview}"


async def cmd_ingest(container: Container, args: argparse.Namespace) -> int:
    """Ingest command - index documents under a path."""
    rag = container.resolve(RagService)
    result = await rag.add_documents(args.path)
    logger.info(
        f"Indexed {result.chunks_created} chunks from {result.documents_processed} "
        f"documents in {result.total_time_ms}ms"
    )
    return 0


async def cmd_query(container: Container, args: argparse.Namespace) -> int:
    """Query command - retrieve and rerank, print candidates."""
    rag = container.resolve(RagService)
    result = await rag.query(args.text, args.top_k)
    print(f"{result.document_count} documents (reranked={result.reranking_applied})")
    for i, c in enumerate(result.candidates, 1):
        print(_format_candidate(i, c))
    if args.show_prompt:
        print()
        print(result.enhanced_prompt)
    return 0


async def cmd_ask(container: Container, args: argparse.Namespace) -> int:
    """Ask command - stream a grounded answer."""
    chat = container.resolve(ChatService)
    if args.no_rag:
        chat.set_rag_enabled(False)
    history = ChatHistory(max_messages=settings.history_max_messages)
    async for token, result in chat.stream_reply(args.text, history):
        if result is not None:
            logger.info(f"Using {result.document_count} documents as context")
        print(token, end="", flush=True)
    print()
    return 0


async def cmd_clear(container: Container, args: argparse.Namespace) -> int:
    """Clear command - drop and recreate the collection."""
    if not args.yes:
        answer = input(f"Delete all vectors in '{settings.chroma_collection}'? [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            logger.info("Aborted")
            return 1
    await container.resolve(RagService).clear()
    return 0


async def cmd_stats(container: Container, args: argparse.Namespace) -> int:
    """Stats command - print knowledge base statistics."""
    stats = await container.resolve(RagService).get_stats()
    print(json.dumps(stats, indent=2, ensure_ascii=False))
    return 0


async def cmd_test_reranker(container: Container, args: argparse.Namespace) -> int:
    """Score a fixed probe set with the reranker."""
    ok = await container.resolve(RerankerProtocol).self_test()
    logger.info("Reranker self-test passed" if ok else "Reranker self-test failed")
    return 0 if ok else 1


COMMANDS: dict[str, Callable[[Container, argparse.Namespace], Awaitable[int]]] = {
    "ingest": cmd_ingest,
    "query": cmd_query,
    "ask": cmd_ask,
    "clear": cmd_clear,
    "stats": cmd_stats,
    "test-reranker": cmd_test_reranker,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ragkb", description="Local RAG knowledge base")
    sub = parser.add_subparsers(dest="command", required=True)

    ingest = sub.add_parser("ingest", help="index a file or directory")
    ingest.add_argument("path")

    query = sub.add_parser("query", help="retrieve and rerank documents")
    query.add_argument("text")
    query.add_argument("--top-k", type=int, default=None)
    query.add_argument("--show-prompt", action="store_true")

    ask = sub.add_parser("ask", help="answer a question from the knowledge base")
    ask.add_argument("text")
    ask.add_argument("--no-rag", action="store_true", help="answer without retrieval")

    clear = sub.add_parser("clear", help="delete every stored vector")
    clear.add_argument("-y", "--yes", action="store_true")

    sub.add_parser("stats", help="show knowledge base statistics")
    sub.add_parser("test-reranker", help="score a probe set with the reranker")
    return parser


async def run(args: argparse.Namespace, config: Settings = settings) -> int:
    container = build_container(config)
    try:
        return await COMMANDS[args.command](container, args)
    finally:
        await container.aclose()


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(message)s")

    try:
        code = asyncio.run(run(args))
    except RagError as e:
        logger.error(f"{args.command} failed: {e}")
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
