"""Operator CLI for indexing documents and inspecting retrieval."""
from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict

from domain.errors import RetrievalError
from infrastructure.config import ContainerConfig, build_retrieval_service
from ui.logging_utils import setup_logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--log-level", default=None, help="Overrides EDUAI_LOG_LEVEL.")
    commands = parser.add_subparsers(dest="command", required=True)

    ingest = commands.add_parser("ingest", help="Index a .pdf, .docx, .txt, .md or .html file.")
    ingest.add_argument("path")
    ingest.add_argument("--name", default=None, help="Source name (defaults to the file name).")
    ingest.add_argument("--subject", default=None)
    ingest.add_argument("--grade", type=int, default=None)

    search = commands.add_parser("search", help="Show ranked chunks for a query.")
    search.add_argument("query")
    search.add_argument("--subject", default=None)
    search.add_argument("--limit", type=int, default=None)

    context = commands.add_parser("context", help="Show the context block a chat answer would get.")
    context.add_argument("query")
    context.add_argument("--subject", default=None)

    delete = commands.add_parser("delete", help="Remove every chunk of a source.")
    delete.add_argument("name")

    commands.add_parser("stats", help="Print chunk count and subjects.")
    commands.add_parser("health", help="Check the embedding runtime and vector store.")
    commands.add_parser("pull", help="Make sure the embedding model is available locally.")
    return parser.parse_args(argv)


def _print(payload: object) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)
    config = ContainerConfig.from_env()

    with build_retrieval_service(config) as service:
        try:
            if args.command == "ingest":
                document = service.ingest_file(
                    args.path,
                    source_name=args.name,
                    subject=args.subject,
                    grade=args.grade,
                )
                _print(asdict(document))
            elif args.command == "search":
                results = service.search(args.query, subject=args.subject, limit=args.limit)
                _print(
                    [
                        {
                            "source_name": result.source_name,
                            "subject": result.metadata.get("subject"),
                            "chunk_index": result.metadata.get("chunk_index"),
                            "relevance_score": round(result.relevance_score * 100),
                            "content": result.content[:200] + ("..." if len(result.content) > 200 else ""),
                        }
                        for result in results
                    ]
                )
            elif args.command == "context":
                _print(asdict(service.build_chat_context(args.query, subject=args.subject)))
            elif args.command == "delete":
                _print({"source_name": args.name, "deleted_chunks": service.delete_source(args.name)})
            elif args.command == "stats":
                _print(asdict(service.stats()))
            elif args.command == "health":
                _print(service.health())
            elif args.command == "pull":
                _print({"model": service.ensure_embedding_model(), "status": "ready"})
        except RetrievalError as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
