# =============================================================================
# src/cli/ingest.py: CLI for document ingestion and graph inspection
# =============================================================================
#
# Standalone CLI that runs the same pipeline as the web API, without the
# HTTP layer.  Components are assembled by src.main.build_components, so
# configuration is identical to the server's (.env + config/config.yaml).
#
# Supported subcommands:
#
#   file: Ingest one or more files for a user
#   directory: Ingest every supported file in a directory
#   extract: Extract and clean text only (no LLM, no index)
#   status: Show a document's stored status
#   list: List a user's documents
#   delete: Delete a document and all of its artifacts
#   graph: Print a document graph or a user's merged graph
#   search: Semantic search over a user's indexed chunks
#
# Usage examples:
#   python -m src.cli.ingest file --user u1 report.pdf notes.md
#   python -m src.cli.ingest extract scanned.pdf --show 500
#   python -m src.cli.ingest graph --user u1
#   python -m src.cli.ingest search --user u1 "radioactivity in medicine"
# =============================================================================

"""Command-line entry point for MemoryGraph ingestion."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from src.config.loader import load_config
from src.config.settings import Settings
from src.utils.errors import MemoryGraphError
from src.utils.logging import configure_logging

# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def _handle_files(paths: list[Path], user_id: str, components: dict[str, Any]) -> int:
    processor = components["document_processor"]
    files = [(path.read_bytes(), path.name) for path in paths]

    print(f"Ingesting {len(files)} file(s) for user {user_id}")
    batch = await processor.process_documents(
        files,
        user_id,
        progress_callback=lambda report: print(
            f"  [{report['current']}/{report['total']}] {report['filename']}: {report['status']}"
        ),
    )

    print("\nIngestion complete:")
    print(f"  Successful: {batch.successful}")
    print(f"  Failed:     {batch.failed}")
    for result in batch.results:
        if result.success:
            print(
                f"  {result.filename}: {result.num_chunks} chunks, "
                f"{result.num_nodes} nodes, {result.num_edges} edges "
                f"(id {result.document_id})"
            )
        else:
            print(f"  {result.filename}: FAILED: {result.error}")
    return 0 if batch.failed == 0 else 1


async def _handle_directory(args: argparse.Namespace, components: dict[str, Any]) -> int:
    root = Path(args.path)
    if not root.is_dir():
        print(f"Error: not a directory: {root}", file=sys.stderr)
        return 1

    parser = components["file_parser"]
    pattern = "**/*" if args.recursive else "*"
    paths = sorted(
        p for p in root.glob(pattern)
        if p.is_file() and parser.is_supported(p.suffix.lower())
    )
    if not paths:
        print(f"No supported files in {root}")
        return 0
    return await _handle_files(paths, args.user, components)


async def _handle_extract(args: argparse.Namespace, file_parser: Any) -> int:
    path = Path(args.file)
    result = await file_parser.extract(path.read_bytes(), path.name)

    print(f"File:    {path.name}")
    print(f"Result:  {result.kind}")
    print(f"Method:  {result.metadata.get('method', 'unknown')}")
    print(f"Quality: {result.metadata.get('quality', 'unknown')}")
    print(f"Chars:   {len(result.text)}")
    if result.warning:
        print(f"Warning: {result.warning}")
    if result.error:
        print(f"Error:   {result.error}")
    if args.show and result.text:
        print()
        print(result.text[: args.show])
    return 0 if result.success else 1


async def _handle_status(args: argparse.Namespace, components: dict[str, Any]) -> int:
    document = await components["document_processor"].get_processing_status(args.document_id)
    print(json.dumps(document.model_dump(mode="json"), indent=2))
    return 0


async def _handle_list(args: argparse.Namespace, components: dict[str, Any]) -> int:
    documents = await components["document_store"].list_documents(args.user)
    if not documents:
        print(f"No documents for user {args.user}")
        return 0
    for doc in documents:
        print(
            f"{doc.id}  {doc.status.value:<10} {doc.num_chunks:>5} chunks  "
            f"{doc.num_nodes:>4} nodes  {doc.filename}"
        )
    return 0


async def _handle_delete(args: argparse.Namespace, components: dict[str, Any]) -> int:
    if not args.yes:
        answer = input(f"Delete document {args.document_id}? [y/N] ")
        if answer.strip().lower() != "y":
            print("Aborted.")
            return 1
    await components["document_processor"].delete_document(args.document_id, args.user)
    print(f"Deleted document {args.document_id}")
    return 0


async def _handle_graph(args: argparse.Namespace, components: dict[str, Any]) -> int:
    graph_builder = components["graph_builder"]
    if args.document_id:
        graph = await graph_builder.get_document_graph(args.document_id)
    else:
        graph = await graph_builder.get_user_graph(args.user)

    if args.json:
        print(json.dumps(graph.model_dump(mode="json"), indent=2))
        return 0 if graph.error is None else 1

    print(f"Nodes: {len(graph.nodes)}   Edges: {len(graph.edges)}")
    by_id = {node.id: node for node in graph.nodes}
    for node in sorted(graph.nodes, key=lambda n: n.relevance, reverse=True)[: args.top]:
        print(f"  {node.name:<40} {node.type.value:<13} relevance {node.relevance:.1f}")
    for edge in sorted(graph.edges, key=lambda e: e.weight, reverse=True)[: args.top]:
        source = by_id.get(edge.source)
        target = by_id.get(edge.target)
        if source and target:
            print(f"  {source.name} -[{edge.relationship}, {edge.weight:g}]-> {target.name}")
    if graph.error:
        print(f"Error: {graph.error}", file=sys.stderr)
        return 1
    return 0


async def _handle_search(args: argparse.Namespace, components: dict[str, Any]) -> int:
    result = await components["search_service"].search_documents(
        args.query,
        args.user,
        top_k=args.top_k,
        document_id=args.document_id,
        min_score=args.min_score,
    )

    if args.json:
        print(json.dumps(result.model_dump(mode="json"), indent=2))
        return 0

    if not result.documents:
        print(f"No matches for: {result.query}")
        return 0

    print(f"{result.total_hits} hit(s) in {len(result.documents)} document(s)")
    for group in result.documents:
        print(f"\n{group.filename}  (id {group.document_id}, best {group.best_similarity:.3f})")
        for hit in group.chunks:
            preview = hit.chunk.content[: args.preview].replace("\n", " ")
            print(f"  [{hit.similarity:.3f}] #{hit.chunk.chunk_index}: {preview}")
    return 0


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the ingestion CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m src.cli.ingest",
        description="Ingest documents into MemoryGraph and inspect the results.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # -- file --
    file_parser = subparsers.add_parser("file", help="Ingest one or more files")
    file_parser.add_argument("files", nargs="+", help="Paths to the files")
    file_parser.add_argument("--user", required=True, help="Owner user id")

    # -- directory --
    dir_parser = subparsers.add_parser("directory", help="Ingest all supported files in a directory")
    dir_parser.add_argument("--path", required=True, help="Directory path")
    dir_parser.add_argument("--user", required=True, help="Owner user id")
    dir_parser.add_argument("--recursive", "-r", action="store_true", help="Include subdirectories")

    # -- extract --
    extract_parser = subparsers.add_parser("extract", help="Extract text only (no LLM, no index)")
    extract_parser.add_argument("file", help="Path to the file")
    extract_parser.add_argument(
        "--show", type=int, default=0, help="Print the first N characters of the text",
    )

    # -- status --
    status_parser = subparsers.add_parser("status", help="Show a document's status")
    status_parser.add_argument("document_id", help="Document id")

    # -- list --
    list_parser = subparsers.add_parser("list", help="List a user's documents")
    list_parser.add_argument("--user", required=True, help="Owner user id")

    # -- delete --
    delete_parser = subparsers.add_parser("delete", help="Delete a document")
    delete_parser.add_argument("document_id", help="Document id")
    delete_parser.add_argument("--user", required=True, help="Owner user id")
    delete_parser.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompt")

    # -- graph --
    graph_parser = subparsers.add_parser("graph", help="Print a knowledge graph")
    target = graph_parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--document-id", dest="document_id", help="One document's graph")
    target.add_argument("--user", help="Merged graph of all of a user's documents")
    graph_parser.add_argument("--top", type=int, default=20, help="Rows to print (default: 20)")
    graph_parser.add_argument("--json", action="store_true", help="Print the full graph as JSON")

    # -- search --
    search_parser = subparsers.add_parser("search", help="Semantic search over a user's documents")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument("--user", required=True, help="Owner user id")
    search_parser.add_argument("--top-k", dest="top_k", type=int, default=None, help="Maximum hits")
    search_parser.add_argument("--document-id", dest="document_id", help="Search one document only")
    search_parser.add_argument(
        "--min-score", dest="min_score", type=float, default=0.0, help="Minimum similarity (0-1)",
    )
    search_parser.add_argument(
        "--preview", type=int, default=120, help="Characters of each chunk to print (default: 120)",
    )
    search_parser.add_argument("--json", action="store_true", help="Print the full result as JSON")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    # Deferred so --help does not pay for FastAPI and ChromaDB imports.
    from src.main import build_components, build_file_parser, initialize_components

    config = load_config(settings=app_settings)

    # Extraction alone needs no API keys or databases.
    if args.command == "extract":
        return await _handle_extract(args, build_file_parser(app_settings, config))

    components = build_components(app_settings, config)
    await initialize_components(components)

    if args.command == "file":
        return await _handle_files([Path(f) for f in args.files], args.user, components)
    if args.command == "directory":
        return await _handle_directory(args, components)
    if args.command == "status":
        return await _handle_status(args, components)
    if args.command == "list":
        return await _handle_list(args, components)
    if args.command == "delete":
        return await _handle_delete(args, components)
    if args.command == "graph":
        return await _handle_graph(args, components)
    if args.command == "search":
        return await _handle_search(args, components)
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point: parse arguments, run the command, exit with its code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()
    configure_logging(log_level=app_settings.log_level, json_output=False)

    try:
        exit_code = asyncio.run(_run(args, app_settings))
    except MemoryGraphError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
