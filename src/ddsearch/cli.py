"""CLI entry point for ddsearch."""

import argparse
import json
import logging
import sqlite3
import sys
from pathlib import Path
from typing import Optional

from ddsearch.catalog import (
    DEFAULT_GLOB_MASK,
    add_collection,
    list_collections,
    remove_collection,
    resolve_file_in_collections,
)
from ddsearch.chunkers import MarkdownChunker
from ddsearch.config import Settings
from ddsearch.embedders import create_embedder
from ddsearch.errors import DDSearchError
from ddsearch.indexer import embed_pending, reindex
from ddsearch.search import MODES, MODE_ALIASES, clamp_limit, search, unique_files
from ddsearch.storage import IndexStore

logger = logging.getLogger(__name__)

RULE = "━" * 40


def collection_add(store: IndexStore, path: str, name: str, mask: str) -> None:
    collection = add_collection(store, name, path, mask)
    print(f'✓ Collection "{collection.name}" added')
    print(f"  Path: {collection.base_path}")
    print(f"  Mask: {collection.glob_mask}")


def collection_remove(store: IndexStore, name: str) -> None:
    remove_collection(store, name)
    print(f'✓ Collection "{name}" removed')


def collection_list(store: IndexStore) -> None:
    collections = list_collections(store)
    if not collections:
        print("No collections found")
        return

    print("\nCollections:\n")
    for col in collections:
        print(col.name)
        print(f"  Path: {col.base_path}")
        print(f"  Mask: {col.glob_mask}")
        print(
            f"  Files: {col.file_count}, Chunks: {col.chunk_count}, "
            f"Embedded: {col.embedded_count}"
        )
        print("")


def index(store: IndexStore, settings: Settings, collection: Optional[str], full: bool) -> None:
    """Reindex collections (incremental unless ``full``)."""
    logger.info("Indexing collections...")
    chunker = MarkdownChunker(
        target_tokens=settings.chunk_target_tokens,
        min_tokens=settings.chunk_min_tokens,
    )
    report = reindex(store, collection, full=full, chunker=chunker)

    print("\n✓ Indexing complete")
    print(f"  Total files: {report.matched}")
    print(f"  Indexed: {report.indexed}")
    print(f"  Skipped (unchanged): {report.skipped}")
    print(f"  Removed (deleted files): {report.removed}")
    print(f"  Total chunks: {report.chunks}\n")

    for col in report.collections:
        print(
            f"  {col.name}: {col.indexed} indexed, {col.skipped} skipped, "
            f"{col.removed} removed, {col.chunks} chunks"
        )


def embed(store: IndexStore, settings: Settings, batch_size: Optional[int]) -> None:
    """Generate embeddings for every chunk that lacks one."""
    embedder = create_embedder(settings)
    logger.info(f"Generating embeddings with {embedder.model_name}...")
    total = embed_pending(
        store,
        embedder,
        batch_size=batch_size or settings.embed_batch_size,
        pacing_seconds=settings.embed_pacing_seconds,
    )
    print(f"\n✓ Embedding complete: {total} total embeddings")


def run_search(
    store: IndexStore,
    settings: Settings,
    query: str,
    mode: str,
    limit: str,
    min_score: str,
    collection: Optional[str],
    as_json: bool,
    files_only: bool,
) -> None:
    safe_limit = clamp_limit(limit)
    try:
        safe_min_score = max(0.0, float(min_score))
    except ValueError:
        safe_min_score = 0.0

    embedder = None if mode in ("lexical", "bm25") else create_embedder(settings)
    results = search(
        store,
        embedder,
        query,
        mode=mode,
        limit=safe_limit,
        min_score=safe_min_score,
        collection=collection,
        lexical_weight=settings.lexical_weight,
        vector_weight=settings.vector_weight,
    )

    if as_json:
        payload = {
            "query": query,
            "mode": mode,
            "count": len(results),
            "results": [r.to_dict() for r in results],
        }
        print(json.dumps(payload, indent=2))
        return

    if files_only:
        files = unique_files(results)
        print(f"\nFound {len(files)} matching files:\n")
        for f in files:
            print(f"{f['path']} (score: {f['score']:.3f})")
        return

    print(f'\nSearch: "{query}" (mode: {mode})')
    print(f"Found {len(results)} results:\n")
    for r in results:
        print(RULE)
        print(f"Score: {r.score:.3f} | {r.file_path}:{r.start_line}-{r.end_line}")
        print(f"Collection: {r.collection}")
        print("")
        snippet = r.text[:200].replace("\n", " ")
        print(snippet + ("..." if len(r.text) > 200 else ""))
        print("")


def get(store: IndexStore, path: str) -> None:
    """Print a file's content if it lies inside a collection."""
    resolved = resolve_file_in_collections(store, path)
    if resolved is None:
        logger.error("✗ File is not within any collection")
        sys.exit(1)
    _, file_path = resolved
    print(file_path.read_text(encoding="utf-8", errors="replace"))


def stats(store: IndexStore) -> None:
    totals = store.totals()
    collections = list_collections(store)

    print("\nIndex Statistics:\n")
    print(f"Collections: {totals['collections']}")
    print(f"Total files: {totals['files']}")
    print(f"Total chunks: {totals['chunks']}")
    print(f"Total embeddings: {totals['embeddings']}")
    print("")

    if collections:
        print("By Collection:\n")
        for col in collections:
            print(
                f"  {col.name}: {col.file_count} files, {col.chunk_count} chunks, "
                f"{col.embedded_count} embedded"
            )


def serve(store: IndexStore, settings: Settings, transport: str) -> None:
    """Start the MCP server over the open store."""
    # Import here to avoid loading MCP unless needed
    from typing import Literal, cast

    from ddsearch.server import create_mcp_server

    embedder = create_embedder(settings)
    mcp = create_mcp_server(store, embedder, settings)
    logger.info(f"ddsearch server ({transport}) on {settings.host}:{settings.port}")
    mcp.run(transport=cast(Literal["stdio", "sse", "streamable-http"], transport))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ddsearch",
        description="Local-first document search with BM25 + vector semantic search",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # collection command group
    collection_parser = subparsers.add_parser("collection", help="Manage collections")
    collection_sub = collection_parser.add_subparsers(dest="collection_command", required=True)

    add_parser = collection_sub.add_parser("add", help="Add a new collection")
    add_parser.add_argument("path", help="Root directory of the collection")
    add_parser.add_argument("-n", "--name", required=True, help="Collection name")
    add_parser.add_argument(
        "-m",
        "--mask",
        default=DEFAULT_GLOB_MASK,
        help=f"Glob mask for files (default: {DEFAULT_GLOB_MASK})",
    )

    remove_parser = collection_sub.add_parser("remove", help="Remove a collection")
    remove_parser.add_argument("name", help="Collection name")

    collection_sub.add_parser("list", help="List all collections")

    # index command
    index_parser = subparsers.add_parser(
        "index",
        help="Index collections (incremental by default)",
    )
    index_parser.add_argument("-f", "--full", action="store_true", help="Force full re-index")
    index_parser.add_argument("-c", "--collection", help="Index specific collection")

    # embed command
    embed_parser = subparsers.add_parser(
        "embed",
        help="Generate embeddings for indexed chunks",
    )
    embed_parser.add_argument(
        "-b",
        "--batch-size",
        type=int,
        default=None,
        help="Batch size for embedding generation (default: 100)",
    )

    # search command
    search_parser = subparsers.add_parser("search", help="Search indexed content")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument(
        "-m",
        "--mode",
        choices=[*MODES, *MODE_ALIASES],
        default="hybrid",
        help="Search mode (default: hybrid)",
    )
    search_parser.add_argument("-l", "--limit", default="10", help="Maximum results (1-100)")
    search_parser.add_argument(
        "-s", "--min-score", default="0", help="Minimum score threshold"
    )
    search_parser.add_argument("-c", "--collection", help="Filter by collection")
    search_parser.add_argument("-j", "--json", action="store_true", help="Output as JSON")
    search_parser.add_argument(
        "-f", "--files", action="store_true", help="Show unique files only"
    )

    # get command
    get_parser = subparsers.add_parser(
        "get",
        help="Retrieve full file content (must be inside a collection)",
    )
    get_parser.add_argument("path", help="File path")

    # stats command
    subparsers.add_parser("stats", help="Show index statistics")

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Start MCP server")
    serve_parser.add_argument(
        "--transport",
        choices=["stdio", "sse", "streamable-http"],
        default="stdio",
        help="Transport protocol (default: stdio)",
    )
    serve_parser.add_argument("-H", "--host", help="Bind host (default: 127.0.0.1)")
    serve_parser.add_argument("-p", "--port", type=int, help="Server port (default: 3077)")

    return parser


def dispatch(args: argparse.Namespace, store: IndexStore, settings: Settings) -> None:
    if args.command == "collection":
        if args.collection_command == "add":
            collection_add(store, args.path, args.name, args.mask)
        elif args.collection_command == "remove":
            collection_remove(store, args.name)
        elif args.collection_command == "list":
            collection_list(store)
    elif args.command == "index":
        index(store, settings, args.collection, args.full)
    elif args.command == "embed":
        embed(store, settings, args.batch_size)
    elif args.command == "search":
        run_search(
            store,
            settings,
            args.query,
            args.mode,
            args.limit,
            args.min_score,
            args.collection,
            args.json,
            args.files,
        )
    elif args.command == "get":
        get(store, args.path)
    elif args.command == "stats":
        stats(store)
    elif args.command == "serve":
        serve(store, settings, args.transport)


def main(argv: Optional[list[str]] = None) -> None:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    overrides = {}
    if getattr(args, "host", None):
        overrides["host"] = args.host
    if getattr(args, "port", None):
        overrides["port"] = args.port

    try:
        settings = Settings.load(**overrides)
    except DDSearchError as e:
        print(f"✗ Error: {e}", file=sys.stderr)
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(message)s",
    )

    store = IndexStore.from_settings(settings)
    try:
        store.open()
        dispatch(args, store, settings)
    except (DDSearchError, sqlite3.Error, OSError) as e:
        logger.error(f"✗ Error: {e}")
        sys.exit(1)
    finally:
        store.close()


if __name__ == "__main__":
    main()
