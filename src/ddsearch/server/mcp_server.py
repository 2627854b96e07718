"""FastMCP server implementation for ddsearch."""

import logging
from functools import partial
from typing import Optional

from anyio import to_thread
from mcp.server.fastmcp import FastMCP

from ddsearch.catalog import list_collections, resolve_file_in_collections
from ddsearch.config import Settings
from ddsearch.errors import ConfigurationError
from ddsearch.protocols import EmbeddingProvider
from ddsearch.search import clamp_limit, search as run_search
from ddsearch.storage import IndexStore

logger = logging.getLogger(__name__)

SNIPPET_CHARS = 200


def format_results(results) -> str:
    lines = []
    for i, r in enumerate(results, 1):
        # Truncate long text snippets
        text = r.text[:SNIPPET_CHARS].replace("\n", " ")
        if len(r.text) > SNIPPET_CHARS:
            text += "..."

        lines.append(f"{i}. [{r.score:.3f}] {r.file_path}:{r.start_line}-{r.end_line} ({r.collection})")
        lines.append(f"   {text}")
        lines.append("")
    return "\n".join(lines)


def create_mcp_server(
    store: IndexStore,
    embedder: Optional[EmbeddingProvider],
    settings: Settings,
) -> FastMCP:
    """Create an MCP server over an open index store.

    Tools are async and push store and embedder work onto worker threads,
    so concurrent searches do not queue behind each other or behind a
    reindex running in another process. Each worker opens its own SQLite
    connection (WAL readers).

    Args:
        store: Open index store, owned by the caller
        embedder: Provider for query vectors, or None for keyword-only serving
        settings: Loaded settings (host, port, hybrid weights)

    Returns:
        Configured FastMCP server instance
    """
    mcp = FastMCP(name="ddsearch", host=settings.host, port=settings.port)

    @mcp.tool()
    async def search(
        query: str,
        mode: str = "hybrid",
        limit: int = 10,
        min_score: float = 0.0,
        collection: Optional[str] = None,
    ) -> str:
        """Search the indexed documents.

        Args:
            query: Keywords or a natural-language description
            mode: "lexical" (keyword, alias "bm25"), "vector" (semantic) or "hybrid" (both)
            limit: Maximum number of results, 1-100 (default: 10)
            min_score: Drop results scoring below this (0-1)
            collection: Only search this collection

        Returns:
            Ranked list of matching chunks with file path and line range
        """
        if not query or not query.strip():
            return "Error: Query is required"

        call = partial(
            run_search,
            store,
            embedder,
            query,
            mode=mode,
            limit=clamp_limit(limit),
            min_score=max(0.0, float(min_score or 0)),
            collection=collection,
            lexical_weight=settings.lexical_weight,
            vector_weight=settings.vector_weight,
        )
        try:
            results = await to_thread.run_sync(call)
        except ConfigurationError as e:
            return f"Error: {e}"

        if not results:
            return f"No results found for: {query}"
        return format_results(results)

    @mcp.tool()
    async def read(path: str) -> str:
        """Read a file that belongs to one of the collections.

        Args:
            path: Full path to the file (as shown in search results)

        Returns:
            File content
        """
        resolved = await to_thread.run_sync(resolve_file_in_collections, store, path)
        if resolved is None:
            return f"Error: File is not within any collection: {path}"
        _, file_path = resolved
        return await to_thread.run_sync(
            partial(file_path.read_text, encoding="utf-8", errors="replace")
        )

    @mcp.tool()
    async def stats() -> str:
        """Show index statistics per collection.

        Returns:
            Totals plus file, chunk and embedding counts for each collection
        """
        totals = await to_thread.run_sync(store.totals)
        collections = await to_thread.run_sync(list_collections, store)

        lines = [
            f"Collections: {totals['collections']}",
            f"Files: {totals['files']}",
            f"Chunks: {totals['chunks']}",
            f"Embeddings: {totals['embeddings']}",
        ]
        for col in collections:
            lines.append(
                f"  {col.name}: {col.file_count} files, {col.chunk_count} chunks, "
                f"{col.embedded_count} embedded"
            )
        return "\n".join(lines)

    return mcp
