"""Storage layer for ddsearch."""

from ddsearch.storage.store import IndexBatch, IndexStore

__all__ = ["IndexBatch", "IndexStore"]
