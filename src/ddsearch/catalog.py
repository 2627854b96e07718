"""Collection management: named directories plus a glob mask."""

import logging
import sqlite3
from pathlib import Path
from typing import Optional

from ddsearch.errors import (
    CollectionExistsError,
    CollectionNotFoundError,
    InvalidCollectionPathError,
)
from ddsearch.models import Collection, CollectionStats
from ddsearch.storage import IndexStore

logger = logging.getLogger(__name__)

DEFAULT_GLOB_MASK = "**/*.md"


def add_collection(
    store: IndexStore, name: str, base_path: Path | str, glob_mask: str = DEFAULT_GLOB_MASK
) -> Collection:
    """Register a new collection.

    Args:
        store: Open index store
        name: Unique collection name
        base_path: Directory the glob mask is evaluated against
        glob_mask: Pattern selecting the collection's files

    Raises:
        InvalidCollectionPathError: If base_path is missing or not a directory
        CollectionExistsError: If the name is already taken
    """
    absolute = Path(base_path).expanduser().resolve()
    if not absolute.exists():
        raise InvalidCollectionPathError(f"Base path does not exist: {absolute}")
    if not absolute.is_dir():
        raise InvalidCollectionPathError(f"Base path is not a directory: {absolute}")

    try:
        collection = store.add_collection(name, str(absolute), glob_mask)
    except sqlite3.IntegrityError as e:
        if "UNIQUE" in str(e):
            raise CollectionExistsError(f'Collection "{name}" already exists') from e
        raise
    logger.info(f"Added collection {name} ({absolute}, {glob_mask})")
    return collection


def remove_collection(store: IndexStore, name: str) -> None:
    """Remove a collection and all of its documents, chunks and embeddings."""
    if not store.remove_collection(name):
        raise CollectionNotFoundError(f'Collection "{name}" not found')
    logger.info(f"Removed collection {name}")


def list_collections(store: IndexStore) -> list[CollectionStats]:
    return store.list_collection_stats()


def get_collections(store: IndexStore, name_filter: Optional[str] = None) -> list[Collection]:
    """Return every collection, or only the one matching ``name_filter``.

    Raises:
        CollectionNotFoundError: If a filter is given and matches nothing
    """
    collections = store.get_collections(name_filter)
    if name_filter is not None and not collections:
        raise CollectionNotFoundError(f'Collection "{name_filter}" not found')
    return collections


def resolve_file_in_collections(
    store: IndexStore, file_path: Path | str
) -> Optional[tuple[Collection, Path]]:
    """Resolve a path and return the collection containing it, if any.

    Symlinks are resolved on both sides, so a link pointing outside every
    collection is rejected.
    """
    path = Path(file_path).expanduser()
    if not path.exists():
        return None
    resolved = path.resolve()

    for collection in store.get_collections():
        base = Path(collection.base_path).resolve()
        if resolved == base or resolved.is_relative_to(base):
            return collection, resolved
    return None
