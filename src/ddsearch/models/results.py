"""Result types returned by indexing and search."""

from dataclasses import asdict, dataclass, field


@dataclass
class SearchResult:
    """One ranked chunk.

    ``score`` is always normalised to [0, 1]. ``raw_scores`` carries the
    mode-specific signal(s) the score was derived from:

    - lexical: ``{"bm25": <raw bm25, more negative is better>}``
    - vector:  ``{"cosine": <similarity in [-1, 1]>}``
    - hybrid:  ``{"lexical": <norm>, "vector": <norm>}``
    """

    chunk_id: int
    text: str
    file_path: str
    start_line: int
    end_line: int
    collection: str
    score: float
    raw_scores: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CollectionReport:
    """Counts produced by one reindex pass over a collection."""

    name: str
    matched: int = 0
    indexed: int = 0
    skipped: int = 0
    removed: int = 0
    chunks: int = 0
    failed: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class IndexReport:
    """Aggregate of per-collection reports."""

    collections: list[CollectionReport] = field(default_factory=list)

    @property
    def matched(self) -> int:
        return sum(c.matched for c in self.collections)

    @property
    def indexed(self) -> int:
        return sum(c.indexed for c in self.collections)

    @property
    def skipped(self) -> int:
        return sum(c.skipped for c in self.collections)

    @property
    def removed(self) -> int:
        return sum(c.removed for c in self.collections)

    @property
    def chunks(self) -> int:
        return sum(c.chunks for c in self.collections)

    def get(self, name: str) -> CollectionReport | None:
        for report in self.collections:
            if report.name == name:
                return report
        return None


@dataclass(frozen=True)
class CollectionStats:
    """Per-collection counts for listings and the stats view."""

    name: str
    base_path: str
    glob_mask: str
    file_count: int
    chunk_count: int
    embedded_count: int
