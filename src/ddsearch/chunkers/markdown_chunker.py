"""Structure-aware chunking for Markdown and plain text."""

import re
from typing import Optional

from ddsearch.chunkers.tokens import DEFAULT_ESTIMATOR
from ddsearch.models import Chunk
from ddsearch.protocols import TokenEstimator

HEADING_RE = re.compile(r"^#{1,6}\s")
FENCE_RE = re.compile(r"^```")
RULE_RE = re.compile(r"^(-{3,}|\*{3,}|_{3,})$")


class MarkdownChunker:
    """Default chunking: grow to ~300 tokens, cut at natural boundaries.

    Lines are scanned in order while an estimated token count accumulates:
    - A heading starts a new chunk, but only once the pending chunk has
      reached MIN_TOKENS (no tiny chunks right before a heading)
    - A fenced code block is never split; the whole block, closing fence
      included, joins the pending chunk whatever its size
    - Past TARGET_TOKENS the chunk is cut at the next blank line,
      horizontal rule or end of input

    Line ranges are 1-based and inclusive and cover the raw lines,
    including blank lines, while chunk text is stripped. Chunks that are
    empty after stripping are dropped.
    """

    TARGET_TOKENS = 300
    MIN_TOKENS = 100

    def __init__(
        self,
        target_tokens: Optional[int] = None,
        min_tokens: Optional[int] = None,
        estimator: Optional[TokenEstimator] = None,
    ):
        self.target_tokens = target_tokens or self.TARGET_TOKENS
        self.min_tokens = self.MIN_TOKENS if min_tokens is None else min_tokens
        self.estimator = estimator or DEFAULT_ESTIMATOR

    def chunk(self, text: str, file_path: str) -> list[Chunk]:
        """Split text into chunks with line-range metadata.

        Args:
            text: The document text
            file_path: Path to the source file (for metadata)

        Returns:
            Chunks in document order, chunk_index counting from 0
        """
        if not text or not text.strip():
            return []

        lines = text.split("\n")
        chunks: list[Chunk] = []
        for start, end in self._spans(lines):
            body = "\n".join(lines[start:end]).strip()
            if not body:
                continue
            chunks.append(
                Chunk(
                    text=body,
                    file_path=file_path,
                    chunk_index=len(chunks),
                    start_line=start + 1,
                    end_line=end,
                    token_count=self.estimator.count(body),
                )
            )
        return chunks

    def _spans(self, lines: list[str]) -> list[tuple[int, int]]:
        """Return half-open [start, end) line-index spans covering ``lines``."""
        count = self.estimator.count
        spans: list[tuple[int, int]] = []
        start = 0
        tokens = 0
        i = 0
        last = len(lines) - 1

        while i <= last:
            line = lines[i]

            if HEADING_RE.match(line) and i > start and tokens >= self.min_tokens:
                spans.append((start, i))
                start, tokens = i, 0

            tokens += count(line)

            if FENCE_RE.match(line):
                j = i + 1
                while j <= last and not FENCE_RE.match(lines[j]):
                    tokens += count(lines[j])
                    j += 1
                if j <= last:
                    tokens += count(lines[j])
                    i = j
                else:
                    # Unterminated fence swallows the rest of the input
                    i = last
                if tokens >= self.target_tokens:
                    spans.append((start, i + 1))
                    start, tokens = i + 1, 0
                i += 1
                continue

            if tokens >= self.target_tokens and self._is_boundary(line, i == last):
                spans.append((start, i + 1))
                start, tokens = i + 1, 0

            i += 1

        if start <= last:
            spans.append((start, last + 1))
        return spans

    @staticmethod
    def _is_boundary(line: str, at_end: bool) -> bool:
        stripped = line.strip()
        return at_end or not stripped or bool(RULE_RE.match(stripped))
