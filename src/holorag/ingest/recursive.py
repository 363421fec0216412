"""Recursive chunker — split on the coarsest boundary that fits (paragraph → char).

Strategy:
  1. Pick the first separator (in priority order) that occurs in the text.
  2. Split on it. Pieces shorter than ``chunk_size`` are merged back together
     greedily, keeping ``overlap`` characters of trailing context.
  3. Pieces that are still too long are split again with the remaining,
     finer separators.
The empty separator splits into single characters and always terminates.
"""

from __future__ import annotations

from holorag.ingest.base import BaseChunker
from holorag.store.models import Chunk

DEFAULT_SEPARATORS: tuple[str, ...] = ("\n\n", "\n", ". ", " ", "")


class RecursiveChunker(BaseChunker):
    """Boundary-aware splitter for Markdown and plain-text corpus files.

    Args:
        chunk_size: Target chunk size in characters.
        overlap: Characters of trailing context carried into the next chunk.
        separators: Split boundaries, coarsest first.
    """

    def __init__(
        self,
        chunk_size: int = 500,
        overlap: int = 50,
        separators: tuple[str, ...] = DEFAULT_SEPARATORS,
    ) -> None:
        super().__init__(chunk_size=chunk_size, overlap=overlap)
        if not separators:
            raise ValueError("separators must not be empty")
        self.separators = separators

    def chunk(self, source_id: str, content: str) -> list[Chunk]:
        if not content.strip():
            return []
        return self._make_chunks(source_id, self.split_text(content))

    def split_text(self, text: str) -> list[str]:
        return self._split(text, list(self.separators))

    def _split(self, text: str, separators: list[str]) -> list[str]:
        separator = separators[-1]
        remaining: list[str] = []
        for i, sep in enumerate(separators):
            if sep == "":
                separator = sep
                break
            if sep in text:
                separator = sep
                remaining = separators[i + 1:]
                break

        pieces = text.split(separator) if separator else list(text)

        results: list[str] = []
        small: list[str] = []
        for piece in pieces:
            if len(piece) < self.chunk_size:
                small.append(piece)
                continue
            if small:
                results.extend(self._merge(small, separator))
                small = []
            if remaining:
                results.extend(self._split(piece, remaining))
            else:
                results.append(piece)

        if small:
            results.extend(self._merge(small, separator))
        return results

    def _merge(self, pieces: list[str], separator: str) -> list[str]:
        """Greedily join *pieces* up to ``chunk_size``, keeping ``overlap`` of tail."""
        sep_len = len(separator)
        merged: list[str] = []
        window: list[str] = []
        total = 0

        for piece in pieces:
            length = len(piece)
            if window and total + length + sep_len > self.chunk_size:
                text = separator.join(window).strip()
                if text:
                    merged.append(text)
                # Drop from the front until the tail fits the overlap budget
                # and leaves room for the incoming piece.
                while window and (
                    total > self.overlap
                    or total + length + sep_len > self.chunk_size
                ):
                    total -= len(window[0]) + (sep_len if len(window) > 1 else 0)
                    window.pop(0)
            window.append(piece)
            total += length + (sep_len if len(window) > 1 else 0)

        text = separator.join(window).strip()
        if text:
            merged.append(text)
        return merged
