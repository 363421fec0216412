"""Base chunker interface for knowledge text and corpus files."""

from __future__ import annotations

from abc import ABC, abstractmethod

from holorag.store.models import Chunk


class BaseChunker(ABC):
    """Abstract base for all chunkers.

    Sizes are measured in characters. ``overlap`` characters from the end of
    one chunk are carried into the start of the next to keep context that
    straddles a boundary.
    """

    def __init__(self, chunk_size: int = 500, overlap: int = 50) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if not 0 <= overlap < chunk_size:
            raise ValueError("overlap must be in [0, chunk_size)")
        self.chunk_size = chunk_size
        self.overlap = overlap

    @abstractmethod
    def chunk(self, source_id: str, content: str) -> list[Chunk]:
        """Split *content* into Chunk objects for *source_id*.

        Args:
            source_id: Identifier of the source (file name for corpus files).
            content: Full decoded text of the source document.

        Returns:
            Ordered list of Chunk objects with sequential ``chunk_index``.
        """

    def _make_chunks(self, source_id: str, texts: list[str]) -> list[Chunk]:
        """Convert segments into sequentially indexed Chunks, dropping blank ones."""
        texts = [t.strip() for t in texts]
        return [
            Chunk(source_id=source_id, chunk_index=i, content=t)
            for i, t in enumerate(t for t in texts if t)
        ]
