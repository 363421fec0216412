"""Embedding writer — batched embeddings for corpus chunks.

Chunks are embedded in fixed-size batches (default 10) so that peak memory
and request size stay bounded regardless of corpus size. Every vector in one
pass must have the same dimensionality; a mismatch aborts the pass.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from holorag.rag.llm_client import EmbeddingBackend
from holorag.store.models import Chunk, VectorEntry

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10


class EmbeddingWriter:
    """Turn chunks into VectorEntry objects via the shared embedding backend.

    Args:
        backend: Shared embedding backend handle.
        batch_size: Number of chunks per embedding request.
    """

    def __init__(self, backend: EmbeddingBackend, batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._backend = backend
        self.batch_size = batch_size

    def write(
        self,
        chunks: list[Chunk],
        on_progress: Callable[[int, int], None] | None = None,
    ) -> list[VectorEntry]:
        """Embed *chunks* batch by batch. Returns entries in chunk order.

        Args:
            chunks: Chunks to embed.
            on_progress: Optional callback ``(done, total)`` after each batch.

        Raises:
            ValueError: If the backend returns vectors of differing dimensionality.
        """
        entries: list[VectorEntry] = []
        dims: int | None = None
        total = len(chunks)

        for start in range(0, total, self.batch_size):
            batch = chunks[start:start + self.batch_size]
            vectors = self._backend.embed_many([c.content for c in batch])

            for chunk, vector in zip(batch, vectors):
                if dims is None:
                    dims = len(vector)
                elif len(vector) != dims:
                    raise ValueError(
                        f"Embedding dimensionality changed mid-pass ({dims} → {len(vector)}) "
                        f"at '{chunk.source_id}' chunk {chunk.chunk_index}."
                    )
                entries.append(
                    VectorEntry(content=chunk.content, embedding=list(vector), source=chunk.source_id)
                )

            done = min(start + self.batch_size, total)
            logger.debug("Embedded %d/%d chunks", done, total)
            if on_progress is not None:
                on_progress(done, total)

        return entries
