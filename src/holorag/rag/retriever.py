"""Dense retrieval over a directory of .txt/.md documents.

Documents are split with the recursive chunker, embedded in batches through
the shared EmbeddingBackend, and kept in memory. The whole snapshot is cached
in the file store together with each file's mtime and the embedding model, so
a restart with an unchanged corpus skips re-embedding entirely.

Cache validity:
  - same embedding model
  - same number of corpus files
  - every current file's mtime equals the cached one exactly
Anything else (or a cache with zero entries) triggers a full re-index.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from holorag.ingest.embedding_writer import EmbeddingWriter
from holorag.ingest.recursive import RecursiveChunker
from holorag.rag.llm_client import EmbeddingBackend
from holorag.rag.similarity import cosine_similarity
from holorag.store.background import run_in_background
from holorag.store.files import FileStore
from holorag.store.models import EngineState, IndexResult, VectorEntry

logger = logging.getLogger(__name__)

CACHE_KEY = "vector-store.json"
CORPUS_SUFFIXES = (".txt", ".md")


@dataclass
class RetrieverStatus:
    available: bool
    backend_connected: bool
    document_count: int
    chunk_count: int
    indexed_files: list[str] = field(default_factory=list)
    last_indexed: int | None = None


class VectorRetriever:
    """Embedding-based retrieval engine for the corpus directory.

    Args:
        backend: Shared embedding backend handle.
        store: File store holding the vector cache.
        corpus_dir: Directory scanned for .txt/.md files (created if missing).
        chunker: Recursive chunker (500/50 by default).
        batch_size: Chunks per embedding request.
        top_k: Maximum chunks returned by retrieve_context().
        min_similarity: Cosine similarity floor for returned chunks.
    """

    def __init__(
        self,
        backend: EmbeddingBackend,
        store: FileStore,
        corpus_dir: Path | str,
        chunker: RecursiveChunker | None = None,
        batch_size: int = 10,
        top_k: int = 4,
        min_similarity: float = 0.3,
    ) -> None:
        self._backend = backend
        self._store = store
        self.corpus_dir = Path(corpus_dir)
        self._chunker = chunker or RecursiveChunker()
        self._writer = EmbeddingWriter(backend, batch_size=batch_size)
        self._top_k = top_k
        self._min_similarity = min_similarity

        self._lock = threading.Lock()
        self._index_lock = threading.Lock()
        self._state = EngineState.UNINITIALIZED
        self._entries: list[VectorEntry] = []
        self._indexed_files: dict[str, int] = {}
        self._last_indexed: int | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> EngineState:
        with self._lock:
            return self._state

    def _set_state(self, state: EngineState) -> None:
        with self._lock:
            self._state = state

    def start(self) -> threading.Thread:
        """Run initialize() in a daemon thread and return the thread."""
        return run_in_background(self.initialize, name="vector-init")

    def initialize(self) -> IndexResult:
        """Probe the backend, then restore the cache or build a fresh index."""
        self._set_state(EngineState.CONNECTING)
        probe = self._backend.probe()
        if not probe.ok:
            self._set_state(EngineState.UNAVAILABLE)
            return IndexResult(False, "Embedding backend unavailable")

        if self.load_cache():
            self._set_state(EngineState.AVAILABLE)
            return IndexResult(
                True,
                f"Loaded {len(self._entries)} chunks from {len(self._indexed_files)} files (cached)",
            )

        return self.index_documents()

    def index_documents(
        self, on_progress: Callable[[int, int], None] | None = None
    ) -> IndexResult:
        """Re-index the corpus. Concurrent calls are rejected, not queued.

        *on_progress* receives ``(embedded, total)`` chunk counts after each batch.
        """
        if not self._index_lock.acquire(blocking=False):
            return IndexResult(False, "Already indexing")
        try:
            return self._index(on_progress)
        finally:
            self._index_lock.release()

    def is_indexing(self) -> bool:
        return self._index_lock.locked()

    def is_available(self) -> bool:
        with self._lock:
            has_entries = bool(self._entries)
        return self._backend.connected and has_entries

    def status(self) -> RetrieverStatus:
        with self._lock:
            files = list(self._indexed_files)
            chunk_count = len(self._entries)
            last_indexed = self._last_indexed
        return RetrieverStatus(
            available=self.is_available(),
            backend_connected=self._backend.connected,
            document_count=len(files),
            chunk_count=chunk_count,
            indexed_files=files,
            last_indexed=last_indexed,
        )

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    def retrieve_context(self, query: str) -> str | None:
        """Return the top matching chunks as ``[source]: content`` blocks, or None."""
        if not query.strip() or not self.is_available():
            return None
        try:
            query_vec = self._backend.embed_one(query)
            with self._lock:
                entries = list(self._entries)

            scored = [(cosine_similarity(query_vec, e.embedding), e) for e in entries]
            scored.sort(key=lambda pair: pair[0], reverse=True)
            hits = [e for s, e in scored[: self._top_k] if s >= self._min_similarity]
            if not hits:
                return None
            return "\n\n".join(f"[{e.source}]: {e.content}" for e in hits)
        except Exception as exc:
            logger.warning("Vector retrieval failed: %s", exc)
            return None

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    def _index(self, on_progress: Callable[[int, int], None] | None) -> IndexResult:
        if not self._backend.connected and not self._backend.probe().ok:
            self._set_state(EngineState.UNAVAILABLE)
            return IndexResult(False, "Error: embedding backend unavailable")

        self._set_state(EngineState.INDEXING)
        try:
            if not self.corpus_dir.is_dir():
                self.corpus_dir.mkdir(parents=True, exist_ok=True)
                self._replace_snapshot([], {})
                self._set_state(EngineState.AVAILABLE)
                return IndexResult(
                    True,
                    f"Created {self.corpus_dir}. Add .txt or .md files there and index again.",
                )

            files = self._corpus_files()
            if not files:
                self._replace_snapshot([], {})
                self._set_state(EngineState.AVAILABLE)
                return IndexResult(True, f"No .txt or .md files in {self.corpus_dir}")

            chunks = []
            mtimes: dict[str, int] = {}
            for path in files:
                text = path.read_text(encoding="utf-8", errors="replace")
                chunks.extend(self._chunker.chunk(path.name, text))
                mtimes[path.name] = path.stat().st_mtime_ns
            logger.info("Indexing %d files (%d chunks)", len(files), len(chunks))

            entries = self._writer.write(chunks, on_progress=on_progress)
            self._replace_snapshot(entries, mtimes)
            self._save_cache()
            self._set_state(EngineState.AVAILABLE)
            return IndexResult(True, f"Indexed {len(files)} files ({len(entries)} chunks)")
        except Exception as exc:
            logger.error("Indexing failed: %s", exc)
            self._set_state(EngineState.UNAVAILABLE)
            return IndexResult(False, f"Error: {exc}")

    def _corpus_files(self) -> list[Path]:
        return sorted(
            p for p in self.corpus_dir.iterdir()
            if p.is_file() and p.suffix.lower() in CORPUS_SUFFIXES
        )

    def _replace_snapshot(self, entries: list[VectorEntry], mtimes: dict[str, int]) -> None:
        with self._lock:
            self._entries = entries
            self._indexed_files = mtimes
            self._last_indexed = int(time.time() * 1000)

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def load_cache(self) -> bool:
        """Restore the snapshot from the cache if it is still valid."""
        try:
            cache = self._store.read_json(CACHE_KEY)
        except (OSError, ValueError) as exc:
            logger.warning("Vector cache unreadable, re-indexing: %s", exc)
            return False
        if cache is None:
            return False

        try:
            if not self._cache_is_valid(cache):
                return False
            entries = [VectorEntry.from_dict(e) for e in cache["entries"]]
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.warning("Vector cache malformed, re-indexing: %s", exc)
            return False

        if not entries:
            return False

        with self._lock:
            self._entries = entries
            self._indexed_files = {k: int(v) for k, v in cache["indexed_files"].items()}
            self._last_indexed = cache.get("last_indexed")
        logger.info(
            "Vector store loaded from cache: %d chunks from %d files",
            len(entries),
            len(self._indexed_files),
        )
        return True

    def _cache_is_valid(self, cache: dict[str, Any]) -> bool:
        if cache.get("embedding_model") != self._backend.model:
            logger.info("Embedding model changed, re-indexing")
            return False
        if not self.corpus_dir.is_dir():
            return False

        cached: dict[str, int] = cache["indexed_files"]
        current = self._corpus_files()
        if len(current) != len(cached):
            logger.info("Corpus file count changed, re-indexing")
            return False
        for path in current:
            if cached.get(path.name) != path.stat().st_mtime_ns:
                logger.info("'%s' changed, re-indexing", path.name)
                return False
        return True

    def _save_cache(self) -> None:
        with self._lock:
            payload = {
                "entries": [e.to_dict() for e in self._entries],
                "indexed_files": dict(self._indexed_files),
                "embedding_model": self._backend.model,
                "last_indexed": self._last_indexed,
            }
        try:
            self._store.write_json(CACHE_KEY, payload)
            logger.debug("Vector cache saved")
        except OSError as exc:
            logger.error("Could not save vector cache: %s", exc)
