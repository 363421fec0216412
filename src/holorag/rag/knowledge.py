"""Freeform knowledge text with keyword retrieval.

The operator maintains one block of text (opening hours, policies, FAQs …).
It is split into paragraph chunks on every update and searched with the
lexical scorer, so it works without any embedding backend.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from holorag.ingest.paragraph import ParagraphChunker
from holorag.rag import lexical
from holorag.store.debounce import Debouncer
from holorag.store.files import FileStore
from holorag.store.models import Chunk

logger = logging.getLogger(__name__)

KNOWLEDGE_KEY = "knowledge.txt"
_SOURCE_ID = "knowledge"


@dataclass
class KnowledgeStatus:
    has_content: bool
    content_length: int
    chunk_count: int


class DocumentKnowledge:
    """Owned knowledge text, its chunks, and debounced persistence.

    Args:
        store: File store holding ``knowledge.txt``.
        chunker: Paragraph chunker (500/50 by default).
        top_k: Maximum chunks returned by retrieve_context().
        debounce_seconds: Quiet period before the text is written to disk.
    """

    def __init__(
        self,
        store: FileStore,
        chunker: ParagraphChunker | None = None,
        top_k: int = 4,
        debounce_seconds: float = 0.5,
    ) -> None:
        self._store = store
        self._chunker = chunker or ParagraphChunker()
        self._top_k = top_k
        self._lock = threading.Lock()
        self._content = ""
        self._chunks: list[Chunk] = []
        self._saver = Debouncer(debounce_seconds, self._save, name="knowledge-save")
        self._load()

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    def get_content(self) -> str:
        with self._lock:
            return self._content

    def set_content(self, text: str) -> KnowledgeStatus:
        """Replace the knowledge text, re-chunk it, and schedule a save."""
        chunks = self._chunker.chunk(_SOURCE_ID, text)
        with self._lock:
            self._content = text
            self._chunks = chunks
        self._saver.schedule()
        logger.info("Knowledge updated: %d chars, %d chunks", len(text), len(chunks))
        return self.status()

    def status(self) -> KnowledgeStatus:
        with self._lock:
            return KnowledgeStatus(
                has_content=bool(self._content.strip()),
                content_length=len(self._content),
                chunk_count=len(self._chunks),
            )

    def flush(self) -> bool:
        """Write a pending update now. Returns True if one was pending."""
        return self._saver.flush()

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    def retrieve_context(self, query: str) -> str | None:
        """Return the best-matching chunks joined by blank lines, or None."""
        try:
            query_tokens = lexical.tokenize(query)
            if not query_tokens:
                return None

            with self._lock:
                chunks = list(self._chunks)

            scored = [
                (lexical.score(query_tokens, lexical.tokenize(c.content)), c) for c in chunks
            ]
            scored.sort(key=lambda pair: pair[0], reverse=True)
            relevant = [c.content for s, c in scored[: self._top_k] if lexical.is_relevant(s)]
            if not relevant:
                return None
            return "\n\n".join(relevant)
        except Exception:
            logger.exception("Knowledge retrieval failed")
            return None

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> None:
        try:
            text = self._store.read_text(KNOWLEDGE_KEY)
        except OSError as exc:
            logger.warning("Could not read knowledge text: %s", exc)
            return
        if not text:
            return
        self._content = text
        self._chunks = self._chunker.chunk(_SOURCE_ID, text)
        logger.info("Knowledge loaded: %d chunks", len(self._chunks))

    def _save(self) -> None:
        with self._lock:
            text = self._content
        self._store.write_text(KNOWLEDGE_KEY, text)
        logger.debug("Knowledge text saved (%d chars)", len(text))
