"""Episodic memory: one-sentence summaries of past exchanges, recalled by meaning.

Flow per exchange:
  admission filter → LLM summary → duplicate check (last entry only)
  → embed (or store unembedded for later backfill) → evict over capacity

Retrieval blends semantic similarity with recency:
  score = sim * 0.85 + max(0, 1 - age_days / 7) * 0.15
and only memories with sim >= 0.55 are considered.
"""

from __future__ import annotations

import logging
import re
import threading
import time
import uuid
from typing import Any

from holorag.ingest.summarizer import ExchangeSummarizer
from holorag.rag.llm_client import EmbeddingBackend
from holorag.rag.similarity import cosine_similarity
from holorag.store.background import run_in_background
from holorag.store.debounce import Debouncer
from holorag.store.files import FileStore
from holorag.store.models import MemoryEntry

logger = logging.getLogger(__name__)

MEMORY_KEY = "memory-vectors.json"
MIN_SUMMARY_LENGTH = 10

_MS_PER_DAY = 1000 * 60 * 60 * 24

MEMORY_PREAMBLE = "Relevant earlier context:"
MEMORY_POSTAMBLE = "Use this only if it is relevant. Ignore it otherwise."

# User turns that carry nothing worth remembering.
_TRIVIAL_USER_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"^(hola|chau|buenas|hey|hi|hello|good\s+(morning|afternoon|evening)"
        r"|buenos?\s+d[ií]as?|buenas?\s+tardes?|buenas?\s+noches?)\b",
        re.IGNORECASE,
    ),
    re.compile(
        r"^(gracias|thanks|thank\s+you|ok|okay|dale|genial|perfecto|listo|bien|great|cool)$",
        re.IGNORECASE,
    ),
)

# Assistant turns admitting ignorance or failure.
_DONT_KNOW_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"no (sé|tengo|puedo)", re.IGNORECASE),
    re.compile(r"no encontr[éeó]", re.IGNORECASE),
    re.compile(r"se me trab[óo]", re.IGNORECASE),
    re.compile(r"prob[áa] de nuevo", re.IGNORECASE),
    re.compile(r"me qued[éeó] sin cr[ée]ditos", re.IGNORECASE),
    re.compile(r"\bi (don'?t|do not) know\b", re.IGNORECASE),
    re.compile(r"\bi (couldn'?t|could not|can'?t|cannot) (find|help|answer)", re.IGNORECASE),
    re.compile(r"\btry again\b", re.IGNORECASE),
    re.compile(r"\bout of credits\b", re.IGNORECASE),
)


def _now_ms() -> int:
    return int(time.time() * 1000)


def is_trivial_exchange(user_message: str, assistant_message: str) -> bool:
    """True for greetings/acknowledgements or assistant replies that found nothing."""
    user = user_message.strip()
    if any(p.search(user) for p in _TRIVIAL_USER_PATTERNS):
        return True
    return any(p.search(assistant_message) for p in _DONT_KNOW_PATTERNS)


# ------------------------------------------------------------------
# Store
# ------------------------------------------------------------------


class MemoryStore:
    """Bounded, persisted list of memory entries.

    Every mutation schedules a debounced save; ``clear()`` writes at once.
    The lock guards in-memory state only and is never held across I/O to the
    embedding or LLM backends.

    Args:
        store: File store holding ``memory-vectors.json``.
        embedding_model: Model tag written with the entries; a stored file
            tagged with a different model is discarded on load.
        max_entries: Capacity before eviction.
        debounce_seconds: Quiet period before a save.
    """

    def __init__(
        self,
        store: FileStore,
        embedding_model: str,
        max_entries: int = 200,
        debounce_seconds: float = 0.5,
    ) -> None:
        self._store = store
        self.embedding_model = embedding_model
        self.max_entries = max_entries
        self._lock = threading.Lock()
        self._entries: list[MemoryEntry] = []
        self._saver = Debouncer(debounce_seconds, self._save, name="memory-save")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def entries(self) -> list[MemoryEntry]:
        with self._lock:
            return list(self._entries)

    def last(self) -> MemoryEntry | None:
        with self._lock:
            return self._entries[-1] if self._entries else None

    def add(self, summary: str, embedding: list[float] | None = None) -> MemoryEntry:
        """Append a new entry, evicting the least useful ones over capacity."""
        entry = MemoryEntry(
            id=f"mem_{uuid.uuid4().hex[:12]}",
            summary=summary,
            timestamp_ms=_now_ms(),
            embedding=list(embedding or []),
        )
        with self._lock:
            self._entries.append(entry)
            while len(self._entries) > self.max_entries:
                self._evict_least_useful()
        self._saver.schedule()
        logger.debug("Memory added: %.60s", summary)
        return entry

    def _evict_least_useful(self) -> None:
        # Caller holds the lock. min() keeps the first of equal scores.
        worst = min(range(len(self._entries)), key=lambda i: self._entries[i].eviction_score)
        evicted = self._entries.pop(worst)
        logger.debug(
            "Evicting memory: %.40s (retrievals: %d)", evicted.summary, evicted.retrieval_count
        )

    def mark_retrieved(self, entries: list[MemoryEntry]) -> None:
        with self._lock:
            for entry in entries:
                entry.retrieval_count += 1
        self._saver.schedule()

    def set_embedding(self, entry: MemoryEntry, embedding: list[float]) -> None:
        with self._lock:
            entry.embedding = list(embedding)
        self._saver.schedule()

    def forget_by_keyword(self, keyword: str) -> int:
        """Remove entries whose summary contains *keyword* (case-insensitive)."""
        needle = keyword.lower()
        if not needle:
            return 0
        with self._lock:
            before = len(self._entries)
            self._entries = [e for e in self._entries if needle not in e.summary.lower()]
            removed = before - len(self._entries)
        if removed:
            self._saver.schedule()
            logger.info("Forgot %d memories matching '%s'", removed, keyword)
        return removed

    def clear(self) -> None:
        """Drop every entry and write the empty store immediately."""
        self._saver.cancel()
        with self._lock:
            self._entries = []
        try:
            self._save()
        except OSError as exc:
            logger.error("Could not write cleared memory store: %s", exc)
        logger.info("All memories cleared")

    def flush(self) -> bool:
        return self._saver.flush()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> int:
        """Replace in-memory entries with the stored ones. Returns the count loaded."""
        try:
            data = self._store.read_json(MEMORY_KEY)
        except (OSError, ValueError) as exc:
            logger.warning("Memory store unreadable, starting empty: %s", exc)
            return 0
        if not isinstance(data, dict):
            return 0

        if data.get("embedding_model") != self.embedding_model:
            logger.warning(
                "Memory store was built with '%s', now using '%s'; discarding memories",
                data.get("embedding_model"),
                self.embedding_model,
            )
            return 0

        loaded = [e for e in (_entry_from_dict(raw) for raw in data.get("entries") or []) if e]
        dropped = len(data.get("entries") or []) - len(loaded)
        if dropped:
            logger.warning("Dropped %d malformed memory entries", dropped)

        with self._lock:
            self._entries = loaded
        logger.info("Loaded %d memories", len(loaded))
        return len(loaded)

    def _save(self) -> None:
        with self._lock:
            payload = {
                "entries": [e.to_dict() for e in self._entries],
                "embedding_model": self.embedding_model,
            }
        self._store.write_json(MEMORY_KEY, payload)
        logger.debug("Saved %d memories", len(payload["entries"]))


def _entry_from_dict(raw: Any) -> MemoryEntry | None:
    if not isinstance(raw, dict):
        return None
    entry_id = raw.get("id")
    summary = raw.get("summary")
    timestamp = raw.get("timestamp_ms")
    if not entry_id or not isinstance(summary, str) or not summary:
        return None
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
        return None

    embedding = raw.get("embedding")
    count = raw.get("retrieval_count")
    try:
        vector = [float(v) for v in embedding] if isinstance(embedding, list) else []
    except (TypeError, ValueError):
        vector = []
    return MemoryEntry(
        id=str(entry_id),
        summary=summary,
        timestamp_ms=int(timestamp),
        embedding=vector,
        retrieval_count=count if isinstance(count, int) and not isinstance(count, bool) else 0,
    )


# ------------------------------------------------------------------
# Engine
# ------------------------------------------------------------------


class EpisodicMemory:
    """Admission, summarization, recall and maintenance over a MemoryStore.

    Args:
        store: Owned memory store.
        backend: Shared embedding backend handle.
        summarizer: Exchange summarizer (LLM).
        top_k: Default number of memories recalled.
        similarity_threshold: Minimum cosine similarity for recall.
        duplicate_threshold: Similarity above which a new memory is a duplicate
            of the most recent one.
        min_content_length: Combined length under which an exchange is ignored.
        similarity_weight: Weight of similarity in the blended score; recency
            gets the remainder.
        recency_days: Age at which the recency bonus reaches zero.
    """

    def __init__(
        self,
        store: MemoryStore,
        backend: EmbeddingBackend,
        summarizer: ExchangeSummarizer,
        top_k: int = 3,
        similarity_threshold: float = 0.55,
        duplicate_threshold: float = 0.9,
        min_content_length: int = 30,
        similarity_weight: float = 0.85,
        recency_days: float = 7.0,
    ) -> None:
        self.store = store
        self._backend = backend
        self._summarizer = summarizer
        self.top_k = top_k
        self.similarity_threshold = similarity_threshold
        self.duplicate_threshold = duplicate_threshold
        self.min_content_length = min_content_length
        self.similarity_weight = similarity_weight
        self.recency_days = recency_days

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> threading.Thread:
        """Load stored memories, then backfill missing embeddings in the background."""
        self.store.load()
        return run_in_background(self.backfill_embeddings, name="memory-backfill")

    def is_available(self) -> bool:
        return self._backend.connected and any(e.has_embedding for e in self.store.entries())

    def status(self) -> dict[str, Any]:
        return {
            "available": self.is_available(),
            "memory_count": len(self.store),
            "backend_connected": self._backend.connected,
        }

    def entries(self) -> list[MemoryEntry]:
        return self.store.entries()

    # ------------------------------------------------------------------
    # Add
    # ------------------------------------------------------------------

    def remember_in_background(self, user_message: str, assistant_message: str) -> threading.Thread:
        return run_in_background(
            self.add_memory, user_message, assistant_message, name="memory-add"
        )

    def add_memory(self, user_message: str, assistant_message: str) -> MemoryEntry | None:
        """Summarize and store an exchange. Returns the new entry, or None if skipped."""
        if len(user_message) + len(assistant_message) < self.min_content_length:
            return None
        if is_trivial_exchange(user_message, assistant_message):
            logger.debug("Trivial exchange, not remembered")
            return None

        summary = self._summarizer.summarize(user_message, assistant_message)
        if not summary or len(summary) < MIN_SUMMARY_LENGTH:
            logger.debug("Summary too short, skipping memory")
            return None

        embedding = self._try_embed(summary)

        last = self.store.last()
        if embedding is not None and last is not None and last.has_embedding:
            similarity = cosine_similarity(embedding, last.embedding)
            if similarity > self.duplicate_threshold:
                logger.debug("Duplicate memory (sim=%.2f), skipping", similarity)
                return None

        if embedding is None:
            logger.debug("Embedding unavailable, storing memory without embedding")
        return self.store.add(summary, embedding)

    def _try_embed(self, text: str) -> list[float] | None:
        if not self._backend.connected:
            return None
        try:
            return self._backend.embed_one(text)
        except Exception as exc:
            logger.warning("Memory embedding failed: %s", exc)
            return None

    # ------------------------------------------------------------------
    # Retrieve
    # ------------------------------------------------------------------

    def retrieve_memories(self, query: str, top_k: int | None = None) -> str | None:
        """Return a numbered list of relevant memories wrapped in instructions, or None."""
        if not query.strip() or not self._backend.connected:
            return None
        candidates = [e for e in self.store.entries() if e.has_embedding]
        if not candidates:
            return None
        limit = top_k if top_k is not None else self.top_k

        try:
            query_vec = self._backend.embed_one(query)
        except Exception as exc:
            logger.warning("Memory retrieval failed: %s", exc)
            return None

        now = _now_ms()
        scored = []
        for entry in candidates:
            similarity = cosine_similarity(query_vec, entry.embedding)
            if similarity < self.similarity_threshold:
                continue
            age_days = (now - entry.timestamp_ms) / _MS_PER_DAY
            recency = max(0.0, 1 - age_days / self.recency_days)
            blended = similarity * self.similarity_weight + recency * (1 - self.similarity_weight)
            scored.append((blended, entry))

        scored.sort(key=lambda pair: pair[0], reverse=True)
        relevant = [entry for _, entry in scored[:limit]]
        if not relevant:
            return None

        self.store.mark_retrieved(relevant)
        logger.debug("Memory retrieval: %d memories (top score %.2f)", len(relevant), scored[0][0])

        lines = [f"{i}. {entry.summary}" for i, entry in enumerate(relevant, start=1)]
        return "\n".join([MEMORY_PREAMBLE, *lines, MEMORY_POSTAMBLE])

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def forget_by_keyword(self, keyword: str) -> int:
        return self.store.forget_by_keyword(keyword)

    def clear(self) -> None:
        self.store.clear()

    def backfill_embeddings(self) -> int:
        """Embed stored memories that have none. Stops at the first failure."""
        if not self._backend.connected:
            return 0
        missing = [e for e in self.store.entries() if not e.has_embedding]
        if not missing:
            return 0

        logger.info("Backfilling %d memory embeddings", len(missing))
        filled = 0
        for entry in missing:
            try:
                vector = self._backend.embed_one(entry.summary)
            except Exception as exc:
                logger.warning("Backfill stopped after %d: %s", filled, exc)
                break
            self.store.set_embedding(entry, vector)
            filled += 1

        if filled:
            logger.info("Backfilled %d/%d embeddings", filled, len(missing))
        return filled
