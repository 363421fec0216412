"""Wire the retrieval engines together from a HoloragConfig.

One EmbeddingBackend is shared by the vector and memory engines; every engine
persists into the same FileStore under ``project.data_dir``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from holorag.config import HoloragConfig, resolve_path
from holorag.ingest.paragraph import ParagraphChunker
from holorag.ingest.recursive import RecursiveChunker
from holorag.ingest.summarizer import ExchangeSummarizer
from holorag.rag.knowledge import DocumentKnowledge
from holorag.rag.llm_client import EmbeddingBackend
from holorag.rag.memory import EpisodicMemory, MemoryStore
from holorag.rag.retriever import VectorRetriever
from holorag.sql.engine import SchemaFilterEngine
from holorag.store.files import FileStore

logger = logging.getLogger(__name__)


@dataclass
class ContextBundle:
    """Everything the engines found for one user message. Missing parts are None."""

    knowledge: str | None = None
    documents: str | None = None
    memories: str | None = None
    schema: str | None = None

    def is_empty(self) -> bool:
        return not any((self.knowledge, self.documents, self.memories, self.schema))


@dataclass
class Runtime:
    config: HoloragConfig
    store: FileStore
    backend: EmbeddingBackend
    knowledge: DocumentKnowledge
    retriever: VectorRetriever
    memory: EpisodicMemory
    sql: SchemaFilterEngine

    def start(self) -> None:
        """Start every engine's background initialisation (server-style startup)."""
        self.retriever.start()
        self.memory.start()
        self.sql.start()

    def gather_context(self, query: str) -> ContextBundle:
        """Collect the context a prompt for *query* should carry.

        With SQL context enabled and a schema loaded, the filtered schema is
        the only context. Otherwise vector retrieval is tried first and the
        lexical knowledge block is consulted only when it finds nothing.
        Episodic memories are added only while SQL context is disabled.
        """
        bundle = ContextBundle()
        if self.sql.enabled and self.sql.has_active_schema():
            bundle.schema = self.sql.get_filtered_schema(query)
            return bundle

        if not self.sql.enabled and self.memory.is_available():
            bundle.memories = self.memory.retrieve_memories(query)
        bundle.documents = self.retriever.retrieve_context(query)
        if bundle.documents is None:
            bundle.knowledge = self.knowledge.retrieve_context(query)
        return bundle

    def flush(self) -> None:
        """Write pending debounced state and release database connections."""
        self.knowledge.flush()
        self.memory.store.flush()
        self.sql.close()


def build_runtime(cfg: HoloragConfig, base_dir: Path | None = None) -> Runtime:
    """Construct (but do not start) every engine described by *cfg*."""
    data_dir = resolve_path(cfg.project.data_dir, base_dir)
    corpus_dir = resolve_path(cfg.project.corpus_dir, base_dir)
    store = FileStore(data_dir)
    debounce = cfg.persistence.debounce_seconds

    backend = EmbeddingBackend(
        model=cfg.embedding.model,
        api_base=cfg.embedding.api_base,
        probe_timeout=cfg.embedding.probe_timeout,
        timeout=cfg.embedding.timeout,
    )

    knowledge = DocumentKnowledge(
        store,
        chunker=ParagraphChunker(cfg.knowledge.chunk_size, cfg.knowledge.overlap),
        top_k=cfg.knowledge.top_k,
        debounce_seconds=debounce,
    )
    retriever = VectorRetriever(
        backend,
        store,
        corpus_dir,
        chunker=RecursiveChunker(cfg.retrieval.chunk_size, cfg.retrieval.overlap),
        batch_size=cfg.embedding.batch_size,
        top_k=cfg.retrieval.top_k,
        min_similarity=cfg.retrieval.min_similarity,
    )
    memory = EpisodicMemory(
        MemoryStore(
            store,
            embedding_model=cfg.embedding.model,
            max_entries=cfg.memory.max_entries,
            debounce_seconds=debounce,
        ),
        backend,
        ExchangeSummarizer(
            model=cfg.generation.model,
            max_tokens=cfg.generation.max_tokens,
            temperature=cfg.generation.temperature,
        ),
        top_k=cfg.memory.top_k,
        similarity_threshold=cfg.memory.similarity_threshold,
        duplicate_threshold=cfg.memory.duplicate_threshold,
        min_content_length=cfg.memory.min_content_length,
        similarity_weight=cfg.memory.similarity_weight,
        recency_days=cfg.memory.recency_days,
    )
    sql = SchemaFilterEngine(
        store,
        max_tables=cfg.sql.max_tables,
        max_rows=cfg.sql.max_rows,
        statement_timeout_ms=cfg.sql.statement_timeout_ms,
        schema_timeout_ms=cfg.sql.schema_timeout_ms,
        connect_timeout=cfg.sql.connect_timeout,
    )

    logger.debug("Runtime built: data=%s corpus=%s", data_dir, corpus_dir)
    return Runtime(
        config=cfg,
        store=store,
        backend=backend,
        knowledge=knowledge,
        retriever=retriever,
        memory=memory,
        sql=sql,
    )
