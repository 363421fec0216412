"""Tests for engine wiring and combined context gathering."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import yaml

from holorag.config import HoloragConfig, load_config
from holorag.ingest.paragraph import ParagraphChunker
from holorag.rag.knowledge import DocumentKnowledge
from holorag.rag.memory import MEMORY_PREAMBLE, EpisodicMemory, MemoryStore
from holorag.rag.retriever import VectorRetriever
from holorag.runtime import ContextBundle, Runtime, build_runtime
from holorag.sql.engine import SchemaFilterEngine
from holorag.sql.models import ConnectionConfig


def _runtime(tmp_path: Path, backend, store) -> Runtime:
    corpus = tmp_path / "knowledge"
    corpus.mkdir()
    (corpus / "gatos.md").write_text("El gato del cliente duerme en el deposito.", encoding="utf-8")

    summarizer = MagicMock()
    summarizer.summarize.return_value = "El cliente tiene un gato llamado Tom."
    return Runtime(
        config=HoloragConfig(),
        store=store,
        backend=backend,
        knowledge=DocumentKnowledge(
            store, chunker=ParagraphChunker(30, 0), debounce_seconds=60
        ),
        retriever=VectorRetriever(backend, store, corpus),
        memory=EpisodicMemory(
            MemoryStore(store, embedding_model=backend.model, debounce_seconds=60),
            backend,
            summarizer,
        ),
        sql=SchemaFilterEngine(store),
    )


def test_build_runtime_resolves_paths(tmp_path: Path) -> None:
    (tmp_path / "holorag.yaml").write_text(
        yaml.dump({"project": {"data_dir": "state", "corpus_dir": "docs"}, "memory": {"max_entries": 9}}),
        encoding="utf-8",
    )
    cfg = load_config(project_dir=tmp_path)

    rt = build_runtime(cfg, tmp_path)

    assert rt.store.root == tmp_path / "state"
    assert rt.retriever.corpus_dir == tmp_path / "docs"
    assert rt.memory.store.max_entries == 9
    assert rt.backend.model == cfg.embedding.model
    assert not rt.backend.connected


def test_context_bundle_is_empty() -> None:
    assert ContextBundle().is_empty()
    assert not ContextBundle(schema="DB:x (0/0 tables)").is_empty()


def test_documents_take_priority_over_knowledge(tmp_path: Path, backend, store) -> None:
    rt = _runtime(tmp_path, backend, store)
    rt.knowledge.set_content("Atendemos al cliente de lunes a viernes.\n\nNo hacemos envios.")
    rt.retriever.initialize()
    rt.memory.add_memory("Mi gato se llama Tom, anotalo por favor", "Anotado: tu gato se llama Tom.")

    bundle = rt.gather_context("cliente gato")

    assert bundle.knowledge is None
    assert bundle.documents == "[gatos.md]: El gato del cliente duerme en el deposito."
    assert bundle.memories is not None
    assert bundle.memories.startswith(MEMORY_PREAMBLE)
    assert bundle.schema is None


def test_knowledge_is_the_fallback_without_documents(tmp_path: Path, backend, store) -> None:
    rt = _runtime(tmp_path, backend, store)
    rt.knowledge.set_content("Atendemos al cliente de lunes a viernes.\n\nNo hacemos envios.")
    backend.reachable = False
    rt.retriever.initialize()

    bundle = rt.gather_context("cliente gato")

    assert bundle.documents is None
    assert bundle.knowledge == "Atendemos al cliente de lunes a viernes."


def test_sql_enabled_without_schema_skips_memories(tmp_path: Path, backend, store) -> None:
    rt = _runtime(tmp_path, backend, store)
    rt.memory.add_memory("Mi gato se llama Tom, anotalo por favor", "Anotado: tu gato se llama Tom.")
    rt.sql.set_enabled(True)

    bundle = rt.gather_context("cliente gato")

    assert bundle.memories is None
    assert bundle.schema is None


def test_schema_is_the_only_context_when_sql_enabled(tmp_path: Path, backend, store, erp_db) -> None:
    rt = _runtime(tmp_path, backend, store)
    rt.knowledge.set_content("Atendemos al cliente de lunes a viernes.")
    rt.retriever.initialize()
    rt.memory.add_memory("Mi gato se llama Tom, anotalo por favor", "Anotado: tu gato se llama Tom.")
    rt.sql.add_connection(
        ConnectionConfig(id="conn_erp", name="erp", host="", port=0, database=str(erp_db), driver="sqlite")
    )
    rt.sql.set_enabled(True)
    try:
        bundle = rt.gather_context("clientes con gato")
    finally:
        rt.flush()

    assert bundle.schema is not None
    assert "clientes: id integer PK" in bundle.schema
    assert bundle.memories is None
    assert bundle.documents is None
    assert bundle.knowledge is None


def test_flush_writes_pending_state(tmp_path: Path, backend, store) -> None:
    rt = _runtime(tmp_path, backend, store)
    rt.knowledge.set_content("Horario: de 9 a 18.")
    rt.memory.add_memory("Mi gato se llama Tom, anotalo por favor", "Anotado: tu gato se llama Tom.")

    rt.flush()

    assert store.read_text("knowledge.txt") == "Horario: de 9 a 18."
    assert len(store.read_json("memory-vectors.json")["entries"]) == 1
