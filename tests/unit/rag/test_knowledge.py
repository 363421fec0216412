"""Tests for DocumentKnowledge — lexical retrieval over operator text."""

from __future__ import annotations

from holorag.ingest.paragraph import ParagraphChunker
from holorag.rag.knowledge import KNOWLEDGE_KEY, DocumentKnowledge

TEXT = (
    "Horario de atención: lunes a viernes de 9 a 18.\n\n"
    "Los envios se despachan en 48 horas."
)


def _knowledge(store, **kwargs) -> DocumentKnowledge:
    kwargs.setdefault("chunker", ParagraphChunker(chunk_size=60, overlap=0))
    return DocumentKnowledge(store, debounce_seconds=60, **kwargs)


def test_empty_knowledge_returns_none(store):
    kb = _knowledge(store)
    assert kb.get_content() == ""
    assert kb.retrieve_context("horario") is None
    assert not kb.status().has_content


def test_set_content_rechunks(store):
    kb = _knowledge(store)
    status = kb.set_content(TEXT)

    assert status.has_content
    assert status.content_length == len(TEXT)
    assert status.chunk_count == 2
    assert kb.get_content() == TEXT


def test_retrieve_returns_only_relevant_chunks(store):
    kb = _knowledge(store)
    kb.set_content(TEXT)

    result = kb.retrieve_context("cual es el horario?")

    assert result is not None
    assert "lunes a viernes" in result
    assert "despachan" not in result


def test_retrieve_no_overlap_returns_none(store):
    kb = _knowledge(store)
    kb.set_content(TEXT)
    assert kb.retrieve_context("precio de la factura") is None


def test_query_of_short_tokens_returns_none(store):
    kb = _knowledge(store)
    kb.set_content(TEXT)
    assert kb.retrieve_context("a de la") is None


def test_top_k_limits_results(store):
    text = "\n\n".join(f"Pedido numero {i} listo." for i in range(6))
    kb = _knowledge(store, top_k=2, chunker=ParagraphChunker(chunk_size=20, overlap=0))
    kb.set_content(text)

    result = kb.retrieve_context("pedido")

    assert result is not None
    assert len(result.split("\n\n")) == 2


def test_save_is_deferred_until_flush(store):
    kb = _knowledge(store)
    kb.set_content(TEXT)

    assert not store.exists(KNOWLEDGE_KEY)
    assert kb.flush() is True
    assert store.read_text(KNOWLEDGE_KEY) == TEXT


def test_content_survives_restart(store):
    kb = _knowledge(store)
    kb.set_content(TEXT)
    kb.flush()

    reloaded = _knowledge(store)

    assert reloaded.get_content() == TEXT
    assert reloaded.status().chunk_count == 2
    assert reloaded.retrieve_context("horario") is not None


def test_clearing_content(store):
    kb = _knowledge(store)
    kb.set_content(TEXT)
    status = kb.set_content("")

    assert not status.has_content
    assert status.chunk_count == 0
    assert kb.retrieve_context("horario") is None


def test_default_chunking_separates_topics(store):
    gato = "El gato come pescado y duerme la siesta. " + (
        "Le gusta mirar por la ventana durante horas enteras. " * 5
    )
    perro = "El perro ladra fuerte cuando llega el cartero. Sale a correr al parque cada mañana. " * 3
    kb = DocumentKnowledge(store, debounce_seconds=60)
    kb.set_content(f"{gato.strip()}\n\n{perro.strip()}")

    result = kb.retrieve_context("tengo un gato")

    assert kb.status().chunk_count == 2
    assert result is not None
    assert "El gato come pescado" in result
    assert "perro" not in result
