"""Shared pytest fixtures."""

from __future__ import annotations

import io
import json
import sqlite3
import urllib.error
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from holorag.rag.llm_client import ProbeResult
from holorag.store.files import FileStore

# Toy embedding space: one dimension per vocabulary word.
VOCAB = ("gato", "perro", "factura", "cliente", "pedido", "horario", "envio", "pago")


def bag_vector(text: str) -> list[float]:
    lower = text.lower()
    return [float(lower.count(word)) for word in VOCAB]


class FakeBackend:
    """Stand-in for EmbeddingBackend with deterministic bag-of-words vectors."""

    def __init__(self, connected: bool = True, model: str = "ollama/nomic-embed-text") -> None:
        self.model = model
        self.api_base = "http://localhost:11434"
        self.connected = connected
        self.reachable = connected
        self.fail_embed = False
        self.calls: list[list[str]] = []

    @property
    def model_name(self) -> str:
        return self.model.split("/", 1)[1]

    def probe(self) -> ProbeResult:
        self.connected = self.reachable
        return ProbeResult(available=self.reachable, model_present=self.reachable)

    def embed_one(self, text: str) -> list[float]:
        return self.embed_many([text])[0]

    def embed_many(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.fail_embed:
            raise ConnectionError("embedding backend down")
        return [bag_vector(t) for t in texts]


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def store(tmp_path) -> FileStore:
    return FileStore(tmp_path / "data")


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path, monkeypatch):
    """Never read the developer's ~/.holorag/config.yaml or HOLORAG_* env vars."""
    monkeypatch.setattr(
        "holorag.config._GLOBAL_CONFIG_PATH", tmp_path / "global-home" / "config.yaml"
    )
    for var in (
        "HOLORAG_EMBEDDING_MODEL",
        "HOLORAG_GENERATION_MODEL",
        "HOLORAG_DATA_DIR",
        "OLLAMA_BASE_URL",
        "HOLORAG_LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def make_backend():
    """Factory for extra FakeBackend instances (other model, disconnected …)."""
    return FakeBackend


@pytest.fixture
def erp_db(tmp_path) -> Path:
    """Small SQLite database with four related tables."""
    path = tmp_path / "erp.db"
    conn = sqlite3.connect(path)
    conn.executescript(
        """
        CREATE TABLE clientes (id INTEGER PRIMARY KEY, nombre TEXT NOT NULL, ciudad TEXT);
        CREATE TABLE depositos (id INTEGER PRIMARY KEY, direccion TEXT);
        CREATE TABLE facturas (
            id INTEGER PRIMARY KEY,
            cliente_id INTEGER REFERENCES clientes(id),
            total REAL DEFAULT 0
        );
        CREATE TABLE vendedores (id INTEGER PRIMARY KEY, nombre TEXT);
        INSERT INTO clientes (nombre, ciudad) VALUES ('Ana', 'Rosario'), ('Beto', 'Salta'), ('Caro', 'Mendoza');
        """
    )
    conn.commit()
    conn.close()
    return path


@pytest.fixture
def ollama_up():
    """Pretend a local Ollama is serving nomic-embed-text; embeddings are bag vectors."""
    tags = json.dumps({"models": [{"name": "nomic-embed-text:latest"}]}).encode("utf-8")

    def _urlopen(url, timeout=None):
        ctx = MagicMock()
        ctx.__enter__.return_value = io.BytesIO(tags)
        ctx.__exit__.return_value = False
        return ctx

    def _embedding(model, input, **kwargs):
        response = MagicMock()
        response.data = [{"embedding": bag_vector(text)} for text in input]
        return response

    with patch("holorag.rag.llm_client.urllib.request.urlopen", side_effect=_urlopen), patch(
        "holorag.rag.llm_client.litellm.embedding", side_effect=_embedding
    ) as mock_embedding:
        yield mock_embedding


@pytest.fixture
def ollama_down():
    with patch(
        "holorag.rag.llm_client.urllib.request.urlopen",
        side_effect=urllib.error.URLError("connection refused"),
    ):
        yield
