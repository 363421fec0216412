"""holorag ingest pipeline — chunkers, embedding writer, exchange summarizer."""

from holorag.ingest.base import BaseChunker
from holorag.ingest.embedding_writer import EmbeddingWriter
from holorag.ingest.paragraph import ParagraphChunker
from holorag.ingest.recursive import RecursiveChunker
from holorag.ingest.summarizer import ExchangeSummarizer

__all__ = [
    "BaseChunker",
    "EmbeddingWriter",
    "ExchangeSummarizer",
    "ParagraphChunker",
    "RecursiveChunker",
]
