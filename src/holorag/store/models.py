"""Domain models shared by the retrieval engines."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class EngineState(str, Enum):
    """Lifecycle shared by the vector, memory and schema engines."""

    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    INDEXING = "indexing"
    REFRESHING = "refreshing"


@dataclass(frozen=True)
class Chunk:
    source_id: str
    chunk_index: int
    content: str


@dataclass
class VectorEntry:
    content: str
    embedding: list[float]
    source: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VectorEntry:
        return cls(
            content=str(data["content"]),
            embedding=[float(v) for v in data["embedding"]],
            source=str(data["source"]),
        )


@dataclass
class MemoryEntry:
    id: str
    summary: str
    timestamp_ms: int
    embedding: list[float] = field(default_factory=list)
    retrieval_count: int = 0

    @property
    def has_embedding(self) -> bool:
        return len(self.embedding) > 0

    @property
    def eviction_score(self) -> float:
        """Lower is less useful: retrieval count first, then age."""
        return self.retrieval_count * 1000 + self.timestamp_ms / 1e10

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class IndexResult:
    """Outcome of an index, connect or refresh request."""

    success: bool
    message: str
