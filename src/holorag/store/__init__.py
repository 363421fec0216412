"""holorag persistence layer — file store, debounced writes, shared models."""

from holorag.store.background import run_in_background
from holorag.store.debounce import Debouncer
from holorag.store.files import FileStore
from holorag.store.models import Chunk, EngineState, IndexResult, MemoryEntry, VectorEntry

__all__ = [
    "Chunk",
    "Debouncer",
    "EngineState",
    "FileStore",
    "IndexResult",
    "MemoryEntry",
    "VectorEntry",
    "run_in_background",
]
