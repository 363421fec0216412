"""holorag: retrieval-augmented context for a chat assistant."""

__version__ = "0.1.0"
