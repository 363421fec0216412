"""LiteLLM client wrapper — completions, embeddings and backend probing.

All LLM and embedding calls route through this module. Completions use
LiteLLM's built-in retry (exponential backoff). Embedding calls are bounded by
a timeout so that a stalled backend degrades retrieval instead of blocking it.

The ``EmbeddingBackend`` handle is shared by the vector and memory engines.
It keeps only a ``connected`` flag set by ``probe()``; every call is otherwise
stateless.
"""

from __future__ import annotations

import json
import logging
import os
import urllib.error
import urllib.request
from dataclasses import dataclass

import litellm

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}

_LOCAL_PROVIDERS = frozenset({"ollama", "ollama_chat"})


def provider_of(model: str) -> str:
    """Return the provider prefix of a 'provider/model' string ('openai' if absent)."""
    return model.split("/")[0].lower() if "/" in model else "openai"


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Args:
        model: LiteLLM model string in 'provider/model' format.

    Raises:
        EnvironmentError: If the required key is missing from environment.
    """
    provider = provider_of(model)
    env_var = _PROVIDER_ENV.get(provider)

    if env_var is None:
        return  # No key required (e.g. ollama)

    if not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


def complete(
    model: str,
    messages: list[dict],
    max_tokens: int = 256,
    temperature: float = 0.0,
    num_retries: int = 2,
    timeout: float | None = None,
) -> str:
    """Call litellm.completion() with retry/backoff. Returns content string.

    Args:
        model: LiteLLM model string (provider/model format).
        messages: OpenAI-style message list.
        max_tokens: Maximum output tokens.
        temperature: Sampling temperature (0 = deterministic).
        num_retries: Number of retries on transient errors (exponential backoff).
        timeout: Per-request timeout in seconds (None = LiteLLM default).

    Returns:
        The text content of the first choice.

    Raises:
        litellm.exceptions.APIError: On persistent API failure after retries.
    """
    kwargs: dict = {}
    if timeout is not None:
        kwargs["timeout"] = timeout
    response = litellm.completion(
        model=model,
        messages=messages,
        max_tokens=max_tokens,
        temperature=temperature,
        num_retries=num_retries,
        **kwargs,
    )
    return response.choices[0].message.content or ""


def embed_many(
    model: str,
    texts: list[str],
    api_base: str | None = None,
    timeout: float | None = None,
) -> list[list[float]]:
    """Call litellm.embedding() for a batch of texts. Returns one vector per text.

    Raises:
        ValueError: If the backend returns a different number of vectors.
    """
    if not texts:
        return []
    kwargs: dict = {}
    if api_base:
        kwargs["api_base"] = api_base
    if timeout is not None:
        kwargs["timeout"] = timeout
    response = litellm.embedding(model=model, input=texts, **kwargs)
    vectors = [item["embedding"] for item in response.data]
    if len(vectors) != len(texts):
        raise ValueError(
            f"Embedding backend returned {len(vectors)} vectors for {len(texts)} inputs."
        )
    return vectors


def embed(
    model: str,
    text: str,
    api_base: str | None = None,
    timeout: float | None = None,
) -> list[float]:
    """Embed a single text. See embed_many()."""
    return embed_many(model, [text], api_base=api_base, timeout=timeout)[0]


# ------------------------------------------------------------------
# Shared embedding backend
# ------------------------------------------------------------------


@dataclass
class ProbeResult:
    """Outcome of an embedding backend probe.

    Attributes:
        available: The backend answered (or, for hosted providers, a key is set).
        model_present: The configured embedding model is installed/usable.
    """

    available: bool
    model_present: bool

    @property
    def ok(self) -> bool:
        return self.available and self.model_present


class EmbeddingBackend:
    """Shared handle on the embedding model used by the vector and memory engines.

    Args:
        model: LiteLLM embedding model string (e.g. 'ollama/nomic-embed-text').
        api_base: Base URL for local backends (Ollama).
        probe_timeout: Timeout in seconds for the availability probe.
        timeout: Timeout in seconds for embedding requests.
    """

    def __init__(
        self,
        model: str = "ollama/nomic-embed-text",
        api_base: str | None = "http://localhost:11434",
        probe_timeout: float = 3.0,
        timeout: float = 30.0,
    ) -> None:
        self.model = model
        self.api_base = api_base.rstrip("/") if api_base else None
        self.probe_timeout = probe_timeout
        self.timeout = timeout
        self.connected = False

    @property
    def provider(self) -> str:
        return provider_of(self.model)

    @property
    def model_name(self) -> str:
        """Model name without the provider prefix."""
        return self.model.split("/", 1)[1] if "/" in self.model else self.model

    def probe(self) -> ProbeResult:
        """Check reachability and model presence; updates ``connected``."""
        if self.provider in _LOCAL_PROVIDERS:
            result = self._probe_ollama()
        else:
            try:
                validate_api_key(self.model)
                result = ProbeResult(available=True, model_present=True)
            except EnvironmentError as exc:
                logger.warning("%s", exc)
                result = ProbeResult(available=False, model_present=False)

        self.connected = result.ok
        return result

    def embed_one(self, text: str) -> list[float]:
        return embed(self.model, text, api_base=self._call_base(), timeout=self.timeout)

    def embed_many(self, texts: list[str]) -> list[list[float]]:
        return embed_many(self.model, texts, api_base=self._call_base(), timeout=self.timeout)

    def _call_base(self) -> str | None:
        return self.api_base if self.provider in _LOCAL_PROVIDERS else None

    def _probe_ollama(self) -> ProbeResult:
        url = f"{self.api_base or 'http://localhost:11434'}/api/tags"
        try:
            with urllib.request.urlopen(url, timeout=self.probe_timeout) as resp:  # noqa: S310
                payload = json.loads(resp.read().decode("utf-8"))
        except (urllib.error.URLError, OSError, ValueError) as exc:
            logger.warning(
                "Embedding backend unreachable at %s (%s). Start it with: ollama serve",
                self.api_base,
                exc,
            )
            return ProbeResult(available=False, model_present=False)

        models = (payload.get("models") or []) if isinstance(payload, dict) else []
        names = [str(m.get("name", "")) for m in models if isinstance(m, dict)]
        if not any(self.model_name in name for name in names):
            logger.warning(
                "Embedding model '%s' not found. Run: ollama pull %s",
                self.model_name,
                self.model_name,
            )
            return ProbeResult(available=True, model_present=False)

        logger.info("Embedding backend connected, model '%s' available", self.model_name)
        return ProbeResult(available=True, model_present=True)
