"""Exchange summarizer — condense a chat turn into one memory sentence via LiteLLM.

Called once per admitted exchange, before embedding. If the LLM call fails
the raw exchange is kept (truncated) rather than losing the memory.
"""

from __future__ import annotations

import logging

from holorag.rag.llm_client import complete

logger = logging.getLogger(__name__)

_SUMMARY_SYSTEM = (
    "Summarize the relevant information in this exchange in one short sentence. "
    "Ignore courtesies, greetings and irrelevant parts — keep only the important fact. "
    "Reply ONLY with the summary sentence, in the language of the exchange, "
    "without any explanation."
)

_DEFAULT_MODEL = "groq/llama-3.3-70b-versatile"
_DEFAULT_MAX_TOKENS = 60
_FALLBACK_CHARS = 150


class ExchangeSummarizer:
    """Generate a one-sentence summary of a user/assistant exchange.

    Args:
        model:       LiteLLM model string for summary generation.
        max_tokens:  Maximum tokens in the generated summary.
        temperature: Sampling temperature.
    """

    def __init__(
        self,
        model: str = _DEFAULT_MODEL,
        max_tokens: int = _DEFAULT_MAX_TOKENS,
        temperature: float = 0.1,
    ) -> None:
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature

    @property
    def model(self) -> str:
        return self._model

    def summarize(self, user_message: str, assistant_message: str) -> str | None:
        """Return the summary, or None if the LLM produced nothing.

        On LLM failure, returns the first 150 characters of the raw exchange.
        """
        try:
            raw = complete(
                model=self._model,
                messages=[
                    {"role": "system", "content": _SUMMARY_SYSTEM},
                    {
                        "role": "user",
                        "content": f'User: "{user_message}"\nAssistant: "{assistant_message}"',
                    },
                ],
                max_tokens=self._max_tokens,
                temperature=self._temperature,
            )
        except Exception as exc:
            logger.warning("Summary generation failed, keeping raw exchange: %s", exc)
            return f"{user_message} - {assistant_message}"[:_FALLBACK_CHARS]

        summary = raw.strip()
        return summary or None
