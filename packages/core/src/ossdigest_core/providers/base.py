"""Base LLM client implementing the Template Method pattern.

All providers share the same invocation algorithm:
    invoke() → prompt (custom text, or rendered from a PromptContext)
             → _call_with_retry() → _call_api()   ← only this differs per provider

Subclasses implement two things only:
  - __init__: validate and store the SDK client
  - _call_api: make one raw API call and return the text response

Failures surface as LLMError so callers can degrade (fallback categorization,
absent summary) without knowing which SDK raised.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from ossdigest_core.errors import LLMError
from ossdigest_core.prompts import DEFAULT_REPOSITORY_TEMPLATE, render_repository_prompt

logger = logging.getLogger(__name__)

# One attempt by default: the summarization engine treats a failed call as
# final for the run, so retrying here would only stretch its timeouts.
_MAX_RETRIES = 1
_MAX_TOKENS = 2048

SYSTEM_PROMPT = "You are an expert open source project summarizer. Answer concisely and follow the requested format."


@dataclass
class PromptContext:
    """Structured input for the built-in repository prompt template."""

    repo: str
    start_date: str
    end_date: str
    period: int = 0
    team_members: list[str] = field(default_factory=list)
    template: str = DEFAULT_REPOSITORY_TEMPLATE


class BaseLLMClient(ABC):
    MODEL: str = ""
    MAX_RETRIES: int = _MAX_RETRIES
    MAX_TOKENS: int = _MAX_TOKENS

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def invoke(
        self,
        context: PromptContext | None = None,
        prompt: str | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Send one prompt and return the raw text response.

        A custom ``prompt`` is sent verbatim; otherwise the prompt is rendered
        from ``context``. Raises LLMError when the provider fails on every
        attempt.
        """
        if prompt is None:
            if context is None:
                raise ValueError("invoke() needs either a prompt or a PromptContext")
            prompt = render_repository_prompt(context)
        return self._call_with_retry(SYSTEM_PROMPT, prompt, max_tokens or self.MAX_TOKENS)

    # ------------------------------------------------------------------ #
    # Abstract: implement in each provider                                #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _call_api(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        """Make a single API call and return the raw text response.

        It should raise on failure; _call_with_retry handles retries and logging.
        """

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def _call_with_retry(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        """Retry _call_api up to MAX_RETRIES times with exponential backoff."""
        attempts = max(self.MAX_RETRIES, 1)
        for attempt in range(attempts):
            try:
                return self._call_api(system_prompt, user_prompt, max_tokens) or ""
            except Exception as e:
                if attempt == attempts - 1:
                    logger.warning(
                        "%s API failed after %d attempt(s): %s",
                        self.__class__.__name__,
                        attempts,
                        e,
                    )
                    raise LLMError(f"{self.__class__.__name__} request failed: {e}") from e
                delay = 2**attempt
                logger.warning(
                    "%s API error (attempt %d/%d): %s. Retrying in %ds...",
                    self.__class__.__name__,
                    attempt + 1,
                    attempts,
                    e,
                    delay,
                )
                time.sleep(delay)
        raise LLMError(f"{self.__class__.__name__} made no attempts")
