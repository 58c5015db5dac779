from __future__ import annotations

from ossdigest_core.providers.base import BaseLLMClient


class AnthropicClient(BaseLLMClient):
    MODEL = "claude-sonnet-4-20250514"
    # Low temperature keeps the bracketed categorization format stable.
    TEMPERATURE = 0.3

    def __init__(self, api_key: str, max_retries: int | None = None):
        try:
            from anthropic import Anthropic
        except ImportError:
            raise ImportError(
                "The 'anthropic' package is required for this provider. "
                "Install it with: pip install 'ossdigest[anthropic]'"
            )
        self.client = Anthropic(api_key=api_key)
        if max_retries is not None:
            self.MAX_RETRIES = max_retries

    def _call_api(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        # Imported inside the method because the anthropic package is optional;
        # __init__ already validated it is installed before we reach here.
        from anthropic.types import TextBlock

        response = self.client.messages.create(
            model=self.MODEL,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
            temperature=self.TEMPERATURE,
            max_tokens=max_tokens,
        )
        text_blocks = [block.text for block in response.content if isinstance(block, TextBlock)]
        return "".join(text_blocks).strip()
