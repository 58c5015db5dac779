from __future__ import annotations

try:
    from openai import AzureOpenAI as _AzureOpenAI
    from openai import OpenAI as _OpenAI
except ImportError:
    _OpenAI = None  # type: ignore[assignment,misc]
    _AzureOpenAI = None  # type: ignore[assignment,misc]

from ossdigest_core.providers.base import BaseLLMClient

_INSTALL_HINT = "The 'openai' package is required for this provider. Install it with: pip install 'ossdigest[openai]'"


class OpenAIClient(BaseLLMClient):
    MODEL = "gpt-4o"
    TEMPERATURE = 0.2

    def __init__(self, api_key: str, max_retries: int | None = None):
        if _OpenAI is None:
            raise ImportError(_INSTALL_HINT)
        self.client = _OpenAI(api_key=api_key)
        if max_retries is not None:
            self.MAX_RETRIES = max_retries

    def _call_api(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        response = self.client.chat.completions.create(
            model=self.MODEL,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=self.TEMPERATURE,
            max_tokens=max_tokens,
        )
        return "\n".join((choice.message.content or "") for choice in response.choices).strip()


class AzureOpenAIClient(OpenAIClient):
    """OpenAI chat completions served from an Azure OpenAI deployment.

    Azure routes requests by deployment name, so MODEL is replaced by the
    configured deployment.
    """

    def __init__(
        self,
        api_key: str,
        endpoint: str,
        deployment: str,
        api_version: str = "2024-02-01",
        max_retries: int | None = None,
    ):
        if _AzureOpenAI is None:
            raise ImportError(_INSTALL_HINT)
        self.client = _AzureOpenAI(api_key=api_key, azure_endpoint=endpoint, api_version=api_version)
        self.MODEL = deployment
        if max_retries is not None:
            self.MAX_RETRIES = max_retries
