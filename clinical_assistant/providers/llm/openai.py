from typing import Optional

import openai
from openai import AsyncOpenAI
from tenacity import retry, retry_if_exception_type

from .base import LLMProvider, RETRY_LOG, RETRY_STOP, RETRY_WAIT

TRANSIENT_ERRORS = (
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.RateLimitError,
    openai.InternalServerError,
)


class OpenAIProvider(LLMProvider):
    """OpenAI chat completions in JSON mode"""

    def __init__(self, api_key: str, model: str = "gpt-4o", max_tokens: int = 1024, temperature: float = 0.2):
        self.client = AsyncOpenAI(api_key=api_key)
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    @retry(
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        stop=RETRY_STOP,
        wait=RETRY_WAIT,
        before_sleep=RETRY_LOG,
        reraise=True,
    )
    async def generate(self, prompt: str, system: Optional[str] = None, **kwargs) -> str:
        """Generate a JSON completion, retrying transient API errors"""
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        response = await self.client.chat.completions.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            response_format={"type": "json_object"},
            messages=messages,
            **kwargs
        )
        return response.choices[0].message.content or ""

    def get_provider_name(self) -> str:
        return "openai"

    def get_model_name(self) -> str:
        return self.model
