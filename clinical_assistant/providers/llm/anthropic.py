from typing import Optional

import anthropic
from anthropic import AsyncAnthropic
from tenacity import retry, retry_if_exception_type

from .base import LLMProvider, RETRY_LOG, RETRY_STOP, RETRY_WAIT

TRANSIENT_ERRORS = (
    anthropic.APIConnectionError,
    anthropic.APITimeoutError,
    anthropic.RateLimitError,
    anthropic.InternalServerError,
)


class AnthropicProvider(LLMProvider):
    """Anthropic messages API; JSON output is requested through the prompt"""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-3-5-sonnet-latest",
        max_tokens: int = 1024,
        temperature: float = 0.2,
    ):
        self.client = AsyncAnthropic(api_key=api_key)
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
        """Generate a completion, retrying transient API errors"""
        if system:
            kwargs["system"] = system

        response = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            messages=[{"role": "user", "content": prompt}],
            **kwargs
        )
        # Join text blocks; tool-use blocks are not requested
        return "".join(block.text for block in response.content if block.type == "text")

    def get_provider_name(self) -> str:
        return "anthropic"

    def get_model_name(self) -> str:
        return self.model
