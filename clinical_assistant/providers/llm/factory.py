import logging
from typing import Dict, Optional, Type

from .base import LLMProvider
from .openai import OpenAIProvider
from .anthropic import AnthropicProvider
from clinical_assistant.config import settings

logger = logging.getLogger(__name__)

PROVIDERS: Dict[str, Type[LLMProvider]] = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
}


class LLMFactory:
    """Builds the knowledge gateway's LLM provider from settings"""

    @staticmethod
    def create(model: Optional[str] = None) -> LLMProvider:
        """
        Create the configured provider.

        Args:
            model: Optional model override. If None, uses settings.llm_model

        Raises:
            ValueError: If the provider is unsupported or model/key are missing
        """
        provider = settings.llm_provider.lower()
        model_name = model or settings.llm_model

        if not model_name:
            raise ValueError("LLM_MODEL not configured. Set it in .env (e.g., 'gpt-4o' for OpenAI)")

        if not settings.llm_api_key:
            raise ValueError("LLM_API_KEY not configured. Set it in .env")

        provider_cls = PROVIDERS.get(provider)
        if provider_cls is None:
            raise ValueError(f"Unsupported LLM provider: {provider} (expected one of {sorted(PROVIDERS)})")

        logger.info("Using %s model %s for knowledge queries", provider, model_name)
        return provider_cls(
            api_key=settings.llm_api_key,
            model=model_name,
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
        )
