import logging
from abc import ABC, abstractmethod
from typing import Optional

from tenacity import before_sleep_log, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)

# Shared retry policy for transient provider errors (rate limits, timeouts, 5xx)
MAX_ATTEMPTS = 3
RETRY_STOP = stop_after_attempt(MAX_ATTEMPTS)
RETRY_WAIT = wait_exponential(min=1, max=10)
RETRY_LOG = before_sleep_log(logger, logging.WARNING)


class LLMProvider(ABC):
    """
    Chat model used by the knowledge gateway.

    Providers return the raw text of the first completion; the gateway is
    responsible for parsing it.
    """

    @abstractmethod
    async def generate(self, prompt: str, system: Optional[str] = None, **kwargs) -> str:
        """Generate a completion for ``prompt``, optionally under a system instruction"""
        pass

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return provider identifier (used in the llm_cache key)"""
        pass

    @abstractmethod
    def get_model_name(self) -> str:
        """Return model name (used in the llm_cache key)"""
        pass

    def __repr__(self) -> str:
        return f"<{type(self).__name__}: {self.get_provider_name()}/{self.get_model_name()}>"
