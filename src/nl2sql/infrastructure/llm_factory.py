"""Select a model backend from configuration."""

from typing import Callable, Dict

from ..config import LLMConfig
from ..config_constants import LLMProvider
from ..domain.errors import ConfigurationError
from .completion_client import CompletionLLMClient
from .llm_client import HostedChatLLMClient, LLMBackend
from .local_llm_client import LocalLLMClient


BACKENDS: Dict[LLMProvider, Callable[[LLMConfig], LLMBackend]] = {
    LLMProvider.HOSTED_CHAT: HostedChatLLMClient,
    LLMProvider.HOSTED_COMPLETION: CompletionLLMClient,
    LLMProvider.LOCAL_WEIGHTS: LocalLLMClient,
}


def create_llm_backend(config: LLMConfig) -> LLMBackend:
    """Build the backend named by config.provider (not yet connected)."""
    try:
        factory = BACKENDS[config.provider]
    except KeyError as e:
        raise ConfigurationError(f"Unsupported LLM provider: {config.provider}") from e
    return factory(config)
