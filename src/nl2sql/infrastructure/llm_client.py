"""
LLM backend interface and the hosted chat client using LangChain.

The hosted chat client talks to any OpenAI-compatible chat API (Groq by
default) through LangChain's ChatOpenAI.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from langchain_openai import ChatOpenAI
from langchain_core.messages import HumanMessage, SystemMessage, BaseMessage
from pydantic import SecretStr

from ..config import LLMConfig
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id
from ..utils.token_utils import InputValidator
from ..domain.errors import ConfigurationError, LLMError


logger = get_module_logger()


class LLMBackend(ABC):
    """
    Text-in, text-out model backend.

    Implementations are selected by LLMConfig.provider through llm_factory.
    """

    def __init__(self, config: LLMConfig):
        self.config = config
        self._is_connected = False

    @property
    @abstractmethod
    def active_model_name(self) -> str:
        """Name of the model this backend generates with."""

    @abstractmethod
    async def connect(self) -> None:
        """Prepare the backend for generation."""

    @abstractmethod
    async def generate(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        """Generate a completion for prompt, bounded by max_tokens."""

    async def close(self) -> None:
        self._is_connected = False
        logger.info("LLM backend closed", model=self.active_model_name, trace_id=current_trace_id())

    def is_connected(self) -> bool:
        return self._is_connected

    def reset_context(self) -> None:
        """Drop any state carried between generations; stateless backends do nothing."""

    def _validate_input(self, prompt: str, system_prompt: Optional[str] = None) -> None:
        try:
            InputValidator.validate_total_chars(
                prompt=prompt,
                system_prompt=system_prompt,
                max_chars=self.config.max_input_chars,
            )
        except ValueError as e:
            raise LLMError(str(e)) from e


class HostedChatLLMClient(LLMBackend):
    """
    Hosted chat client using LangChain's ChatOpenAI.

    Usage:
        client = HostedChatLLMClient(config)
        await client.connect()
        text = await client.generate("### Task\\n...", max_tokens=384)
        await client.close()
    """

    def __init__(self, config: LLMConfig):
        """
        Initialize hosted chat client with configuration.

        Args:
            config: LLM configuration
        """
        super().__init__(config)
        self._llm: Optional[ChatOpenAI] = None

        logger.info(
            "HostedChatLLMClient initialized",
            default_model=config.default_model,
            base_url=config.base_url,
            temperature=config.temperature,
        )

    @property
    def active_model_name(self) -> str:
        return self.config.default_model

    async def connect(self) -> None:
        """
        Initialize LangChain ChatOpenAI client.

        This creates the client configuration but doesn't make any API calls.

        Raises:
            ConfigurationError: If no API key is configured
            LLMError: If initialization fails
        """
        if self._is_connected:
            logger.warning("LLM client already connected")
            return

        if not self.config.api_key:
            raise ConfigurationError(
                "LLM__API_KEY is required for the hosted_chat provider",
                details={"provider": self.config.provider.value},
            )

        trace_id = current_trace_id()
        logger.info("Initializing LLM client", trace_id=trace_id)

        try:
            self._llm = ChatOpenAI(
                model=self.config.default_model,
                api_key=SecretStr(self.config.api_key),
                base_url=self.config.base_url,
                temperature=self.config.temperature,
                top_p=self.config.top_p,
                timeout=self.config.timeout_seconds,
                max_retries=self.config.max_retries,
            )
        except Exception as e:
            error_msg = f"Failed to initialize LLM client: {e}"
            logger.error(error_msg, error_type=type(e).__name__, trace_id=trace_id)
            raise LLMError(error_msg) from e

        self._is_connected = True
        logger.info("LLM client initialized successfully", trace_id=trace_id)

    async def close(self) -> None:
        self._llm = None
        await super().close()

    def is_connected(self) -> bool:
        return self._is_connected and self._llm is not None

    async def generate(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        """
        Generate text response from the hosted model.

        Args:
            prompt: Full prompt text
            max_tokens: Optional completion token budget

        Returns:
            Generated text response

        Raises:
            LLMError: If generation fails or input exceeds the character limit
        """
        if not self.is_connected() or self._llm is None:
            raise LLMError("LLM client is not connected")

        system_prompt = self.config.system_prompt
        self._validate_input(prompt, system_prompt)

        trace_id = current_trace_id()
        logger.info(
            "Generating LLM response",
            prompt_length=len(prompt),
            max_tokens=max_tokens,
            model=self.config.default_model,
            trace_id=trace_id,
        )

        messages: List[BaseMessage] = [
            SystemMessage(content=system_prompt),
            HumanMessage(content=prompt),
        ]

        llm = self._llm
        if max_tokens is not None:
            llm = llm.bind(max_completion_tokens=max_tokens)

        try:
            response = await llm.ainvoke(messages)
        except Exception as e:
            error_msg = f"LLM generation failed: {e}"
            logger.error(
                error_msg,
                error_type=type(e).__name__,
                prompt_length=len(prompt),
                trace_id=trace_id,
            )
            raise LLMError(error_msg) from e

        if not response or not response.content:
            raise LLMError("LLM returned empty response")

        content = str(response.content)
        logger.info("LLM response generated successfully", response_length=len(content), trace_id=trace_id)
        return content
