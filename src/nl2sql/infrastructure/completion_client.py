"""
Hosted completion client for Ollama-style servers using httpx.

Posts the raw prompt to {completion_url}/api/generate with streaming off and
returns the "response" field.
"""

from typing import Any, Dict, Optional

import httpx

from ..config import LLMConfig
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id
from ..domain.errors import LLMError
from .llm_client import LLMBackend


logger = get_module_logger()


class CompletionLLMClient(LLMBackend):
    """
    Client for a local or remote completion server (Ollama /api/generate).

    A custom transport can be injected for testing.
    """

    def __init__(self, config: LLMConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(config)
        self.base_url = config.completion_url.rstrip("/")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

        logger.info(
            "CompletionLLMClient initialized",
            base_url=self.base_url,
            model=config.completion_model,
        )

    @property
    def active_model_name(self) -> str:
        return self.config.completion_model

    async def connect(self) -> None:
        if self._is_connected:
            logger.warning("LLM client already connected")
            return

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=float(self.config.timeout_seconds),
            transport=self._transport,
        )
        self._is_connected = True
        logger.info("Completion client ready", base_url=self.base_url, trace_id=current_trace_id())

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        await super().close()

    def _payload(self, prompt: str, max_tokens: Optional[int]) -> Dict[str, Any]:
        options: Dict[str, Any] = {
            "temperature": self.config.temperature,
            "top_p": self.config.top_p,
            "stop": self.config.stop_sequences,
        }
        if max_tokens is not None:
            options["num_predict"] = max_tokens
        return {
            "model": self.config.completion_model,
            "prompt": prompt,
            "stream": False,
            "options": options,
        }

    async def generate(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        """
        Generate a completion from the server.

        Raises:
            LLMError: On HTTP failure, malformed body or empty response
        """
        if not self._is_connected or self._client is None:
            raise LLMError("LLM client is not connected")

        self._validate_input(prompt)
        trace_id = current_trace_id()

        logger.info(
            "Requesting completion",
            prompt_length=len(prompt),
            max_tokens=max_tokens,
            model=self.config.completion_model,
            trace_id=trace_id,
        )

        try:
            response = await self._client.post("/api/generate", json=self._payload(prompt, max_tokens))
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            error_msg = f"Completion server returned {e.response.status_code}: {e.response.text[:200]}"
            logger.error(error_msg, trace_id=trace_id)
            raise LLMError(error_msg, details={"status_code": e.response.status_code}) from e
        except httpx.HTTPError as e:
            error_msg = f"Completion request failed: {e}"
            logger.error(error_msg, error_type=type(e).__name__, trace_id=trace_id)
            raise LLMError(error_msg) from e
        except ValueError as e:
            raise LLMError(f"Completion server returned invalid JSON: {e}") from e

        text = body.get("response") if isinstance(body, dict) else None
        if not text:
            raise LLMError("Completion server returned empty response")

        logger.info("Completion received", response_length=len(text), trace_id=trace_id)
        return str(text)
