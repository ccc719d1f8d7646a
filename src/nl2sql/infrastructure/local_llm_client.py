"""
In-process model backend using llama-cpp-python and a GGUF weights file.

llama-cpp-python is an optional extra (pip install nl2sql-cli[local]); it is
imported on connect so the other backends work without it.
"""

import asyncio
from pathlib import Path
from typing import Any, List, Optional

from ..config import LLMConfig
from ..config_constants import DEFAULT_GGUF_MODEL_FILE
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id
from ..domain.errors import ConfigurationError, LLMError
from .llm_client import LLMBackend


logger = get_module_logger()


def candidate_model_paths(model_path: Optional[str]) -> List[Path]:
    """Locations searched for the weights file, in order."""
    if model_path:
        return [Path(model_path).expanduser()]
    return [
        Path.home() / "Models" / DEFAULT_GGUF_MODEL_FILE,
        Path.cwd() / "models" / DEFAULT_GGUF_MODEL_FILE,
        Path.cwd() / DEFAULT_GGUF_MODEL_FILE,
    ]


def resolve_model_path(model_path: Optional[str]) -> Path:
    """
    Find the GGUF file to load.

    Raises:
        ConfigurationError: If no candidate exists
    """
    candidates = candidate_model_paths(model_path)
    for path in candidates:
        if path.is_file():
            return path
    raise ConfigurationError(
        "Model file not found",
        details={"searched": [str(p) for p in candidates]},
    )


class LocalLLMClient(LLMBackend):
    """
    Runs a GGUF model in-process.

    Generation is blocking, so it runs in a worker thread.
    """

    def __init__(self, config: LLMConfig):
        super().__init__(config)
        self._model: Any = None
        self.model_path: Optional[Path] = None

    @property
    def active_model_name(self) -> str:
        if self.model_path is not None:
            return self.model_path.name
        return Path(self.config.model_path).name if self.config.model_path else DEFAULT_GGUF_MODEL_FILE

    async def connect(self) -> None:
        """
        Load the weights file.

        Raises:
            ConfigurationError: If the model file cannot be found
            LLMError: If llama-cpp-python is missing or loading fails
        """
        if self._is_connected:
            logger.warning("LLM client already connected")
            return

        self.model_path = resolve_model_path(self.config.model_path)
        trace_id = current_trace_id()
        logger.info("Loading local model", model_path=str(self.model_path), trace_id=trace_id)

        try:
            from llama_cpp import Llama
        except ImportError as e:
            raise LLMError(
                "llama-cpp-python is not installed; install the 'local' extra to use local_weights"
            ) from e

        try:
            self._model = await asyncio.to_thread(
                Llama,
                model_path=str(self.model_path),
                n_ctx=self.config.context_size,
                n_gpu_layers=self.config.n_gpu_layers,
                n_threads=self.config.n_threads,
                use_mmap=True,
                use_mlock=False,
                verbose=False,
            )
        except Exception as e:
            error_msg = f"Failed to load local model: {e}"
            logger.error(error_msg, error_type=type(e).__name__, trace_id=trace_id)
            raise LLMError(error_msg) from e

        self._is_connected = True
        logger.info("Local model loaded", model=self.active_model_name, trace_id=trace_id)

    async def close(self) -> None:
        self._model = None
        await super().close()

    def reset_context(self) -> None:
        """Clear the KV cache so the next prompt starts from a clean state."""
        if self._model is not None:
            self._model.reset()
            logger.debug("Local model context reset")

    async def generate(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        if not self._is_connected or self._model is None:
            raise LLMError("LLM client is not connected")

        self._validate_input(prompt)
        trace_id = current_trace_id()
        logger.info("Generating with local model", prompt_length=len(prompt), max_tokens=max_tokens, trace_id=trace_id)

        try:
            output = await asyncio.to_thread(
                self._model.create_completion,
                prompt,
                max_tokens=max_tokens or 256,
                temperature=self.config.temperature,
                top_p=self.config.top_p,
                stop=self.config.stop_sequences,
            )
        except Exception as e:
            error_msg = f"Local generation failed: {e}"
            logger.error(error_msg, error_type=type(e).__name__, trace_id=trace_id)
            raise LLMError(error_msg) from e

        choices = output.get("choices") or []
        text = choices[0].get("text", "") if choices else ""
        if not text.strip():
            raise LLMError("Local model returned empty response")

        logger.info("Local generation complete", response_length=len(text), trace_id=trace_id)
        return text
