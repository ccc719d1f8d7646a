"""
Configuration module for the NL2SQL application.

This module defines all configuration classes using Pydantic BaseModel and BaseSettings.
Configuration is loaded from environment variables with nested delimiter "__".

Example .env:
    DATABASE__CONNECTION_STRING=DRIVER={ODBC Driver 18 for SQL Server};SERVER=localhost;DATABASE=Shop;Trusted_Connection=yes;TrustServerCertificate=yes
    LLM__PROVIDER=hosted_chat
    LLM__API_KEY=gsk-xxx
    NL2SQL__MAX_STEPS=10

Usage:
    from nl2sql.config import get_settings
    settings = get_settings()
    print(settings.database.query_timeout_seconds)
"""

from functools import lru_cache
from typing import List, Optional

from nl2sql.config_constants import (
    DEFAULT_STOP_SEQUENCES,
    DEFAULT_SYSTEM_PROMPT,
    GROQ_API_URL,
    GROQ_LLM_MODELS,
    OLLAMA_API_URL,
    OLLAMA_LLM_MODELS,
    LLMProvider,
    LogFormat,
    LogLevel,
)

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# DATABASE CONFIGURATION
# =============================================================================

class DatabaseConfig(BaseModel):
    """
    SQL Server connection configuration.

    Used by DatabaseClient for schema introspection and query execution.
    """

    # ODBC connection string for SQL Server
    # Format: DRIVER={ODBC Driver 18 for SQL Server};SERVER=host,1433;DATABASE=db;UID=user;PWD=pass
    connection_string: str

    # Maximum time (seconds) to wait when establishing a new connection
    # Increase for slow networks or distant databases
    connection_timeout_seconds: int = 10

    # Maximum time (seconds) a query can run before being cancelled
    # Protects against runaway queries generated by the model
    query_timeout_seconds: int = 30

    # Application name reported to SQL Server (visible in sys.dm_exec_sessions)
    application_name: str = "nl2sql"

    # If True, every statement runs inside a transaction that is always rolled back
    # CRITICAL for security: backs up the validator if a mutating statement slips through
    enforce_read_only_default: bool = True

    # Optional schema to restrict introspection to (e.g., "dbo"); None = all schemas
    schema_filter: Optional[str] = None


# =============================================================================
# LLM CONFIGURATION
# =============================================================================

class LLMConfig(BaseModel):
    """
    Model backend configuration.

    One of three backends is chosen with `provider`:
    - hosted_chat: OpenAI-compatible chat API (Groq by default) via LangChain
    - hosted_completion: Ollama-style /api/generate endpoint via httpx
    - local_weights: GGUF model file loaded in-process via llama-cpp-python
    """

    # Which backend to use for generation
    provider: LLMProvider = LLMProvider.HOSTED_CHAT

    # API key for the hosted chat provider (get from https://console.groq.com/keys)
    # Required only when provider=hosted_chat
    api_key: Optional[str] = None

    # Base URL for the hosted chat provider (any OpenAI-compatible endpoint works)
    base_url: str = GROQ_API_URL

    # Model name for the hosted chat provider
    default_model: str = GROQ_LLM_MODELS.LLAMA_33_70B_VERSATILE.value

    # Base URL of the completion server (Ollama listens on 11434 by default)
    completion_url: str = OLLAMA_API_URL

    # Model name for the completion server
    completion_model: str = OLLAMA_LLM_MODELS.CODELLAMA_13B.value

    # Path to a GGUF weights file for provider=local_weights
    # When unset, standard locations (~/Models, ./models, .) are searched
    model_path: Optional[str] = None

    # Context window (tokens) for the local model
    context_size: int = 4096

    # CPU threads for local inference; None lets llama.cpp decide
    n_threads: Optional[int] = None

    # Layers offloaded to GPU for local inference; 0 = CPU only
    n_gpu_layers: int = 0

    # Sampling temperature (0.0-1.0)
    # Lower = more deterministic; 0.0-0.2 recommended for SQL generation
    temperature: float = 0.1

    # Nucleus sampling parameter (0.0-1.0)
    top_p: float = 0.95

    # Maximum time (seconds) to wait for a hosted response
    timeout_seconds: int = 120

    # Number of retry attempts on transient hosted errors (rate limits, timeouts)
    max_retries: int = 2

    # Maximum characters allowed in model input (prompt + system prompt)
    # Protects against context window overflow; adjust per model limits
    max_input_chars: int = 50000

    # System prompt sent with every hosted chat request
    system_prompt: str = DEFAULT_SYSTEM_PROMPT

    # Stop sequences for completion-style backends
    stop_sequences: List[str] = list(DEFAULT_STOP_SEQUENCES)


# =============================================================================
# NL2SQL PIPELINE CONFIGURATION
# =============================================================================

class NL2SQLConfig(BaseModel):
    """
    Configuration for the query pipeline and the multi-step planner.

    These settings balance answer quality against latency and result size.
    """

    # Token budget for single-shot and conversational generation
    single_step_max_tokens: int = 384

    # Token budget for each multi-step planning turn
    planning_max_tokens: int = 512

    # Hard ceiling on steps recorded in one multi-step plan
    max_steps: int = 10

    # Number of previous exchanges kept as prompt context
    history_size: int = 4

    # If True, exchange summaries survive across top-level questions
    # Default keeps each question independent
    persist_history_across_questions: bool = False

    # TOP value injected into unfiltered, unbounded SELECTs
    default_row_cap: int = 1000

    # Sample rows included in a result digest fed back to the model
    digest_sample_rows: int = 3

    # Tokens in a question that force the full schema into the prompt
    broad_scope_cues: List[str] = ["all", "analyze"]

    # If False, the full schema is always sent
    schema_filtering_enabled: bool = True


# =============================================================================
# DIAGNOSTICS CONFIGURATION
# =============================================================================

class DiagnosticsConfig(BaseModel):
    """
    Raw model response capture for prompt debugging.
    """

    # If True, every raw model response is written to response_log_dir
    log_responses: bool = False

    # Directory for response_YYYYMMDD_HHMMSS_fff.txt files
    response_log_dir: str = "llm_logs"


# =============================================================================
# APPLICATION CONFIGURATION
# =============================================================================

class AppConfig(BaseModel):
    """
    General application settings.

    Controls logging verbosity and output format.
    """

    # Logging level: DEBUG, INFO, WARNING, ERROR
    # DEBUG: verbose, includes prompts and SQL (development)
    # WARNING: default for interactive console use
    log_level: LogLevel = LogLevel.WARNING

    # Log renderer: json (pretty JSON) or console (coloured single line)
    log_format: LogFormat = LogFormat.CONSOLE


# =============================================================================
# ROOT SETTINGS (Environment Loading)
# =============================================================================

class Settings(BaseSettings):
    """
    Root settings class that loads all configuration from environment.

    Environment variables use "__" (double underscore) as nested delimiter.
    Example: DATABASE__CONNECTION_STRING sets settings.database.connection_string

    Required environment variables (no defaults):
    - DATABASE__CONNECTION_STRING
    - LLM__API_KEY (only for LLM__PROVIDER=hosted_chat)
    """

    # SQL Server connection settings
    database: DatabaseConfig

    # Model backend settings
    llm: LLMConfig = LLMConfig()

    # Pipeline and planner settings
    nl2sql: NL2SQLConfig = NL2SQLConfig()

    # Raw response capture
    diagnostics: DiagnosticsConfig = DiagnosticsConfig()

    # Application-wide settings
    app: AppConfig = AppConfig()

    model_config = SettingsConfigDict(
        env_file=".env",            # Load from .env file in project root
        env_file_encoding="utf-8",  # UTF-8 encoding for .env file
        case_sensitive=False,       # ENV_VAR and env_var are equivalent
        env_nested_delimiter="__",  # Use __ for nested config (DATABASE__CONNECTION_STRING)
        extra="ignore",
    )


# =============================================================================
# SINGLETON ACCESSOR
# =============================================================================

@lru_cache
def get_settings() -> Settings:
    """
    Get cached Settings instance (singleton pattern).

    Settings are loaded once and cached for the lifetime of the process.
    Call get_settings.cache_clear() after changing the environment in tests.

    Returns:
        Settings instance with all configuration loaded from environment
    """
    return Settings()  # type: ignore[call-arg]
