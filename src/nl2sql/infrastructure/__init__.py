"""
Infrastructure package for the NL2SQL system.

Thin clients for external systems: SQL Server through pyodbc and the
model backends (hosted chat, hosted completion, local weights).
"""

from .database_client import DatabaseClient
from .llm_client import LLMBackend, HostedChatLLMClient
from .completion_client import CompletionLLMClient
from .local_llm_client import LocalLLMClient
from .llm_factory import create_llm_backend

__all__ = [
    "DatabaseClient",
    "LLMBackend",
    "HostedChatLLMClient",
    "CompletionLLMClient",
    "LocalLLMClient",
    "create_llm_backend",
]
