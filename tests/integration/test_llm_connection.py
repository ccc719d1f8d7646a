"""
Integration tests for the configured model backend.

This module verifies connectivity to whichever backend LLM__PROVIDER selects
and that it produces usable SQL for a trivial prompt.

Usage:
    # Run all model backend tests
    pytest tests/integration/test_llm_connection.py -m integration -v

    # Run with output
    pytest tests/integration/test_llm_connection.py -m integration -v -s
"""

import pytest

from nl2sql.config import get_settings
from nl2sql.infrastructure.llm_factory import create_llm_backend
from nl2sql.repositories.prompt_builder import PromptBuilder
from nl2sql.repositories.response_extraction import ResponseExtractor


@pytest.fixture
def llm_config():
    """Get LLM configuration from settings."""
    settings = get_settings()
    return settings.llm


@pytest.fixture
async def llm_client(llm_config):
    """Create and connect the configured backend."""
    client = create_llm_backend(llm_config)
    await client.connect()
    yield client
    if client.is_connected():
        await client.close()


@pytest.mark.integration
class TestLLMConnection:
    """Integration tests for model backend connectivity."""

    async def test_basic_connection(self, llm_config):
        """Test basic backend connection and disconnection."""
        client = create_llm_backend(llm_config)

        await client.connect()
        assert client.is_connected()

        await client.close()
        assert not client.is_connected()

    async def test_config_applied(self, llm_config, llm_client):
        """Test that configuration is properly applied."""
        assert llm_client.config == llm_config
        assert llm_client.active_model_name


@pytest.mark.integration
class TestSimpleGeneration:
    """Integration tests for text generation."""

    async def test_generate_simple_text(self, llm_client):
        response = await llm_client.generate("What is 2 + 2? Answer with just the number.", max_tokens=16)

        assert isinstance(response, str)
        assert len(response) > 0

    async def test_generate_sql(self, llm_client):
        """A single-step prompt over a one-table schema yields an extractable statement."""
        prompt = PromptBuilder().build(
            question="How many orders are there?",
            schema_block="Table: dbo.Orders\n  - OrderID (int, PRIMARY KEY)\n  - OrderDate (datetime)",
        )

        response = await llm_client.generate(prompt, max_tokens=128)

        assert ResponseExtractor.first_statement(response) is not None
