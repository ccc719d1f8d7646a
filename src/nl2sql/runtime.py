"""
Runtime wiring for the NL2SQL console.

Opens the database and model clients, builds the schema catalog and the
services once, and closes everything on exit.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from .config import Settings, get_settings
from .domain.session import QuerySession
from .infrastructure.database_client import DatabaseClient
from .infrastructure.llm_client import LLMBackend
from .infrastructure.llm_factory import create_llm_backend
from .repositories.schema_repository import SchemaRepository
from .repositories.sql_execution import SQLExecutionRepository
from .services.nl2sql_service import NL2SQLService
from .services.schema_catalog import SchemaCatalog
from .services.step_orchestrator import StepOperator, StepOrchestrator
from .utils.logging import get_module_logger
from .utils.response_log import ResponseLogger


logger = get_module_logger()


@dataclass
class NL2SQLRuntime:
    """Everything a console session needs, connected and ready."""

    settings: Settings
    db_client: DatabaseClient
    llm: LLMBackend
    catalog: SchemaCatalog
    service: NL2SQLService
    session: QuerySession

    def orchestrator(self, operator: Optional[StepOperator] = None) -> StepOrchestrator:
        return StepOrchestrator(self.service, self.settings.nl2sql, operator)


@asynccontextmanager
async def open_runtime(settings: Optional[Settings] = None) -> AsyncIterator[NL2SQLRuntime]:
    """
    Connect clients, build the catalog, and yield a runtime.

    Raises:
        DatabaseConnectionError: If the database is unreachable
        SchemaEmptyError: If the database has no base tables
        ConfigurationError: If the model backend is misconfigured
        LLMError: If the model backend fails to initialize
    """
    settings = settings or get_settings()
    logger.info("Starting NL2SQL runtime", provider=settings.llm.provider.value)

    db_client = DatabaseClient(settings.database)
    llm = create_llm_backend(settings.llm)

    try:
        await db_client.connect()
        catalog = await SchemaCatalog.build(
            SchemaRepository(db_client, schema_filter=settings.database.schema_filter),
            broad_scope_cues=settings.nl2sql.broad_scope_cues,
        )
        await llm.connect()

        service = NL2SQLService(
            llm=llm,
            catalog=catalog,
            execution_repository=SQLExecutionRepository(db_client),
            config=settings.nl2sql,
            query_timeout_seconds=settings.database.query_timeout_seconds,
            response_logger=ResponseLogger(settings.diagnostics),
        )
        session = QuerySession.create(
            history_size=settings.nl2sql.history_size,
            persist_history=settings.nl2sql.persist_history_across_questions,
        )

        yield NL2SQLRuntime(
            settings=settings,
            db_client=db_client,
            llm=llm,
            catalog=catalog,
            service=service,
            session=session,
        )
    finally:
        logger.info("Shutting down NL2SQL runtime")
        if llm.is_connected():
            await llm.close()
        await db_client.close()
