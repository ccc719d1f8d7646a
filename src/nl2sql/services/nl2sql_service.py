"""
NL2SQL Service - single-shot orchestrator for natural language to SQL.

This service is a THIN ORCHESTRATOR that coordinates repositories:
1. SchemaCatalog - Relevant schema for the prompt
2. PromptBuilder - Prompt assembly
3. ResponseExtractor - Candidate statements from model text
4. SQLValidationRepository - Static and schema-aware checks
5. DialectNormalizer - T-SQL rewrites
6. SafetyLimiter - Row cap and cost advisories
7. SQLExecutionRepository - Read-only execution

Key principles:
- Service layer only orchestrates, no business logic
- All logic lives in repositories
- Validation failures and single-query execution failures become structured
  outcomes; only connectivity failures propagate
"""

from datetime import datetime, timezone
from typing import List, Optional, Sequence

from ..config import NL2SQLConfig
from ..domain.base_enums import PromptMode
from ..domain.errors import DatabaseConnectionError, NL2SQLException, SQLValidationError
from ..domain.responses import (
    AnalysisResponse,
    PreparedStatement,
    QueryExecutionResult,
    QueryOutcome,
    SelfTestReport,
)
from ..domain.session import QuerySession
from ..infrastructure.llm_client import LLMBackend
from ..repositories.dialect_normalization import DialectNormalizer
from ..repositories.prompt_builder import PromptBuilder
from ..repositories.response_extraction import ResponseExtractor
from ..repositories.safety_limits import SafetyLimiter
from ..repositories.sql_execution import SQLExecutionRepository
from ..repositories.sql_validation import SQLValidationRepository
from ..utils.logging import get_module_logger
from ..utils.response_log import ResponseLogger
from ..utils.result_digest import summarize_statements
from ..utils.tracing import current_trace_id, start_new_trace
from .schema_catalog import SchemaCatalog


logger = get_module_logger()


class NL2SQLService:
    """
    Single-shot pipeline: question -> prompt -> model -> candidates -> prepared SQL.

    Also owns statement preparation and execution used by StepOrchestrator,
    so every statement runs through the same validate/normalize/limit chain.
    """

    def __init__(
        self,
        llm: LLMBackend,
        catalog: SchemaCatalog,
        execution_repository: SQLExecutionRepository,
        config: NL2SQLConfig,
        query_timeout_seconds: int = 30,
        prompt_builder: Optional[PromptBuilder] = None,
        extractor: Optional[ResponseExtractor] = None,
        validation_repository: Optional[SQLValidationRepository] = None,
        normalizer: Optional[DialectNormalizer] = None,
        limiter: Optional[SafetyLimiter] = None,
        response_logger: Optional[ResponseLogger] = None,
    ):
        self.llm = llm
        self.catalog = catalog
        self.execution_repo = execution_repository
        self.config = config
        self.query_timeout_seconds = query_timeout_seconds
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.extractor = extractor or ResponseExtractor()
        self.validation_repo = validation_repository or SQLValidationRepository(catalog)
        self.normalizer = normalizer or DialectNormalizer()
        self.limiter = limiter or SafetyLimiter(config.default_row_cap)
        self.response_logger = response_logger

        logger.info(
            "NL2SQLService initialized",
            model=llm.active_model_name,
            table_count=catalog.table_count,
            default_row_cap=config.default_row_cap,
        )

    # =========================================================================
    # Model interaction
    # =========================================================================

    def schema_block_for(self, question: str) -> str:
        if self.config.schema_filtering_enabled:
            return self.catalog.relevant_subset(question)
        return self.catalog.schema_context

    async def complete(self, prompt: str, max_tokens: int) -> str:
        """Call the model and persist the exchange when diagnostics are on."""
        response = await self.llm.generate(prompt, max_tokens=max_tokens)
        if self.response_logger is not None:
            self.response_logger.save(prompt, response)
        return response

    async def generate_response(
        self,
        question: str,
        session: QuerySession,
        mode: PromptMode = PromptMode.CONVERSATIONAL,
    ) -> AnalysisResponse:
        """
        Ask the model about question and prepare every statement it proposed.

        Args:
            question: Natural language question
            session: Session whose history is included and extended
            mode: SINGLE_STEP or CONVERSATIONAL output contract

        Returns:
            AnalysisResponse with accepted and rejected statements

        Raises:
            LLMError: If the model backend fails
        """
        trace_id = current_trace_id()

        prompt = self.prompt_builder.build(
            question=question,
            schema_block=self.schema_block_for(question),
            history=session.history_for(mode),
            mode=mode,
        )

        logger.info(
            "Generating response",
            mode=mode.value,
            prompt_length=len(prompt),
            history_entries=len(session.history_for(mode)),
            trace_id=trace_id,
        )

        raw_response = await self.complete(prompt, self.config.single_step_max_tokens)
        candidates = self.extractor.extract(raw_response)

        response = AnalysisResponse(question=question, raw_response=raw_response, candidates=candidates)
        for candidate in candidates:
            prepared = self.prepare(candidate.sql)
            candidate.verdict = prepared.verdict
            if prepared.accepted:
                response.statements.append(prepared)
            else:
                response.rejected.append(prepared)

        session.record_exchange(
            question,
            summarize_statements(self.accepted_sql(response)),
            mode,
        )

        logger.info(
            "Response processed",
            candidates=len(candidates),
            accepted=len(response.statements),
            rejected=len(response.rejected),
            trace_id=trace_id,
        )
        return response

    # =========================================================================
    # Statement preparation and execution
    # =========================================================================

    def prepare(self, sql: str) -> PreparedStatement:
        """Validate, normalize and limit one statement."""
        verdict = self.validation_repo.validate(sql)
        if not verdict.accepted:
            return PreparedStatement(original_sql=sql, verdict=verdict)

        final_sql = self.limiter.apply_limits(self.normalizer.normalize(sql))
        advisories = self.limiter.expense_reasons(final_sql)
        if advisories:
            logger.warning("Potentially expensive query", reasons=advisories, trace_id=current_trace_id())

        return PreparedStatement(
            original_sql=sql,
            verdict=verdict,
            final_sql=final_sql,
            is_expensive=bool(advisories),
            advisories=advisories,
        )

    async def execute_prepared(self, prepared: PreparedStatement) -> QueryExecutionResult:
        if not prepared.accepted or prepared.final_sql is None:
            raise SQLValidationError(
                prepared.verdict.message,
                details=prepared.verdict.model_dump(exclude_none=True, mode="json"),
            )
        return await self.execution_repo.execute(prepared.final_sql, timeout_seconds=self.query_timeout_seconds)

    async def execute_sql(self, sql: str) -> QueryExecutionResult:
        """
        Prepare and execute one statement.

        Raises:
            SQLValidationError: If the statement is rejected
            DatabaseConnectionError: If the database is unreachable
            DatabaseQueryError: If execution fails or times out
        """
        return await self.execute_prepared(self.prepare(sql))

    # =========================================================================
    # Question answering
    # =========================================================================

    async def process_question(self, question: str, session: QuerySession) -> QueryOutcome:
        """
        Answer a question with the first accepted statement the model produces.

        Returns:
            QueryOutcome; failures other than lost connectivity are reported
            in error_message rather than raised
        """
        trace_id = current_trace_id()
        start_time = datetime.now(timezone.utc)
        outcome = QueryOutcome(question=question, success=False)

        try:
            response = await self.generate_response(question, session, mode=PromptMode.SINGLE_STEP)
            if not response.has_sql:
                reasons = [r.verdict.message for r in response.rejected]
                outcome.error_message = (
                    "No valid SQL in model response" + (f": {'; '.join(reasons)}" if reasons else "")
                )
            else:
                statement = response.statements[0]
                outcome.sql = statement.final_sql
                outcome.result = await self.execute_prepared(statement)
                outcome.success = True
        except DatabaseConnectionError:
            raise
        except NL2SQLException as e:
            outcome.error_message = e.message
            logger.error("Question failed", error_code=e.error_code, error=e.message, trace_id=trace_id)

        outcome.processing_time_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
        return outcome

    async def run_self_test(self, questions: Sequence[str]) -> SelfTestReport:
        """
        Run each question end to end from a clean context.

        Every question gets its own throwaway session, so the caller's
        conversation history is left untouched.

        Raises:
            DatabaseConnectionError: If the database becomes unreachable
        """
        report = SelfTestReport()
        for index, question in enumerate(questions, start=1):
            start_new_trace()
            self.llm.reset_context()
            session = QuerySession.create(
                history_size=self.config.history_size,
                persist_history=self.config.persist_history_across_questions,
            )
            session.begin_question()

            outcome = await self.process_question(question, session)
            report.outcomes.append(outcome)

            logger.info(
                "Self-test question finished",
                index=index,
                total=len(questions),
                success=outcome.success,
                trace_id=current_trace_id(),
            )

        logger.info(
            "Self-test complete",
            passed=report.passed,
            failed=report.failed,
            success_rate=round(report.success_rate, 1),
        )
        return report

    @staticmethod
    def accepted_sql(response: AnalysisResponse) -> List[str]:
        return [s.final_sql for s in response.statements if s.final_sql]
