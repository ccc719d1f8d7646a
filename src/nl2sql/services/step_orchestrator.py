"""
Step Orchestrator - multi-step query planning loop.

The model is asked, one turn at a time, either for the next query it needs
or for a final summary. Each proposed query is confirmed by the operator,
run through NL2SQLService, and its digest fed back into the next prompt.

States:
    planning -> awaiting_confirmation -> executing -> summarizing -> planning
    terminal: complete | cancelled | failed | step_limit_reached

Failure policy:
- A rejected or failed query fails that step only; planning continues
- Lost connectivity, a model backend failure or an unparseable planning
  reply fails the whole plan
- The loop never records more than max_steps steps
"""

import time
from typing import List, Optional, Protocol, Tuple

from ..config import NL2SQLConfig
from ..domain.base_enums import PlannerReplyKind, PlanStatus, PromptMode, StepDecision, StepOutcome
from ..domain.errors import (
    DatabaseConnectionError,
    DatabaseQueryError,
    LLMError,
    PlanParseError,
    SQLValidationError,
)
from ..domain.plan import Plan, PlannerReply, QueryStep
from ..domain.responses import QueryExecutionResult
from ..domain.session import QuerySession
from ..utils.logging import get_module_logger
from ..utils.result_digest import summarize_result
from ..utils.tracing import current_trace_id
from .nl2sql_service import NL2SQLService


logger = get_module_logger()


class StepOperator(Protocol):
    """Human (or scripted) side of the planning loop."""

    def confirm(self, step_number: int, explanation: str, sql: str) -> StepDecision:
        """Decide whether a proposed step runs; blocks until answered."""
        ...

    def notify(self, step: QueryStep, result: Optional[QueryExecutionResult]) -> None:
        """Report a recorded step and its result, if any."""
        ...


class AutoApproveOperator:
    """Operator that runs every proposed step without asking."""

    def confirm(self, step_number: int, explanation: str, sql: str) -> StepDecision:
        return StepDecision.PROCEED

    def notify(self, step: QueryStep, result: Optional[QueryExecutionResult]) -> None:
        return None


class StepOrchestrator:
    """
    Drives one multi-step analysis per call to run().

    Usage:
        orchestrator = StepOrchestrator(service, settings.nl2sql, operator)
        plan = await orchestrator.run("Which categories grew fastest?", session)
        if plan.is_complete:
            print(plan.final_summary)
    """

    def __init__(
        self,
        service: NL2SQLService,
        config: NL2SQLConfig,
        operator: Optional[StepOperator] = None,
    ):
        self.service = service
        self.config = config
        self.operator: StepOperator = operator or AutoApproveOperator()

    async def run(self, question: str, session: QuerySession) -> Plan:
        """
        Plan and execute steps until completion, cancellation, failure or the step ceiling.

        Args:
            question: Original user question
            session: Session whose history is used when persistence is on

        Returns:
            The finished Plan
        """
        trace_id = current_trace_id()
        plan = Plan(original_question=question)
        notes: List[str] = []
        step_number = 1

        logger.info("Multi-step analysis started", max_steps=self.config.max_steps, trace_id=trace_id)

        while not plan.is_terminal:
            if step_number > self.config.max_steps:
                plan.status = PlanStatus.STEP_LIMIT_REACHED
                logger.warning("Step limit reached", max_steps=self.config.max_steps, trace_id=trace_id)
                break

            plan.status = PlanStatus.PLANNING
            try:
                reply = await self._plan_next_step(plan, session, notes, step_number)
            except (PlanParseError, LLMError) as e:
                plan.status = PlanStatus.FAILED
                plan.error_message = e.message
                logger.error("Planning failed", error_code=e.error_code, error=e.message, trace_id=trace_id)
                break

            if reply.kind == PlannerReplyKind.COMPLETE:
                plan.status = PlanStatus.COMPLETE
                plan.final_summary = reply.summary
                break

            explanation = reply.explanation or f"Step {step_number}"
            sql = reply.sql or ""

            plan.status = PlanStatus.AWAITING_CONFIRMATION
            decision = self.operator.confirm(step_number, explanation, sql)

            if decision == StepDecision.CANCEL:
                self._record(plan, QueryStep(
                    step_number=step_number, explanation=explanation, sql=sql, outcome=StepOutcome.CANCELLED,
                ))
                plan.status = PlanStatus.CANCELLED
                break

            if decision == StepDecision.SKIP:
                self._record(plan, QueryStep(
                    step_number=step_number, explanation=explanation, sql=sql, outcome=StepOutcome.SKIPPED,
                ))
                notes.append(f"Step {step_number} was skipped by user.")
                step_number += 1
                continue

            plan.status = PlanStatus.EXECUTING
            note = await self._execute_step(plan, step_number, explanation, sql)
            if plan.status == PlanStatus.FAILED:
                break

            plan.status = PlanStatus.SUMMARIZING
            notes.append(note)
            step_number += 1

        session.record_exchange(question, self._plan_digest(plan), PromptMode.MULTI_STEP)

        logger.info(
            "Multi-step analysis finished",
            status=plan.status.value,
            steps=len(plan.steps),
            executed=len(plan.executed_steps),
            trace_id=trace_id,
        )
        return plan

    async def _plan_next_step(
        self,
        plan: Plan,
        session: QuerySession,
        notes: List[str],
        step_number: int,
    ) -> PlannerReply:
        """
        Ask the model for the next step.

        Raises:
            PlanParseError: If the reply is neither a next step nor a completion
            LLMError: If the model backend fails
        """
        prior_results: List[Tuple[int, str]] = [
            (step.step_number, step.result_digest or "") for step in plan.executed_steps
        ]

        prompt = self.service.prompt_builder.build(
            question=plan.original_question,
            schema_block=self.service.catalog.schema_context,
            history=session.history_for(PromptMode.MULTI_STEP) + notes,
            mode=PromptMode.MULTI_STEP,
            step_number=step_number,
            prior_results=prior_results,
        )

        logger.info("Planning step", step_number=step_number, prompt_length=len(prompt), trace_id=current_trace_id())

        raw_reply = await self.service.complete(prompt, self.config.planning_max_tokens)
        reply = self.service.extractor.parse_step_reply(raw_reply, step_number)

        if reply.kind == PlannerReplyKind.UNPARSEABLE:
            raise PlanParseError(
                f"Model reply for step {step_number} contained neither a query nor a completion signal",
                details={"step_number": step_number, "reply": raw_reply[:500]},
            )
        return reply

    async def _execute_step(self, plan: Plan, step_number: int, explanation: str, sql: str) -> str:
        """Run one confirmed step, record it, and return the history note."""
        started = time.perf_counter()
        result: Optional[QueryExecutionResult] = None

        try:
            result = await self.service.execute_sql(sql)
        except (SQLValidationError, DatabaseQueryError, DatabaseConnectionError) as e:
            step = QueryStep(
                step_number=step_number,
                explanation=explanation,
                sql=sql,
                outcome=StepOutcome.FAILED,
                duration_seconds=time.perf_counter() - started,
                error_message=e.message,
            )
            self._record(plan, step)
            logger.warning("Step failed", step_number=step_number, error=e.message, trace_id=current_trace_id())

            if isinstance(e, DatabaseConnectionError):
                plan.status = PlanStatus.FAILED
                plan.error_message = e.message
            return f"Step {step_number} failed with error: {e.message}"

        digest = summarize_result(result, self.config.digest_sample_rows)
        step = QueryStep(
            step_number=step_number,
            explanation=explanation,
            sql=sql,
            outcome=StepOutcome.EXECUTED,
            result_digest=digest,
            duration_seconds=time.perf_counter() - started,
        )
        self._record(plan, step, result)
        return f"Step {step_number} executed successfully. Results: {digest.splitlines()[0]}"

    def _record(self, plan: Plan, step: QueryStep, result: Optional[QueryExecutionResult] = None) -> None:
        plan.record(step)
        self.operator.notify(step, result)

    @staticmethod
    def _plan_digest(plan: Plan) -> str:
        if plan.final_summary:
            return f"Summary: {plan.final_summary}"
        return f"Analysis ended ({plan.status.value}) after {len(plan.steps)} steps"
