"""
NL2SQL CLI

Command-line interface for asking a SQL Server database questions in
natural language.

Usage:
    nl2sql chat                                   # Interactive REPL mode
    nl2sql ask "How many orders do we have?"      # Single question
    nl2sql plan "Which categories grew fastest?"  # Multi-step analysis
    nl2sql selftest                               # Run the built-in question battery
    nl2sql schema                                 # Show the discovered schema
    nl2sql health                                 # Check database and model connectivity

Inside chat, "test" runs the self-test and "/multi <question>" starts a
multi-step analysis.
"""

import asyncio
import sys
from typing import Awaitable, Callable, Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config_constants import (
    DISPLAY_MAX_CELL_CHARS,
    DISPLAY_MAX_ROWS,
    EXIT_COMMANDS,
    MULTI_STEP_PREFIX,
    SELF_TEST_QUESTIONS,
    SELF_TEST_SENTINEL,
)
from .domain.base_enums import PlanStatus, PromptMode, StepDecision, StepOutcome
from .domain.errors import NL2SQLException
from .domain.plan import Plan, QueryStep
from .domain.responses import PreparedStatement, QueryExecutionResult, QueryOutcome, SelfTestReport
from .runtime import NL2SQLRuntime, open_runtime
from .utils.logging import configure_logging
from .utils.token_utils import truncate_value
from .utils.tracing import start_new_trace

console = Console()


# ============================================================================
# Rendering
# ============================================================================


def render_result(result: QueryExecutionResult) -> None:
    """Print a result set as a table, capped at DISPLAY_MAX_ROWS rows."""
    if result.row_count == 0:
        console.print("[dim](No rows returned)[/dim]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    for column in result.column_names:
        table.add_column(column or "(no name)")
    for row in result.rows[:DISPLAY_MAX_ROWS]:
        table.add_row(*(truncate_value(value, DISPLAY_MAX_CELL_CHARS) for value in row))

    console.print(table)
    if result.row_count > DISPLAY_MAX_ROWS:
        console.print(f"[dim]... {result.row_count - DISPLAY_MAX_ROWS} more rows not shown[/dim]")
    console.print(f"[dim]{result.row_count} rows in {result.execution_time_ms:.0f} ms[/dim]")


def render_sql(sql: str, title: str = "SQL") -> None:
    console.print(Panel(sql, title=title, border_style="cyan", highlight=True))


def render_advisories(statement: PreparedStatement) -> None:
    for advisory in statement.advisories:
        console.print(f"[yellow]Warning: {advisory}[/yellow]")


def render_outcome(outcome: QueryOutcome) -> None:
    if outcome.sql:
        render_sql(outcome.sql)
    if outcome.success and outcome.result is not None:
        render_result(outcome.result)
    else:
        console.print(f"[red]Error: {outcome.error_message}[/red]")


def render_self_test(report: SelfTestReport) -> None:
    table = Table(title="Self-test", show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Question")
    table.add_column("Result")
    table.add_column("Rows", justify="right")
    table.add_column("Time (ms)", justify="right")

    for index, outcome in enumerate(report.outcomes, start=1):
        status = "[green]PASS[/green]" if outcome.success else f"[red]FAIL[/red] {outcome.error_message or ''}"
        rows = str(outcome.result.row_count) if outcome.result else "-"
        table.add_row(str(index), outcome.question, status, rows, f"{outcome.processing_time_ms:.0f}")

    console.print(table)
    console.print(
        f"Passed {report.passed}/{report.total}, failed {report.failed} "
        f"([bold]{report.success_rate:.1f}%[/bold] success rate)"
    )


def render_error(error: NL2SQLException) -> None:
    payload = error.to_dict()
    console.print(f"[red]Error ({payload['error_code']}): {payload['message']}[/red]")
    for key, value in payload.get("details", {}).items():
        console.print(f"[dim]  {key}: {value}[/dim]")


def render_plan(plan: Plan) -> None:
    if plan.status == PlanStatus.COMPLETE:
        console.print(Panel(plan.final_summary or "", title="[bold green]Final Summary[/bold green]"))
    elif plan.status == PlanStatus.CANCELLED:
        console.print("[yellow]Multi-step analysis cancelled by user[/yellow]")
    elif plan.status == PlanStatus.STEP_LIMIT_REACHED:
        console.print(f"[yellow]Reached maximum step limit ({len(plan.steps)}). Stopping.[/yellow]")
    elif plan.status == PlanStatus.FAILED:
        console.print(f"[red]Analysis failed: {plan.error_message}[/red]")

    executed = len(plan.executed_steps)
    console.print(f"[dim]{len(plan.steps)} steps proposed, {executed} executed[/dim]")


# ============================================================================
# Multi-step operator
# ============================================================================


class ConsoleOperator:
    """Confirms planned steps at the terminal and prints their results."""

    def confirm(self, step_number: int, explanation: str, sql: str) -> StepDecision:
        console.rule(f"STEP {step_number}")
        console.print(f"[cyan]Step {step_number} Explanation:[/cyan] {explanation}")
        render_sql(sql, title=f"Query #{step_number}")

        answer = console.input(
            f"Execute Query #{step_number}? (Enter=yes, c=cancel all, s=skip step): "
        ).strip().lower()
        if answer == "c":
            return StepDecision.CANCEL
        if answer == "s":
            console.print("[yellow]Step skipped - continuing to next step[/yellow]")
            return StepDecision.SKIP
        return StepDecision.PROCEED

    def notify(self, step: QueryStep, result: Optional[QueryExecutionResult]) -> None:
        if step.outcome == StepOutcome.EXECUTED and result is not None:
            console.print(f"[green]Completed in {step.duration_seconds or 0:.2f}s - {result.row_count} rows returned[/green]")
            render_result(result)
        elif step.outcome == StepOutcome.FAILED:
            console.print(f"[red]Query failed: {step.error_message}[/red]")


# ============================================================================
# Actions
# ============================================================================


async def answer_conversationally(runtime: NL2SQLRuntime, question: str) -> None:
    """Ask the model, then run every accepted statement it proposed."""
    with console.status("[cyan]Thinking...[/cyan]", spinner="dots"):
        response = await runtime.service.generate_response(question, runtime.session, PromptMode.CONVERSATIONAL)

    for rejected in response.rejected:
        console.print(f"[yellow]Skipped query: {rejected.verdict.message}[/yellow]")

    if not response.has_sql:
        console.print(Panel(response.raw_response.strip() or "(empty response)", title="Response"))
        return

    for index, statement in enumerate(response.statements, start=1):
        render_sql(statement.final_sql or "", title=f"Query #{index}")
        render_advisories(statement)
        try:
            with console.status("[cyan]Executing...[/cyan]", spinner="dots"):
                result = await runtime.service.execute_prepared(statement)
        except NL2SQLException as e:
            console.print(f"[red]Query failed: {e.message}[/red]")
            continue
        render_result(result)


async def answer_single(runtime: NL2SQLRuntime, question: str) -> None:
    with console.status("[cyan]Processing...[/cyan]", spinner="dots"):
        outcome = await runtime.service.process_question(question, runtime.session)
    render_outcome(outcome)


async def analyze(runtime: NL2SQLRuntime, question: str) -> Plan:
    plan = await runtime.orchestrator(ConsoleOperator()).run(question, runtime.session)
    render_plan(plan)
    return plan


async def self_test(runtime: NL2SQLRuntime) -> SelfTestReport:
    console.print(f"[cyan]Running {len(SELF_TEST_QUESTIONS)} test questions...[/cyan]")
    report = await runtime.service.run_self_test(SELF_TEST_QUESTIONS)
    render_self_test(report)
    return report


def run_with_runtime(action: Callable[[NL2SQLRuntime], Awaitable[None]]) -> None:
    """Open a runtime, run action, and turn startup failures into exit code 1."""

    async def runner() -> None:
        async with open_runtime() as runtime:
            console.print(
                f"[green]Connected to {runtime.db_client.database_name or 'database'}: "
                f"{runtime.catalog.table_count} tables, model {runtime.llm.active_model_name}[/green]"
            )
            await action(runtime)

    try:
        asyncio.run(runner())
    except ValidationError as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        sys.exit(1)
    except NL2SQLException as e:
        render_error(e)
        sys.exit(1)


# ============================================================================
# Commands
# ============================================================================


@click.group()
@click.version_option(version="0.1.0", prog_name="nl2sql")
@click.option("--verbose", "-v", count=True, help="Show logs (-v info, -vv debug).")
def cli(verbose: int):
    """NL2SQL - ask SQL Server questions in natural language."""
    level = {0: None, 1: "INFO"}.get(verbose, "DEBUG")
    try:
        configure_logging(level)
    except ValidationError as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        sys.exit(1)


@cli.command()
def chat():
    """Interactive REPL mode."""
    console.print(
        Panel.fit(
            "[bold green]NL2SQL Interactive Mode[/bold green]\n"
            f"Ask questions in natural language. Type '{SELF_TEST_SENTINEL}' to run the self-test,\n"
            f"'{MULTI_STEP_PREFIX} <question>' for a multi-step analysis, "
            "'exit' or 'quit' to leave.",
            border_style="green",
        )
    )

    async def loop(runtime: NL2SQLRuntime) -> None:
        while True:
            try:
                question = console.input("[bold cyan]You:[/bold cyan] ").strip()
            except (EOFError, KeyboardInterrupt):
                console.print("\n[yellow]Goodbye![/yellow]")
                return

            if not question:
                continue
            if question.lower() in EXIT_COMMANDS:
                console.print("[yellow]Goodbye![/yellow]")
                return

            start_new_trace()
            runtime.session.begin_question()
            try:
                if question.lower() == SELF_TEST_SENTINEL:
                    await self_test(runtime)
                elif question.lower().startswith(MULTI_STEP_PREFIX):
                    await analyze(runtime, question[len(MULTI_STEP_PREFIX):].strip())
                else:
                    await answer_conversationally(runtime, question)
            except NL2SQLException as e:
                render_error(e)

    run_with_runtime(loop)


@cli.command()
@click.argument("question")
def ask(question: str):
    """Answer a single question with one query."""

    async def action(runtime: NL2SQLRuntime) -> None:
        start_new_trace()
        runtime.session.begin_question()
        await answer_single(runtime, question)

    run_with_runtime(action)


@cli.command()
@click.argument("question")
@click.option("--yes", "-y", is_flag=True, help="Run every proposed step without confirmation.")
def plan(question: str, yes: bool):
    """Run a multi-step analysis for QUESTION."""

    async def action(runtime: NL2SQLRuntime) -> None:
        start_new_trace()
        runtime.session.begin_question()
        operator = None if yes else ConsoleOperator()
        result = await runtime.orchestrator(operator).run(question, runtime.session)
        if yes:
            for step in result.executed_steps:
                render_sql(step.sql, title=f"Query #{step.step_number}")
                console.print(step.result_digest or "")
        render_plan(result)

    run_with_runtime(action)


@cli.command()
def selftest():
    """Run the built-in question battery."""

    async def action(runtime: NL2SQLRuntime) -> None:
        report = await self_test(runtime)
        if report.failed:
            sys.exit(1)

    run_with_runtime(action)


@cli.command()
def schema():
    """Show the discovered schema."""

    async def action(runtime: NL2SQLRuntime) -> None:
        console.print(Panel(runtime.catalog.schema_context, title="Schema", border_style="cyan"))

    run_with_runtime(action)


@cli.command()
def health():
    """Check database and model connectivity."""

    async def action(runtime: NL2SQLRuntime) -> None:
        status = await runtime.db_client.health_check()
        table = Table(show_header=False)
        for key, value in status.items():
            table.add_row(key, str(value))
        table.add_row("model", runtime.llm.active_model_name)
        table.add_row("model connected", str(runtime.llm.is_connected()))
        console.print(table)
        if status["status"] != "healthy":
            sys.exit(1)

    run_with_runtime(action)


# ============================================================================
# Entry Point
# ============================================================================


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
