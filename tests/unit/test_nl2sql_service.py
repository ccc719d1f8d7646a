"""
Unit tests for NL2SQLService.

The model is scripted and execution is in-memory, so these tests cover the
whole single-shot pipeline from prompt to outcome.
"""

import pytest

from conftest import sample_result
from nl2sql.config import NL2SQLConfig
from nl2sql.domain.base_enums import PromptMode, RejectionReason
from nl2sql.domain.errors import DatabaseConnectionError, DatabaseQueryError, SQLValidationError

STRUCTURED_REPLY = "EXPLANATION: count orders\nSQL:\nSELECT COUNT(*) FROM Orders;\n###"


class TestGenerateResponse:
    async def test_accepted_statement_is_prepared(self, make_service, session):
        service = make_service(STRUCTURED_REPLY)
        response = await service.generate_response("How many orders?", session, PromptMode.CONVERSATIONAL)

        assert response.has_sql
        assert [s.final_sql for s in response.statements] == ["SELECT TOP 1000 COUNT(*) FROM Orders"]
        assert response.candidates[0].verdict.accepted

    async def test_rejected_candidates_are_kept_separately(self, make_service, session):
        service = make_service("SELECT * FROM Invoices;\nSELECT OrderID FROM Orders WHERE Freight > 10;")
        response = await service.generate_response("Show invoices", session)

        assert [s.final_sql for s in response.statements] == ["SELECT OrderID FROM Orders WHERE Freight > 10"]
        assert len(response.rejected) == 1
        assert response.rejected[0].verdict.reason == RejectionReason.UNKNOWN_TABLE
        assert response.rejected[0].final_sql is None

    async def test_exchange_is_recorded_and_replayed(self, make_service, session):
        service = make_service(STRUCTURED_REPLY)
        await service.generate_response("How many orders?", session)
        await service.generate_response("And last month?", session)

        assert session.history_for(PromptMode.CONVERSATIONAL) == [
            "Q: How many orders?\nSQL: SELECT TOP 1000 COUNT(*) FROM Orders",
            "Q: And last month?\nSQL: SELECT TOP 1000 COUNT(*) FROM Orders",
        ]
        first_prompt, second_prompt = service.llm.prompts
        assert "### Previous Context" not in first_prompt
        assert "### Previous Context\nQ: How many orders?" in second_prompt

    async def test_token_budget(self, make_service, session):
        service = make_service(STRUCTURED_REPLY, config=NL2SQLConfig(single_step_max_tokens=200))
        await service.generate_response("How many orders?", session)
        assert service.llm.max_tokens == [200]

    async def test_schema_is_filtered_by_question(self, make_service, session):
        service = make_service(STRUCTURED_REPLY)
        await service.generate_response("list products", session)

        prompt = service.llm.prompts[0]
        assert "Table: dbo.Products" in prompt
        assert "Table: dbo.Orders" not in prompt

    async def test_schema_filtering_can_be_disabled(self, make_service, session):
        service = make_service(STRUCTURED_REPLY, config=NL2SQLConfig(schema_filtering_enabled=False))
        await service.generate_response("list products", session)
        assert "Table: dbo.Orders" in service.llm.prompts[0]


class TestPrepare:
    def test_normalized_and_limited(self, make_service):
        prepared = make_service().prepare("SELECT * FROM Orders LIMIT 5")
        assert prepared.accepted
        assert prepared.final_sql == "SELECT TOP 5 * FROM Orders"

    def test_expensive_statement_gets_advisory(self, make_service):
        prepared = make_service().prepare("SELECT * FROM Orders")
        assert prepared.final_sql == "SELECT TOP 1000 * FROM Orders"
        assert prepared.is_expensive
        assert prepared.advisories == ["Selects all columns (SELECT *) without a WHERE clause"]

    async def test_execute_sql_rejects_forbidden(self, make_service, executor):
        with pytest.raises(SQLValidationError) as exc_info:
            await make_service().execute_sql("DELETE FROM Orders")

        assert exc_info.value.details["reason"] == "forbidden_operation"
        assert exc_info.value.details["keyword"] == "delete"
        assert executor.executed == []

    async def test_execute_sql_uses_query_timeout(self, make_service, executor):
        result = await make_service().execute_sql("SELECT OrderID FROM Orders WHERE Freight > 1")
        assert result.row_count == 2
        assert executor.timeouts == [30]


class TestProcessQuestion:
    async def test_success(self, make_service, executor, session):
        outcome = await make_service(STRUCTURED_REPLY).process_question("How many orders?", session)

        assert outcome.success
        assert outcome.sql == "SELECT TOP 1000 COUNT(*) FROM Orders"
        assert outcome.result.row_count == 2
        assert outcome.processing_time_ms >= 0
        assert executor.executed == ["SELECT TOP 1000 COUNT(*) FROM Orders"]

    async def test_no_sql_in_response(self, make_service, session):
        outcome = await make_service("I cannot answer that.").process_question("Weather?", session)
        assert not outcome.success
        assert outcome.error_message == "No valid SQL in model response"

    async def test_rejection_reason_is_reported(self, make_service, executor, session):
        outcome = await make_service("SELECT * FROM Invoices;").process_question("Show invoices", session)
        assert outcome.error_message == "No valid SQL in model response: Unknown table: Invoices"
        assert executor.executed == []

    async def test_query_failure_becomes_outcome(self, make_service, executor, session):
        executor.outcomes = [DatabaseQueryError("Invalid column name 'Total'")]
        outcome = await make_service(STRUCTURED_REPLY).process_question("How many orders?", session)

        assert not outcome.success
        assert outcome.sql == "SELECT TOP 1000 COUNT(*) FROM Orders"
        assert outcome.error_message == "Invalid column name 'Total'"

    async def test_connection_failure_propagates(self, make_service, executor, session):
        executor.outcomes = [DatabaseConnectionError("Database connection lost")]
        with pytest.raises(DatabaseConnectionError):
            await make_service(STRUCTURED_REPLY).process_question("How many orders?", session)


class TestSelfTest:
    async def test_report_tallies_outcomes(self, make_service, executor):
        executor.outcomes = [sample_result(1)]
        service = make_service(["SELECT COUNT(*) FROM Orders;", "no idea"])

        report = await service.run_self_test(["How many orders?", "What is the weather?"])

        assert report.total == 2
        assert report.passed == 1
        assert report.failed == 1
        assert report.success_rate == 50.0
        assert service.llm.resets == 2

    async def test_each_question_starts_clean(self, make_service):
        service = make_service(STRUCTURED_REPLY)
        await service.run_self_test(["How many orders?", "How many orders again?"])
        assert "### Previous Context" not in service.llm.prompts[1]

    async def test_conversation_history_survives_a_self_test(self, make_service, session):
        service = make_service(STRUCTURED_REPLY)
        session.record_exchange("Which categories exist?", "SQL: SELECT CategoryName FROM Categories", PromptMode.CONVERSATIONAL)

        await service.run_self_test(["How many orders?"])

        assert session.history_for(PromptMode.CONVERSATIONAL) == [
            "Q: Which categories exist?\nSQL: SELECT CategoryName FROM Categories"
        ]
        assert session.questions_asked == 0
